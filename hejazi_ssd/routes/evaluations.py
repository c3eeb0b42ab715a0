import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
import structlog

from ..config import settings
from ..db import get_db
from ..models.models import (
    User,
    Company,
    SecurityQuestion,
    SecurityEvaluation,
    SecurityEvaluationDetail,
    EvaluationApproval,
)
from ..schemas.evaluations import EvaluationCreate, EvaluationUpdate, ApprovalRequest, EvaluationDetailInput
from ..auth.security import get_current_user, require_admin
from ..services.audit import create_audit_log
from ..services.evaluations import (
    APPROVAL_TRANSITIONS,
    next_evaluation_period,
    overall_score,
    validate_ratings,
    latest_periods,
    recompute_company_score,
)
from ..reports.evaluation_pdf import build_evaluation_pdf
from .users import names


router = APIRouter(prefix="/api/evaluations", tags=["evaluations"])
logger = structlog.get_logger(__name__)

EDITABLE_STATUSES = ("pending", "returned")


def question_to_dict(q: SecurityQuestion) -> dict:
    return {"id": q.id, "question_text_ar": q.question_text_ar, "question_text_en": q.question_text_en}


def evaluation_to_dict(ev: SecurityEvaluation) -> dict:
    return {
        "id": str(ev.id),
        "company_id": str(ev.company_id),
        "company": names(ev.company),
        "evaluator_id": str(ev.evaluator_id) if ev.evaluator_id else None,
        "evaluator": names(ev.evaluator),
        "historical_job_id": ev.historical_job_id,
        "historical_job": names(ev.historical_job),
        "evaluation_year": ev.evaluation_year,
        "evaluation_month": ev.evaluation_month,
        "status": ev.status,
        "historical_contract_no": ev.historical_contract_no,
        "historical_guard_count": ev.historical_guard_count,
        "historical_violations_count": ev.historical_violations_count,
        "summary": ev.summary,
        "overall_score": ev.overall_score,
        "created_at": ev.created_at.isoformat() if ev.created_at else None,
        "updated_at": ev.updated_at.isoformat() if ev.updated_at else None,
    }


def _get_evaluation(db: Session, evaluation_id: uuid.UUID) -> SecurityEvaluation:
    ev = db.query(SecurityEvaluation).filter(SecurityEvaluation.id == evaluation_id).first()
    if not ev:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    return ev


def _check_details(db: Session, details: List[EvaluationDetailInput]) -> None:
    bad = validate_ratings(d.selected_rating for d in details)
    if bad:
        raise HTTPException(status_code=400, detail=f"Ratings must be between {settings.rating_min} and {settings.rating_max} (rows {', '.join(str(i + 1) for i in bad)})")
    question_ids = {d.question_id for d in details}
    if len(question_ids) != len(details):
        raise HTTPException(status_code=400, detail="Each question may be rated once")
    if question_ids:
        found = {qid for (qid,) in db.query(SecurityQuestion.id).filter(SecurityQuestion.id.in_(question_ids)).all()}
        missing = question_ids - found
        if missing:
            raise HTTPException(status_code=400, detail=f"Unknown question(s): {', '.join(str(q) for q in sorted(missing))}")


@router.get("")
def list_evaluations(
    company_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(SecurityEvaluation).options(
        selectinload(SecurityEvaluation.company),
        selectinload(SecurityEvaluation.evaluator),
    )
    if company_id:
        query = query.filter(SecurityEvaluation.company_id == company_id)
    if status:
        query = query.filter(SecurityEvaluation.status == status)
    rows = query.order_by(
        SecurityEvaluation.evaluation_year.desc(),
        SecurityEvaluation.evaluation_month.desc(),
        SecurityEvaluation.created_at.desc(),
    ).all()
    return {"success": True, "evaluations": [evaluation_to_dict(ev) for ev in rows]}


@router.get("/companies-and-questions")
def companies_and_questions(db: Session = Depends(get_db), _=Depends(get_current_user)):
    today = date.today()
    latest = latest_periods(db)
    companies = []
    for c in db.query(Company).order_by(Company.name_ar.asc()).all():
        (year, month), done = next_evaluation_period(latest.get(c.id), today)
        if done:
            continue
        companies.append({
            "id": str(c.id),
            "name_ar": c.name_ar,
            "name_en": c.name_en,
            "contract_no": c.contract_no,
            "guard_count": c.guard_count,
            "violations_count": c.violations_count,
            "next_evaluation_year": year,
            "next_evaluation_month": month,
        })
    questions = (
        db.query(SecurityQuestion)
        .filter(SecurityQuestion.is_active == True)  # noqa: E712
        .order_by(SecurityQuestion.id.asc())
        .all()
    )
    return {"success": True, "companies": companies, "questions": [question_to_dict(q) for q in questions]}


@router.get("/{evaluation_id}")
def get_evaluation(evaluation_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    ev = _get_evaluation(db, evaluation_id)
    data = evaluation_to_dict(ev)
    data["details"] = [
        {
            "id": d.id,
            "question_id": d.question_id,
            "question": question_to_dict(d.question) if d.question else None,
            "selected_rating": d.selected_rating,
            "note": d.note,
        }
        for d in ev.details
    ]
    data["approvals"] = [
        {
            "id": a.id,
            "action": a.action,
            "status_after": a.status_after,
            "note": a.note,
            "approver_id": str(a.approver_id) if a.approver_id else None,
            "approver": names(a.approver),
            "created_at": a.created_at.isoformat() if a.created_at else None,
        }
        for a in ev.approvals
    ]
    return {"success": True, "evaluation": data}


@router.post("", status_code=201)
def create_evaluation(payload: EvaluationCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    company = db.query(Company).filter(Company.id == payload.company_id).first()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    if not payload.details:
        raise HTTPException(status_code=400, detail="At least one rated question is required")
    _check_details(db, payload.details)

    duplicate = db.query(SecurityEvaluation.id).filter(
        SecurityEvaluation.company_id == company.id,
        SecurityEvaluation.evaluation_year == payload.evaluation_year,
        SecurityEvaluation.evaluation_month == payload.evaluation_month,
    ).first()
    if duplicate:
        raise HTTPException(status_code=409, detail="An evaluation for this company and period already exists")

    score = payload.overall_score
    if score is not None and not settings.rating_min <= score <= settings.rating_max:
        raise HTTPException(
            status_code=400,
            detail=f"Overall score must be between {settings.rating_min} and {settings.rating_max}",
        )
    if score is None:
        score = overall_score(d.selected_rating for d in payload.details)

    ev = SecurityEvaluation(
        company_id=company.id,
        evaluator_id=user.id,
        historical_job_id=user.job_id,
        evaluation_year=payload.evaluation_year,
        evaluation_month=payload.evaluation_month,
        status="pending",
        historical_contract_no=payload.historical_contract_no if payload.historical_contract_no is not None else company.contract_no,
        historical_guard_count=payload.historical_guard_count if payload.historical_guard_count is not None else company.guard_count,
        historical_violations_count=(
            payload.historical_violations_count if payload.historical_violations_count is not None else company.violations_count
        ),
        summary=payload.summary,
        overall_score=score,
    )
    ev.details = [
        SecurityEvaluationDetail(question_id=d.question_id, selected_rating=d.selected_rating, note=d.note)
        for d in payload.details
    ]
    db.add(ev)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="An evaluation for this company and period already exists")

    company_score = recompute_company_score(db, company)
    create_audit_log(
        db,
        entity_type="evaluation",
        entity_id=ev.id,
        action="CREATE",
        actor_id=user.id,
        changes_json={
            "company_id": str(company.id),
            "period": f"{ev.evaluation_year}-{ev.evaluation_month:02d}",
            "overall_score": score,
        },
    )
    db.commit()
    logger.info(
        "evaluation_created",
        evaluation_id=str(ev.id),
        company_id=str(company.id),
        overall_score=score,
        company_score=company_score,
    )
    return {"success": True, "evaluation": evaluation_to_dict(ev), "companyScore": company_score}


@router.patch("/{evaluation_id}")
def update_evaluation(
    evaluation_id: uuid.UUID,
    payload: EvaluationUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ev = _get_evaluation(db, evaluation_id)
    if ev.status not in EDITABLE_STATUSES:
        raise HTTPException(status_code=409, detail=f"Evaluation is {ev.status} and can no longer be edited")
    if ev.evaluator_id != user.id and not user.is_super_admin:
        raise HTTPException(status_code=403, detail="Only the evaluator can edit this evaluation")

    data = payload.model_dump(exclude_unset=True)
    if "summary" in data:
        ev.summary = payload.summary
    if payload.details is not None:
        if not payload.details:
            raise HTTPException(status_code=400, detail="At least one rated question is required")
        _check_details(db, payload.details)
        by_question = {d.question_id: d for d in ev.details}
        for item in payload.details:
            row = by_question.get(item.question_id)
            if row is None:
                ev.details.append(SecurityEvaluationDetail(
                    question_id=item.question_id,
                    selected_rating=item.selected_rating,
                    note=item.note,
                ))
            else:
                row.selected_rating = item.selected_rating
                row.note = item.note
        ev.overall_score = overall_score(d.selected_rating for d in ev.details)
    # Editing a returned evaluation resubmits it
    ev.status = "pending"
    ev.updated_at = datetime.now(timezone.utc)
    db.flush()
    company_score = recompute_company_score(db, ev.company)
    create_audit_log(db, "evaluation", ev.id, "UPDATE", actor_id=user.id, changes_json={"overall_score": ev.overall_score})
    db.commit()
    return {"success": True, "evaluation": evaluation_to_dict(ev), "companyScore": company_score}


@router.post("/{evaluation_id}/approvals", status_code=201)
def decide_evaluation(
    evaluation_id: uuid.UUID,
    payload: ApprovalRequest,
    db: Session = Depends(get_db),
    approver: User = Depends(require_admin()),
):
    ev = _get_evaluation(db, evaluation_id)
    if ev.status not in EDITABLE_STATUSES:
        raise HTTPException(status_code=409, detail=f"Evaluation is already {ev.status}")
    if payload.action != "approve" and not (payload.note or "").strip():
        raise HTTPException(status_code=400, detail="A note is required when rejecting or returning")

    status_after = APPROVAL_TRANSITIONS[payload.action]
    ev.approvals.append(EvaluationApproval(
        approver_id=approver.id,
        action=payload.action,
        status_after=status_after,
        note=payload.note,
    ))
    before = ev.status
    ev.status = status_after
    ev.updated_at = datetime.now(timezone.utc)
    create_audit_log(
        db,
        entity_type="evaluation",
        entity_id=ev.id,
        action=payload.action.upper(),
        actor_id=approver.id,
        changes_json={"status": {"before": before, "after": status_after}},
    )
    db.commit()
    logger.info("evaluation_decided", evaluation_id=str(ev.id), action=payload.action, status=status_after)
    return {"success": True, "status": status_after}


@router.get("/{evaluation_id}/pdf")
def evaluation_pdf(evaluation_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    ev = _get_evaluation(db, evaluation_id)
    pdf = build_evaluation_pdf(ev)
    filename = f"evaluation_{ev.evaluation_year}_{ev.evaluation_month:02d}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
