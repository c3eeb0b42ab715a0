import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..config import settings
from ..db import get_db
from ..models.models import User, Company, Violation, ViolationSend
from ..schemas.operations import ViolationCreate, ViolationSendCreate
from ..auth.security import get_current_user
from ..services.audit import create_audit_log
from ..services.violations import build_mailto
from .users import names


router = APIRouter(prefix="/api/violations", tags=["violations"])
logger = structlog.get_logger(__name__)


def violation_to_dict(v: Violation) -> dict:
    return {
        "id": str(v.id),
        "company_id": str(v.company_id),
        "company": names(v.company),
        "violation_type_id": v.violation_type_id,
        "title": v.title,
        "description": v.description,
        "violation_date": v.violation_date.isoformat() if v.violation_date else None,
        "violation_time": v.violation_time.isoformat() if v.violation_time else None,
        "location": v.location,
        "severity": v.severity,
        "attachments": list(v.attachments or []),
        "status": v.status,
        "inserted_by": str(v.inserted_by) if v.inserted_by else None,
        "created_at": v.created_at.isoformat() if v.created_at else None,
    }


def send_to_dict(s: ViolationSend) -> dict:
    return {
        "id": s.id,
        "sent_to": s.sent_to,
        "sent_email": s.sent_email,
        "subject": s.subject,
        "email_link": s.email_link,
        "sent_by": str(s.sent_by) if s.sent_by else None,
        "sent_at": s.sent_at.isoformat() if s.sent_at else None,
    }


def _sender_name(user: User, lang: str) -> str:
    if lang == "en":
        return user.name_en or user.name_ar or user.email
    return user.name_ar or user.name_en or user.email


def _get_violation(db: Session, violation_id: uuid.UUID) -> Violation:
    v = db.query(Violation).filter(Violation.id == violation_id).first()
    if not v:
        raise HTTPException(status_code=404, detail="Violation not found")
    return v


@router.get("")
def list_violations(
    company_id: Optional[uuid.UUID] = None,
    severity: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(Violation)
    if company_id:
        query = query.filter(Violation.company_id == company_id)
    if severity:
        query = query.filter(Violation.severity == severity)
    rows = query.order_by(Violation.violation_date.desc(), Violation.created_at.desc()).all()
    return {"success": True, "violations": [violation_to_dict(v) for v in rows]}


@router.post("", status_code=201)
def create_violation(payload: ViolationCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    company = db.query(Company).filter(Company.id == payload.company_id).first()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")

    v = Violation(
        company_id=company.id,
        violation_type_id=payload.violation_type_id,
        title=payload.title,
        description=payload.description,
        violation_date=payload.violation_date,
        violation_time=payload.violation_time,
        location=payload.location,
        severity=payload.severity,
        attachments=[],
        status="pending",
        inserted_by=user.id,
    )
    db.add(v)
    company.violations_count = (company.violations_count or 0) + 1
    db.flush()
    create_audit_log(db, "violation", v.id, "CREATE", actor_id=user.id, changes_json={"company_id": str(company.id), "severity": v.severity})
    db.commit()
    logger.info("violation_created", violation_id=str(v.id), company_id=str(company.id), severity=v.severity)
    mail = build_mailto(v, _sender_name(user, payload.lang), payload.lang)
    return {"success": True, "violation": violation_to_dict(v), "email": mail}


@router.post("/{violation_id}/sends", status_code=201)
def log_violation_send(
    violation_id: uuid.UUID,
    payload: ViolationSendCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    v = _get_violation(db, violation_id)
    mail = build_mailto(v, _sender_name(user, payload.lang), payload.lang, recipient=payload.sent_email)
    send = ViolationSend(
        violation_id=v.id,
        sent_to=payload.sent_to or settings.violation_recipient_name,
        sent_email=mail["recipient"],
        subject=mail["subject"],
        body=mail["body"],
        email_link=mail["email_link"],
        sent_by=user.id,
    )
    db.add(send)
    db.commit()
    logger.info("violation_send_logged", violation_id=str(v.id), sent_email=send.sent_email)
    return {"success": True, "send": send_to_dict(send)}


@router.get("/{violation_id}/sends")
def list_violation_sends(violation_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    v = _get_violation(db, violation_id)
    return {"success": True, "sends": [send_to_dict(s) for s in v.sends]}
