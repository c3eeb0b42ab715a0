from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import User, Activity, Hazard, ControlMeasure, Building, RiskAssessment
from ..schemas.operations import RiskCreate
from ..auth.security import get_current_user
from ..services.risk import risk_score, risk_level, RISK_ACTIONS


router = APIRouter(prefix="/api", tags=["risks"])
logger = structlog.get_logger(__name__)


def _named(obj, **extra) -> dict:
    data = {"id": obj.id, "name_ar": obj.name_ar, "name_en": obj.name_en}
    data.update(extra)
    return data


def risk_to_dict(r: RiskAssessment) -> dict:
    return {
        "id": str(r.id),
        "kind": r.kind,
        "activity_id": r.activity_id,
        "hazard_id": r.hazard_id,
        "control_measure_id": r.control_measure_id,
        "likelihood": r.likelihood,
        "consequence": r.consequence,
        "risk_score": r.risk_score,
        "risk_level": r.risk_level,
        "recommended_action": RISK_ACTIONS.get(r.risk_level),
        "building_id": r.building_id,
        "notes": r.notes,
        "created_by": str(r.created_by) if r.created_by else None,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }


@router.get("/activities")
def list_activities(db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.query(Activity).order_by(Activity.id.asc()).all()
    return {"success": True, "activities": [_named(a, reference=a.reference) for a in rows]}


@router.get("/activities/{activity_id}/hazards")
def list_hazards(activity_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.query(Hazard).filter(Hazard.activity_id == activity_id).order_by(Hazard.id.asc()).all()
    return {"success": True, "hazards": [_named(h) for h in rows]}


@router.get("/activities/{activity_id}/control-measures")
def list_control_measures(activity_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.query(ControlMeasure).filter(ControlMeasure.activity_id == activity_id).order_by(ControlMeasure.id.asc()).all()
    return {"success": True, "controlMeasures": [_named(c) for c in rows]}


@router.get("/risks")
def list_risks(
    kind: Optional[str] = None,
    building_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(RiskAssessment)
    if kind:
        query = query.filter(RiskAssessment.kind == kind)
    if building_id is not None:
        query = query.filter(RiskAssessment.building_id == building_id)
    rows = query.order_by(RiskAssessment.risk_score.desc(), RiskAssessment.created_at.desc()).all()
    return {"success": True, "risks": [risk_to_dict(r) for r in rows]}


@router.post("/risks", status_code=201)
def create_risk(payload: RiskCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    hazard = db.query(Hazard).filter(Hazard.id == payload.hazard_id).first()
    if not hazard or hazard.activity_id != payload.activity_id:
        raise HTTPException(status_code=400, detail="Hazard does not belong to the activity")
    if payload.control_measure_id is not None:
        measure = db.query(ControlMeasure).filter(ControlMeasure.id == payload.control_measure_id).first()
        if not measure or measure.activity_id != payload.activity_id:
            raise HTTPException(status_code=400, detail="Control measure does not belong to the activity")
    if payload.building_id is not None and not db.query(Building).filter(Building.id == payload.building_id).first():
        raise HTTPException(status_code=404, detail="Building not found")

    score = risk_score(payload.likelihood, payload.consequence)
    risk = RiskAssessment(
        **payload.model_dump(),
        risk_score=score,
        risk_level=risk_level(score),
        created_by=user.id,
    )
    db.add(risk)
    db.commit()
    logger.info("risk_created", risk_id=str(risk.id), kind=risk.kind, risk_score=score, risk_level=risk.risk_level)
    return {"success": True, "risk": risk_to_dict(risk)}
