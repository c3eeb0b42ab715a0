import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import User, Building, SubBuilding, Distribution, Inspection
from ..schemas.operations import InspectionCreate, DistributionCreate
from ..auth.security import get_current_user, require_admin
from ..services.inspections import SCHEDULED, RANDOM, locations_for, open_assignments, find_assignment


router = APIRouter(prefix="/api", tags=["inspections"])
logger = structlog.get_logger(__name__)


def distribution_to_dict(d: Distribution) -> dict:
    return {
        "id": d.id,
        "assigned_user_id": str(d.assigned_user_id),
        "sector_id": d.sector_id,
        "building_id": d.building_id,
        "sub_building_id": d.sub_building_id,
        "assigned_date": d.assigned_date.isoformat() if d.assigned_date else None,
        "is_completed": bool(d.is_completed),
    }


def inspection_to_dict(i: Inspection) -> dict:
    return {
        "id": str(i.id),
        "inspector_id": str(i.inspector_id),
        "inspection_type": i.inspection_type,
        "distribution_id": i.distribution_id,
        "sector_id": i.sector_id,
        "building_id": i.building_id,
        "sub_building_id": i.sub_building_id,
        "guards_present_morning": i.guards_present_morning,
        "guards_present_night": i.guards_present_night,
        "extinguishers_ok": i.extinguishers_ok,
        "first_aid_boxes_ok": i.first_aid_boxes_ok,
        "findings": i.findings or [],
        "notes": i.notes,
        "created_at": i.created_at.isoformat() if i.created_at else None,
    }


def _check_location(db: Session, sector_id: int, building_id: int, sub_building_id: Optional[int]) -> None:
    building = db.query(Building).filter(Building.id == building_id).first()
    if not building or building.sector_id != sector_id:
        raise HTTPException(status_code=400, detail="Building does not belong to the sector")
    if sub_building_id is not None:
        sub = db.query(SubBuilding).filter(SubBuilding.id == sub_building_id).first()
        if not sub or sub.building_id != building_id:
            raise HTTPException(status_code=400, detail="Sub-building does not belong to the building")


@router.get("/inspections/locations")
def inspection_locations(
    type: Literal["scheduled", "random"] = Query(RANDOM),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return {"success": True, "type": type, "sectors": locations_for(db, user.id, type)}


@router.get("/inspections")
def list_inspections(mine: bool = True, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    query = db.query(Inspection)
    if mine:
        query = query.filter(Inspection.inspector_id == user.id)
    rows = query.order_by(Inspection.created_at.desc()).all()
    return {"success": True, "inspections": [inspection_to_dict(i) for i in rows]}


@router.post("/inspections", status_code=201)
def create_inspection(payload: InspectionCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _check_location(db, payload.sector_id, payload.building_id, payload.sub_building_id)

    assignment = None
    if payload.inspection_type == SCHEDULED:
        assignment = find_assignment(
            open_assignments(db, user.id),
            payload.sector_id,
            payload.building_id,
            payload.sub_building_id,
        )
        if assignment is None:
            raise HTTPException(status_code=403, detail="Location is not assigned to you")

    inspection = Inspection(
        inspector_id=user.id,
        inspection_type=payload.inspection_type,
        distribution_id=assignment.id if assignment else None,
        **payload.model_dump(exclude={"inspection_type"}),
    )
    db.add(inspection)
    if assignment is not None:
        assignment.is_completed = True
    db.commit()
    logger.info(
        "inspection_created",
        inspection_id=str(inspection.id),
        inspection_type=inspection.inspection_type,
        distribution_id=inspection.distribution_id,
    )
    return {"success": True, "inspection": inspection_to_dict(inspection)}


@router.get("/distribution")
def list_distribution(
    user_id: Optional[uuid.UUID] = None,
    open_only: bool = True,
    db: Session = Depends(get_db),
    _=Depends(require_admin()),
):
    query = db.query(Distribution)
    if user_id:
        query = query.filter(Distribution.assigned_user_id == user_id)
    if open_only:
        query = query.filter(Distribution.is_completed == False)  # noqa: E712
    rows = query.order_by(Distribution.id.asc()).all()
    return {"success": True, "distribution": [distribution_to_dict(d) for d in rows]}


@router.post("/distribution", status_code=201)
def create_distribution(payload: DistributionCreate, db: Session = Depends(get_db), _=Depends(require_admin())):
    if not db.query(User).filter(User.id == payload.assigned_user_id).first():
        raise HTTPException(status_code=404, detail="User not found")
    _check_location(db, payload.sector_id, payload.building_id, payload.sub_building_id)
    d = Distribution(**payload.model_dump())
    db.add(d)
    db.commit()
    return {"success": True, "distribution": distribution_to_dict(d)}
