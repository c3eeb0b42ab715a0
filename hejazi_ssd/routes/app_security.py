from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import User, Job, AppStatus
from ..schemas.permissions import AppSecuritySave
from ..auth.security import require_admin
from ..services.audit import create_audit_log
from .users import user_to_dict


router = APIRouter(prefix="/api/admin/app-security", tags=["app-security"])
logger = structlog.get_logger(__name__)


@router.get("")
def get_app_security(db: Session = Depends(get_db), _=Depends(require_admin())):
    status = db.query(AppStatus).filter(AppStatus.id == "global").first()
    users = db.query(User).order_by(User.name_ar.asc()).all()
    jobs = db.query(Job).order_by(Job.id.asc()).all()
    return {
        "success": True,
        "appStatus": {
            "is_allowed": True if status is None else bool(status.is_allowed),
            "updated_at": status.updated_at.isoformat() if status and status.updated_at else None,
        },
        "users": [user_to_dict(u) for u in users],
        "jobs": [{"id": j.id, "name_ar": j.name_ar, "name_en": j.name_en} for j in jobs],
    }


@router.post("/save-changes")
def save_app_security(payload: AppSecuritySave, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    status = db.query(AppStatus).filter(AppStatus.id == "global").first()
    if status is None:
        status = AppStatus(id="global")
        db.add(status)
    before = True if status.is_allowed is None else bool(status.is_allowed)
    status.is_allowed = payload.isSystemActive
    status.updated_by = actor.id
    status.updated_at = datetime.now(timezone.utc)

    enabled = disabled = 0
    if payload.usersToEnableException:
        enabled = (
            db.query(User)
            .filter(User.id.in_(payload.usersToEnableException))
            .update({User.app_exception: True}, synchronize_session=False)
        )
    if payload.usersToDisableException:
        disabled = (
            db.query(User)
            .filter(User.id.in_(payload.usersToDisableException))
            .update({User.app_exception: False}, synchronize_session=False)
        )

    create_audit_log(
        db,
        entity_type="app",
        entity_id="global",
        action="UPDATE",
        actor_id=actor.id,
        changes_json={
            "is_allowed": {"before": before, "after": payload.isSystemActive},
            "exceptions_enabled": [str(u) for u in payload.usersToEnableException],
            "exceptions_disabled": [str(u) for u in payload.usersToDisableException],
        },
    )
    db.commit()
    logger.info(
        "app_security_saved",
        is_allowed=payload.isSystemActive,
        exceptions_enabled=enabled,
        exceptions_disabled=disabled,
        actor_id=str(actor.id),
    )
    return {"success": True, "message": "App security settings saved"}
