import uuid
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import (
    User,
    Job,
    JobPermission,
    UserPermission,
    Service,
    SubService,
    SubSubService,
    PermissionNotification,
)
from ..schemas.permissions import JobPermissionsSave, UserExceptionsSave
from ..auth.security import get_current_user, require_admin
from ..services import permissions as perms
from ..services.access import (
    load_taxonomy,
    job_grants,
    user_overrides,
    get_effective_permissions,
    user_has_access,
)
from ..services.audit import create_audit_log
from ..services.notifications import (
    notify_permission_change,
    affected_users_by_job,
    PERMISSION_ADDED,
    PERMISSION_REMOVED,
)
from .services import taxonomy_lists
from .users import user_to_dict


router = APIRouter(prefix="/api", tags=["permissions"])
logger = structlog.get_logger(__name__)


def permission_row_to_dict(row) -> dict:
    return {
        "id": row.id,
        "service_id": row.service_id,
        "sub_service_id": row.sub_service_id,
        "sub_sub_service_id": row.sub_sub_service_id,
        "is_allowed": bool(row.is_allowed),
        "key": perms.row_key(row),
    }


def key_labels(db: Session, keys: List[str]) -> List[str]:
    """Arabic display names for resource keys; unknown keys fall back to the key itself."""
    models = {perms.SERVICE: Service, perms.SUB_SERVICE: SubService, perms.SUB_SUB_SERVICE: SubSubService}
    labels = []
    for key in keys:
        parsed = perms.parse_resource_key(key)
        obj = db.get(models[parsed[0]], parsed[1]) if parsed else None
        labels.append(obj.name_ar if obj else key)
    return labels


def _jobs(db: Session) -> List[dict]:
    return [{"id": j.id, "name_ar": j.name_ar, "name_en": j.name_en} for j in db.query(Job).order_by(Job.id.asc()).all()]


# =====================
# Job permissions
# =====================

@router.get("/job-permissions/initial-data")
def job_permissions_initial_data(db: Session = Depends(get_db), _=Depends(require_admin())):
    return {"success": True, "jobs": _jobs(db), **taxonomy_lists(db)}


@router.get("/job-permissions/{job_id}")
def get_job_permissions(job_id: int, db: Session = Depends(get_db), _=Depends(require_admin())):
    if not db.query(Job).filter(Job.id == job_id).first():
        raise HTTPException(status_code=404, detail="Job not found")
    rows = db.query(JobPermission).filter(JobPermission.job_id == job_id).all()
    return {"success": True, "permissions": [permission_row_to_dict(r) for r in rows]}


@router.post("/job-permissions/save")
def save_job_permissions(payload: JobPermissionsSave, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    job = db.query(Job).filter(Job.id == payload.jobId).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    taxonomy = load_taxonomy(db)
    rows = db.query(JobPermission).filter(JobPermission.job_id == job.id).all()
    rows_by_key: Dict[str, JobPermission] = {}
    denied_rows: Dict[str, JobPermission] = {}
    for row in rows:
        key = perms.row_key(row)
        if not key:
            continue
        if row.is_allowed:
            rows_by_key[key] = row
        else:
            denied_rows[key] = row

    inserts, deletes = perms.plan_job_change(rows_by_key.keys(), payload.permissionsToAdd, payload.permissionsToRemove)
    # Keys outside the taxonomy are ignored like malformed ones
    inserts = [k for k in inserts if k in taxonomy.keys]

    for key in deletes:
        db.delete(rows_by_key[key])
    for key in inserts:
        if key in denied_rows:
            denied_rows[key].is_allowed = True
        else:
            db.add(JobPermission(job_id=job.id, is_allowed=True, created_by=actor.id, **perms.key_columns(key)))
    db.flush()

    new_grants = (set(rows_by_key) - set(deletes)) | set(inserts)
    holders = affected_users_by_job(db, job.id)
    cleaned = 0
    for holder in holders:
        redundant = set(perms.redundant_exceptions(new_grants, user_overrides(db, holder.id)))
        if not redundant:
            continue
        for row in db.query(UserPermission).filter(UserPermission.user_id == holder.id).all():
            if perms.row_key(row) in redundant:
                db.delete(row)
                cleaned += 1

    if inserts or deletes:
        create_audit_log(
            db,
            entity_type="job",
            entity_id=job.id,
            action="PERMISSIONS",
            actor_id=actor.id,
            source="api",
            changes_json={"added": inserts, "removed": deletes, "cleaned_exceptions": cleaned},
        )
        holder_ids = [h.id for h in holders]
        if inserts:
            notify_permission_change(db, PERMISSION_ADDED, holder_ids, inserts, key_labels(db, inserts), changed_by=actor.id, affected_job_id=job.id)
        if deletes:
            notify_permission_change(db, PERMISSION_REMOVED, holder_ids, deletes, key_labels(db, deletes), changed_by=actor.id, affected_job_id=job.id)

    db.commit()
    logger.info(
        "job_permissions_saved",
        job_id=job.id,
        added=len(inserts),
        removed=len(deletes),
        cleaned_exceptions=cleaned,
        actor_id=str(actor.id),
    )
    return {
        "success": True,
        "message": "Job permissions saved",
        "added": inserts,
        "removed": deletes,
        "cleanedExceptions": cleaned,
    }


# =====================
# User exceptions
# =====================

@router.get("/user-exceptions/initial-data")
def user_exceptions_initial_data(db: Session = Depends(get_db), _=Depends(require_admin())):
    users = db.query(User).order_by(User.name_ar.asc()).all()
    return {
        "success": True,
        "users": [user_to_dict(u) for u in users],
        "jobs": _jobs(db),
        **taxonomy_lists(db),
    }


@router.get("/user-exceptions/{user_id}")
def get_user_exceptions(user_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_admin())):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    exceptions = db.query(UserPermission).filter(UserPermission.user_id == user.id).all()
    job_rows = []
    if user.job_id is not None:
        job_rows = db.query(JobPermission).filter(JobPermission.job_id == user.job_id).all()
    return {
        "success": True,
        "userPermissions": [permission_row_to_dict(r) for r in exceptions],
        "jobPermissions": [permission_row_to_dict(r) for r in job_rows],
    }


@router.post("/user-exceptions/save")
def save_user_exceptions(payload: UserExceptionsSave, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    user = db.query(User).filter(User.id == payload.userId).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    taxonomy = load_taxonomy(db)
    grants = job_grants(db, user.job_id)
    rows_by_key: Dict[str, UserPermission] = {}
    for row in db.query(UserPermission).filter(UserPermission.user_id == user.id).all():
        key = perms.row_key(row)
        if key:
            rows_by_key[key] = row

    now = datetime.now(timezone.utc)
    upserted, deleted, granted, revoked = [], [], [], []
    for change in payload.changes:
        key = perms.resource_key(change.service_id, change.sub_service_id, change.sub_sub_service_id)
        if key not in taxonomy.keys:
            raise HTTPException(status_code=400, detail=f"Unknown resource {key}")
        (granted if change.is_allowed else revoked).append(key)
        existing = rows_by_key.get(key)
        if perms.plan_user_exception(key in grants, change.is_allowed) == perms.DELETE:
            if existing is not None:
                db.delete(existing)
                rows_by_key.pop(key)
                deleted.append(key)
            continue
        if existing is not None:
            existing.is_allowed = change.is_allowed
            existing.updated_at = now
        else:
            row = UserPermission(
                user_id=user.id,
                is_allowed=change.is_allowed,
                is_manual_exception=True,
                created_by=actor.id,
                **perms.key_columns(key),
            )
            db.add(row)
            rows_by_key[key] = row
        upserted.append(key)

    create_audit_log(
        db,
        entity_type="user",
        entity_id=user.id,
        action="PERMISSIONS",
        actor_id=actor.id,
        source="api",
        changes_json={"upserted": upserted, "deleted": deleted},
    )
    if granted:
        notify_permission_change(db, PERMISSION_ADDED, [user.id], granted, key_labels(db, granted), changed_by=actor.id)
    if revoked:
        notify_permission_change(db, PERMISSION_REMOVED, [user.id], revoked, key_labels(db, revoked), changed_by=actor.id)
    db.commit()
    logger.info("user_exceptions_saved", user_id=str(user.id), upserted=len(upserted), deleted=len(deleted))
    return {"success": True, "message": "User exceptions saved", "upserted": upserted, "deleted": deleted}


# =====================
# Caller's permissions
# =====================

@router.get("/permissions/check")
def check_permission(key: str = Query(..., min_length=1), db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "isAllowed": user_has_access(db, user, key)}


@router.get("/permissions/effective")
def my_effective_permissions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "permissions": get_effective_permissions(db, user)}


@router.get("/notifications")
def list_my_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = db.query(PermissionNotification).filter(PermissionNotification.affected_user_id == user.id)
    if unread_only:
        query = query.filter(PermissionNotification.is_read == False)  # noqa: E712
    rows = query.order_by(PermissionNotification.created_at.desc()).limit(min(max(1, limit), 200)).all()
    return {
        "success": True,
        "notifications": [
            {
                "id": str(n.id),
                "change_type": n.change_type,
                "impact_level": n.impact_level,
                "message_ar": n.message_ar,
                "message_en": n.message_en,
                "details": n.details,
                "is_read": bool(n.is_read),
                "created_at": n.created_at.isoformat() if n.created_at else None,
            }
            for n in rows
        ],
    }


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(notification_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = (
        db.query(PermissionNotification)
        .filter(PermissionNotification.id == notification_id, PermissionNotification.affected_user_id == user.id)
        .first()
    )
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    n.is_read = True
    db.commit()
    return {"success": True}
