"""
Loads permission rows for a user and resolves them through services.permissions.
"""
from typing import Dict, Optional, Set

from sqlalchemy.orm import Session

from ..models.models import (
    User,
    JobPermission,
    UserPermission,
    Service,
    SubService,
    SubSubService,
    AppStatus,
)
from . import permissions as perms


def load_taxonomy(db: Session) -> perms.Taxonomy:
    service_ids = [sid for (sid,) in db.query(Service.id).all()]
    sub_services = db.query(SubService.id, SubService.service_id).all()
    sub_sub_services = db.query(SubSubService.id, SubSubService.sub_service_id).all()
    return perms.Taxonomy.build(service_ids, sub_services, sub_sub_services)


def job_grants(db: Session, job_id: Optional[int]) -> Set[str]:
    if job_id is None:
        return set()
    rows = db.query(JobPermission).filter(JobPermission.job_id == job_id).all()
    return perms.job_grants_from_rows(rows)


def user_overrides(db: Session, user_id) -> Dict[str, bool]:
    rows = db.query(UserPermission).filter(UserPermission.user_id == user_id).all()
    return perms.user_overrides_from_rows(rows)


def get_effective_permissions(db: Session, user: User) -> Dict[str, bool]:
    taxonomy = load_taxonomy(db)
    if user.is_super_admin:
        return perms.effective_permissions((), {}, taxonomy, is_super_admin=True)
    return perms.effective_permissions(
        job_grants(db, user.job_id),
        user_overrides(db, user.id),
        taxonomy,
    )


def user_has_access(db: Session, user: User, key: str) -> bool:
    if user.is_super_admin:
        return True
    return perms.check_permission(
        key,
        job_grants(db, user.job_id),
        user_overrides(db, user.id),
        load_taxonomy(db),
    )


def is_app_enabled(db: Session) -> bool:
    status = db.query(AppStatus).filter(AppStatus.id == "global").first()
    return True if status is None else bool(status.is_allowed)
