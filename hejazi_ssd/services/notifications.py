"""
Permission-change notifications.

Rows are added to the same transaction as the permission change they describe.
"""
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session
import structlog

from ..models.models import PermissionNotification, User


logger = structlog.get_logger(__name__)

PERMISSION_ADDED = "permission_added"
PERMISSION_REMOVED = "permission_removed"
PERMISSION_MODIFIED = "permission_modified"

_MESSAGES = {
    PERMISSION_ADDED: ('تمت إضافة صلاحية "{name}"', 'Permission "{name}" was added'),
    PERMISSION_REMOVED: ('تمت إزالة صلاحية "{name}"', 'Permission "{name}" was removed'),
    PERMISSION_MODIFIED: ('تم تعديل صلاحية "{name}"', 'Permission "{name}" was modified'),
}


def impact_level(change_type: str) -> str:
    if change_type == PERMISSION_REMOVED:
        return "high"
    return "medium"


def build_messages(change_type: str, permission_names: List[str]):
    name = "، ".join(permission_names) if permission_names else "غير معروفة"
    name_en = ", ".join(permission_names) if permission_names else "unknown"
    ar, en = _MESSAGES.get(change_type, _MESSAGES[PERMISSION_MODIFIED])
    return ar.format(name=name), en.format(name=name_en)


def affected_users_by_job(db: Session, job_id: int) -> List[User]:
    return db.query(User).filter(User.job_id == job_id, User.is_active == True).all()  # noqa: E712


def notify_permission_change(
    db: Session,
    change_type: str,
    affected_user_ids: Iterable,
    permission_keys: List[str],
    permission_names: List[str],
    changed_by=None,
    affected_job_id: Optional[int] = None,
) -> int:
    """Queue one notification per affected user. Returns how many were added."""
    message_ar, message_en = build_messages(change_type, permission_names)
    count = 0
    for user_id in affected_user_ids:
        db.add(PermissionNotification(
            affected_user_id=user_id,
            affected_job_id=affected_job_id,
            change_type=change_type,
            system="direct_permissions",
            impact_level=impact_level(change_type),
            message_ar=message_ar,
            message_en=message_en,
            details={"permission_keys": list(permission_keys), "permission_names": list(permission_names)},
            changed_by_user_id=changed_by,
        ))
        count += 1
    logger.info("permission_notifications_queued", change_type=change_type, count=count)
    return count
