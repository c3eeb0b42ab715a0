import os
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy import or_
from sqlalchemy.orm import Session
from slugify import slugify
import structlog

from ..config import settings
from ..db import get_db
from ..models.models import User, Job, Company, UserPermission
from ..schemas.users import UserCreate, UserUpdate, FavoritesUpdate, JobCreate, CompanyCreate
from ..auth.security import get_current_user, require_admin, get_password_hash
from ..services import permissions as perms
from ..services.access import get_effective_permissions, user_has_access, job_grants, user_overrides
from ..services.audit import create_audit_log, compute_diff
from ..storage.provider import StorageProvider
from ..storage.local_provider import LocalStorageProvider
from ..storage.blob_provider import BlobStorageProvider


router = APIRouter(prefix="/api", tags=["users"])
files_router = APIRouter(prefix="/files", tags=["files"])
logger = structlog.get_logger(__name__)

MEDIA_KINDS = {"avatar": ("avatar_url", "avatar_key"), "signature": ("signature_url", "signature_key")}


def get_storage() -> StorageProvider:
    """Azure Blob when configured, local filesystem otherwise."""
    if settings.storage_provider == "blob" and settings.azure_blob_connection and settings.azure_blob_container:
        return BlobStorageProvider()
    return LocalStorageProvider()


def user_to_dict(u: User) -> dict:
    return {
        "id": str(u.id),
        "email": u.email,
        "name_ar": u.name_ar,
        "name_en": u.name_en,
        "phone": u.phone,
        "job_id": u.job_id,
        "company_id": str(u.company_id) if u.company_id else None,
        "is_super_admin": bool(u.is_super_admin),
        "is_active": bool(u.is_active),
        "app_exception": bool(u.app_exception),
        "avatar_url": u.avatar_url,
        "signature_url": u.signature_url,
        "favorite_services": list(u.favorite_services or []),
        "created_at": u.created_at.isoformat() if u.created_at else None,
        "last_login_at": u.last_login_at.isoformat() if u.last_login_at else None,
    }


def names(obj) -> dict:
    if obj is None:
        return {"name_ar": None, "name_en": None}
    return {"name_ar": obj.name_ar, "name_en": obj.name_en}


def _is_self_or_admin(db: Session, actor: User, user_id: uuid.UUID) -> bool:
    return actor.id == user_id or user_has_access(db, actor, settings.admin_resource_key)


def _check_references(db: Session, job_id: Optional[int], company_id: Optional[uuid.UUID]) -> None:
    if job_id is not None and not db.query(Job).filter(Job.id == job_id).first():
        raise HTTPException(status_code=404, detail="Job not found")
    if company_id is not None and not db.query(Company).filter(Company.id == company_id).first():
        raise HTTPException(status_code=404, detail="Company not found")


def drop_redundant_exceptions(db: Session, user: User) -> int:
    """Delete the user's exceptions that now match their job's grants."""
    redundant = set(perms.redundant_exceptions(job_grants(db, user.job_id), user_overrides(db, user.id)))
    if not redundant:
        return 0
    removed = 0
    for row in db.query(UserPermission).filter(UserPermission.user_id == user.id).all():
        if perms.row_key(row) in redundant:
            db.delete(row)
            removed += 1
    return removed


# =====================
# Current user
# =====================

@router.get("/me")
def get_me(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "user": user_to_dict(user), "permissions": get_effective_permissions(db, user)}


@router.patch("/me")
def update_me(payload: UserUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    # Only contact fields are self-service
    data = payload.model_dump(exclude_unset=True, include={"name_ar", "name_en", "phone"})
    for field, value in data.items():
        setattr(user, field, value)
    db.commit()
    return {"success": True, "user": user_to_dict(user)}


# =====================
# Users
# =====================

@router.get("/user/{user_id}")
def get_user_with_permissions(user_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "user": user_to_dict(user), "permissions": get_effective_permissions(db, user)}


@router.post("/user/update-favorites")
def update_favorites(payload: FavoritesUpdate, db: Session = Depends(get_db), actor: User = Depends(get_current_user)):
    if not _is_self_or_admin(db, actor, payload.userId):
        raise HTTPException(status_code=403, detail="Forbidden")
    user = db.query(User).filter(User.id == payload.userId).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    # Keep order, drop duplicates
    user.favorite_services = list(dict.fromkeys(payload.favorites))
    db.commit()
    return {"success": True, "message": "Favorites updated successfully"}


@router.get("/users")
def list_users(
    q: Optional[str] = None,
    job_id: Optional[int] = None,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    _=Depends(require_admin()),
):
    limit = min(max(1, limit), 200)
    page = max(1, page)
    query = db.query(User)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(User.email.ilike(like), User.name_ar.ilike(like), User.name_en.ilike(like)))
    if job_id is not None:
        query = query.filter(User.job_id == job_id)
    total = query.count()
    rows = query.order_by(User.name_ar.asc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "success": True,
        "items": [user_to_dict(u) for u in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


@router.post("/users", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    if db.query(User).filter(User.email == payload.email.lower()).first():
        raise HTTPException(status_code=409, detail="Email already registered")
    _check_references(db, payload.job_id, payload.company_id)
    if payload.is_super_admin and not actor.is_super_admin:
        raise HTTPException(status_code=403, detail="Only super admins can create super admins")
    user = User(
        email=payload.email.lower(),
        password_hash=get_password_hash(payload.password),
        name_ar=payload.name_ar,
        name_en=payload.name_en,
        phone=payload.phone,
        job_id=payload.job_id,
        company_id=payload.company_id,
        is_super_admin=payload.is_super_admin,
        favorite_services=[],
    )
    db.add(user)
    db.flush()
    create_audit_log(db, "user", user.id, "CREATE", actor_id=actor.id, changes_json={"email": user.email, "job_id": user.job_id})
    db.commit()
    logger.info("user_created", user_id=str(user.id), actor_id=str(actor.id))
    return {"success": True, "user": user_to_dict(user)}


@router.patch("/users/{user_id}")
def update_user(user_id: uuid.UUID, payload: UserUpdate, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    data = payload.model_dump(exclude_unset=True)
    _check_references(db, data.get("job_id"), data.get("company_id"))
    before = {k: getattr(user, k) for k in data}
    for field, value in data.items():
        setattr(user, field, value)
    diff = compute_diff(
        {k: str(v) if v is not None else None for k, v in before.items()},
        {k: str(v) if v is not None else None for k, v in data.items()},
    )
    if "job_id" in diff:
        db.flush()
        cleaned = drop_redundant_exceptions(db, user)
        if cleaned:
            diff["cleaned_exceptions"] = cleaned
    if diff:
        create_audit_log(db, "user", user.id, "UPDATE", actor_id=actor.id, changes_json=diff)
    db.commit()
    return {"success": True, "user": user_to_dict(user)}


@router.post("/users/{user_id}/{kind}")
async def upload_user_media(
    user_id: uuid.UUID,
    kind: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: User = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    """Upload an avatar or signature image and store its URL on the user."""
    if kind not in MEDIA_KINDS:
        raise HTTPException(status_code=404, detail="Not found")
    if not _is_self_or_admin(db, actor, user_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    content_type = file.content_type or "application/octet-stream"
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image uploads are accepted")

    original = file.filename or f"{kind}.png"
    stem, ext = os.path.splitext(original)
    key = f"users/{user.id}/{kind}/{datetime.utcnow().strftime('%Y%m%d%H%M%S')}_{slugify(stem) or kind}{ext.lower()}"
    url_field, key_field = MEDIA_KINDS[kind]
    previous_key = getattr(user, key_field)
    storage.put(key, file.file, content_type)
    url = storage.get_download_url(key, expires_s=settings.media_url_ttl_seconds)
    setattr(user, url_field, url)
    setattr(user, key_field, key)
    db.commit()
    if previous_key and previous_key != key:
        storage.delete(previous_key)
    logger.info("user_media_uploaded", user_id=str(user.id), kind=kind, provider=storage.name)
    return {"success": True, "url": url, "key": key}


@files_router.get("/local/{key:path}")
def serve_local_file(key: str):
    storage = LocalStorageProvider()
    path = storage.get_path(key)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path)


# =====================
# Jobs and companies
# =====================

@router.get("/jobs")
def list_jobs(db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.query(Job).order_by(Job.id.asc()).all()
    return {"success": True, "jobs": [{"id": j.id, **names(j)} for j in rows]}


@router.post("/jobs", status_code=201)
def create_job(payload: JobCreate, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    job = Job(name_ar=payload.name_ar, name_en=payload.name_en)
    db.add(job)
    db.flush()
    create_audit_log(db, "job", job.id, "CREATE", actor_id=actor.id, changes_json=names(job))
    db.commit()
    return {"success": True, "job": {"id": job.id, **names(job)}}


@router.get("/job/{job_id}")
def get_job(job_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True, **names(job)}


def company_to_dict(c: Company) -> dict:
    return {
        "id": str(c.id),
        "name_ar": c.name_ar,
        "name_en": c.name_en,
        "contract_no": c.contract_no,
        "guard_count": c.guard_count,
        "violations_count": c.violations_count,
        "overall_score": c.overall_score,
    }


@router.get("/companies")
def list_companies(db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.query(Company).order_by(Company.name_ar.asc()).all()
    return {"success": True, "companies": [company_to_dict(c) for c in rows]}


@router.post("/companies", status_code=201)
def create_company(payload: CompanyCreate, db: Session = Depends(get_db), actor: User = Depends(require_admin())):
    company = Company(**payload.model_dump())
    db.add(company)
    db.commit()
    return {"success": True, "company": company_to_dict(company)}


@router.get("/company/{company_id}")
def get_company(company_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return {"success": True, **names(company)}
