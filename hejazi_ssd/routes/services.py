from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import ServiceGroup, Service, SubService, SubSubService
from ..auth.security import get_current_user, require_admin
from ..services.permissions import make_key, SERVICE, SUB_SERVICE, SUB_SUB_SERVICE


router = APIRouter(prefix="/api", tags=["services"])


def service_to_dict(s: Service) -> dict:
    return {
        "id": s.id,
        "group_id": s.group_id,
        "name_ar": s.name_ar,
        "name_en": s.name_en,
        "icon": s.icon,
        "route": s.route,
        "order": s.order,
        "is_active": bool(s.is_active),
        "key": make_key(SERVICE, s.id),
    }


def sub_service_to_dict(ss: SubService) -> dict:
    return {
        "id": ss.id,
        "service_id": ss.service_id,
        "name_ar": ss.name_ar,
        "name_en": ss.name_en,
        "route": ss.route,
        "order": ss.order,
        "key": make_key(SUB_SERVICE, ss.id),
    }


def sub_sub_service_to_dict(sss: SubSubService) -> dict:
    return {
        "id": sss.id,
        "sub_service_id": sss.sub_service_id,
        "name_ar": sss.name_ar,
        "name_en": sss.name_en,
        "order": sss.order,
        "key": make_key(SUB_SUB_SERVICE, sss.id),
    }


def taxonomy_lists(db: Session) -> dict:
    """Flat lists of every taxonomy level, as used by the permission editors."""
    return {
        "services": [service_to_dict(s) for s in db.query(Service).order_by(Service.order.asc(), Service.id.asc()).all()],
        "subServices": [sub_service_to_dict(ss) for ss in db.query(SubService).order_by(SubService.order.asc(), SubService.id.asc()).all()],
        "subSubServices": [
            sub_sub_service_to_dict(sss)
            for sss in db.query(SubSubService).order_by(SubSubService.order.asc(), SubSubService.id.asc()).all()
        ],
    }


@router.get("/services-groups")
def list_service_groups(db: Session = Depends(get_db), _=Depends(get_current_user)):
    groups = db.query(ServiceGroup).order_by(ServiceGroup.order.asc(), ServiceGroup.id.asc()).all()
    services = db.query(Service).filter(Service.is_active == True).order_by(Service.order.asc(), Service.id.asc()).all()  # noqa: E712
    by_group = {}
    for s in services:
        by_group.setdefault(s.group_id, []).append(service_to_dict(s))
    return {
        "success": True,
        "groups": [
            {"id": g.id, "name_ar": g.name_ar, "name_en": g.name_en, "order": g.order, "services": by_group.get(g.id, [])}
            for g in groups
        ],
        "ungrouped": by_group.get(None, []),
    }


@router.get("/services/{service_id}/sub-services")
def list_sub_services(service_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = (
        db.query(SubService)
        .filter(SubService.service_id == service_id)
        .order_by(SubService.order.asc(), SubService.id.asc())
        .all()
    )
    return {"success": True, "subServices": [sub_service_to_dict(ss) for ss in rows]}


@router.get("/admin/services/{service_id}/header-data")
def service_header_data(service_id: int, db: Session = Depends(get_db), _=Depends(require_admin())):
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return {
        "success": True,
        "mainService": service_to_dict(service),
        "subServices": [sub_service_to_dict(ss) for ss in service.sub_services],
    }


@router.get("/permissions/hierarchy")
def permissions_hierarchy(db: Session = Depends(get_db), _=Depends(get_current_user)):
    services = db.query(Service).order_by(Service.order.asc(), Service.id.asc()).all()
    tree = []
    for s in services:
        node = service_to_dict(s)
        node["children"] = []
        for ss in s.sub_services:
            child = sub_service_to_dict(ss)
            child["children"] = [sub_sub_service_to_dict(sss) for sss in ss.sub_sub_services]
            node["children"].append(child)
        tree.append(node)
    return {"success": True, "hierarchy": tree}
