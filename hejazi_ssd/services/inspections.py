from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..models.models import Distribution, Sector, Building, SubBuilding

SCHEDULED = "scheduled"
RANDOM = "random"


def open_assignments(db: Session, user_id) -> list:
    return (
        db.query(Distribution)
        .filter(Distribution.assigned_user_id == user_id, Distribution.is_completed == False)  # noqa: E712
        .all()
    )


def find_assignment(
    assignments: Iterable[Distribution],
    sector_id: int,
    building_id: int,
    sub_building_id: Optional[int],
) -> Optional[Distribution]:
    """
    Assignment covering the location. A building-level assignment (no
    sub-building) covers every sub-building of that building.
    """
    building_level = None
    for d in assignments:
        if d.sector_id != sector_id or d.building_id != building_id:
            continue
        if d.sub_building_id == sub_building_id:
            return d
        if d.sub_building_id is None and building_level is None:
            building_level = d
    return building_level


def _location(obj, **extra) -> dict:
    data = {
        "id": obj.id,
        "name_ar": obj.name_ar,
        "name_en": obj.name_en,
    }
    data.update(extra)
    return data


def _site(obj) -> dict:
    return _location(
        obj,
        map_url=obj.map_url,
        guards_morning_shift=obj.guards_morning_shift,
        guards_night_shift=obj.guards_night_shift,
        extinguishers_count=obj.extinguishers_count,
        first_aid_boxes_count=obj.first_aid_boxes_count,
    )


def locations_for(db: Session, user_id, inspection_type: str) -> list:
    """
    Sector -> building -> sub-building tree the user may inspect. Random
    inspections see everything; scheduled ones only their open assignments.
    """
    sectors = db.query(Sector).order_by(Sector.id.asc()).all()
    buildings = db.query(Building).order_by(Building.id.asc()).all()
    subbuildings = db.query(SubBuilding).order_by(SubBuilding.id.asc()).all()

    allowed_buildings = None
    allowed_subs = None
    if inspection_type == SCHEDULED:
        assignments = open_assignments(db, user_id)
        allowed_buildings = {(d.sector_id, d.building_id) for d in assignments}
        # None marks a building-level assignment
        allowed_subs = {}
        for d in assignments:
            allowed_subs.setdefault(d.building_id, set()).add(d.sub_building_id)

    tree = []
    for sector in sectors:
        sector_buildings = []
        for b in buildings:
            if b.sector_id != sector.id:
                continue
            if allowed_buildings is not None and (sector.id, b.id) not in allowed_buildings:
                continue
            subs = [s for s in subbuildings if s.building_id == b.id]
            if allowed_subs is not None and None not in allowed_subs.get(b.id, set()):
                subs = [s for s in subs if s.id in allowed_subs.get(b.id, set())]
            sector_buildings.append(dict(_site(b), subbuildings=[_site(s) for s in subs]))
        if allowed_buildings is not None and not sector_buildings:
            continue
        tree.append(_location(sector, buildings=sector_buildings))
    return tree
