"""
Permission resolution.

Access is granted over a three-level taxonomy of services, sub-services and
sub-sub-services, each node addressed by a resource key: ``s:<id>``,
``ss:<id>`` or ``sss:<id>``.

A job carries default grants. A user may carry exceptions that override the
job default for a single key, either way. The effective value of a key is
the user's exception when present, else the job grant, else denied. An
allowed node also makes its ancestors allowed.

This module is the only place where that precedence is decided; routes load
rows and delegate here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

SERVICE = "s"
SUB_SERVICE = "ss"
SUB_SUB_SERVICE = "sss"
LEVELS = (SERVICE, SUB_SERVICE, SUB_SUB_SERVICE)

# Always present in an effective map; marks a signed-in user
GENERAL_ACCESS = "general_access"

UPSERT = "upsert"
DELETE = "delete"


def parse_resource_key(key) -> Optional[Tuple[str, int]]:
    """Split ``"ss:12"`` into ``("ss", 12)``. Returns None for malformed keys."""
    if not isinstance(key, str) or ":" not in key:
        return None
    level, _, raw_id = key.partition(":")
    if level not in LEVELS:
        return None
    raw_id = raw_id.strip()
    if not raw_id.isdigit():
        return None
    return level, int(raw_id)


def make_key(level: str, resource_id: int) -> str:
    return f"{level}:{int(resource_id)}"


def resource_key(
    service_id: Optional[int] = None,
    sub_service_id: Optional[int] = None,
    sub_sub_service_id: Optional[int] = None,
) -> Optional[str]:
    """Key of a permission row; the most specific id wins."""
    if sub_sub_service_id is not None:
        return make_key(SUB_SUB_SERVICE, sub_sub_service_id)
    if sub_service_id is not None:
        return make_key(SUB_SERVICE, sub_service_id)
    if service_id is not None:
        return make_key(SERVICE, service_id)
    return None


def row_key(row) -> Optional[str]:
    return resource_key(
        getattr(row, "service_id", None),
        getattr(row, "sub_service_id", None),
        getattr(row, "sub_sub_service_id", None),
    )


def key_columns(key: str) -> Dict[str, Optional[int]]:
    """Column values for a row storing ``key``. Raises ValueError for malformed keys."""
    parsed = parse_resource_key(key)
    if parsed is None:
        raise ValueError(f"Malformed resource key: {key!r}")
    level, resource_id = parsed
    return {
        "service_id": resource_id if level == SERVICE else None,
        "sub_service_id": resource_id if level == SUB_SERVICE else None,
        "sub_sub_service_id": resource_id if level == SUB_SUB_SERVICE else None,
    }


@dataclass
class Taxonomy:
    """Parent links of the service tree, keyed by resource key."""

    parents: Dict[str, str] = field(default_factory=dict)
    keys: Set[str] = field(default_factory=set)

    @classmethod
    def build(
        cls,
        service_ids: Iterable[int],
        sub_services: Iterable[Tuple[int, int]],
        sub_sub_services: Iterable[Tuple[int, int]],
    ) -> "Taxonomy":
        """
        Args:
            service_ids: ids of services
            sub_services: (sub_service_id, service_id) pairs
            sub_sub_services: (sub_sub_service_id, sub_service_id) pairs
        """
        tax = cls()
        for sid in service_ids:
            tax.keys.add(make_key(SERVICE, sid))
        for ssid, sid in sub_services:
            key = make_key(SUB_SERVICE, ssid)
            tax.keys.add(key)
            tax.parents[key] = make_key(SERVICE, sid)
        for sssid, ssid in sub_sub_services:
            key = make_key(SUB_SUB_SERVICE, sssid)
            tax.keys.add(key)
            tax.parents[key] = make_key(SUB_SERVICE, ssid)
        return tax

    def ancestors(self, key: str) -> List[str]:
        chain = []
        current = self.parents.get(key)
        while current and current not in chain:
            chain.append(current)
            current = self.parents.get(current)
        return chain


def job_grants_from_rows(rows: Iterable) -> Set[str]:
    grants = set()
    for row in rows:
        if getattr(row, "is_allowed", True) is False:
            continue
        key = row_key(row)
        if key:
            grants.add(key)
    return grants


def user_overrides_from_rows(rows: Iterable) -> Dict[str, bool]:
    overrides: Dict[str, bool] = {}
    for row in rows:
        key = row_key(row)
        if key:
            overrides[key] = bool(row.is_allowed)
    return overrides


def merge_permissions(job_grants: Iterable[str], user_overrides: Mapping[str, bool]) -> Dict[str, bool]:
    """Effective map: user exception if present, else job grant. Only allowed keys are kept."""
    effective = {key: True for key in job_grants}
    for key, allowed in user_overrides.items():
        if allowed:
            effective[key] = True
        else:
            # Explicit deny shadows the job grant
            effective.pop(key, None)
    return effective


def expand_ancestors(effective: Mapping[str, bool], taxonomy: Optional[Taxonomy]) -> Dict[str, bool]:
    """An allowed node makes its parent (and grandparent) allowed."""
    expanded = dict(effective)
    if taxonomy is None:
        return expanded
    for key, allowed in effective.items():
        if not allowed:
            continue
        for parent in taxonomy.ancestors(key):
            expanded[parent] = True
    return expanded


def effective_permissions(
    job_grants: Iterable[str],
    user_overrides: Mapping[str, bool],
    taxonomy: Optional[Taxonomy] = None,
    is_super_admin: bool = False,
) -> Dict[str, bool]:
    if is_super_admin:
        result = {key: True for key in (taxonomy.keys if taxonomy else ())}
    else:
        result = expand_ancestors(merge_permissions(job_grants, user_overrides), taxonomy)
    result[GENERAL_ACCESS] = True
    return result


def check_permission(
    key: str,
    job_grants: Iterable[str],
    user_overrides: Mapping[str, bool],
    taxonomy: Optional[Taxonomy] = None,
    is_super_admin: bool = False,
) -> bool:
    if is_super_admin:
        return True
    if key != GENERAL_ACCESS and parse_resource_key(key) is None:
        return False
    perms = effective_permissions(job_grants, user_overrides, taxonomy)
    return bool(perms.get(key, False))


def plan_user_exception(in_job: bool, requested: bool) -> str:
    """
    Decide how to store a requested value so that only differences from the
    job default are kept:

    - requested matches the job default -> DELETE any exception
    - requested differs from the job default -> UPSERT an exception
    """
    return DELETE if bool(requested) == bool(in_job) else UPSERT


def plan_job_change(
    current: Iterable[str],
    to_add: Iterable[str],
    to_remove: Iterable[str],
) -> Tuple[List[str], List[str]]:
    """
    Returns (keys to insert, keys to delete). Malformed keys are skipped.
    Removals are applied first, so a key in both lists stays granted.
    """
    current_set = set(current)
    add = []
    for key in to_add:
        if parse_resource_key(key) is None:
            continue
        key = make_key(*parse_resource_key(key))
        if key not in add:
            add.append(key)
    remove = []
    for key in to_remove:
        if parse_resource_key(key) is None:
            continue
        key = make_key(*parse_resource_key(key))
        if key not in remove and key not in add:
            remove.append(key)

    inserts = [k for k in add if k not in current_set]
    deletes = [k for k in remove if k in current_set]
    return inserts, deletes


def redundant_exceptions(job_grants: Iterable[str], user_overrides: Mapping[str, bool]) -> List[str]:
    """Exception keys whose value now equals the job default."""
    grants = set(job_grants)
    return [key for key, allowed in user_overrides.items() if bool(allowed) == (key in grants)]
