from types import SimpleNamespace

import pytest

from hejazi_ssd.services.permissions import (
    DELETE,
    GENERAL_ACCESS,
    UPSERT,
    Taxonomy,
    check_permission,
    effective_permissions,
    job_grants_from_rows,
    key_columns,
    merge_permissions,
    parse_resource_key,
    plan_job_change,
    plan_user_exception,
    redundant_exceptions,
    resource_key,
    user_overrides_from_rows,
)


TAXONOMY = Taxonomy.build(
    service_ids=[1, 2],
    sub_services=[(10, 1), (11, 1), (20, 2)],
    sub_sub_services=[(100, 10), (101, 10)],
)


def row(service_id=None, sub_service_id=None, sub_sub_service_id=None, is_allowed=True):
    return SimpleNamespace(
        service_id=service_id,
        sub_service_id=sub_service_id,
        sub_sub_service_id=sub_sub_service_id,
        is_allowed=is_allowed,
    )


class TestResourceKeys:
    @pytest.mark.parametrize("key,expected", [
        ("s:1", ("s", 1)),
        ("ss:12", ("ss", 12)),
        ("sss:7", ("sss", 7)),
    ])
    def test_parse_valid(self, key, expected):
        assert parse_resource_key(key) == expected

    @pytest.mark.parametrize("key", ["", "s", "x:1", "s:", "s:abc", "ss:-1", None, 5, "general_access"])
    def test_parse_malformed(self, key):
        assert parse_resource_key(key) is None

    def test_most_specific_id_wins(self):
        assert resource_key(1, 10, 100) == "sss:100"
        assert resource_key(1, 10) == "ss:10"
        assert resource_key(1) == "s:1"
        assert resource_key() is None

    def test_key_columns(self):
        assert key_columns("ss:4") == {"service_id": None, "sub_service_id": 4, "sub_sub_service_id": None}
        with pytest.raises(ValueError):
            key_columns("bogus")


class TestTaxonomy:
    def test_ancestors(self):
        assert TAXONOMY.ancestors("sss:100") == ["ss:10", "s:1"]
        assert TAXONOMY.ancestors("ss:20") == ["s:2"]
        assert TAXONOMY.ancestors("s:1") == []

    def test_keys(self):
        assert TAXONOMY.keys == {"s:1", "s:2", "ss:10", "ss:11", "ss:20", "sss:100", "sss:101"}


class TestMerge:
    """Truth table: exception if present, else job grant, else denied."""

    @pytest.mark.parametrize("in_job,exception,expected", [
        (False, None, False),
        (True, None, True),
        (False, True, True),
        (True, True, True),
        (False, False, False),
        (True, False, False),
    ])
    def test_truth_table(self, in_job, exception, expected):
        grants = {"ss:11"} if in_job else set()
        overrides = {} if exception is None else {"ss:11": exception}
        assert check_permission("ss:11", grants, overrides) is expected

    def test_explicit_deny_shadows_job_grant(self):
        merged = merge_permissions({"s:1", "s:2"}, {"s:2": False})
        assert merged == {"s:1": True}

    def test_rows_to_grants_and_overrides(self):
        grants = job_grants_from_rows([row(service_id=1), row(sub_service_id=20, is_allowed=False)])
        assert grants == {"s:1"}
        overrides = user_overrides_from_rows([row(sub_sub_service_id=100, is_allowed=False)])
        assert overrides == {"sss:100": False}


class TestEffective:
    def test_allowed_leaf_implies_ancestors(self):
        perms = effective_permissions({"sss:101"}, {}, TAXONOMY)
        assert perms["sss:101"] and perms["ss:10"] and perms["s:1"]
        assert "ss:11" not in perms
        assert "s:2" not in perms

    def test_implication_is_upward_only(self):
        perms = effective_permissions({"s:1"}, {}, TAXONOMY)
        assert "ss:10" not in perms
        assert "sss:100" not in perms

    def test_general_access_always_present(self):
        assert effective_permissions(set(), {}, TAXONOMY) == {GENERAL_ACCESS: True}
        assert check_permission(GENERAL_ACCESS, set(), {}) is True

    def test_super_admin_gets_every_key(self):
        perms = effective_permissions(set(), {"s:1": False}, TAXONOMY, is_super_admin=True)
        assert set(perms) == TAXONOMY.keys | {GENERAL_ACCESS}
        assert all(perms.values())

    def test_user_grant_on_leaf_unlocks_parent(self):
        assert check_permission("s:2", set(), {"ss:20": True}, TAXONOMY) is True

    def test_malformed_key_is_denied(self):
        assert check_permission("nope", {"s:1"}, {}, TAXONOMY) is False


class TestPlans:
    @pytest.mark.parametrize("in_job,requested,expected", [
        (True, True, DELETE),
        (False, False, DELETE),
        (True, False, UPSERT),
        (False, True, UPSERT),
    ])
    def test_plan_user_exception(self, in_job, requested, expected):
        assert plan_user_exception(in_job, requested) == expected

    def test_plan_job_change(self):
        inserts, deletes = plan_job_change(
            current={"s:1", "ss:10"},
            to_add=["s:1", "s:2", "s:2", "bad", "ss:20"],
            to_remove=["ss:10", "sss:999", "junk:1"],
        )
        assert inserts == ["s:2", "ss:20"]
        assert deletes == ["ss:10"]

    def test_key_in_add_and_remove_stays_granted(self):
        inserts, deletes = plan_job_change(current={"s:1"}, to_add=["s:1"], to_remove=["s:1"])
        assert inserts == []
        assert deletes == []

    def test_redundant_exceptions(self):
        grants = {"s:1", "ss:20"}
        overrides = {"s:1": True, "ss:20": False, "ss:11": False, "sss:100": True}
        assert sorted(redundant_exceptions(grants, overrides)) == ["s:1", "ss:11"]
