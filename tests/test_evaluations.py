from datetime import date

import pytest

from hejazi_ssd.models.models import Company, SecurityEvaluation, AuditLog
from hejazi_ssd.services.evaluations import (
    next_evaluation_period,
    next_month,
    overall_score,
    previous_month,
    recompute_company_score,
    validate_ratings,
)


class TestPeriods:
    def test_previous_month_wraps_year(self):
        assert previous_month(date(2025, 1, 15)) == (2024, 12)
        assert previous_month(date(2025, 7, 1)) == (2025, 6)

    def test_next_month_wraps_year(self):
        assert next_month((2024, 12)) == (2025, 1)
        assert next_month((2025, 3)) == (2025, 4)

    def test_never_evaluated_starts_last_month(self):
        assert next_evaluation_period(None, date(2025, 3, 10)) == ((2025, 2), False)

    def test_behind_schedule_continues_after_latest(self):
        assert next_evaluation_period((2024, 11), date(2025, 3, 10)) == ((2024, 12), False)

    def test_up_to_date_is_done(self):
        period, done = next_evaluation_period((2025, 2), date(2025, 3, 10))
        assert done is True
        assert period == (2025, 3)


class TestScores:
    def test_mean_rounded(self):
        assert overall_score([5, 4, 4]) == 4.33
        assert overall_score([1, 2]) == 1.5

    def test_empty(self):
        assert overall_score([]) is None

    def test_validate_ratings(self):
        assert validate_ratings([1, 5, 0, 6, 3]) == [2, 3]


def _payload(seed, year=2024, month=5, ratings=(5, 4, 4), **extra):
    data = {
        "company_id": str(seed.company.id),
        "evaluation_year": year,
        "evaluation_month": month,
        "summary": "  Good   coverage  ",
        "details": [
            {"question_id": q.id, "selected_rating": r, "note": None}
            for q, r in zip(seed.questions, ratings)
        ],
    }
    data.update(extra)
    return data


def test_create_evaluation_computes_score(client, db, seed, auth):
    res = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector))
    assert res.status_code == 201, res.text
    ev = res.json()["evaluation"]
    assert ev["overall_score"] == 4.33
    assert ev["status"] == "pending"
    assert ev["summary"] == "Good coverage"
    assert ev["historical_contract_no"] == "C-100"
    assert ev["historical_job_id"] == seed.inspector_job.id
    assert res.json()["companyScore"] == 4.33

    db.refresh(seed.company)
    assert seed.company.overall_score == 4.33
    assert db.query(AuditLog).filter(AuditLog.entity_type == "evaluation").count() == 1


def test_create_evaluation_keeps_supplied_score(client, seed, auth):
    res = client.post("/api/evaluations", json=_payload(seed, overall_score=3.5), headers=auth(seed.inspector))
    assert res.json()["evaluation"]["overall_score"] == 3.5


def test_duplicate_period_conflicts(client, seed, auth):
    assert client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).status_code == 201
    res = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector))
    assert res.status_code == 409
    assert res.json()["success"] is False


@pytest.mark.parametrize("ratings", [(0, 3, 3), (6, 3, 3)])
def test_rating_out_of_range(client, seed, auth, ratings):
    res = client.post("/api/evaluations", json=_payload(seed, ratings=ratings), headers=auth(seed.inspector))
    assert res.status_code == 400


def test_unknown_company(client, seed, auth):
    data = _payload(seed, company_id="00000000-0000-0000-0000-000000000000")
    assert client.post("/api/evaluations", json=data, headers=auth(seed.inspector)).status_code == 404


def test_rolling_score_uses_latest_window(db, seed):
    for month, score in [(1, 1.0), (2, 3.0), (3, 5.0)]:
        db.add(SecurityEvaluation(
            company_id=seed.company.id, evaluation_year=2024, evaluation_month=month, overall_score=score,
        ))
    db.flush()
    assert recompute_company_score(db, seed.company, window=2) == 4.0
    assert recompute_company_score(db, seed.company, window=12) == 3.0


def test_list_is_newest_period_first(client, seed, auth):
    for year, month in [(2024, 3), (2025, 1), (2024, 11)]:
        client.post("/api/evaluations", json=_payload(seed, year=year, month=month), headers=auth(seed.inspector))
    res = client.get("/api/evaluations", headers=auth(seed.inspector))
    periods = [(e["evaluation_year"], e["evaluation_month"]) for e in res.json()["evaluations"]]
    assert periods == [(2025, 1), (2024, 11), (2024, 3)]
    assert res.json()["evaluations"][0]["evaluator"]["name_en"] == "Salem"


def test_companies_and_questions_filters_up_to_date(client, db, seed, auth):
    other = Company(name_ar="شركة أخرى", name_en="Other Co")
    db.add(other)
    db.commit()
    year, month = previous_month(date.today())
    client.post("/api/evaluations", json=_payload(seed, year=year, month=month), headers=auth(seed.inspector))

    res = client.get("/api/evaluations/companies-and-questions", headers=auth(seed.inspector))
    body = res.json()
    assert [c["name_en"] for c in body["companies"]] == ["Other Co"]
    assert (body["companies"][0]["next_evaluation_year"], body["companies"][0]["next_evaluation_month"]) == (year, month)
    assert [q["id"] for q in body["questions"]] == [1, 2, 3]


def test_get_evaluation_details_and_approvals(client, seed, auth):
    ev_id = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).json()["evaluation"]["id"]

    res = client.post(
        f"/api/evaluations/{ev_id}/approvals",
        json={"action": "return", "note": "Add notes"},
        headers=auth(seed.admin),
    )
    assert res.status_code == 201
    assert res.json()["status"] == "returned"

    res = client.get(f"/api/evaluations/{ev_id}", headers=auth(seed.inspector))
    ev = res.json()["evaluation"]
    assert [d["question"]["question_text_en"] for d in ev["details"]] == ["Uniform", "Presence", "Response"]
    assert ev["approvals"][0]["approver"]["name_en"] == "Ahmed"
    assert ev["historical_job"]["name_en"] == "Inspector"


def test_approval_requires_note_unless_approving(client, seed, auth):
    ev_id = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).json()["evaluation"]["id"]
    res = client.post(f"/api/evaluations/{ev_id}/approvals", json={"action": "reject"}, headers=auth(seed.admin))
    assert res.status_code == 400
    res = client.post(f"/api/evaluations/{ev_id}/approvals", json={"action": "approve"}, headers=auth(seed.admin))
    assert res.json()["status"] == "approved"
    # decided evaluations are closed
    res = client.post(f"/api/evaluations/{ev_id}/approvals", json={"action": "approve"}, headers=auth(seed.admin))
    assert res.status_code == 409


def test_approvals_need_admin(client, seed, auth):
    ev_id = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).json()["evaluation"]["id"]
    res = client.post(f"/api/evaluations/{ev_id}/approvals", json={"action": "approve"}, headers=auth(seed.inspector))
    assert res.status_code == 403


def test_update_returned_evaluation_resubmits(client, seed, auth):
    ev_id = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).json()["evaluation"]["id"]
    client.post(f"/api/evaluations/{ev_id}/approvals", json={"action": "return", "note": "fix"}, headers=auth(seed.admin))

    res = client.patch(
        f"/api/evaluations/{ev_id}",
        json={"details": [{"question_id": 1, "selected_rating": 1}]},
        headers=auth(seed.inspector),
    )
    assert res.status_code == 200, res.text
    ev = res.json()["evaluation"]
    assert ev["status"] == "pending"
    # (1 + 4 + 4) / 3
    assert ev["overall_score"] == 3.0


def test_update_by_someone_else_is_forbidden(client, seed, auth):
    ev_id = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).json()["evaluation"]["id"]
    res = client.patch(f"/api/evaluations/{ev_id}", json={"summary": "x"}, headers=auth(seed.other_inspector))
    assert res.status_code == 403


def test_pdf_report(client, seed, auth):
    ev_id = client.post("/api/evaluations", json=_payload(seed), headers=auth(seed.inspector)).json()["evaluation"]["id"]
    res = client.get(f"/api/evaluations/{ev_id}/pdf", headers=auth(seed.inspector))
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")


def test_missing_evaluation(client, seed, auth):
    res = client.get("/api/evaluations/00000000-0000-0000-0000-000000000000", headers=auth(seed.inspector))
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Evaluation not found"}


def test_supplied_overall_score_must_be_on_scale(client, db, seed, auth):
    res = client.post("/api/evaluations", json=_payload(seed, overall_score=999), headers=auth(seed.inspector))
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Overall score must be between 1 and 5"}
    assert db.query(SecurityEvaluation).count() == 0
    db.refresh(seed.company)
    assert seed.company.overall_score is None

    res = client.post("/api/evaluations", json=_payload(seed, overall_score=3.5), headers=auth(seed.inspector))
    assert res.status_code == 201
    assert res.json()["companyScore"] == 3.5
