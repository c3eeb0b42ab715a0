from datetime import date
from types import SimpleNamespace
from urllib.parse import unquote

from hejazi_ssd.services.violations import build_mailto, violation_subject


def _violation(**overrides):
    data = dict(
        title="Guard absent",
        description="Gate 3 unattended",
        violation_date=date(2025, 2, 3),
        location=None,
        severity="high",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


class TestMailto:
    def test_subjects(self):
        assert violation_subject("Late shift", "en") == "Company Violation - Late shift"
        assert violation_subject("تأخير", "ar") == "مخالفة شركة - تأخير"

    def test_english_body(self):
        mail = build_mailto(_violation(), "Salem", lang="en")
        assert mail["recipient"] == "intermediate@gov.abudhabi"
        assert "Title: Guard absent" in mail["body"]
        assert "Location: Not specified" in mail["body"]
        assert "Severity: High" in mail["body"]
        assert "2025-02-03" in mail["body"]
        assert mail["body"].rstrip().endswith("Salem")

    def test_link_is_encoded(self):
        mail = build_mailto(_violation(location="Gate 3"), "Salem", lang="ar", recipient="ops@example.com")
        link = mail["email_link"]
        assert link.startswith("mailto:ops@example.com?subject=")
        assert " " not in link
        subject = link.split("subject=")[1].split("&body=")[0]
        assert unquote(subject) == "مخالفة شركة - Guard absent"
        assert "Gate 3" in unquote(link.split("&body=")[1])


def _create(client, seed, auth, **extra):
    data = {
        "company_id": str(seed.company.id),
        "title": "Guard absent",
        "description": "Gate 3 unattended",
        "violation_date": "2025-02-03",
        "violation_time": "22:15:00",
        "severity": "medium",
        "lang": "en",
    }
    data.update(extra)
    return client.post("/api/violations", json=data, headers=auth(seed.inspector))


def test_create_violation_returns_mailto(client, db, seed, auth):
    res = _create(client, seed, auth)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["violation"]["status"] == "pending"
    assert body["violation"]["violation_time"] == "22:15:00"
    assert body["email"]["subject"] == "Company Violation - Guard absent"
    assert body["email"]["email_link"].startswith("mailto:intermediate@gov.abudhabi?")
    assert "Salem" in body["email"]["body"]

    db.refresh(seed.company)
    assert seed.company.violations_count == 1


def test_invalid_severity(client, seed, auth):
    assert _create(client, seed, auth, severity="critical").status_code == 400


def test_send_log(client, seed, auth):
    vid = _create(client, seed, auth).json()["violation"]["id"]
    res = client.post(f"/api/violations/{vid}/sends", json={"lang": "ar"}, headers=auth(seed.inspector))
    assert res.status_code == 201
    send = res.json()["send"]
    assert send["sent_to"] == "شركة بروفيس"
    assert send["sent_email"] == "intermediate@gov.abudhabi"
    assert send["subject"] == "مخالفة شركة - Guard absent"
    assert send["sent_by"] == str(seed.inspector.id)

    res = client.get(f"/api/violations/{vid}/sends", headers=auth(seed.inspector))
    assert len(res.json()["sends"]) == 1


def test_list_violations_filters(client, seed, auth):
    _create(client, seed, auth, severity="low")
    _create(client, seed, auth, severity="high", title="Broken camera")
    res = client.get("/api/violations", params={"severity": "high"}, headers=auth(seed.inspector))
    assert [v["title"] for v in res.json()["violations"]] == ["Broken camera"]


def test_send_for_missing_violation(client, seed, auth):
    res = client.post(
        "/api/violations/00000000-0000-0000-0000-000000000000/sends",
        json={},
        headers=auth(seed.inspector),
    )
    assert res.status_code == 404
