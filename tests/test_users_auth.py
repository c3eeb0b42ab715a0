import io

from hejazi_ssd.auth.security import create_refresh_token, get_password_hash, verify_password
from hejazi_ssd.models.models import User, UserPermission
from hejazi_ssd.storage.local_provider import LocalStorageProvider


def test_password_hashing_round_trip():
    hashed = get_password_hash("s3cret-pass")
    assert hashed.startswith("$pbkdf2-sha256$")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)


def test_legacy_bcrypt_hash_is_accepted():
    import bcrypt

    legacy = bcrypt.hashpw(b"old-password", bcrypt.gensalt(rounds=4)).decode()
    assert verify_password("old-password", legacy)
    assert not verify_password("nope", legacy)


def test_login_and_refresh(client, db, seed):
    res = client.post("/auth/login", json={"email": "Inspector@example.com", "password": seed.password})
    assert res.status_code == 200, res.text
    tokens = res.json()
    assert tokens["access_token"] and tokens["refresh_token"]
    db.refresh(seed.inspector)
    assert seed.inspector.last_login_at is not None

    me = client.get("/api/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.json()["user"]["email"] == "inspector@example.com"

    res = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200


def test_login_failures(client, seed):
    res = client.post("/auth/login", json={"email": "inspector@example.com", "password": "wrong-password"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "message": "Invalid credentials"}


def test_refresh_token_is_not_an_access_token(client, seed):
    token = create_refresh_token(str(seed.inspector.id))
    res = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_change_password(client, db, seed, auth):
    res = client.post(
        "/auth/change-password",
        json={"current_password": seed.password, "new_password": "a-brand-new-one"},
        headers=auth(seed.inspector),
    )
    assert res.status_code == 200
    db.refresh(seed.inspector)
    assert verify_password("a-brand-new-one", seed.inspector.password_hash)


def test_get_user_with_permissions(client, seed, auth):
    res = client.get(f"/api/user/{seed.admin.id}", headers=auth(seed.inspector))
    assert res.status_code == 200
    body = res.json()
    assert body["user"]["name_en"] == "Ahmed"
    assert body["permissions"] == {"s:1": True, "general_access": True}

    res = client.get("/api/user/00000000-0000-0000-0000-000000000000", headers=auth(seed.inspector))
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "User not found"}


def test_update_favorites(client, db, seed, auth):
    res = client.post(
        "/api/user/update-favorites",
        json={"userId": str(seed.inspector.id), "favorites": ["s:2", "s:3", "s:2"]},
        headers=auth(seed.inspector),
    )
    assert res.status_code == 200
    db.refresh(seed.inspector)
    assert seed.inspector.favorite_services == ["s:2", "s:3"]

    # someone else's favorites need admin rights
    res = client.post(
        "/api/user/update-favorites",
        json={"userId": str(seed.inspector.id), "favorites": []},
        headers=auth(seed.other_inspector),
    )
    assert res.status_code == 403


def test_job_and_company_labels(client, seed, auth):
    res = client.get("/api/job/2", headers=auth(seed.inspector))
    assert res.json() == {"success": True, "name_ar": "مفتش", "name_en": "Inspector"}
    assert client.get("/api/job/99", headers=auth(seed.inspector)).status_code == 404

    res = client.get(f"/api/company/{seed.company.id}", headers=auth(seed.inspector))
    assert res.json()["name_en"] == "Guarding Co"


def test_create_and_list_users(client, db, seed, auth):
    payload = {"email": "New.Guard@example.com", "password": "long-enough", "name_ar": "جديد", "job_id": 2}
    res = client.post("/api/users", json=payload, headers=auth(seed.admin))
    assert res.status_code == 201, res.text
    assert res.json()["user"]["email"] == "new.guard@example.com"

    assert client.post("/api/users", json=payload, headers=auth(seed.admin)).status_code == 409

    res = client.get("/api/users", params={"q": "new.guard"}, headers=auth(seed.admin))
    assert res.json()["total"] == 1


def test_only_super_admin_creates_super_admins(client, seed, auth):
    payload = {"email": "boss@example.com", "password": "long-enough", "is_super_admin": True}
    assert client.post("/api/users", json=payload, headers=auth(seed.admin)).status_code == 403
    assert client.post("/api/users", json=payload, headers=auth(seed.super_admin)).status_code == 201


def test_update_user_deactivates(client, db, seed, auth):
    res = client.patch(f"/api/users/{seed.other_inspector.id}", json={"is_active": False}, headers=auth(seed.admin))
    assert res.status_code == 200
    assert db.get(User, seed.other_inspector.id).is_active is False
    assert client.get("/api/me", headers=auth(seed.other_inspector)).status_code == 401


def test_avatar_upload_to_local_storage(client, seed, auth):
    res = client.post(
        f"/api/users/{seed.inspector.id}/avatar",
        files={"file": ("My Photo.PNG", io.BytesIO(b"\x89PNG fake"), "image/png")},
        headers=auth(seed.inspector),
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["key"].endswith("_my-photo.png")
    assert "/files/local/users/" in body["url"]

    served = client.get("/files/local/" + body["key"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake"


def test_upload_rejects_non_images(client, seed, auth):
    res = client.post(
        f"/api/users/{seed.inspector.id}/signature",
        files={"file": ("notes.txt", io.BytesIO(b"hello"), "text/plain")},
        headers=auth(seed.inspector),
    )
    assert res.status_code == 400


def test_services_groups(client, seed, auth):
    res = client.get("/api/services-groups", headers=auth(seed.inspector))
    body = res.json()
    assert [s["key"] for s in body["groups"][0]["services"]] == ["s:1", "s:2"]
    assert [s["key"] for s in body["ungrouped"]] == ["s:3"]

    res = client.get("/api/services/1/sub-services", headers=auth(seed.inspector))
    assert [s["id"] for s in res.json()["subServices"]] == [1, 2]


def test_service_header_data(client, seed, auth):
    res = client.get("/api/admin/services/2/header-data", headers=auth(seed.admin))
    assert res.json()["mainService"]["name_en"] == "Evaluations"
    assert [s["key"] for s in res.json()["subServices"]] == ["ss:3"]
    assert client.get("/api/admin/services/99/header-data", headers=auth(seed.admin)).status_code == 404


def test_request_id_is_echoed(client, seed, auth):
    res = client.get("/api/me", headers={**auth(seed.inspector), "X-Request-ID": "abc-123"})
    assert res.headers["X-Request-ID"] == "abc-123"


def test_job_change_drops_exceptions_matching_new_job(client, db, seed, auth):
    db.add(UserPermission(user_id=seed.inspector.id, service_id=1, is_allowed=True))
    db.add(UserPermission(user_id=seed.inspector.id, service_id=3, is_allowed=False))
    db.commit()

    res = client.patch(f"/api/users/{seed.inspector.id}", json={"job_id": 1}, headers=auth(seed.admin))
    assert res.status_code == 200, res.text
    rows = db.query(UserPermission).filter(UserPermission.user_id == seed.inspector.id).all()
    # s:1 is now granted by the job and s:3 is no longer granted
    assert rows == []


def test_user_references_must_exist(client, seed, auth):
    missing = "00000000-0000-0000-0000-000000000000"
    payload = {"email": "ghost@example.com", "password": "long-enough", "company_id": missing}
    res = client.post("/api/users", json=payload, headers=auth(seed.admin))
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Company not found"}

    res = client.patch(f"/api/users/{seed.inspector.id}", json={"company_id": missing}, headers=auth(seed.admin))
    assert res.status_code == 404
    res = client.patch(f"/api/users/{seed.inspector.id}", json={"company_id": str(seed.company.id)}, headers=auth(seed.admin))
    assert res.json()["user"]["company_id"] == str(seed.company.id)


def test_new_avatar_replaces_previous_file(client, db, seed, auth):
    storage = LocalStorageProvider()
    first = client.post(
        f"/api/users/{seed.inspector.id}/avatar",
        files={"file": ("one.png", io.BytesIO(b"first"), "image/png")},
        headers=auth(seed.inspector),
    ).json()
    assert storage.get_path(first["key"]).exists()

    second = client.post(
        f"/api/users/{seed.inspector.id}/avatar",
        files={"file": ("two.png", io.BytesIO(b"second"), "image/png")},
        headers=auth(seed.inspector),
    ).json()
    assert not storage.get_path(first["key"]).exists()
    assert storage.get_path(second["key"]).read_bytes() == b"second"
    db.refresh(seed.inspector)
    assert seed.inspector.avatar_key == second["key"]
