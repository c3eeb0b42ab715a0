import os
import tempfile
from types import SimpleNamespace

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_RESOURCE_KEY"] = "s:1"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="hejazi-ssd-")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hejazi_ssd.db import Base, get_db  # noqa: E402
from hejazi_ssd.main import app  # noqa: E402
from hejazi_ssd.auth.security import create_access_token, get_password_hash  # noqa: E402
from hejazi_ssd.models.models import (  # noqa: E402
    Job,
    User,
    Company,
    ServiceGroup,
    Service,
    SubService,
    SubSubService,
    JobPermission,
    SecurityQuestion,
)


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

PASSWORD = "correct-horse-battery"


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth():
    """Bearer headers for a user."""
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}
    return _headers


@pytest.fixture()
def seed(db):
    """
    Taxonomy:
        s:1 administration -> ss:1, ss:2
        s:2 evaluations    -> ss:3 -> sss:1, sss:2
        s:3 violations     -> ss:4

    Jobs: 1 administrator (granted s:1), 2 inspector (granted ss:3, s:3).
    """
    group = ServiceGroup(id=1, name_ar="الإدارة", name_en="Administration", order=0)
    db.add(group)
    db.add_all([
        Service(id=1, group_id=1, name_ar="إدارة النظام", name_en="System Administration", order=0),
        Service(id=2, group_id=1, name_ar="التقييمات", name_en="Evaluations", order=1),
        Service(id=3, group_id=None, name_ar="المخالفات", name_en="Violations", order=2),
    ])
    db.add_all([
        SubService(id=1, service_id=1, name_ar="صلاحيات الوظائف", name_en="Job Permissions", order=0),
        SubService(id=2, service_id=1, name_ar="أمان التطبيق", name_en="App Security", order=1),
        SubService(id=3, service_id=2, name_ar="تقييم جديد", name_en="New Evaluation", order=0),
        SubService(id=4, service_id=3, name_ar="مخالفة جديدة", name_en="New Violation", order=0),
    ])
    db.add_all([
        SubSubService(id=1, sub_service_id=3, name_ar="الأسئلة", name_en="Questions", order=0),
        SubSubService(id=2, sub_service_id=3, name_ar="الملاحظات", name_en="Notes", order=1),
    ])
    admin_job = Job(id=1, name_ar="مدير النظام", name_en="Administrator")
    inspector_job = Job(id=2, name_ar="مفتش", name_en="Inspector")
    db.add_all([admin_job, inspector_job])
    db.flush()
    db.add_all([
        JobPermission(job_id=1, service_id=1, is_allowed=True),
        JobPermission(job_id=2, sub_service_id=3, is_allowed=True),
        JobPermission(job_id=2, service_id=3, is_allowed=True),
    ])

    super_admin = User(
        email="root@example.com", password_hash=get_password_hash(PASSWORD),
        name_ar="المدير العام", name_en="Root", is_super_admin=True, favorite_services=[],
    )
    admin = User(
        email="admin@example.com", password_hash=get_password_hash(PASSWORD),
        name_ar="أحمد", name_en="Ahmed", job_id=1, favorite_services=[],
    )
    inspector = User(
        email="inspector@example.com", password_hash=get_password_hash(PASSWORD),
        name_ar="سالم", name_en="Salem", job_id=2, favorite_services=[],
    )
    other_inspector = User(
        email="inspector2@example.com", password_hash=get_password_hash(PASSWORD),
        name_ar="خالد", name_en="Khalid", job_id=2, favorite_services=[],
    )
    db.add_all([super_admin, admin, inspector, other_inspector])

    company = Company(name_ar="شركة الحراسة", name_en="Guarding Co", contract_no="C-100", guard_count=40, violations_count=0)
    db.add(company)
    questions = [
        SecurityQuestion(id=1, question_text_ar="الزي الرسمي", question_text_en="Uniform"),
        SecurityQuestion(id=2, question_text_ar="التواجد", question_text_en="Presence"),
        SecurityQuestion(id=3, question_text_ar="الاستجابة", question_text_en="Response"),
    ]
    db.add_all(questions)
    db.commit()

    return SimpleNamespace(
        super_admin=super_admin,
        admin=admin,
        inspector=inspector,
        other_inspector=other_inspector,
        admin_job=admin_job,
        inspector_job=inspector_job,
        company=company,
        questions=questions,
        password=PASSWORD,
    )
