"""
Seed the base data: job titles, the service taxonomy, evaluation questions,
sectors and a super admin account.

Safe to run repeatedly; existing rows are matched by Arabic name (or email)
and left in place.

    SEED_ADMIN_EMAIL=admin@example.com SEED_ADMIN_PASSWORD=... python scripts/seed_taxonomy.py
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from hejazi_ssd.db import Base, SessionLocal, engine  # noqa: E402
from hejazi_ssd.models.models import (  # noqa: E402
    Job,
    User,
    ServiceGroup,
    Service,
    SubService,
    SecurityQuestion,
    Sector,
)
from hejazi_ssd.auth.security import get_password_hash  # noqa: E402


JOBS = [
    ("مدير النظام", "System Administrator"),
    ("مشرف أمن", "Security Supervisor"),
    ("مفتش", "Inspector"),
]

# The first service is the administration service; ADMIN_RESOURCE_KEY defaults to its key (s:1)
TAXONOMY = [
    {
        "group": ("الإدارة", "Administration"),
        "services": [
            {
                "name": ("إدارة النظام", "System Administration"),
                "icon": "settings",
                "route": "/admin",
                "subs": [
                    ("صلاحيات الوظائف", "Job Permissions", "/admin/job-permissions"),
                    ("استثناءات المستخدمين", "User Exceptions", "/admin/user-exceptions"),
                    ("أمان التطبيق", "App Security", "/admin/app-security"),
                ],
            },
        ],
    },
    {
        "group": ("الأمن والسلامة", "Security and Safety"),
        "services": [
            {
                "name": ("تقييم شركات الأمن", "Security Company Evaluation"),
                "icon": "star",
                "route": "/evaluations",
                "subs": [
                    ("تقييم جديد", "New Evaluation", "/evaluations/new"),
                    ("سجل التقييمات", "Evaluation History", "/evaluations"),
                ],
            },
            {
                "name": ("المخالفات", "Violations"),
                "icon": "alert",
                "route": "/violations",
                "subs": [
                    ("مخالفة جديدة", "New Violation", "/violations/new"),
                ],
            },
            {
                "name": ("التفتيش", "Inspections"),
                "icon": "clipboard",
                "route": "/inspections",
                "subs": [
                    ("تفتيش مجدول", "Scheduled Inspection", "/inspections/scheduled"),
                    ("تفتيش عشوائي", "Random Inspection", "/inspections/random"),
                ],
            },
            {
                "name": ("المخاطر والصيانة", "Risk and Maintenance"),
                "icon": "shield",
                "route": "/risks",
                "subs": [
                    ("تقييم المخاطر", "Risk Assessment", "/risks/new"),
                    ("طلب صيانة", "Maintenance Request", "/maintenance/new"),
                ],
            },
        ],
    },
]

QUESTIONS = [
    ("التزام الحراس بالزي الرسمي", "Guards wear the official uniform"),
    ("التواجد في مواقع الحراسة", "Guards are present at their posts"),
    ("الالتزام بمواعيد تبديل المناوبات", "Shift changes happen on time"),
    ("جاهزية معدات السلامة", "Safety equipment is ready for use"),
    ("سرعة الاستجابة للبلاغات", "Response time to reports"),
]

SECTORS = [("القطاع الأول", "Sector 1"), ("القطاع الثاني", "Sector 2")]


def _get_or_create(db, model, defaults=None, **filters):
    obj = db.query(model).filter_by(**filters).first()
    if obj:
        return obj, False
    obj = model(**filters, **(defaults or {}))
    db.add(obj)
    db.flush()
    return obj, True


def seed_taxonomy():
    """Seed jobs, taxonomy, questions, sectors and the super admin"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    created = 0
    try:
        for name_ar, name_en in JOBS:
            _, new = _get_or_create(db, Job, defaults={"name_en": name_en}, name_ar=name_ar)
            created += new

        for g_order, group_data in enumerate(TAXONOMY):
            group, new = _get_or_create(
                db, ServiceGroup,
                defaults={"name_en": group_data["group"][1], "order": g_order},
                name_ar=group_data["group"][0],
            )
            created += new
            for s_order, svc in enumerate(group_data["services"]):
                service, new = _get_or_create(
                    db, Service,
                    defaults={
                        "group_id": group.id,
                        "name_en": svc["name"][1],
                        "icon": svc["icon"],
                        "route": svc["route"],
                        "order": s_order,
                    },
                    name_ar=svc["name"][0],
                )
                created += new
                for ss_order, (ss_ar, ss_en, ss_route) in enumerate(svc["subs"]):
                    _, new = _get_or_create(
                        db, SubService,
                        defaults={"name_en": ss_en, "route": ss_route, "order": ss_order},
                        service_id=service.id,
                        name_ar=ss_ar,
                    )
                    created += new

        for text_ar, text_en in QUESTIONS:
            _, new = _get_or_create(db, SecurityQuestion, defaults={"question_text_en": text_en}, question_text_ar=text_ar)
            created += new

        for name_ar, name_en in SECTORS:
            _, new = _get_or_create(db, Sector, defaults={"name_en": name_en}, name_ar=name_ar)
            created += new

        email = os.getenv("SEED_ADMIN_EMAIL")
        password = os.getenv("SEED_ADMIN_PASSWORD")
        if email and password:
            admin_job = db.query(Job).filter(Job.name_ar == JOBS[0][0]).first()
            _, new = _get_or_create(
                db, User,
                defaults={
                    "password_hash": get_password_hash(password),
                    "name_ar": "مدير النظام",
                    "name_en": "Administrator",
                    "job_id": admin_job.id if admin_job else None,
                    "is_super_admin": True,
                    "favorite_services": [],
                },
                email=email.lower(),
            )
            created += new
        else:
            print("SEED_ADMIN_EMAIL/SEED_ADMIN_PASSWORD not set; skipping super admin.")

        db.commit()
        print(f"Seed complete: {created} rows created.")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_taxonomy()
