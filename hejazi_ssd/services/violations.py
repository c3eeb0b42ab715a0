"""
Violation notification links.

Nothing is sent from the server: the client opens the mailto link and the
send is logged in violation_sends.
"""
from urllib.parse import quote

from ..config import settings

SEVERITY_LABELS = {
    "ar": {"low": "منخفضة", "medium": "متوسطة", "high": "عالية"},
    "en": {"low": "Low", "medium": "Medium", "high": "High"},
}

_BODY = {
    "ar": (
        "السلام عليكم،\n\n"
        "نود إعلامكم بوجود مخالفة بتاريخ {date}:\n\n"
        "العنوان: {title}\n"
        "الوصف: {description}\n"
        "الموقع: {location}\n"
        "درجة الخطورة: {severity}\n\n"
        "يرجى اتخاذ الإجراءات اللازمة.\n\n"
        "تحياتي،\n"
        "{sender}\n"
    ),
    "en": (
        "Hello,\n\n"
        "Please be informed of a violation dated {date}:\n\n"
        "Title: {title}\n"
        "Description: {description}\n"
        "Location: {location}\n"
        "Severity: {severity}\n\n"
        "Please take the necessary actions.\n\n"
        "Regards,\n"
        "{sender}\n"
    ),
}

_NOT_SPECIFIED = {"ar": "غير محدد", "en": "Not specified"}


def violation_subject(title: str, lang: str = "ar") -> str:
    if lang == "en":
        return f"Company Violation - {title}"
    return f"مخالفة شركة - {title}"


def violation_body(violation, sender_name: str, lang: str = "ar") -> str:
    lang = lang if lang in _BODY else "ar"
    return _BODY[lang].format(
        date=violation.violation_date.isoformat() if violation.violation_date else "",
        title=violation.title,
        description=violation.description or "",
        location=violation.location or _NOT_SPECIFIED[lang],
        severity=SEVERITY_LABELS[lang].get(violation.severity, violation.severity),
        sender=sender_name or "",
    )


def build_mailto(violation, sender_name: str, lang: str = "ar", recipient: str = None) -> dict:
    recipient = recipient or settings.violation_recipient_email
    subject = violation_subject(violation.title, lang)
    body = violation_body(violation, sender_name, lang)
    link = f"mailto:{recipient}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"
    return {"recipient": recipient, "subject": subject, "body": body, "email_link": link}
