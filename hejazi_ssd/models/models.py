import uuid
from datetime import datetime, date, time
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


# =====================
# Identity
# =====================

class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    users = relationship("User", back_populates="job")
    permissions = relationship("JobPermission", back_populates="job", cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name_ar: Mapped[Optional[str]] = mapped_column(String(255))
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    job_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"), index=True)
    company_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="SET NULL"))
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Lets the user in while the app-wide kill switch is off
    app_exception: Mapped[bool] = mapped_column(Boolean, default=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024))
    signature_url: Mapped[Optional[str]] = mapped_column(String(1024))
    # Storage keys of the current media, so a replaced file can be removed
    avatar_key: Mapped[Optional[str]] = mapped_column(String(1024))
    signature_key: Mapped[Optional[str]] = mapped_column(String(1024))
    favorite_services: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    job = relationship("Job", back_populates="users")
    company = relationship("Company", foreign_keys=[company_id])
    permission_exceptions = relationship(
        "UserPermission",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="UserPermission.user_id",
    )


class AppStatus(Base):
    """Single-row table holding the app-wide kill switch."""
    __tablename__ = "app_status"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default="global")
    is_allowed: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# =====================
# Service taxonomy
# =====================

class ServiceGroup(Base):
    __tablename__ = "service_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    order: Mapped[int] = mapped_column(Integer, default=0)


class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("service_groups.id", ondelete="SET NULL"))
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    icon: Mapped[Optional[str]] = mapped_column(String(100))
    route: Mapped[Optional[str]] = mapped_column(String(255))
    order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    sub_services = relationship("SubService", back_populates="service", order_by="SubService.order")


class SubService(Base):
    __tablename__ = "sub_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    route: Mapped[Optional[str]] = mapped_column(String(255))
    order: Mapped[int] = mapped_column(Integer, default=0)

    service = relationship("Service", back_populates="sub_services")
    sub_sub_services = relationship("SubSubService", back_populates="sub_service", order_by="SubSubService.order")


class SubSubService(Base):
    __tablename__ = "sub_sub_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sub_service_id: Mapped[int] = mapped_column(Integer, ForeignKey("sub_services.id", ondelete="CASCADE"), nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    order: Mapped[int] = mapped_column(Integer, default=0)

    sub_service = relationship("SubService", back_populates="sub_sub_services")


# =====================
# Permissions
# =====================

class JobPermission(Base):
    """Default grant attached to a job. Exactly one of the three resource columns is set."""
    __tablename__ = "job_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("services.id", ondelete="CASCADE"))
    sub_service_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("sub_services.id", ondelete="CASCADE"))
    sub_sub_service_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("sub_sub_services.id", ondelete="CASCADE"))
    is_allowed: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    job = relationship("Job", back_populates="permissions")

    __table_args__ = (
        Index("idx_job_permissions_job", "job_id"),
    )


class UserPermission(Base):
    """Per-user override of the job default; only differences from the job are stored."""
    __tablename__ = "user_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("services.id", ondelete="CASCADE"))
    sub_service_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("sub_services.id", ondelete="CASCADE"))
    sub_sub_service_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("sub_sub_services.id", ondelete="CASCADE"))
    is_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_manual_exception: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user = relationship("User", back_populates="permission_exceptions", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_user_permissions_user", "user_id"),
    )


class PermissionNotification(Base):
    __tablename__ = "permission_notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    affected_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    affected_job_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    change_type: Mapped[str] = mapped_column(String(50), nullable=False)  # permission_added|permission_removed|permission_modified
    system: Mapped[str] = mapped_column(String(50), nullable=False, default="direct_permissions")
    impact_level: Mapped[str] = mapped_column(String(20), nullable=False)  # high|medium|low
    message_ar: Mapped[str] = mapped_column(Text, nullable=False)
    message_en: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON)
    changed_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class AuditLog(Base):
    """Append-only audit log for administrative changes"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # job|user|evaluation|app
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # CREATE|UPDATE|APPROVE|REJECT|DELETE|PERMISSIONS
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    source: Mapped[Optional[str]] = mapped_column(String(50))  # api|system
    changes_json: Mapped[Optional[dict]] = mapped_column(JSON)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    context: Mapped[Optional[dict]] = mapped_column(JSON)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )


# =====================
# Companies and evaluations
# =====================

class Company(Base):
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = uuid_pk()
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    contract_no: Mapped[Optional[str]] = mapped_column(String(100))
    guard_count: Mapped[Optional[int]] = mapped_column(Integer)
    violations_count: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    overall_score: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class SecurityQuestion(Base):
    __tablename__ = "security_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_text_ar: Mapped[str] = mapped_column(Text, nullable=False)
    question_text_en: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class SecurityEvaluation(Base):
    __tablename__ = "security_evaluations"

    id: Mapped[uuid.UUID] = uuid_pk()
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    evaluator_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    historical_job_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"))
    evaluation_year: Mapped[int] = mapped_column(Integer, nullable=False)
    evaluation_month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="pending")  # pending|approved|rejected|returned
    historical_contract_no: Mapped[Optional[str]] = mapped_column(String(100))
    historical_guard_count: Mapped[Optional[int]] = mapped_column(Integer)
    historical_violations_count: Mapped[Optional[int]] = mapped_column(Integer)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    overall_score: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    company = relationship("Company")
    evaluator = relationship("User", foreign_keys=[evaluator_id])
    historical_job = relationship("Job")
    details = relationship(
        "SecurityEvaluationDetail",
        back_populates="evaluation",
        cascade="all, delete-orphan",
        order_by="SecurityEvaluationDetail.id",
    )
    approvals = relationship(
        "EvaluationApproval",
        back_populates="evaluation",
        cascade="all, delete-orphan",
        order_by="EvaluationApproval.created_at",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "evaluation_year", "evaluation_month", name="uq_evaluation_company_period"),
    )


class SecurityEvaluationDetail(Base):
    __tablename__ = "security_evaluation_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    evaluation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("security_evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id: Mapped[int] = mapped_column(Integer, ForeignKey("security_questions.id"), nullable=False)
    selected_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    evaluation = relationship("SecurityEvaluation", back_populates="details")
    question = relationship("SecurityQuestion")


class EvaluationApproval(Base):
    __tablename__ = "evaluation_approvals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    evaluation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("security_evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    action: Mapped[str] = mapped_column(String(30), nullable=False)  # approve|reject|return
    status_after: Mapped[str] = mapped_column(String(30), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    evaluation = relationship("SecurityEvaluation", back_populates="approvals")
    approver = relationship("User")


# =====================
# Violations
# =====================

class Violation(Base):
    __tablename__ = "violations"

    id: Mapped[uuid.UUID] = uuid_pk()
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    violation_type_id: Mapped[Optional[int]] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    violation_date: Mapped[date] = mapped_column(Date, nullable=False)
    violation_time: Mapped[Optional[time]] = mapped_column(Time)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    severity: Mapped[str] = mapped_column(String(20), default="medium")  # low|medium|high
    attachments: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(30), default="pending")
    inserted_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    company = relationship("Company")
    sends = relationship("ViolationSend", back_populates="violation", cascade="all, delete-orphan", order_by="ViolationSend.sent_at")


class ViolationSend(Base):
    """Log entry for an outbound notification link; nothing is actually sent."""
    __tablename__ = "violation_sends"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    violation_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("violations.id", ondelete="CASCADE"), nullable=False, index=True)
    sent_to: Mapped[Optional[str]] = mapped_column(String(255))
    sent_email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text)
    email_link: Mapped[str] = mapped_column(Text, nullable=False)
    sent_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    violation = relationship("Violation", back_populates="sends")


# =====================
# Locations and inspections
# =====================

class Sector(Base):
    __tablename__ = "sectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))


class Building(Base):
    __tablename__ = "buildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sector_id: Mapped[int] = mapped_column(Integer, ForeignKey("sectors.id", ondelete="CASCADE"), nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    map_url: Mapped[Optional[str]] = mapped_column(String(1024))
    guards_morning_shift: Mapped[int] = mapped_column(Integer, default=0)
    guards_night_shift: Mapped[int] = mapped_column(Integer, default=0)
    extinguishers_count: Mapped[int] = mapped_column(Integer, default=0)
    first_aid_boxes_count: Mapped[int] = mapped_column(Integer, default=0)


class SubBuilding(Base):
    __tablename__ = "subbuildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    building_id: Mapped[int] = mapped_column(Integer, ForeignKey("buildings.id", ondelete="CASCADE"), nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    map_url: Mapped[Optional[str]] = mapped_column(String(1024))
    guards_morning_shift: Mapped[int] = mapped_column(Integer, default=0)
    guards_night_shift: Mapped[int] = mapped_column(Integer, default=0)
    extinguishers_count: Mapped[int] = mapped_column(Integer, default=0)
    first_aid_boxes_count: Mapped[int] = mapped_column(Integer, default=0)


class Distribution(Base):
    """Pre-assigned inspector -> location mapping used by scheduled inspections."""
    __tablename__ = "distribution"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assigned_user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sector_id: Mapped[int] = mapped_column(Integer, ForeignKey("sectors.id", ondelete="CASCADE"), nullable=False)
    building_id: Mapped[int] = mapped_column(Integer, ForeignKey("buildings.id", ondelete="CASCADE"), nullable=False)
    sub_building_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("subbuildings.id", ondelete="CASCADE"))
    assigned_date: Mapped[Optional[date]] = mapped_column(Date)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)


class Inspection(Base):
    __tablename__ = "inspections"

    id: Mapped[uuid.UUID] = uuid_pk()
    inspector_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    inspection_type: Mapped[str] = mapped_column(String(20), nullable=False)  # scheduled|random
    distribution_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("distribution.id", ondelete="SET NULL"))
    sector_id: Mapped[int] = mapped_column(Integer, ForeignKey("sectors.id"), nullable=False)
    building_id: Mapped[int] = mapped_column(Integer, ForeignKey("buildings.id"), nullable=False)
    sub_building_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("subbuildings.id"))
    guards_present_morning: Mapped[Optional[int]] = mapped_column(Integer)
    guards_present_night: Mapped[Optional[int]] = mapped_column(Integer)
    extinguishers_ok: Mapped[Optional[int]] = mapped_column(Integer)
    first_aid_boxes_ok: Mapped[Optional[int]] = mapped_column(Integer)
    findings: Mapped[Optional[list]] = mapped_column(JSON)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


# =====================
# Risk and maintenance
# =====================

class Activity(Base):
    __tablename__ = "activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))
    reference: Mapped[Optional[str]] = mapped_column(String(100))


class Hazard(Base):
    __tablename__ = "hazards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey("activity.id", ondelete="CASCADE"), nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))


class ControlMeasure(Base):
    __tablename__ = "control_measures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey("activity.id", ondelete="CASCADE"), nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[Optional[str]] = mapped_column(String(255))


class RiskAssessment(Base):
    __tablename__ = "risk_assessments"

    id: Mapped[uuid.UUID] = uuid_pk()
    kind: Mapped[str] = mapped_column(String(20), default="risk")  # risk|maintenance
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey("activity.id"), nullable=False)
    hazard_id: Mapped[int] = mapped_column(Integer, ForeignKey("hazards.id"), nullable=False)
    control_measure_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("control_measures.id"))
    likelihood: Mapped[int] = mapped_column(Integer, nullable=False)
    consequence: Mapped[int] = mapped_column(Integer, nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    risk_level: Mapped[str] = mapped_column(String(20), nullable=False)  # low|moderate|high|extreme
    building_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("buildings.id", ondelete="SET NULL"))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
