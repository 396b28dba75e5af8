import uuid
from typing import Any, Dict, List, Optional
from datetime import datetime, date
from sqlalchemy import (
    JSON,
    String,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Enum,
    Index,
    CheckConstraint,
    DateTime,
    Date,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum

from app.db.custom_types import StringUUID
from app.utils.datetime_utils import naive_utc_now


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


# Enums
class UserRole(enum.Enum):
    APPLICANT = "applicant"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


STAFF_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)


class ApplicationStatus(enum.Enum):
    SUBMITTED = "submitted"
    PENDING_REVIEW = "pending_review"
    INCOMPLETE_DOCUMENT = "incomplete_document"
    APPROVED_TO_ATTEND_EXAM = "approved_to_attend_exam"
    PASSED_WITH_EXEMPTION = "passed_with_exemption"
    APPLICATION_APPROVED = "application_approved"


APPLICATION_STATUS_LABELS = {
    ApplicationStatus.SUBMITTED: "Submitted",
    ApplicationStatus.PENDING_REVIEW: "Pending Review",
    ApplicationStatus.INCOMPLETE_DOCUMENT: "Incomplete Document",
    ApplicationStatus.APPROVED_TO_ATTEND_EXAM: "Approved to Attend Exam",
    ApplicationStatus.PASSED_WITH_EXEMPTION: "Passed with Exemption",
    ApplicationStatus.APPLICATION_APPROVED: "Application is Approved",
}


class EducationType(enum.Enum):
    GENERAL_SCHOOL = "general_school"
    SPECIALIZED_SCHOOL = "specialized_school"
    PRESIDENTIAL_SCHOOL = "presidential_school"


class LanguageCertType(enum.Enum):
    IELTS = "ielts"
    SAT = "sat"
    NATIONAL_CEFR = "national_cefr"


class NotificationType(enum.Enum):
    CHAT_MESSAGE = "chat_message"
    FIELD_CHANGE = "field_change"
    STATUS_CHANGE = "status_change"
    APPLICANT_UPDATE = "applicant_update"
    GENERAL = "general"


# Partial unique index predicate: one unread chat notification per (recipient, case).
# Enum columns store member names.
UNREAD_CHAT_PREDICATE = text("is_read = false AND notification_type = 'CHAT_MESSAGE'")


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, onupdate=naive_utc_now, nullable=False
    )


# Models
class User(Base, AuditMixin):
    """Account record; issued and maintained by the auth service, read here."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    application: Mapped[Optional["Application"]] = relationship(
        back_populates="applicant", foreign_keys="Application.user_id"
    )

    # Constraints
    __table_args__ = (Index("idx_users_role_active", "role", "is_active"),)


class Application(Base, AuditMixin):
    """One applicant's case: the unit of ownership and conversation."""

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        StringUUID,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,  # One case per applicant
        nullable=False,
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus), default=ApplicationStatus.SUBMITTED, nullable=False
    )
    assigned_admin_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="SET NULL")
    )

    # Form fields
    education_type: Mapped[Optional[str]] = mapped_column(String(50))
    surname: Mapped[Optional[str]] = mapped_column(String(100))
    given_name: Mapped[Optional[str]] = mapped_column(String(100))
    gender: Mapped[Optional[str]] = mapped_column(String(20))
    citizenship: Mapped[Optional[str]] = mapped_column(String(100))
    card_number: Mapped[Optional[str]] = mapped_column(String(50))
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date)
    date_of_issue: Mapped[Optional[date]] = mapped_column(Date)
    date_of_expiry: Mapped[Optional[date]] = mapped_column(Date)
    personal_number: Mapped[Optional[str]] = mapped_column(String(50))
    place_of_birth: Mapped[Optional[str]] = mapped_column(String(200))
    passport_image_path: Mapped[Optional[str]] = mapped_column(String(500))
    attestat_pdf_path: Mapped[Optional[str]] = mapped_column(String(500))
    language_cert_type: Mapped[Optional[str]] = mapped_column(String(50))
    language_cert_pdf_path: Mapped[Optional[str]] = mapped_column(String(500))
    language_cert_score: Mapped[Optional[str]] = mapped_column(String(20))
    language_cert_date: Mapped[Optional[date]] = mapped_column(Date)
    social_registry: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    social_registry_pdf_path: Mapped[Optional[str]] = mapped_column(String(500))
    completion_percentage: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Staff document review; both flags false means not yet reviewed
    language_cert_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    language_cert_invalid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sat_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sat_invalid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cefr_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cefr_invalid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attestat_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attestat_invalid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    applicant: Mapped["User"] = relationship(
        back_populates="application", foreign_keys=[user_id]
    )
    assigned_admin: Mapped[Optional["User"]] = relationship(
        foreign_keys=[assigned_admin_id]
    )
    messages: Mapped[List["ChatMessage"]] = relationship(
        back_populates="application", order_by="ChatMessage.created_at"
    )

    # Constraints
    __table_args__ = (
        CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="ck_applications_completion_range",
        ),
        Index("idx_applications_status", "status"),
        Index("idx_applications_assigned_admin", "assigned_admin_id"),
        Index("idx_applications_updated_at", "updated_at"),
    )


class ChatMessage(Base):
    """Append-only chat log entry; only ``is_read`` ever changes, and only to true."""

    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    application_id: Mapped[str] = mapped_column(
        StringUUID,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text)
    file_path: Mapped[Optional[str]] = mapped_column(String(500))
    file_name: Mapped[Optional[str]] = mapped_column(String(255))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    application: Mapped["Application"] = relationship(back_populates="messages")
    sender: Mapped["User"] = relationship()

    # Constraints
    __table_args__ = (
        CheckConstraint(
            "message IS NOT NULL OR file_path IS NOT NULL",
            name="ck_chat_messages_has_content",
        ),
        Index("idx_chat_messages_app_created", "application_id", "created_at"),
        Index(
            "idx_chat_messages_unread",
            "application_id",
            "sender_role",
            "is_read",
        ),
    )


class Notification(Base, AuditMixin):
    """Bell-menu entry. ``count`` > 1 marks a collapsed chat burst."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("applications.id", ondelete="CASCADE")
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), default=NotificationType.GENERAL, nullable=False
    )
    count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    changed_fields: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    # Relationships
    application: Mapped[Optional["Application"]] = relationship()

    # Constraints
    __table_args__ = (
        CheckConstraint("count >= 1", name="ck_notifications_count_positive"),
        Index("idx_notifications_user_unread", "user_id", "is_read", "updated_at"),
        Index(
            "uq_notifications_unread_chat",
            "user_id",
            "application_id",
            unique=True,
            postgresql_where=UNREAD_CHAT_PREDICATE,
            sqlite_where=UNREAD_CHAT_PREDICATE,
        ),
    )


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    admin_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("applications.id", ondelete="SET NULL")
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    admin: Mapped["User"] = relationship()

    # Constraints
    __table_args__ = (
        Index("idx_admin_logs_created_at", "created_at"),
        Index("idx_admin_logs_application", "application_id"),
    )
