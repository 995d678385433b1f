from typing import List, Optional
from datetime import datetime, date
from sqlalchemy import (
    String,
    Boolean,
    Integer,
    Float,
    Text,
    ForeignKey,
    Enum,
    Index,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    DateTime,
    Date,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum

from careerpath.db.custom_types import StringUUID, new_id
from careerpath.utils.datetime_utils import naive_utc_now


class Base(DeclarativeBase):
    pass


# Enums
class UserRole(enum.Enum):
    STUDENT = "student"
    INSTITUTION = "institution"
    COMPANY = "company"
    ADMIN = "admin"


class ApprovalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class RegistrationType(enum.Enum):
    COURSE = "course"
    JOB = "job"


class RegistrationStatus(enum.Enum):
    PENDING = "pending"
    WAITING = "waiting"
    ADMITTED = "admitted"
    REJECTED = "rejected"
    REMOVED = "removed"


class TransitionCause(enum.Enum):
    STAFF_DECISION = "staff_decision"
    EXCLUSIVITY_CASCADE = "exclusivity_cascade"
    STUDENT_CHOICE = "student_choice"
    WAITLIST_PROMOTION = "waitlist_promotion"
    APPLICATION_CAP = "application_cap"


class NotificationKind(enum.Enum):
    INTERVIEW_INVITATION = "interview_invitation"
    JOB_MATCH = "job_match"


# Statuses that still occupy one of the per-institution application slots
ACTIVE_COURSE_STATUSES = (
    RegistrationStatus.PENDING,
    RegistrationStatus.WAITING,
    RegistrationStatus.ADMITTED,
)
TERMINAL_NEGATIVE_STATUSES = (RegistrationStatus.REJECTED, RegistrationStatus.REMOVED)


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, onupdate=naive_utc_now
    )


# Models
class Institution(Base, AuditMixin):
    __tablename__ = "institutions"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    owner_uid: Mapped[Optional[str]] = mapped_column(String(128))
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False
    )
    # One-way gate: once set, registration decisions are frozen
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    faculties: Mapped[List["Faculty"]] = relationship(
        back_populates="institution", cascade="all, delete-orphan"
    )
    courses: Mapped[List["Course"]] = relationship(back_populates="institution")

    __table_args__ = (
        Index("idx_institutions_status", "status"),
        Index("idx_institutions_owner_uid", "owner_uid"),
    )


class Faculty(Base, AuditMixin):
    __tablename__ = "faculties"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    institution_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("institutions.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    institution: Mapped["Institution"] = relationship(back_populates="faculties")
    courses: Mapped[List["Course"]] = relationship(back_populates="faculty")

    __table_args__ = (
        UniqueConstraint("institution_id", "name", name="uq_faculties_inst_name"),
    )


class Course(Base, AuditMixin):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    institution_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("institutions.id"), nullable=False
    )
    faculty_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("faculties.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    required_subjects: Mapped[List[str]] = mapped_column(
        JSON, default=list, nullable=False
    )
    min_marks: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    institution: Mapped["Institution"] = relationship(back_populates="courses")
    faculty: Mapped["Faculty"] = relationship(back_populates="courses")

    __table_args__ = (
        UniqueConstraint(
            "institution_id", "faculty_id", "name", name="uq_courses_inst_fac_name"
        ),
        Index("idx_courses_institution_id", "institution_id"),
    )


class Company(Base, AuditMixin):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    location: Mapped[Optional[str]] = mapped_column(String(200))
    owner_uid: Mapped[Optional[str]] = mapped_column(String(128))
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False
    )

    jobs: Mapped[List["Job"]] = relationship(back_populates="company")

    __table_args__ = (
        Index("idx_companies_status", "status"),
        Index("idx_companies_owner_uid", "owner_uid"),
    )


class Job(Base, AuditMixin):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("companies.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200))
    job_type: Mapped[Optional[str]] = mapped_column(String(50))
    deadline: Mapped[Optional[date]] = mapped_column(Date)
    is_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    marks: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    min_experience_years: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    skills: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    company: Mapped["Company"] = relationship(back_populates="jobs")

    __table_args__ = (
        CheckConstraint(
            "min_experience_years >= 0", name="ck_jobs_min_experience_non_negative"
        ),
        Index("idx_jobs_company_id", "company_id"),
    )


class Student(Base, AuditMixin):
    __tablename__ = "students"

    # Same value as the identity provider's user id
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    marks: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    experience_years: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skills: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    documents: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    grades_submitted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    grade_snapshots: Mapped[List["GradeSnapshot"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )

    def entered_grades_for(self, institution_id: str) -> Optional["GradeSnapshot"]:
        for snapshot in self.grade_snapshots:
            if snapshot.institution_id == institution_id:
                return snapshot
        return None


class GradeSnapshot(Base, AuditMixin):
    """Grades entered once per institution, frozen for eligibility checks."""

    __tablename__ = "grade_snapshots"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    institution_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("institutions.id"), nullable=False
    )
    marks: Mapped[float] = mapped_column(Float, nullable=False)
    skills: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    student: Mapped["Student"] = relationship(back_populates="grade_snapshots")

    __table_args__ = (
        UniqueConstraint(
            "student_id", "institution_id", name="uq_grade_snapshots_student_inst"
        ),
    )


class Registration(Base, AuditMixin):
    __tablename__ = "registrations"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("students.id"), nullable=False
    )
    type: Mapped[RegistrationType] = mapped_column(
        Enum(RegistrationType), nullable=False
    )
    status: Mapped[RegistrationStatus] = mapped_column(
        Enum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False
    )

    # Course subtype
    course_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("courses.id")
    )
    institution_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("institutions.id")
    )

    # Job subtype
    job_id: Mapped[Optional[str]] = mapped_column(StringUUID, ForeignKey("jobs.id"))
    company_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("companies.id")
    )

    # Set when promoted from the waitlist: the registration whose freed seat this filled
    promoted_for_registration_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("registrations.id")
    )

    transitions: Mapped[List["RegistrationTransition"]] = relationship(
        back_populates="registration",
        foreign_keys="RegistrationTransition.registration_id",
        order_by="RegistrationTransition.created_at",
    )

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_registrations_student_course"),
        UniqueConstraint("student_id", "job_id", name="uq_registrations_student_job"),
        UniqueConstraint(
            "promoted_for_registration_id", name="uq_registrations_promoted_for"
        ),
        CheckConstraint(
            "(type = 'COURSE' AND course_id IS NOT NULL AND institution_id IS NOT NULL)"
            " OR (type = 'JOB' AND job_id IS NOT NULL AND company_id IS NOT NULL)",
            name="ck_registrations_subtype_fields",
        ),
        Index("idx_registrations_student_type", "student_id", "type"),
        Index(
            "idx_registrations_waitlist",
            "course_id",
            "institution_id",
            "status",
            "created_at",
        ),
        Index("idx_registrations_company_id", "company_id"),
    )


class RegistrationTransition(Base, AuditMixin):
    """Audit trail of registration status changes."""

    __tablename__ = "registration_transitions"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    registration_id: Mapped[str] = mapped_column(
        StringUUID, ForeignKey("registrations.id"), nullable=False
    )
    old_status: Mapped[RegistrationStatus] = mapped_column(
        Enum(RegistrationStatus), nullable=False
    )
    new_status: Mapped[RegistrationStatus] = mapped_column(
        Enum(RegistrationStatus), nullable=False
    )
    cause: Mapped[TransitionCause] = mapped_column(
        Enum(TransitionCause), nullable=False
    )
    # For promotions: the registration whose freed seat was filled
    source_registration_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("registrations.id")
    )
    actor_id: Mapped[Optional[str]] = mapped_column(String(128))

    registration: Mapped["Registration"] = relationship(
        back_populates="transitions", foreign_keys=[registration_id]
    )

    __table_args__ = (
        Index("idx_reg_transitions_registration_id", "registration_id"),
        Index("idx_reg_transitions_source_cause", "source_registration_id", "cause"),
    )


class Notification(Base, AuditMixin):
    """Append-only; only the read flag ever changes."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(StringUUID, primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("students.id"), nullable=False
    )
    type: Mapped[NotificationKind] = mapped_column(
        Enum(NotificationKind), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    job_id: Mapped[Optional[str]] = mapped_column(StringUUID, ForeignKey("jobs.id"))
    company_id: Mapped[Optional[str]] = mapped_column(
        StringUUID, ForeignKey("companies.id")
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_notifications_student_read", "student_id", "read"),
        Index("idx_notifications_student_type_job", "student_id", "type", "job_id"),
    )
