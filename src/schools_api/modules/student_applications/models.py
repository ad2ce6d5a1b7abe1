"""
Student Applications Models

A student's application to a school, with a snapshot of the applicant's
details taken at submission time.
"""

import enum
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schools_api.modules.shared import BaseModel

if TYPE_CHECKING:
    from schools_api.modules.schools.models import School
    from schools_api.modules.users.models import User


class ApplicationStatus(str, enum.Enum):
    """Status of a student application. Only PENDING has outgoing transitions."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class StudentApplication(BaseModel):
    """
    Student application.

    One application per (applicant, school) pair, whatever its status.
    ``rejection_reason`` is set only when rejected; ``reviewed_by`` and
    ``reviewed_at`` only when approved or rejected.
    """

    __tablename__ = "student_applications"

    applicant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    school_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Applicant snapshot
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_grade: Mapped[str | None] = mapped_column(String(50), nullable=True)
    desired_grade: Mapped[str | None] = mapped_column(String(50), nullable=True)
    previous_school: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Parent / guardian
    parent_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    parent_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_info: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        SAEnum(
            ApplicationStatus,
            name="application_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )

    # Review
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Eager-loaded for the school and account fields of API responses
    school: Mapped["School"] = relationship("School", lazy="selectin")
    applicant: Mapped["User"] = relationship(
        "User",
        foreign_keys=[applicant_id],
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("applicant_id", "school_id", name="uq_student_applications_applicant_school"),
        Index("ix_student_applications_school_id", "school_id"),
        Index("ix_student_applications_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<StudentApplication(id={self.id}, school_id={self.school_id}, status={self.status})>"

    @property
    def applicant_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def school_name(self) -> str | None:
        return self.school.name if self.school else None

    @property
    def school_location(self) -> str | None:
        return self.school.location if self.school else None

    @property
    def school_type(self) -> str | None:
        return self.school.type if self.school else None

    @property
    def school_level(self) -> str | None:
        return self.school.level if self.school else None

    @property
    def user_first_name(self) -> str | None:
        """Applicant account first name, which may differ from the snapshot."""
        return self.applicant.first_name if self.applicant else None

    @property
    def user_last_name(self) -> str | None:
        return self.applicant.last_name if self.applicant else None

    @property
    def user_email(self) -> str | None:
        return self.applicant.email if self.applicant else None
