"""
Student Applications Repository

Database operations for student applications.

Design Principles:
- All queries are parameterized (no SQL injection)
- Single responsibility - only database operations, no business logic
- Status changes are conditional single-statement UPDATEs: the row changes
  only if it is still in the expected status, so concurrent reviewers
  cannot both win
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.database import retry_transient

from .models import ApplicationStatus, StudentApplication
from .schemas import StudentApplicationCreate

# Valid status transitions - only a pending application can change state
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.WITHDRAWN,
    },
    # Terminal states - no transitions allowed
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.REJECTED: set(),
    ApplicationStatus.WITHDRAWN: set(),
}

# Snapshot fields an applicant may edit while the application is pending
EDITABLE_FIELDS = frozenset(
    {
        "phone",
        "current_grade",
        "desired_grade",
        "parent_name",
        "parent_email",
        "parent_phone",
        "address",
        "additional_info",
    }
)


class InvalidStatusTransitionError(ValueError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


def is_valid_transition(current_status: ApplicationStatus, new_status: ApplicationStatus) -> bool:
    return new_status in VALID_STATUS_TRANSITIONS.get(current_status, set())


@retry_transient
async def create(
    db: AsyncSession,
    applicant_id: UUID,
    data: StudentApplicationCreate,
) -> StudentApplication:
    """
    Create a new pending application.

    Raises:
        IntegrityError: If the applicant already has an application for the school
    """
    new_application = StudentApplication(
        applicant_id=applicant_id,
        school_id=data.school_id,
        first_name=data.first_name,
        last_name=data.last_name,
        email=str(data.email),
        phone=data.phone,
        date_of_birth=data.date_of_birth,
        current_grade=data.current_grade,
        desired_grade=data.desired_grade,
        previous_school=data.previous_school,
        parent_name=data.parent_name,
        parent_email=str(data.parent_email) if data.parent_email else None,
        parent_phone=data.parent_phone,
        address=data.address,
        additional_info=data.additional_info,
        status=ApplicationStatus.PENDING,
    )

    db.add(new_application)
    await db.commit()

    # Reload so the school and applicant relationships are populated
    return await get_by_id(db, new_application.id)


async def get_by_id(db: AsyncSession, id: UUID) -> StudentApplication | None:
    """Get an application by ID, always reading the stored row."""
    return await db.get(StudentApplication, id, populate_existing=True)


async def find_duplicate(
    db: AsyncSession,
    applicant_id: UUID,
    school_id: UUID,
) -> StudentApplication | None:
    """Get the applicant's application for a school, in any status."""
    result = await db.execute(
        select(StudentApplication).where(
            StudentApplication.applicant_id == applicant_id,
            StudentApplication.school_id == school_id,
        )
    )
    return result.scalar_one_or_none()


async def list_for_applicant(db: AsyncSession, applicant_id: UUID) -> list[StudentApplication]:
    """All applications submitted by an applicant, newest first."""
    result = await db.execute(
        select(StudentApplication)
        .where(StudentApplication.applicant_id == applicant_id)
        .order_by(StudentApplication.created_at.desc())
    )
    return list(result.scalars().all())


async def list_for_school(db: AsyncSession, school_id: UUID) -> list[StudentApplication]:
    """All applications to a school, newest first."""
    result = await db.execute(
        select(StudentApplication)
        .where(StudentApplication.school_id == school_id)
        .order_by(StudentApplication.created_at.desc())
    )
    return list(result.scalars().all())


@retry_transient
async def update_status(
    db: AsyncSession,
    id: UUID,
    expected_status: ApplicationStatus,
    new_status: ApplicationStatus,
    **fields: Any,
) -> StudentApplication | None:
    """
    Atomically move an application from ``expected_status`` to ``new_status``.

    The row is changed only if it still has ``expected_status`` when the
    UPDATE runs, so of two concurrent transitions at most one succeeds.

    Args:
        db: Database session
        id: Application UUID
        expected_status: Status the application must currently have
        new_status: Status to set
        **fields: Additional columns to set (e.g. reviewed_by, rejection_reason)

    Returns:
        The updated application, or None if no row matched (missing, or no
        longer in ``expected_status``)

    Raises:
        InvalidStatusTransitionError: If the state machine forbids the change
    """
    if not is_valid_transition(expected_status, new_status):
        raise InvalidStatusTransitionError(expected_status, new_status)

    result = await db.execute(
        update(StudentApplication)
        .where(
            StudentApplication.id == id,
            StudentApplication.status == expected_status,
        )
        .values(status=new_status, **fields)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        return None

    return await get_by_id(db, id)


@retry_transient
async def update_details(
    db: AsyncSession,
    id: UUID,
    applicant_id: UUID,
    fields: dict[str, Any],
) -> StudentApplication | None:
    """
    Update editable snapshot fields of a pending application owned by ``applicant_id``.

    Returns:
        The updated application, or None if no pending application of the
        applicant matched

    Raises:
        ValueError: If ``fields`` names a column that is not editable
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable: {sorted(unknown)}")

    result = await db.execute(
        update(StudentApplication)
        .where(
            StudentApplication.id == id,
            StudentApplication.applicant_id == applicant_id,
            StudentApplication.status == ApplicationStatus.PENDING,
        )
        .values(**fields)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount != 1:
        return None

    return await get_by_id(db, id)
