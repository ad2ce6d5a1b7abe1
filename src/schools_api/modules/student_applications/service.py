"""
Student Applications Service Layer

Business logic for the student application lifecycle.
Orchestrates repository operations, authorization and email notifications.

State machine:
    pending -> approved | rejected | withdrawn
    (approved, rejected and withdrawn are terminal)

This module implements:
1. Submission:
   - The school must exist
   - One application per (applicant, school), whatever its status
   - The school's leader is notified

2. Review:
   - Admins may review any application; a leader only those for schools
     they own
   - Approve / reject are conditional updates from pending, so two
     concurrent reviewers can never both succeed
   - A rejection needs a non-blank reason
   - The applicant is notified of the decision

3. Withdrawal and edits by the applicant, while pending

Notification rule: the state change is committed first and the email is sent
afterwards, best-effort. A failed email is logged and never undoes or fails
the transition.
"""

import logging
from datetime import UTC, datetime
from typing import Any, assert_never
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.auth import Principal
from schools_api.core.email import (
    notify_best_effort,
    send_application_status_email,
    send_new_application_notification,
)
from schools_api.modules.schools.models import School
from schools_api.modules.schools.repository import SchoolRepository
from schools_api.modules.student_applications import repository
from schools_api.modules.student_applications.models import (
    ApplicationStatus,
    StudentApplication,
)
from schools_api.modules.student_applications.schemas import (
    StudentApplicationCreate,
    StudentApplicationUpdate,
)
from schools_api.modules.users.models import UserRole

logger = logging.getLogger(__name__)


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class SchoolNotFoundError(ApplicationServiceError):
    """Raised when the target school does not exist."""

    def __init__(self, school_id: UUID | None = None):
        message = f"School {school_id} not found" if school_id else "School not found"
        super().__init__(
            message=message,
            error_code="SCHOOL_NOT_FOUND",
            status_code=404,
        )


class DuplicateApplicationError(ApplicationServiceError):
    """Raised when the applicant already applied to the school."""

    def __init__(self):
        super().__init__(
            message="You have already applied to this school.",
            error_code="DUPLICATE_APPLICATION",
            status_code=409,
        )


class ForbiddenError(ApplicationServiceError):
    """Raised when the caller may not act on the application."""

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
        )


class InvalidTransitionError(ApplicationServiceError):
    """Raised when the application is no longer pending."""

    def __init__(self, current_status: ApplicationStatus, action: str):
        self.current_status = current_status
        super().__init__(
            message=f"Cannot {action} an application that is {current_status.value}.",
            error_code="INVALID_TRANSITION",
            status_code=409,
        )


class MissingReasonError(ApplicationServiceError):
    """Raised when a rejection has no reason."""

    def __init__(self):
        super().__init__(
            message="A reason is required to reject an application.",
            error_code="MISSING_REASON",
            status_code=400,
        )


class NoFieldsToUpdateError(ApplicationServiceError):
    """Raised when an update request changes nothing."""

    def __init__(self):
        super().__init__(
            message="No fields to update.",
            error_code="NO_FIELDS_TO_UPDATE",
            status_code=400,
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)


def can_review(principal: Principal, school: School | None) -> bool:
    """
    Check whether a principal may approve or reject applications for a school.

    Admins may review anything. A leader may review only for a school they
    own; an application whose school no longer exists is admin-only.
    """
    match principal.role:
        case UserRole.ADMIN:
            return True
        case UserRole.LEADER:
            return school is not None and SchoolRepository.is_owned_by(school, principal.id)
        case UserRole.STUDENT:
            return False
        case _:
            assert_never(principal.role)


async def _reclassify_failed_update(
    db: AsyncSession,
    application_id: UUID,
    action: str,
) -> ApplicationServiceError:
    """Work out why a conditional update matched no row."""
    current = await repository.get_by_id(db, application_id)
    if current is None:
        return ApplicationNotFoundError(application_id)
    logger.warning(
        f"Concurrent change: cannot {action} application {application_id}, "
        f"now {current.status.value}"
    )
    return InvalidTransitionError(current.status, action)


async def submit_application(
    db: AsyncSession,
    applicant_id: UUID,
    data: StudentApplicationCreate,
) -> StudentApplication:
    """
    Submit a new application in the pending state.

    Raises:
        SchoolNotFoundError: If the school does not exist
        DuplicateApplicationError: If the applicant already applied to the school
    """
    school = await SchoolRepository.get_by_id(db, data.school_id)
    if school is None:
        raise SchoolNotFoundError(data.school_id)

    if await repository.find_duplicate(db, applicant_id, data.school_id) is not None:
        logger.warning(f"Duplicate application by {applicant_id} for school {data.school_id}")
        raise DuplicateApplicationError()

    try:
        application = await repository.create(db, applicant_id, data)
    except IntegrityError as e:
        # A concurrent submission for the same pair won the unique constraint
        logger.warning(f"Duplicate application by {applicant_id} for school {data.school_id}")
        raise DuplicateApplicationError() from e

    logger.info(f"Application {application.id} submitted to school {school.id}")

    if school.leader is None:
        logger.info(f"School {school.id} has no leader, skipping new application notification")
    else:
        await notify_best_effort(
            send_new_application_notification(
                leader_email=school.leader.email,
                applicant_name=application.applicant_name,
                school_name=school.name,
            ),
            f"new application {application.id} to leader of school {school.id}",
        )

    return application


async def _decide(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Principal,
    new_status: ApplicationStatus,
    action: str,
    **fields: Any,
) -> tuple[StudentApplication, School | None]:
    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError(application_id)

    school = await SchoolRepository.get_by_id(db, application.school_id)
    if not can_review(reviewer, school):
        logger.warning(f"{reviewer} may not {action} application {application_id}")
        raise ForbiddenError()

    if application.status != ApplicationStatus.PENDING:
        raise InvalidTransitionError(application.status, action)

    updated = await repository.update_status(
        db,
        application_id,
        ApplicationStatus.PENDING,
        new_status,
        reviewed_by=reviewer.id,
        reviewed_at=_utcnow(),
        **fields,
    )
    if updated is None:
        raise await _reclassify_failed_update(db, application_id, action)

    logger.info(f"Application {application_id} {new_status.value} by {reviewer}")
    return updated, school


async def approve_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Principal,
) -> StudentApplication:
    """
    Approve a pending application.

    Raises:
        ApplicationNotFoundError: If the application does not exist
        ForbiddenError: If the reviewer is neither an admin nor the school's leader
        InvalidTransitionError: If the application is not pending
    """
    application, school = await _decide(
        db, application_id, reviewer, ApplicationStatus.APPROVED, "approve"
    )

    await notify_best_effort(
        send_application_status_email(
            application,
            ApplicationStatus.APPROVED.value,
            school_name=school.name if school else None,
        ),
        f"approval of application {application.id}",
    )

    return application


async def reject_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Principal,
    reason: str,
) -> StudentApplication:
    """
    Reject a pending application with a reason.

    The reason is checked before anything is read or written.

    Raises:
        MissingReasonError: If the reason is empty or whitespace
        ApplicationNotFoundError: If the application does not exist
        ForbiddenError: If the reviewer is neither an admin nor the school's leader
        InvalidTransitionError: If the application is not pending
    """
    reason = (reason or "").strip()
    if not reason:
        raise MissingReasonError()

    application, school = await _decide(
        db,
        application_id,
        reviewer,
        ApplicationStatus.REJECTED,
        "reject",
        rejection_reason=reason,
    )

    await notify_best_effort(
        send_application_status_email(
            application,
            ApplicationStatus.REJECTED.value,
            reason=reason,
            school_name=school.name if school else None,
        ),
        f"rejection of application {application.id}",
    )

    return application


async def withdraw_application(
    db: AsyncSession,
    application_id: UUID,
    applicant_id: UUID,
) -> None:
    """
    Withdraw the applicant's own pending application.

    The row is kept, marked withdrawn, so the (applicant, school) pair stays
    taken and the history remains visible.

    Raises:
        ApplicationNotFoundError: If the application does not exist
        ForbiddenError: If the caller did not submit the application
        InvalidTransitionError: If the application is not pending
    """
    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError(application_id)

    if application.applicant_id != applicant_id:
        logger.warning(f"Account {applicant_id} tried to withdraw application {application_id}")
        raise ForbiddenError("You can only withdraw your own applications.")

    if application.status != ApplicationStatus.PENDING:
        raise InvalidTransitionError(application.status, "withdraw")

    updated = await repository.update_status(
        db,
        application_id,
        ApplicationStatus.PENDING,
        ApplicationStatus.WITHDRAWN,
    )
    if updated is None:
        raise await _reclassify_failed_update(db, application_id, "withdraw")

    logger.info(f"Application {application_id} withdrawn by applicant")


async def update_application_details(
    db: AsyncSession,
    application_id: UUID,
    applicant_id: UUID,
    data: StudentApplicationUpdate,
) -> StudentApplication:
    """
    Edit the snapshot details of the applicant's own pending application.

    Raises:
        NoFieldsToUpdateError: If the request sets no field
        ApplicationNotFoundError: If the application does not exist
        ForbiddenError: If the caller did not submit the application
        InvalidTransitionError: If the application is not pending
    """
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise NoFieldsToUpdateError()

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError(application_id)

    if application.applicant_id != applicant_id:
        raise ForbiddenError("You can only edit your own applications.")

    if application.status != ApplicationStatus.PENDING:
        raise InvalidTransitionError(application.status, "edit")

    updated = await repository.update_details(db, application_id, applicant_id, fields)
    if updated is None:
        raise await _reclassify_failed_update(db, application_id, "edit")

    logger.info(f"Application {application_id} details updated ({', '.join(sorted(fields))})")
    return updated


async def get_application(
    db: AsyncSession,
    application_id: UUID,
    principal: Principal,
) -> StudentApplication:
    """
    Get one application.

    Visible to its applicant, to admins and to the leader of its school.
    Other students get "not found" so they cannot discover IDs.

    Raises:
        ApplicationNotFoundError: If missing, or hidden from a student
        ForbiddenError: If a leader does not own the application's school
    """
    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError(application_id)

    if application.applicant_id == principal.id:
        return application

    if principal.role == UserRole.STUDENT:
        raise ApplicationNotFoundError(application_id)

    school = await SchoolRepository.get_by_id(db, application.school_id)
    if not can_review(principal, school):
        raise ForbiddenError()

    return application


async def list_my_applications(db: AsyncSession, applicant_id: UUID) -> list[StudentApplication]:
    """The applicant's applications, newest first."""
    return await repository.list_for_applicant(db, applicant_id)


async def list_school_applications(
    db: AsyncSession,
    school_id: UUID,
    principal: Principal,
) -> list[StudentApplication]:
    """
    All applications to a school, newest first.

    Raises:
        SchoolNotFoundError: If the school does not exist
        ForbiddenError: If the caller is neither an admin nor the school's leader
    """
    school = await SchoolRepository.get_by_id(db, school_id)
    if school is None:
        raise SchoolNotFoundError(school_id)

    if not can_review(principal, school):
        raise ForbiddenError()

    return await repository.list_for_school(db, school_id)
