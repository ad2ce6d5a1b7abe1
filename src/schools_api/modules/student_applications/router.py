"""
Student Applications Router

Endpoints:
- POST /applications - Submit an application (students)
- GET /applications - List my applications
- GET /applications/{id} - Get one application
- PUT /applications/{id} - Edit my pending application
- POST /applications/{id}/approve - Approve (admin or the school's leader)
- POST /applications/{id}/reject - Reject with a reason (admin or the school's leader)
- DELETE /applications/{id} - Withdraw my pending application
- GET /schools/{school_id}/applications - Applications to a school (admin or its leader)

All endpoints require a session token.
"""

import logging
from collections.abc import Awaitable
from typing import TypeVar
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.auth import Principal, get_current_principal, require_roles
from schools_api.core.database import get_db
from schools_api.modules.student_applications import service
from schools_api.modules.student_applications.schemas import (
    MessageResponse,
    RejectRequest,
    SchoolApplicationResponse,
    StudentApplicationCreate,
    StudentApplicationResponse,
    StudentApplicationUpdate,
)
from schools_api.modules.student_applications.service import ApplicationServiceError
from schools_api.modules.users.models import UserRole

logger = logging.getLogger(__name__)

T = TypeVar("T")

router = APIRouter()
schools_router = APIRouter()

require_student = require_roles(UserRole.STUDENT)
require_reviewer = require_roles(UserRole.LEADER, UserRole.ADMIN)

_TRANSITION_RESPONSES = {
    403: {"description": "Not allowed to act on this application"},
    404: {"description": "Application not found"},
    409: {
        "description": "Application is no longer pending",
        "content": {
            "application/json": {
                "example": {
                    "detail": {
                        "error": "INVALID_TRANSITION",
                        "message": "Cannot approve an application that is rejected.",
                    }
                }
            }
        },
    },
}


async def _call(operation: Awaitable[T], action: str) -> T:
    """Await a service call, translating service errors to HTTP errors."""
    try:
        return await operation
    except ApplicationServiceError as e:
        logger.warning(f"{action} failed: {e.error_code} - {e.message}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error during {action}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e


@router.post(
    "",
    response_model=StudentApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Application",
    description="""
Apply to a school. The application starts in `pending` and the school's
leader is notified by email.

Only one application per school is allowed, whatever the state of the
earlier one.
""",
    responses={
        404: {"description": "School not found"},
        409: {"description": "Already applied to this school"},
    },
)
async def submit_application(
    data: StudentApplicationCreate,
    principal: Principal = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> StudentApplicationResponse:
    application = await _call(
        service.submit_application(db, principal.id, data),
        "application submission",
    )
    return StudentApplicationResponse.model_validate(application)


@router.get(
    "",
    response_model=list[StudentApplicationResponse],
    summary="List My Applications",
)
async def list_my_applications(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> list[StudentApplicationResponse]:
    """Applications submitted by the caller, newest first."""
    applications = await _call(
        service.list_my_applications(db, principal.id),
        "application listing",
    )
    return [StudentApplicationResponse.model_validate(a) for a in applications]


@router.get(
    "/{application_id}",
    response_model=StudentApplicationResponse,
    summary="Get Application",
    responses={
        403: {"description": "Leader of another school"},
        404: {"description": "Application not found"},
    },
)
async def get_application(
    application_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> StudentApplicationResponse:
    application = await _call(
        service.get_application(db, application_id, principal),
        "application lookup",
    )
    return StudentApplicationResponse.model_validate(application)


@router.put(
    "/{application_id}",
    response_model=StudentApplicationResponse,
    summary="Edit Application",
    responses=_TRANSITION_RESPONSES,
)
async def update_application(
    application_id: UUID,
    data: StudentApplicationUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> StudentApplicationResponse:
    """Edit the details of the caller's own pending application."""
    application = await _call(
        service.update_application_details(db, application_id, principal.id, data),
        "application update",
    )
    return StudentApplicationResponse.model_validate(application)


@router.post(
    "/{application_id}/approve",
    response_model=StudentApplicationResponse,
    summary="Approve Application",
    responses=_TRANSITION_RESPONSES,
)
async def approve_application(
    application_id: UUID,
    principal: Principal = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
) -> StudentApplicationResponse:
    """Approve a pending application. The applicant is notified by email."""
    application = await _call(
        service.approve_application(db, application_id, principal),
        "application approval",
    )
    return StudentApplicationResponse.model_validate(application)


@router.post(
    "/{application_id}/reject",
    response_model=StudentApplicationResponse,
    summary="Reject Application",
    responses={
        400: {"description": "Missing rejection reason"},
        **_TRANSITION_RESPONSES,
    },
)
async def reject_application(
    application_id: UUID,
    data: RejectRequest,
    principal: Principal = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
) -> StudentApplicationResponse:
    """Reject a pending application. The reason is included in the applicant's email."""
    application = await _call(
        service.reject_application(db, application_id, principal, data.reason),
        "application rejection",
    )
    return StudentApplicationResponse.model_validate(application)


@router.delete(
    "/{application_id}",
    response_model=MessageResponse,
    summary="Withdraw Application",
    responses=_TRANSITION_RESPONSES,
)
async def withdraw_application(
    application_id: UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await _call(
        service.withdraw_application(db, application_id, principal.id),
        "application withdrawal",
    )
    return MessageResponse(message="Application withdrawn successfully")


@schools_router.get(
    "/{school_id}/applications",
    response_model=list[SchoolApplicationResponse],
    summary="List School Applications",
    responses={
        403: {"description": "Not an admin or the school's leader"},
        404: {"description": "School not found"},
    },
)
async def list_school_applications(
    school_id: UUID,
    principal: Principal = Depends(require_reviewer),
    db: AsyncSession = Depends(get_db),
) -> list[SchoolApplicationResponse]:
    """Applications to a school, newest first, with the applicant's account details."""
    applications = await _call(
        service.list_school_applications(db, school_id, principal),
        "school application listing",
    )
    return [SchoolApplicationResponse.model_validate(a) for a in applications]
