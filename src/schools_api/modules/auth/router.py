"""
Authentication Router

Endpoints:
- POST /auth/signup - Create a student or leader account
- POST /auth/login - Password check; admins get a token, others get a code by email
- POST /auth/verify-code - Exchange the emailed code for a session token
- POST /auth/resend-code - Issue a fresh code (invalidates earlier ones)
- GET /auth/me - Current account

Security:
- login, verify-code and resend-code are rate limited per client IP
- Credential failures use one generic error so accounts cannot be enumerated
"""

import logging
from collections.abc import Awaitable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.auth import Principal, get_current_principal
from schools_api.core.config import settings
from schools_api.core.database import get_db
from schools_api.core.rate_limit import rate_limit
from schools_api.modules.auth import service
from schools_api.modules.auth.schemas import (
    LoginRequest,
    LoginResponse,
    ResendCodeRequest,
    ResendCodeResponse,
    SignupRequest,
    UserResponse,
    VerifyCodeRequest,
)
from schools_api.modules.auth.service import AuthServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_rate_limit() -> int:
    return settings.auth_rate_limit


def _auth_rate_window() -> int:
    return settings.auth_rate_limit_window_seconds


async def _run(operation: Awaitable, action: str):
    """Await a service call, translating service errors to HTTP errors."""
    try:
        return await operation
    except AuthServiceError as e:
        logger.warning(f"{action} failed: {e.error_code}")
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
    "/signup",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Account",
    responses={
        409: {"description": "Email already registered"},
    },
)
async def signup(
    data: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Register a student or leader account and return a session token.

    Admin accounts cannot be created through this endpoint.
    """
    return await _run(service.register(db, data), "signup")


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login",
    description="""
Authenticate with email and password.

- **Admins** receive a session token immediately.
- **Students and leaders** receive a 6-digit code by email, valid for
  10 minutes; submit it to `/auth/verify-code` to obtain the token.
""",
    responses={
        401: {
            "description": "Invalid credentials",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "error": "INVALID_CREDENTIALS",
                            "message": "Invalid email or password.",
                        }
                    }
                }
            },
        },
        429: {"description": "Rate limit exceeded"},
    },
)
@rate_limit(limit=_auth_rate_limit, window_seconds=_auth_rate_window)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """First sign-in step."""
    return await _run(service.login(db, credentials.email, credentials.password), "login")


@router.post(
    "/verify-code",
    response_model=LoginResponse,
    summary="Verify Login Code",
    responses={
        400: {"description": "Invalid or expired code"},
        404: {"description": "Account not found"},
        429: {"description": "Rate limit exceeded"},
    },
)
@rate_limit(limit=_auth_rate_limit, window_seconds=_auth_rate_window)
async def verify_code(
    request: Request,
    data: VerifyCodeRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Second sign-in step.

    A code can be used once. An expired code is discarded; request a new
    one via `/auth/resend-code`.
    """
    return await _run(service.verify_code(db, data.email, data.code), "code verification")


@router.post(
    "/resend-code",
    response_model=ResendCodeResponse,
    summary="Resend Login Code",
    responses={
        404: {"description": "Account not found"},
        429: {"description": "Rate limit exceeded"},
    },
)
@rate_limit(limit=_auth_rate_limit, window_seconds=_auth_rate_window)
async def resend_code(
    request: Request,
    data: ResendCodeRequest,
    db: AsyncSession = Depends(get_db),
) -> ResendCodeResponse:
    """Issue a fresh code; every code issued earlier stops working."""
    return await _run(service.resend_code(db, data.email), "code resend")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Current Account",
)
async def me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Get the account behind the session token."""
    user = await _run(service.get_account(db, principal.id), "account lookup")
    return UserResponse.model_validate(user)
