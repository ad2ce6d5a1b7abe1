"""
Authentication Service Layer

Two-step, role-differentiated sign-in:

1. Login:
   - Verify email + password (one generic error for unknown email and wrong
     password, so accounts cannot be enumerated)
   - Admins receive a session token immediately
   - Students and leaders receive a one-time 6-digit code by email

2. Code Verification:
   - The newest code for the email must match and be unexpired
   - The code is deleted on use (one-time) or when found expired
   - A session token bound to (account id, role) is issued

3. Resend:
   - Issues a fresh code and invalidates every earlier one

Security considerations:
- Codes come from ``secrets`` (cryptographically random)
- The code is stored before the email is attempted, so a failed or lost
  email never blocks the user: resend is always available
- Codes and tokens are never logged
- Email delivery is best-effort and never fails the request
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import assert_never
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schools_api.core.config import settings
from schools_api.core.email import notify_best_effort, send_verification_code
from schools_api.core.security import (
    create_access_token,
    generate_numeric_code,
    hash_password,
    verify_password,
)
from schools_api.modules.auth import repository
from schools_api.modules.auth.schemas import (
    LoginResponse,
    ResendCodeResponse,
    SignupRequest,
    UserResponse,
)
from schools_api.modules.users.models import User, UserRole
from schools_api.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    """Base exception for authentication service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class InvalidCredentialsError(AuthServiceError):
    """Raised for an unknown email or a wrong password (deliberately indistinguishable)."""

    def __init__(self):
        super().__init__(
            message="Invalid email or password.",
            error_code="INVALID_CREDENTIALS",
            status_code=401,
        )


class InvalidCodeError(AuthServiceError):
    """Raised when no issued code matches the submission."""

    def __init__(self):
        super().__init__(
            message="Invalid verification code.",
            error_code="INVALID_CODE",
            status_code=400,
        )


class CodeExpiredError(AuthServiceError):
    """Raised when the matching code has expired."""

    def __init__(self):
        super().__init__(
            message="This verification code has expired. Please request a new one.",
            error_code="CODE_EXPIRED",
            status_code=400,
        )


class AccountNotFoundError(AuthServiceError):
    """Raised when no account exists for the email or ID."""

    def __init__(self):
        super().__init__(
            message="Account not found.",
            error_code="ACCOUNT_NOT_FOUND",
            status_code=404,
        )


class EmailAlreadyRegisteredError(AuthServiceError):
    """Raised when signing up with an email that already has an account."""

    def __init__(self):
        super().__init__(
            message="An account with this email already exists.",
            error_code="EMAIL_ALREADY_REGISTERED",
            status_code=409,
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the store as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def requires_second_factor(role: UserRole) -> bool:
    """Decide whether a role must complete the emailed-code step."""
    match role:
        case UserRole.ADMIN:
            return False
        case UserRole.STUDENT | UserRole.LEADER:
            return True
        case _:
            assert_never(role)


def _issue_session(user: User, message: str) -> LoginResponse:
    """Mint a session token for the account and build the response."""
    token = create_access_token(
        subject=str(user.id),
        additional_claims={
            "role": user.role.value,
            "email": user.email,
        },
    )
    return LoginResponse(
        requires_verification=False,
        token=token,
        user=UserResponse.model_validate(user),
        message=message,
    )


async def _issue_code(db: AsyncSession, email: str) -> datetime:
    """
    Persist a fresh code for ``email`` (replacing older ones) and email it.

    Returns:
        The new code's expiry
    """
    code = generate_numeric_code()
    expires_at = _utcnow() + timedelta(minutes=settings.verification_code_expire_minutes)

    await repository.replace_code(db, email, code, expires_at)
    logger.info(f"Issued verification code for {email}")

    # The code is durable at this point; a failed email is recoverable via resend
    await notify_best_effort(
        send_verification_code(email, code),
        f"verification code for {email}",
    )

    return expires_at


async def register(db: AsyncSession, data: SignupRequest) -> LoginResponse:
    """
    Create a student or leader account and sign it in.

    Raises:
        EmailAlreadyRegisteredError: If the email already has an account
    """
    if await UserRepository.email_exists(db, data.email):
        logger.warning("Signup attempt with an already registered email")
        raise EmailAlreadyRegisteredError()

    try:
        user = await UserRepository.create(
            db,
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
        )
    except IntegrityError as e:
        # Lost a race with a concurrent signup for the same email
        await db.rollback()
        raise EmailAlreadyRegisteredError() from e

    logger.info(f"Registered account {user.id} ({user.role.value})")
    return _issue_session(user, "Account created.")


async def login(db: AsyncSession, email: str, password: str) -> LoginResponse:
    """
    First sign-in step.

    Returns:
        LoginResponse with a token for admins, or ``requires_verification=True``
        after a code has been issued for every other role

    Raises:
        InvalidCredentialsError: Unknown email or wrong password
    """
    email = UserRepository.normalize_email(email)
    user = await UserRepository.get_by_email(db, email)

    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt")
        raise InvalidCredentialsError()

    if not requires_second_factor(user.role):
        logger.info(f"User {user.id} logged in (role: {user.role.value}, no second factor)")
        return _issue_session(user, "Login successful.")

    await _issue_code(db, user.email)
    logger.info(f"User {user.id} passed password check, awaiting code verification")

    return LoginResponse(
        requires_verification=True,
        message="A verification code has been sent to your email.",
    )


async def verify_code(db: AsyncSession, email: str, code: str) -> LoginResponse:
    """
    Second sign-in step: exchange a one-time code for a session token.

    Raises:
        InvalidCodeError: No issued code matches (never issued, superseded, or used)
        CodeExpiredError: The matching code has expired (it is deleted)
        AccountNotFoundError: The account disappeared after the code was issued
    """
    email = UserRepository.normalize_email(email)
    record = await repository.get_latest_matching(db, email, code)

    if record is None:
        logger.warning(f"Code verification failed for {email}: no matching code")
        raise InvalidCodeError()

    if _utcnow() >= _as_utc(record.expires_at):
        await repository.delete_code(db, record.id)
        logger.warning(f"Code verification failed for {email}: code expired")
        raise CodeExpiredError()

    # One-time use: only the request that actually deletes the row may proceed
    if not await repository.delete_code(db, record.id):
        logger.warning(f"Code verification failed for {email}: code already used")
        raise InvalidCodeError()

    user = await UserRepository.get_by_email(db, email)
    if user is None:
        logger.error(f"Account for {email} vanished between code issue and verification")
        raise AccountNotFoundError()

    logger.info(f"User {user.id} completed code verification")
    return _issue_session(user, "Verification successful.")


async def resend_code(db: AsyncSession, email: str) -> ResendCodeResponse:
    """
    Issue a fresh code, invalidating all earlier codes for the email.

    Raises:
        AccountNotFoundError: If no account matches the email
    """
    email = UserRepository.normalize_email(email)
    user = await UserRepository.get_by_email(db, email)

    if user is None:
        logger.warning("Resend requested for an unknown email")
        raise AccountNotFoundError()

    expires_at = await _issue_code(db, user.email)
    return ResendCodeResponse(expires_at=expires_at)


async def get_account(db: AsyncSession, account_id: UUID) -> User:
    """
    Get the account behind a session.

    Raises:
        AccountNotFoundError: If the account no longer exists
    """
    user = await UserRepository.get_by_id(db, account_id)
    if user is None:
        raise AccountNotFoundError()
    return user
