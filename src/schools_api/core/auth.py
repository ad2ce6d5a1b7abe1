"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
This module handles JWT token validation and role-based access control
using the security utilities defined in security.py.

A request carries its session token as ``Authorization: Bearer <token>``
(or, for older clients, an ``x-auth-token`` header). A validated token
becomes a ``Principal``; routes then narrow access with ``require_roles``.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from schools_api.core.security import ACCESS_TOKEN_TYPE, decode_token
from schools_api.modules.users.models import UserRole

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


@dataclass(frozen=True)
class Principal:
    """
    Authenticated identity attached to a request.

    Populated from JWT claims after token validation.

    Attributes:
        id: Account's unique identifier (UUID)
        role: Account role at the time the token was issued
        email: Account email (informational)
    """

    id: UUID
    role: UserRole
    email: str = ""

    def __str__(self) -> str:
        return f"Principal(id={self.id}, role={self.role.value})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def authenticate_token(token: str | None) -> Principal:
    """
    Validate a session token and extract the principal.

    Uses the decode_token function from security.py which handles
    JWT signature verification, algorithm validation, and expiration checks.

    Args:
        token: Raw token string, or None when the request carried none

    Returns:
        Principal built from the token claims

    Raises:
        HTTPException 401: NOT_AUTHENTICATED if no token was supplied,
            INVALID_TOKEN if it is malformed, expired, badly signed or
            carries unusable claims
    """
    if not token:
        raise _unauthorized("NOT_AUTHENTICATED", "Authentication required.")

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN", "This endpoint requires an access token.")

    try:
        subject = payload.get("sub")
        if not subject:
            raise ValueError("Missing 'sub' claim in token")

        return Principal(
            id=UUID(subject),
            role=UserRole(payload.get("role")),
            email=payload.get("email", ""),
        )
    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized("INVALID_TOKEN", "Token contains invalid or missing claims.") from e


def _extract_token(
    credentials: HTTPAuthorizationCredentials | None,
    x_auth_token: str | None,
) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return x_auth_token


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    x_auth_token: str | None = Header(default=None, alias="x-auth-token"),
) -> Principal:
    """
    FastAPI dependency that validates the session token and returns the principal.

    Usage:
        @router.get("/me")
        async def me(principal: Principal = Depends(get_current_principal)):
            ...

    Raises:
        HTTPException 401: If the token is missing, invalid, or expired
    """
    principal = authenticate_token(_extract_token(credentials, x_auth_token))
    logger.debug(f"Authenticated {principal}")
    return principal


def has_role(principal: Principal, *roles: UserRole) -> bool:
    """Check whether the principal holds one of ``roles``."""
    return principal.role in roles


def require_role(principal: Principal, *roles: UserRole) -> Principal:
    """
    Assert the principal holds one of ``roles``.

    Raises:
        HTTPException 403: If it does not
    """
    if not has_role(principal, *roles):
        logger.warning(
            f"Access denied: {principal} is not one of {[role.value for role in roles]}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "FORBIDDEN",
                "message": "You do not have permission to perform this action.",
            },
        )
    return principal


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        @router.post("", dependencies=[Depends(require_roles(UserRole.STUDENT))])
    """

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        return require_role(principal, *roles)

    return dependency


__all__ = [
    "Principal",
    "authenticate_token",
    "get_current_principal",
    "has_role",
    "require_role",
    "require_roles",
]
