"""
Security Utilities

Password hashing (passlib/bcrypt), signed session tokens (python-jose JWT)
and one-time numeric code generation.
"""

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from schools_api.core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    """Hash a plain-text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """
    Check a plain-text password against a stored hash.

    Returns False (never raises) for malformed or unknown hash formats.
    """
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        logger.warning("Password hash could not be verified (unrecognized format)")
        return False


def create_access_token(
    subject: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: Account ID stored in the ``sub`` claim
        additional_claims: Extra claims (role, email)
        expires_delta: Token lifetime (defaults to settings.access_token_expire_minutes)

    Returns:
        Encoded JWT string
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    payload: dict[str, Any] = {
        "sub": subject,
        "type": ACCESS_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    if additional_claims:
        payload.update(additional_claims)

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT.

    Verifies the signature, the algorithm and the ``exp`` claim.

    Returns:
        The token payload, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def generate_numeric_code(length: int | None = None) -> str:
    """
    Generate a one-time numeric code (zero padded, cryptographically random).

    Args:
        length: Number of digits (defaults to settings.verification_code_length)
    """
    digits = length or settings.verification_code_length
    return f"{secrets.randbelow(10**digits):0{digits}d}"
