"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from schools_api.modules.users.models import UserRole


class SignupRequest(BaseModel):
    """Self-registration request. Admin accounts cannot be self-registered."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.STUDENT

    @field_validator("role")
    @classmethod
    def role_must_be_self_service(cls, value: UserRole) -> UserRole:
        if value == UserRole.ADMIN:
            raise ValueError("admin accounts cannot be self-registered")
        return value


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyCodeRequest(BaseModel):
    """Second-factor code submission."""

    email: EmailStr
    code: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")


class ResendCodeRequest(BaseModel):
    """Request a fresh verification code."""

    email: EmailStr


class UserResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    created_at: datetime


class LoginResponse(BaseModel):
    """
    Result of a login step.

    ``token`` and ``user`` are present only once authentication is complete
    (admin login, successful code verification, or signup).
    """

    requires_verification: bool
    token: str | None = None
    token_type: str = "bearer"
    user: UserResponse | None = None
    message: str | None = None


class ResendCodeResponse(BaseModel):
    """Response after issuing a fresh verification code."""

    message: str = "Verification code sent to your email."
    expires_at: datetime
