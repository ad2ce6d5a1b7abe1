"""Authentication module."""

from schools_api.modules.auth.router import router
from schools_api.modules.auth.schemas import LoginRequest, LoginResponse, VerifyCodeRequest

__all__ = ["router", "LoginRequest", "LoginResponse", "VerifyCodeRequest"]
