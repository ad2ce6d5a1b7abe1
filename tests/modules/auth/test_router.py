"""
HTTP tests for the authentication endpoints.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from schools_api.core.database import get_db
from schools_api.core.security import create_access_token
from schools_api.main import app
from schools_api.modules.auth.schemas import LoginResponse, ResendCodeResponse
from schools_api.modules.auth.service import (
    AccountNotFoundError,
    CodeExpiredError,
    InvalidCredentialsError,
)
from schools_api.modules.users.models import UserRole
from tests.factories import make_user

ROUTER = "schools_api.modules.auth.router"


@pytest.fixture
def client():
    async def override_get_db():
        yield MagicMock()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_service():
    with patch(f"{ROUTER}.service") as service:
        yield service


class TestLoginEndpoint:
    def test_code_required(self, client, mock_service):
        mock_service.login = AsyncMock(
            return_value=LoginResponse(requires_verification=True, message="sent")
        )

        response = client.post(
            "/api/v1/auth/login", json={"email": "kofi@test.com", "password": "pw"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["requires_verification"] is True
        assert body["token"] is None

    def test_invalid_credentials(self, client, mock_service):
        mock_service.login = AsyncMock(side_effect=InvalidCredentialsError())

        response = client.post(
            "/api/v1/auth/login", json={"email": "kofi@test.com", "password": "pw"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_CREDENTIALS"

    def test_unexpected_error_is_generic_500(self, client, mock_service):
        mock_service.login = AsyncMock(side_effect=RuntimeError("db exploded"))

        response = client.post(
            "/api/v1/auth/login", json={"email": "kofi@test.com", "password": "pw"}
        )

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "INTERNAL_ERROR"
        assert "exploded" not in response.text

    def test_rate_limited(self, client, mock_service):
        mock_service.login = AsyncMock(side_effect=InvalidCredentialsError())

        with (
            patch(f"{ROUTER}.settings.auth_rate_limit", 3),
            patch("schools_api.core.rate_limit.get_redis", return_value=None),
        ):
            statuses = [
                client.post(
                    "/api/v1/auth/login", json={"email": "kofi@test.com", "password": "pw"}
                ).status_code
                for _ in range(4)
            ]

        assert statuses == [401, 401, 401, 429]


class TestVerifyCodeEndpoint:
    def test_expired_code(self, client, mock_service):
        mock_service.verify_code = AsyncMock(side_effect=CodeExpiredError())

        response = client.post(
            "/api/v1/auth/verify-code", json={"email": "kofi@test.com", "code": "123456"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "CODE_EXPIRED"

    def test_non_numeric_code_is_rejected_by_validation(self, client, mock_service):
        response = client.post(
            "/api/v1/auth/verify-code", json={"email": "kofi@test.com", "code": "12ab56"}
        )

        assert response.status_code == 422


class TestResendCodeEndpoint:
    def test_unknown_account(self, client, mock_service):
        mock_service.resend_code = AsyncMock(side_effect=AccountNotFoundError())

        response = client.post("/api/v1/auth/resend-code", json={"email": "x@test.com"})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "ACCOUNT_NOT_FOUND"

    def test_success(self, client, mock_service):
        mock_service.resend_code = AsyncMock(
            return_value=ResendCodeResponse(expires_at="2026-03-01T09:10:00Z")
        )

        response = client.post("/api/v1/auth/resend-code", json={"email": "x@test.com"})

        assert response.status_code == 200
        assert response.json()["expires_at"].startswith("2026-03-01T09:10:00")


class TestSignupEndpoint:
    def test_admin_role_is_rejected(self, client, mock_service):
        response = client.post(
            "/api/v1/auth/signup",
            json={
                "first_name": "Eve",
                "last_name": "Admin",
                "email": "eve@test.com",
                "password": "long-enough-pw",
                "role": "admin",
            },
        )

        assert response.status_code == 422
        mock_service.register.assert_not_called()


class TestMeEndpoint:
    def test_requires_token(self, client):
        response = client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "NOT_AUTHENTICATED"

    def test_returns_account(self, client, mock_service):
        user = make_user(UserRole.LEADER, email="lead@test.com")
        mock_service.get_account = AsyncMock(return_value=user)
        token = create_access_token(str(user.id), {"role": "leader", "email": user.email})

        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["email"] == "lead@test.com"
        assert response.json()["role"] == "leader"
