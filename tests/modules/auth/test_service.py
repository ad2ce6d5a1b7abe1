"""
Unit tests for the authentication service layer.

These tests cover:
- Login for admins (no second factor) and for students/leaders (code issued)
- Identical errors for unknown email and wrong password
- Code verification: mismatch, expiry, one-time use, vanished account
- Resend invalidating earlier codes
- Signup
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from schools_api.core.email import NotifierFailure
from schools_api.core.security import decode_token
from schools_api.modules.auth.models import VerificationCode
from schools_api.modules.auth.schemas import SignupRequest
from schools_api.modules.auth.service import (
    AccountNotFoundError,
    CodeExpiredError,
    EmailAlreadyRegisteredError,
    InvalidCodeError,
    InvalidCredentialsError,
    get_account,
    login,
    register,
    requires_second_factor,
    resend_code,
    verify_code,
)
from schools_api.modules.users.models import UserRole
from tests.factories import make_user

SERVICE = "schools_api.modules.auth.service"
NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def make_code(email: str, code: str = "123456", expires_at: datetime | None = None):
    record = MagicMock(spec=VerificationCode)
    record.id = uuid4()
    record.email = email
    record.code = code
    record.expires_at = expires_at or NOW + timedelta(minutes=10)
    return record


@pytest.fixture
def mock_users():
    with patch(f"{SERVICE}.UserRepository") as users:
        users.normalize_email = lambda email: email.strip().lower()
        users.get_by_email = AsyncMock(return_value=None)
        users.get_by_id = AsyncMock(return_value=None)
        users.email_exists = AsyncMock(return_value=False)
        users.create = AsyncMock()
        yield users


@pytest.fixture
def mock_ledger():
    with patch(f"{SERVICE}.repository") as ledger:
        ledger.replace_code = AsyncMock()
        ledger.get_latest_matching = AsyncMock(return_value=None)
        ledger.delete_code = AsyncMock(return_value=True)
        yield ledger


@pytest.fixture
def mock_send_code():
    with patch(f"{SERVICE}.send_verification_code", new_callable=AsyncMock) as send:
        yield send


@pytest.fixture
def frozen_now():
    with patch(f"{SERVICE}._utcnow", return_value=NOW) as now:
        yield now


class TestRequiresSecondFactor:
    def test_admin_skips_second_factor(self):
        assert requires_second_factor(UserRole.ADMIN) is False

    def test_student_and_leader_need_second_factor(self):
        assert requires_second_factor(UserRole.STUDENT) is True
        assert requires_second_factor(UserRole.LEADER) is True


class TestLogin:
    """Tests for login."""

    @pytest.mark.asyncio
    async def test_admin_gets_token_without_code(
        self, mock_db, mock_users, mock_ledger, mock_send_code
    ):
        admin = make_user(UserRole.ADMIN, email="admin@test.com")
        mock_users.get_by_email.return_value = admin

        with patch(f"{SERVICE}.verify_password", return_value=True):
            result = await login(mock_db, "admin@test.com", "pw")

        assert result.requires_verification is False
        payload = decode_token(result.token)
        assert payload["sub"] == str(admin.id)
        assert payload["role"] == "admin"
        mock_ledger.replace_code.assert_not_called()
        mock_send_code.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.STUDENT, UserRole.LEADER])
    async def test_non_admin_gets_code_and_no_token(
        self, role, mock_db, mock_users, mock_ledger, mock_send_code, frozen_now
    ):
        user = make_user(role, email="user@test.com")
        mock_users.get_by_email.return_value = user

        with patch(f"{SERVICE}.verify_password", return_value=True):
            result = await login(mock_db, "User@Test.com ", "pw")

        assert result.requires_verification is True
        assert result.token is None
        assert result.user is None

        _, email, code, expires_at = mock_ledger.replace_code.call_args.args
        assert email == "user@test.com"
        assert len(code) == 6 and code.isdigit()
        assert expires_at == NOW + timedelta(minutes=10)
        mock_send_code.assert_awaited_once_with("user@test.com", code)

    @pytest.mark.asyncio
    async def test_code_is_stored_before_email_is_sent(
        self, mock_db, mock_users, mock_ledger, mock_send_code
    ):
        mock_users.get_by_email.return_value = make_user(UserRole.STUDENT)
        order = []
        mock_ledger.replace_code.side_effect = lambda *a: order.append("store")
        mock_send_code.side_effect = lambda *a: order.append("email")

        with patch(f"{SERVICE}.verify_password", return_value=True):
            await login(mock_db, "student@test.com", "pw")

        assert order == ["store", "email"]

    @pytest.mark.asyncio
    async def test_email_failure_does_not_fail_login(
        self, mock_db, mock_users, mock_ledger, mock_send_code
    ):
        mock_users.get_by_email.return_value = make_user(UserRole.STUDENT)
        mock_send_code.side_effect = NotifierFailure("smtp down")

        with patch(f"{SERVICE}.verify_password", return_value=True):
            result = await login(mock_db, "student@test.com", "pw")

        assert result.requires_verification is True
        mock_ledger.replace_code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_are_indistinguishable(
        self, mock_db, mock_users, mock_ledger
    ):
        with pytest.raises(InvalidCredentialsError) as unknown:
            await login(mock_db, "nobody@test.com", "pw")

        mock_users.get_by_email.return_value = make_user(UserRole.STUDENT)
        with (
            patch(f"{SERVICE}.verify_password", return_value=False),
            pytest.raises(InvalidCredentialsError) as wrong_password,
        ):
            await login(mock_db, "student@test.com", "wrong")

        assert unknown.value.error_code == wrong_password.value.error_code
        assert unknown.value.message == wrong_password.value.message
        assert unknown.value.status_code == wrong_password.value.status_code == 401
        mock_ledger.replace_code.assert_not_called()


class TestVerifyCode:
    """Tests for verify_code."""

    @pytest.mark.asyncio
    async def test_no_matching_code(self, mock_db, mock_users, mock_ledger):
        with pytest.raises(InvalidCodeError):
            await verify_code(mock_db, "student@test.com", "000000")

        mock_ledger.delete_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_code_issues_token_and_is_consumed(
        self, mock_db, mock_users, mock_ledger, frozen_now
    ):
        user = make_user(UserRole.STUDENT)
        record = make_code(user.email)
        mock_ledger.get_latest_matching.return_value = record
        mock_users.get_by_email.return_value = user

        result = await verify_code(mock_db, user.email, "123456")

        assert result.requires_verification is False
        assert decode_token(result.token)["sub"] == str(user.id)
        assert result.user.id == user.id
        mock_ledger.delete_code.assert_awaited_once_with(mock_db, record.id)

    @pytest.mark.asyncio
    async def test_code_at_expiry_instant_is_expired_and_deleted(
        self, mock_db, mock_users, mock_ledger, frozen_now
    ):
        record = make_code("student@test.com", expires_at=NOW)
        mock_ledger.get_latest_matching.return_value = record

        with pytest.raises(CodeExpiredError):
            await verify_code(mock_db, "student@test.com", "123456")

        mock_ledger.delete_code.assert_awaited_once_with(mock_db, record.id)

    @pytest.mark.asyncio
    async def test_code_just_before_expiry_is_accepted(
        self, mock_db, mock_users, mock_ledger, frozen_now
    ):
        user = make_user(UserRole.LEADER)
        mock_ledger.get_latest_matching.return_value = make_code(
            user.email, expires_at=NOW + timedelta(microseconds=1)
        )
        mock_users.get_by_email.return_value = user

        result = await verify_code(mock_db, user.email, "123456")

        assert result.token is not None

    @pytest.mark.asyncio
    async def test_naive_expiry_from_store_is_treated_as_utc(
        self, mock_db, mock_users, mock_ledger, frozen_now
    ):
        naive_past = (NOW - timedelta(seconds=1)).replace(tzinfo=None)
        mock_ledger.get_latest_matching.return_value = make_code(
            "student@test.com", expires_at=naive_past
        )

        with pytest.raises(CodeExpiredError):
            await verify_code(mock_db, "student@test.com", "123456")

    @pytest.mark.asyncio
    async def test_code_consumed_concurrently_is_rejected(
        self, mock_db, mock_users, mock_ledger, frozen_now
    ):
        mock_ledger.get_latest_matching.return_value = make_code("student@test.com")
        mock_ledger.delete_code.return_value = False

        with pytest.raises(InvalidCodeError):
            await verify_code(mock_db, "student@test.com", "123456")

        mock_users.get_by_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_account_vanished(self, mock_db, mock_users, mock_ledger, frozen_now):
        mock_ledger.get_latest_matching.return_value = make_code("gone@test.com")

        with pytest.raises(AccountNotFoundError):
            await verify_code(mock_db, "gone@test.com", "123456")


class TestResendCode:
    """Tests for resend_code."""

    @pytest.mark.asyncio
    async def test_unknown_account(self, mock_db, mock_users, mock_ledger):
        with pytest.raises(AccountNotFoundError):
            await resend_code(mock_db, "nobody@test.com")

        mock_ledger.replace_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_issues_fresh_code(
        self, mock_db, mock_users, mock_ledger, mock_send_code, frozen_now
    ):
        mock_users.get_by_email.return_value = make_user(UserRole.STUDENT)

        result = await resend_code(mock_db, "student@test.com")

        assert result.expires_at == NOW + timedelta(minutes=10)
        mock_ledger.replace_code.assert_awaited_once()
        mock_send_code.assert_awaited_once()


class TestRegister:
    """Tests for register."""

    @pytest.fixture
    def signup(self):
        return SignupRequest(
            first_name="Ama",
            last_name="Mensah",
            email="ama@test.com",
            password="long-enough-pw",
            role=UserRole.LEADER,
        )

    @pytest.mark.asyncio
    async def test_creates_account_and_returns_token(self, mock_db, mock_users, signup):
        user = make_user(UserRole.LEADER, email="ama@test.com")
        mock_users.create.return_value = user

        result = await register(mock_db, signup)

        assert result.requires_verification is False
        assert decode_token(result.token)["role"] == "leader"
        kwargs = mock_users.create.call_args.kwargs
        assert kwargs["role"] == UserRole.LEADER
        assert kwargs["password_hash"] != "long-enough-pw"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, mock_db, mock_users, signup):
        mock_users.email_exists.return_value = True

        with pytest.raises(EmailAlreadyRegisteredError):
            await register(mock_db, signup)

        mock_users.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_hits_unique_constraint(self, mock_db, mock_users, signup):
        mock_users.create.side_effect = IntegrityError("INSERT", {}, Exception("unique"))

        with pytest.raises(EmailAlreadyRegisteredError):
            await register(mock_db, signup)

        mock_db.rollback.assert_awaited_once()

    def test_admin_cannot_self_register(self):
        with pytest.raises(ValueError):
            SignupRequest(
                first_name="Eve",
                last_name="Admin",
                email="eve@test.com",
                password="long-enough-pw",
                role=UserRole.ADMIN,
            )


class TestGetAccount:
    @pytest.mark.asyncio
    async def test_returns_account(self, mock_db, mock_users):
        user = make_user()
        mock_users.get_by_id.return_value = user

        assert await get_account(mock_db, user.id) is user

    @pytest.mark.asyncio
    async def test_missing_account(self, mock_db, mock_users):
        with pytest.raises(AccountNotFoundError):
            await get_account(mock_db, uuid4())
