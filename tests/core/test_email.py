"""
Unit tests for the email notifier.
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from schools_api.core.email import (
    NotifierFailure,
    notify_best_effort,
    send_application_status_email,
    send_email,
    send_verification_code,
)
from tests.factories import make_application


class TestSendEmail:
    """Tests for send_email."""

    @pytest.mark.asyncio
    async def test_without_api_key_logs_instead_of_sending(self):
        with (
            patch("schools_api.core.email.resend.api_key", None),
            patch("schools_api.core.email.resend.Emails.send") as mock_send,
        ):
            await send_email("a@test.com", "Subject", "<p>Hi</p>")

        mock_send.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_through_resend(self):
        with (
            patch("schools_api.core.email.resend.api_key", "re_test"),
            patch(
                "schools_api.core.email.resend.Emails.send", return_value={"id": "email-1"}
            ) as mock_send,
        ):
            await send_email("a@test.com", "Subject", "<p>Hi</p>")

        params = mock_send.call_args.args[0]
        assert params["to"] == ["a@test.com"]
        assert params["subject"] == "Subject"

    @pytest.mark.asyncio
    async def test_provider_error_raises_notifier_failure(self):
        with (
            patch("schools_api.core.email.resend.api_key", "re_test"),
            patch("schools_api.core.email.resend.Emails.send", side_effect=RuntimeError("boom")),
            pytest.raises(NotifierFailure),
        ):
            await send_email("a@test.com", "Subject", "<p>Hi</p>")

    @pytest.mark.asyncio
    async def test_timeout_raises_notifier_failure(self):
        async def never_finishes(*args, **kwargs):
            await asyncio.sleep(10)

        with (
            patch("schools_api.core.email.resend.api_key", "re_test"),
            patch("schools_api.core.email.asyncio.to_thread", side_effect=never_finishes),
            patch("schools_api.core.email.settings.email_timeout_seconds", 0.01),
            pytest.raises(NotifierFailure, match="Timed out"),
        ):
            await send_email("a@test.com", "Subject", "<p>Hi</p>")


class TestNotifyBestEffort:
    """Tests for notify_best_effort."""

    @pytest.mark.asyncio
    async def test_success_returns_true(self):
        async def ok():
            return None

        assert await notify_best_effort(ok(), "test") is True

    @pytest.mark.asyncio
    async def test_notifier_failure_is_swallowed(self):
        async def fails():
            raise NotifierFailure("smtp down")

        assert await notify_best_effort(fails(), "test") is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_swallowed(self):
        async def fails():
            raise ValueError("bad template")

        assert await notify_best_effort(fails(), "test") is False


class TestTemplates:
    """Tests for the email builders."""

    @pytest.mark.asyncio
    async def test_verification_code_email_contains_code(self):
        with patch("schools_api.core.email.send_email") as mock_send:
            await send_verification_code("a@test.com", "042917")

        kwargs = mock_send.call_args.kwargs
        assert kwargs["to_email"] == "a@test.com"
        assert kwargs["subject"] == "Your Verification Code - RSB"
        assert "042917" in kwargs["html_content"]

    @pytest.mark.asyncio
    async def test_rejection_email_includes_escaped_reason(self):
        application = make_application()

        with patch("schools_api.core.email.send_email") as mock_send:
            await send_application_status_email(
                application, "rejected", reason="<b>Class full</b>", school_name="Sunrise"
            )

        kwargs = mock_send.call_args.kwargs
        assert kwargs["to_email"] == "kofi@test.com"
        assert "&lt;b&gt;Class full&lt;/b&gt;" in kwargs["html_content"]

    @pytest.mark.asyncio
    async def test_approval_email_has_no_reason_block(self):
        application = make_application()
        mock_send = MagicMock()

        async def capture(**kwargs):
            mock_send(**kwargs)

        with patch("schools_api.core.email.send_email", side_effect=capture):
            await send_application_status_email(application, "approved", school_name="Sunrise")

        html = mock_send.call_args.kwargs["html_content"]
        assert "approved" in html
        assert "Reason" not in html
