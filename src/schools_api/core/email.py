"""
Email Notifier using Resend

Delivers verification codes and student application notifications.

Every delivery is bounded by ``settings.email_timeout_seconds``. Failures are
raised as NotifierFailure; callers that treat an email as advisory wrap the
call in ``notify_best_effort`` so a failed send is logged and never fails or
rolls back the operation that triggered it.
"""

import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime
from html import escape
from typing import TYPE_CHECKING

import resend

from schools_api.core.config import settings

if TYPE_CHECKING:
    from schools_api.modules.student_applications.models import StudentApplication

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_STYLES = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #007a3d; margin-bottom: 24px; }
    .code-box { background-color: #f8f9fa; border: 2px dashed #007a3d; padding: 20px; border-radius: 8px; text-align: center; margin: 24px 0; }
    .code { font-size: 32px; font-weight: bold; letter-spacing: 6px; color: #007a3d; }
    .info-box { background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; }
    .button { display: inline-block; background-color: #007a3d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


class NotifierFailure(Exception):
    """Raised when an email could not be delivered."""


def _render(title: str, body: str) -> str:
    """Wrap an email body in the shared layout."""
    year = datetime.now().year
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>{_STYLES}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>&copy; {year} RSB Schools Management System</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(to_email: str, subject: str, html_content: str) -> None:
    """
    Send an email using Resend.

    Without RESEND_API_KEY the email is logged (recipient and subject only)
    instead of sent.

    Raises:
        NotifierFailure: If the provider rejects the email or the call times out
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return

    params: resend.Emails.SendParams = {
        "from": settings.email_from,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }

    try:
        # Resend's client is synchronous; run it off the event loop
        email = await asyncio.wait_for(
            asyncio.to_thread(resend.Emails.send, params),
            timeout=settings.email_timeout_seconds,
        )
    except TimeoutError as e:
        raise NotifierFailure(
            f"Timed out after {settings.email_timeout_seconds}s sending to {to_email}"
        ) from e
    except Exception as e:
        raise NotifierFailure(f"Failed to send email to {to_email}: {e}") from e

    logger.info(f"Email sent to {to_email}, id: {email['id']}")


async def notify_best_effort(notification: Awaitable[None], description: str) -> bool:
    """
    Await a notification and swallow its failure.

    Args:
        notification: The pending send_* coroutine
        description: What is being sent, for the log line

    Returns:
        True if the email went out, False if it failed (the failure is logged)
    """
    try:
        await notification
        return True
    except NotifierFailure as e:
        logger.error(f"Notification failed ({description}): {e}")
    except Exception as e:
        logger.error(f"Unexpected notifier error ({description}): {e}", exc_info=True)
    return False


async def send_verification_code(to_email: str, code: str) -> None:
    """Send a login verification code."""
    minutes = settings.verification_code_expire_minutes
    body = f"""
            <p>Hello,</p>
            <p>Use the code below to complete your sign-in to RSB Schools.</p>
            <div class="code-box">
                <p>Your verification code</p>
                <p class="code">{escape(code)}</p>
            </div>
            <p>This code expires in <strong>{minutes} minutes</strong> and can only be used once.</p>
            <p>If you didn't try to sign in, you can ignore this email.</p>
    """
    await send_email(
        to_email=to_email,
        subject="Your Verification Code - RSB",
        html_content=_render("Verification Code", body),
    )


async def send_new_application_notification(
    leader_email: str,
    applicant_name: str,
    school_name: str,
) -> None:
    """Tell a school leader that a new student application arrived."""
    safe_applicant_name = escape(applicant_name)
    safe_school_name = escape(school_name)

    dashboard_url = f"{settings.frontend_url}/leader"
    body = f"""
            <p>Hello,</p>
            <p><strong>{safe_applicant_name}</strong> has applied to <strong>{safe_school_name}</strong>.</p>
            <p>The application is waiting for your review.</p>
            <a href="{dashboard_url}" class="button">Review Applications</a>
    """
    await send_email(
        to_email=leader_email,
        subject=f"New application for {safe_school_name}",
        html_content=_render("New Student Application", body),
    )


async def send_application_status_email(
    application: "StudentApplication",
    status: str,
    reason: str | None = None,
    school_name: str | None = None,
) -> None:
    """
    Tell the applicant that their application was decided.

    Args:
        application: The decided application (its snapshot email is used)
        status: "approved" or "rejected"
        reason: Rejection reason, included verbatim (escaped)
        school_name: Display name of the school
    """
    safe_name = escape(f"{application.first_name} {application.last_name}".strip())
    safe_school_name = escape(school_name or "the school")

    if status == "approved":
        title = "Application Approved"
        subject = f"Your application to {safe_school_name} was approved"
        outcome = f"<p>Congratulations! Your application to <strong>{safe_school_name}</strong> has been approved.</p>"
    else:
        title = "Application Update"
        subject = f"Update on your application to {safe_school_name}"
        outcome = f"<p>Unfortunately, your application to <strong>{safe_school_name}</strong> was not approved.</p>"
        if reason:
            outcome += f"""
            <div class="info-box">
                <p><strong>Reason:</strong></p>
                <p>{escape(reason)}</p>
            </div>
            """

    status_url = f"{settings.frontend_url}/student"
    body = f"""
            <p>Hello {safe_name},</p>
            {outcome}
            <a href="{status_url}" class="button">View My Applications</a>
    """
    await send_email(
        to_email=application.email,
        subject=subject,
        html_content=_render(title, body),
    )


__all__ = [
    "NotifierFailure",
    "notify_best_effort",
    "send_application_status_email",
    "send_email",
    "send_new_application_notification",
    "send_verification_code",
]
