"""
Email service.

Handles sending emails via SMTP using aiosmtplib for async support.
Used by the password-reset flow to deliver one-time passwords.
"""

import html
import logging
from email.message import EmailMessage

import aiosmtplib

from marketplace.core.config import settings

logger = logging.getLogger(__name__)


async def send_email(to: str, subject: str, html_body: str) -> None:
    """Send an HTML email via the configured SMTP server."""
    message = EmailMessage()
    message["From"] = settings.SENDER_EMAIL
    message["To"] = to
    message["Subject"] = subject
    message.set_content(html_body, subtype="html")

    try:
        await aiosmtplib.send(
            message,
            hostname=settings.EMAIL_HOST,
            port=settings.EMAIL_PORT,
            username=settings.SENDER_EMAIL,
            password=settings.EMAIL_PASSWORD,
            start_tls=True,
        )
        logger.info("Email sent to %s", to)
    except Exception:
        logger.exception("Failed to send email to %s", to)
        raise


def render_otp_email(name: str, otp: str) -> str:
    validity = settings.RESET_PASSWORD_TOKEN_EXPIRE_MINUTES
    return f"""\
    <div style="font-family: Arial, sans-serif; font-size: 14px;">
        <p>Hi {html.escape(name)},</p>
        <p>You requested to reset your password. Use the OTP below:</p>
        <h2 style="letter-spacing: 4px;">{html.escape(otp)}</h2>
        <p>This OTP is valid for {validity} minutes.</p>
        <p>If you did not request this, please ignore this email.</p>
        <br />
        <p>Thanks,<br/>{html.escape(settings.APP_NAME)} team</p>
    </div>
    """


async def send_otp_email(to: str, name: str, otp: str) -> None:
    """Deliver a password-reset OTP."""
    await send_email(to, "Password Reset OTP", render_otp_email(name or to.split("@")[0], otp))
