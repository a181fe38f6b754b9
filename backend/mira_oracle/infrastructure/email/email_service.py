"""
Email Service for Mira Oracle

Sends transactional mail over SMTP. Without SMTP_HOST the message is
logged instead, which keeps the reset flow usable in development.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from mira_oracle.config.settings import get_settings
from mira_oracle.infrastructure.exceptions import UpstreamError


logger = logging.getLogger(__name__)


RESET_SUBJECT = "Reset Your Cosmic Password"

RESET_TEXT = """Dear Seeker of the Stars,

We received a request to reset the password for your Mira Oracle account.
Follow the link below to choose a new one:

{reset_url}

This link will expire in {ttl_minutes} minutes. If you didn't request a
password reset, you can safely ignore this email.

With celestial blessings,
The Mira Oracle Team
"""

RESET_HTML = """<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #1a1a2e; color: #fff;">
  <h1 style="color: #ffd700; text-align: center;">Reset Your Cosmic Password</h1>
  <p>Dear Seeker of the Stars,</p>
  <p>We received a request to reset the password for your Mira Oracle account.</p>
  <div style="text-align: center; margin: 30px 0;">
    <a href="{reset_url}" style="background: linear-gradient(to right, #ffd700, #ff69b4); color: #1a1a2e; padding: 12px 30px; text-decoration: none; border-radius: 25px; font-weight: bold;">Reset Password</a>
  </div>
  <p style="font-size: 14px; color: #888;">If you didn't request this password reset, you can safely ignore this email.</p>
  <p style="font-size: 14px; color: #888;">This link will expire in {ttl_minutes} minutes.</p>
</div>
"""


class EmailService:
    """SMTP mail delivery."""

    def __init__(self):
        settings = get_settings()
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._user = settings.smtp_user
        self._password = settings.smtp_password
        self._use_tls = settings.smtp_use_tls
        self._sender = settings.mail_from
        self._frontend_url = settings.frontend_url.rstrip("/")
        self._reset_ttl_minutes = settings.reset_token_ttl_minutes

    @property
    def is_configured(self) -> bool:
        return bool(self._host)

    def build_reset_url(self, token: str) -> str:
        return f"{self._frontend_url}/reset-password?token={token}"

    async def send_password_reset_email(self, email: str, token: str) -> None:
        """
        Send the password reset link.

        Raises:
            UpstreamError: the SMTP exchange failed
        """
        reset_url = self.build_reset_url(token)

        if not self.is_configured:
            logger.info(f"SMTP not configured; password reset link for {email}: {reset_url}")
            return

        message = EmailMessage()
        message["Subject"] = RESET_SUBJECT
        message["From"] = self._sender
        message["To"] = email
        message.set_content(RESET_TEXT.format(reset_url=reset_url, ttl_minutes=self._reset_ttl_minutes))
        message.add_alternative(
            RESET_HTML.format(reset_url=reset_url, ttl_minutes=self._reset_ttl_minutes),
            subtype="html",
        )

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send password reset email: {e}")
            raise UpstreamError(
                "Failed to send email",
                service="smtp",
                operation="send_password_reset_email",
                original_error=e,
            )

        logger.info(f"Password reset email sent to {email}")

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=30) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._user and self._password:
                smtp.login(self._user, self._password)
            smtp.send_message(message)


# =============================================================================
# Singleton Instance
# =============================================================================

_email_service_instance: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create email service singleton."""
    global _email_service_instance

    if _email_service_instance is None:
        _email_service_instance = EmailService()

    return _email_service_instance
