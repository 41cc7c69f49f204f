"""
Email Notifications

Transactional emails for account flows (verification, password reset,
password changed). Sending is synchronous SMTP; callers run it off the event
loop.
"""

from email.message import EmailMessage
import smtplib
from typing import Optional

import structlog

from admin_service.config.settings import EmailSettings

logger = structlog.get_logger(__name__)


class EmailService:
    """SMTP sender for account emails"""

    def __init__(self, settings: EmailSettings):
        self.settings = settings

    def send_email_verification(self, email: str, first_name: Optional[str], token: str) -> None:
        url = f"{self.settings.frontend_url}/verify-email?token={token}"
        self._send(
            email,
            "Verify Your Email Address",
            f"Hello {first_name or 'there'},\n\n"
            f"Please verify your email address by opening the link below:\n\n{url}\n\n"
            "If you didn't create an account with us, please ignore this email.\n",
        )

    def send_password_reset(self, email: str, first_name: Optional[str], token: str) -> None:
        url = f"{self.settings.frontend_url}/reset-password?token={token}"
        self._send(
            email,
            "Reset Your Password",
            f"Hello {first_name or 'there'},\n\n"
            f"A password reset was requested for your account. Use the link below "
            f"within the next hour:\n\n{url}\n\n"
            "If you didn't request a reset, you can ignore this email.\n",
        )

    def send_password_change_confirmation(self, email: str, first_name: Optional[str]) -> None:
        self._send(
            email,
            "Your Password Was Changed",
            f"Hello {first_name or 'there'},\n\n"
            "The password for your account was just changed. If this wasn't you, "
            "reset your password immediately.\n",
        )

    def _send(self, to: str, subject: str, body: str) -> None:
        if not self.settings.enabled:
            logger.info("Email sending disabled, skipping", to=to, subject=subject)
            return

        message = EmailMessage()
        message["From"] = self.settings.from_email
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.settings.host, self.settings.port, timeout=10) as smtp:
            if self.settings.use_tls:
                smtp.starttls()
            if self.settings.username:
                smtp.login(self.settings.username, self.settings.password.get_secret_value())
            smtp.send_message(message)

        logger.info("Email sent", to=to, subject=subject)
