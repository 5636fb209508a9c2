"""
Email Service - outbound SMTP mail (password reset instructions).
"""
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from smartstudy.core.config import Settings

logger = logging.getLogger("smartstudy.email")


class EmailService:
    """Async email service over SMTP"""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM or settings.SMTP_USER
        self.app_name = settings.APP_NAME

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        message = MIMEMultipart("alternative")
        message["From"] = self.from_email
        message["To"] = to_email
        message["Subject"] = subject
        if text_content:
            message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.warning("[Email] Failed to send to %s: %s", to_email, e)
            return False

        logger.info("[Email] Sent '%s' to %s", subject, to_email)
        return True

    async def send_password_reset_email(self, to_email: str, name: str, reset_url: str, expire_minutes: int) -> bool:
        html = f"""
        <p>Hello {name},</p>
        <p>You recently requested to reset your password. Click the link below to proceed:</p>
        <p><a href="{reset_url}">{reset_url}</a></p>
        <p>This link will expire in {expire_minutes} minutes. If you did not request this, you can ignore this email.</p>
        <p>- {self.app_name}</p>
        """
        text = f"Reset your password: {reset_url} (expires in {expire_minutes} minutes)"
        return await self.send_email(to_email, "Password Reset Instructions", html, text)
