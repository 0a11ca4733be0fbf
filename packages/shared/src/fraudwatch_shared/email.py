"""Email sending module using Resend.

Handles all email sending for FraudWatch:
- One-time verification codes
- High priority notifications (threat alerts, incoming fraud warnings)

Uses Resend API for reliable email delivery.
"""

import asyncio
import logging
import os
from dataclasses import dataclass

import resend

from fraudwatch_shared.schemas import NotificationEnvelope

logger = logging.getLogger("fraudwatch-email")


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class EmailConfig:
    """Email service configuration."""

    api_key: str
    from_email: str
    from_name: str = "FraudWatch"

    @classmethod
    def from_env(cls) -> "EmailConfig":
        """Load email config from environment variables."""
        api_key = os.getenv("RESEND_API_KEY", "")
        from_email = os.getenv("RESEND_FROM_EMAIL", "noreply@example.com")
        from_name = os.getenv("RESEND_FROM_NAME", "FraudWatch")

        if not api_key:
            logger.warning("RESEND_API_KEY not set - emails will fail")

        return cls(api_key=api_key, from_email=from_email, from_name=from_name)


# =============================================================================
# Email Templates
# =============================================================================

def _build_otc_html(code: str, name: str | None, expires_in_minutes: int) -> str:
    """Build HTML content for a one-time code email."""
    greeting = name or "there"

    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Your Verification Code</h2>

        <p>Hi {greeting},</p>

        <p>Use the code below to complete your verification:</p>

        <div style="text-align: center; margin: 30px 0;">
            <span style="display: inline-block; background: #f5f5f5; padding: 15px 30px; border-radius: 8px; font-size: 32px; letter-spacing: 8px; font-family: monospace;">{code}</span>
        </div>

        <p>This code expires in {expires_in_minutes} minutes. Never share it with anyone, including people claiming to be from FraudWatch or your bank.</p>

        <p style="color: #999; font-size: 12px; margin-top: 30px;">
            If you didn't request this code, you can ignore this email.
        </p>
    </div>
    """


def _build_notification_html(envelope: NotificationEnvelope) -> str:
    """Build HTML content for a routed notification."""
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">{envelope.payload.title}</h2>
        <p>{envelope.payload.body}</p>
    """

    if envelope.payload.action_url:
        html += f"""
        <div style="margin: 20px 0;">
            <a href="{envelope.payload.action_url}" style="display: inline-block; background: #0066cc; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px;">View Details</a>
        </div>
        """

    html += f"""
        <p style="color: #999; font-size: 12px; margin-top: 30px;">
            Notification {envelope.id} ({envelope.priority.value} priority)
        </p>
    </div>
    """

    return html


# =============================================================================
# Email Sender
# =============================================================================


class EmailSender:
    """Sends emails via Resend API."""

    def __init__(self, config: EmailConfig | None = None):
        """Initialize the email sender.

        Args:
            config: Email configuration. If not provided, loads from environment.
        """
        self.config = config or EmailConfig.from_env()
        resend.api_key = self.config.api_key

    def is_configured(self) -> bool:
        """Check if an API key is present."""
        return bool(self.config.api_key)

    def _send(self, to: str, subject: str, html: str) -> str | None:
        # Blocking HTTP call; the async senders run it on a worker thread
        params: resend.Emails.SendParams = {
            "from": f"{self.config.from_name} <{self.config.from_email}>",
            "to": [to],
            "subject": subject,
            "html": html,
        }
        email_response = resend.Emails.send(params)
        return email_response.get("id")

    async def send_otc(
        self,
        to: str,
        code: str,
        name: str | None = None,
        expires_in_minutes: int = 10,
    ) -> bool:
        """Send a one-time code.

        Args:
            to: Recipient email address
            code: The plaintext one-time code
            name: Optional recipient name for the greeting
            expires_in_minutes: Lifetime shown in the email

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured():
            logger.error("Cannot send email: RESEND_API_KEY not configured")
            return False

        try:
            email_id = await asyncio.to_thread(
                self._send,
                to,
                "Your FraudWatch verification code",
                _build_otc_html(code, name, expires_in_minutes),
            )
            logger.info(f"Verification code email sent to {to}: {email_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to send verification code email: {e}")
            return False

    async def send_notification(self, to: str, envelope: NotificationEnvelope) -> bool:
        """Send a routed notification.

        Args:
            to: Recipient email address
            envelope: The unified notification envelope

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured():
            logger.error("Cannot send email: RESEND_API_KEY not configured")
            return False

        try:
            email_id = await asyncio.to_thread(
                self._send,
                to,
                envelope.payload.title,
                _build_notification_html(envelope),
            )
            logger.info(f"Notification email {envelope.id} sent to {to}: {email_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to send notification email: {e}")
            return False
