"""SMS delivery via the Twilio REST API.

Used for critical notifications. Talks to Twilio's Messages endpoint
directly over HTTPS.
https://www.twilio.com/docs/messaging/api/message-resource
"""

import logging
import os
from dataclasses import dataclass

import httpx

from fraudwatch_shared.schemas import NotificationEnvelope

logger = logging.getLogger("fraudwatch-sms")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

# Twilio rejects bodies above 1600 characters
MAX_SMS_LENGTH = 1600


@dataclass
class SmsConfig:
    """SMS gateway configuration."""

    account_sid: str
    auth_token: str
    from_number: str
    timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "SmsConfig":
        """Load SMS config from environment variables."""
        account_sid = os.getenv("TWILIO_ACCOUNT_SID", "")
        auth_token = os.getenv("TWILIO_AUTH_TOKEN", "")
        from_number = os.getenv("TWILIO_FROM_NUMBER", "")

        if not account_sid or not auth_token:
            logger.warning("TWILIO_ACCOUNT_SID/TWILIO_AUTH_TOKEN not set - SMS will fail")
        if not from_number:
            logger.warning("TWILIO_FROM_NUMBER not set - SMS will fail")

        return cls(
            account_sid=account_sid,
            auth_token=auth_token,
            from_number=from_number,
        )

    def is_configured(self) -> bool:
        """Check if all required config is present."""
        return bool(self.account_sid and self.auth_token and self.from_number)


def format_sms_body(envelope: NotificationEnvelope) -> str:
    """Render a notification envelope as a single SMS body."""
    body = f"FRAUDWATCH ALERT: {envelope.payload.title}. {envelope.payload.body}"
    return body[:MAX_SMS_LENGTH]


class SmsSender:
    """Sends SMS messages through Twilio."""

    def __init__(
        self,
        config: SmsConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the SMS sender.

        Args:
            config: SMS configuration. If not provided, loads from environment.
            transport: Optional httpx transport (used by tests).
        """
        self.config = config or SmsConfig.from_env()
        self._transport = transport

    def is_configured(self) -> bool:
        return self.config.is_configured()

    async def send(self, to: str, body: str) -> bool:
        """Send an SMS.

        Args:
            to: Destination phone number (E.164)
            body: Message text

        Returns:
            True if Twilio accepted the message, False otherwise
        """
        if not self.is_configured():
            logger.error("Cannot send SMS: Twilio not configured")
            return False

        url = f"{TWILIO_API_BASE}/Accounts/{self.config.account_sid}/Messages.json"
        payload = {
            "To": to,
            "From": self.config.from_number,
            "Body": body[:MAX_SMS_LENGTH],
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    url,
                    data=payload,
                    auth=(self.config.account_sid, self.config.auth_token),
                    timeout=self.config.timeout_seconds,
                )

            if response.status_code >= 400:
                logger.error(
                    f"Twilio rejected SMS to {to}: {response.status_code} {response.text}"
                )
                return False

            logger.info(f"SMS queued to {to}: {response.json().get('sid')}")
            return True

        except httpx.TimeoutException:
            logger.error(f"Twilio request timed out sending SMS to {to}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send SMS to {to}: {e}")
            return False

    async def send_notification(self, to: str, envelope: NotificationEnvelope) -> bool:
        """Send a routed notification as an SMS."""
        return await self.send(to, format_sms_body(envelope))
