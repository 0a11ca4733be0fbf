"""Tests for the SMS module."""

import httpx
import pytest
from fraudwatch_shared.schemas import (
    NotificationChannels,
    NotificationContent,
    NotificationEnvelope,
    NotificationPriority,
)
from fraudwatch_shared.sms import MAX_SMS_LENGTH, SmsConfig, SmsSender, format_sms_body


@pytest.fixture
def config() -> SmsConfig:
    return SmsConfig(account_sid="AC123", auth_token="secret", from_number="+15005550006")


def sender_with(config: SmsConfig, handler) -> SmsSender:
    """Sender whose HTTP calls go to ``handler`` instead of Twilio."""
    return SmsSender(config, transport=httpx.MockTransport(handler))


class TestSmsConfig:
    """Tests for SmsConfig."""

    def test_from_env(self, monkeypatch):
        """Test loading config from environment variables."""
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC999")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "tok")
        monkeypatch.setenv("TWILIO_FROM_NUMBER", "+15551234567")

        config = SmsConfig.from_env()

        assert config.account_sid == "AC999"
        assert config.is_configured() is True

    def test_missing_values(self, monkeypatch):
        """Unset variables leave the sender unconfigured."""
        for key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"):
            monkeypatch.delenv(key, raising=False)

        assert SmsConfig.from_env().is_configured() is False


class TestFormatSmsBody:
    """Tests for SMS body rendering."""

    def test_body(self):
        envelope = NotificationEnvelope(
            type="threat_alert",
            priority=NotificationPriority.CRITICAL,
            payload=NotificationContent(title="High Risk Alert", body="Check 9876543210."),
            channels=NotificationChannels(sms=True),
        )
        assert format_sms_body(envelope) == "FRAUDWATCH ALERT: High Risk Alert. Check 9876543210."

    def test_truncated(self):
        envelope = NotificationEnvelope(
            type="general",
            priority=NotificationPriority.CRITICAL,
            payload=NotificationContent(title="T", body="x" * 2000),
            channels=NotificationChannels(sms=True),
        )
        assert len(format_sms_body(envelope)) == MAX_SMS_LENGTH


class TestSmsSender:
    """Tests for SmsSender."""

    async def test_send(self, config):
        """Posts the message form to the account's Messages endpoint."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM123"})

        result = await sender_with(config, handler).send("+919876543210", "hello")

        assert result is True
        request = requests[0]
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        body = request.content.decode()
        assert "Body=hello" in body
        assert "To=%2B919876543210" in body
        assert request.headers["authorization"].startswith("Basic ")

    async def test_rejected(self, config):
        """A 4xx from Twilio is a failed send."""
        sender = sender_with(config, lambda request: httpx.Response(400, json={"code": 21211}))
        assert await sender.send("not-a-number", "hello") is False

    async def test_network_error(self, config):
        """Transport errors are reported as a failed send."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await sender_with(config, handler).send("+919876543210", "hello") is False

    async def test_not_configured(self):
        """Nothing is sent without credentials."""
        calls = []
        sender = sender_with(
            SmsConfig(account_sid="", auth_token="", from_number=""),
            lambda request: calls.append(request) or httpx.Response(201),
        )

        assert await sender.send("+919876543210", "hello") is False
        assert calls == []
