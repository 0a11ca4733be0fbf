"""Shared fixtures for the API tests."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from fraudwatch_shared.email import EmailConfig, EmailSender
from fraudwatch_shared.schemas import UserProfile
from fraudwatch_shared.sms import SmsConfig, SmsSender

from fraudwatch_api.auth.jwt import create_access_token
from fraudwatch_api.config import AuthSettings, Settings, StorageSettings
from fraudwatch_api.main import create_app
from fraudwatch_api.stores.memory import memory_storage_provider

TEST_AUTH = AuthSettings(jwt_secret="test-secret-key-for-fraudwatch-tests")


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_settings() -> AuthSettings:
    return TEST_AUTH


@pytest.fixture
def settings() -> Settings:
    """Settings with in-memory storage and a fixed JWT secret."""
    return Settings(auth=TEST_AUTH, storage=StorageSettings(backend="memory"))


@pytest.fixture
def storage():
    return memory_storage_provider()


@pytest.fixture
def email_sender() -> EmailSender:
    """Unconfigured sender: every send returns False without network."""
    return EmailSender(EmailConfig(api_key="", from_email="noreply@test.com"))


@pytest.fixture
def sms_sender() -> SmsSender:
    return SmsSender(SmsConfig(account_sid="", auth_token="", from_number=""))


@pytest.fixture
def app(settings, storage, email_sender, sms_sender):
    return create_app(
        settings=settings, storage=storage, email=email_sender, sms=sms_sender
    )


@pytest.fixture
def client(app):
    """Test client with the lifespan running."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def user(storage) -> UserProfile:
    """A stored user."""
    return await storage.users.save_user(
        UserProfile(
            id="user-alice",
            email="alice@example.com",
            name="Alice",
            phone="+919876543210",
        )
    )


@pytest.fixture
def token(user) -> str:
    return create_access_token(user.id, TEST_AUTH)


@pytest.fixture
def auth_headers(token) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
