"""Tests for priority-based notification routing."""

import pytest
from fraudwatch_shared.schemas import (
    NotificationContent,
    NotificationPriority,
    UserProfile,
)

from fraudwatch_api.errors import TransientStoreError
from fraudwatch_api.realtime.notifications import NotificationRouter
from fraudwatch_api.realtime.registry import ConnectionRegistry
from fraudwatch_api.stores.memory import InMemoryUserStore


class RecordingSender:
    """Stands in for EmailSender / SmsSender."""

    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    async def send_notification(self, to, envelope) -> bool:
        if self.fail:
            raise RuntimeError("provider down")
        self.sent.append((to, envelope.id))
        return True


class BrokenUserStore(InMemoryUserStore):
    async def get_user(self, user_id):
        raise TransientStoreError("database unavailable")


CONTENT = NotificationContent(title="Heads up", body="Something happened.")


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
async def users() -> InMemoryUserStore:
    store = InMemoryUserStore()
    await store.save_user(
        UserProfile(id="u1", email="alice@example.com", phone="+919876543210")
    )
    return store


@pytest.fixture
def email() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def sms() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def router(registry, users, email, sms) -> NotificationRouter:
    return NotificationRouter(registry, users, email=email, sms=sms)


class TestSelectChannels:
    """Tests for channel selection by priority."""

    @pytest.mark.parametrize(
        "priority,target,sms,email",
        [
            (NotificationPriority.LOW, None, False, False),
            (NotificationPriority.NORMAL, None, False, False),
            (NotificationPriority.HIGH, None, False, True),
            (NotificationPriority.CRITICAL, None, True, True),
            (NotificationPriority.NORMAL, "sms", True, False),
            (NotificationPriority.HIGH, "web_and_sms", True, True),
            (NotificationPriority.LOW, "web", False, False),
        ],
    )
    def test_channels(self, priority, target, sms, email):
        channels = NotificationRouter.select_channels(priority, target)
        assert channels.websocket is True
        assert channels.sms is sms
        assert channels.email is email


class TestRoute:
    """Tests for NotificationRouter.route."""

    async def test_low_priority_push_only(self, router, registry, email, sms):
        frames = []

        async def send(frame):
            frames.append(frame)

        registry.open("u1", send)

        envelope = await router.route("u1", NotificationPriority.LOW, CONTENT)

        assert envelope.type == "general"
        assert frames[0]["event"] == "notification"
        assert frames[0]["data"]["id"] == envelope.id
        assert email.sent == []
        assert sms.sent == []

    async def test_critical_goes_everywhere(self, router, email, sms):
        envelope = await router.route(
            "u1", NotificationPriority.CRITICAL, CONTENT, notification_type="threat_alert"
        )

        assert envelope.channels.sms and envelope.channels.email
        assert sms.sent == [("+919876543210", envelope.id)]
        assert email.sent == [("alice@example.com", envelope.id)]

    async def test_reuses_notification_id(self, router):
        envelope = await router.route(
            "u1", NotificationPriority.LOW, CONTENT, notification_id="notif_fixed"
        )
        assert envelope.id == "notif_fixed"

    async def test_envelope_unchanged_when_delivery_fails(self, registry, users):
        router = NotificationRouter(
            registry,
            users,
            email=RecordingSender(fail=True),
            sms=RecordingSender(fail=True),
        )

        envelope = await router.route("u1", NotificationPriority.CRITICAL, CONTENT)

        assert envelope.channels.sms is True
        assert envelope.channels.email is True
        assert envelope.payload == CONTENT

    async def test_unknown_user_skips_secondary(self, router, email, sms):
        await router.route("ghost", NotificationPriority.CRITICAL, CONTENT)
        assert email.sent == []
        assert sms.sent == []

    async def test_user_without_phone_gets_email_only(self, router, users, email, sms):
        await users.save_user(UserProfile(id="u2", email="bob@example.com"))

        await router.route("u2", NotificationPriority.CRITICAL, CONTENT)

        assert sms.sent == []
        assert [to for to, _ in email.sent] == ["bob@example.com"]

    async def test_user_lookup_failure_swallowed(self, registry, email, sms):
        router = NotificationRouter(registry, BrokenUserStore(), email=email, sms=sms)

        envelope = await router.route("u1", NotificationPriority.CRITICAL, CONTENT)

        assert envelope.channels.sms is True
        assert email.sent == []

    async def test_without_senders(self, registry, users):
        router = NotificationRouter(registry, users)
        envelope = await router.route("u1", NotificationPriority.CRITICAL, CONTENT)
        assert envelope.priority == NotificationPriority.CRITICAL
