"""Tests for the connection registry and alert dispatcher."""

import pytest
from fraudwatch_shared.schemas import (
    AlertAction,
    AlertType,
    ProtectionSetting,
    RiskLevel,
    RiskResult,
    UserProfile,
)

from fraudwatch_api.config import AlertSettings
from fraudwatch_api.errors import NotFoundError
from fraudwatch_api.realtime.dispatcher import AlertDispatcher
from fraudwatch_api.realtime.registry import ConnectionRegistry
from fraudwatch_api.stores.memory import InMemoryUserStore


class Inbox:
    """Fake channel transport collecting frames."""

    def __init__(self, fail: bool = False):
        self.frames: list[dict] = []
        self.fail = fail

    async def __call__(self, frame: dict) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        self.frames.append(frame)

    def events(self) -> list[str]:
        return [f["event"] for f in self.frames]


def risk(entity: str, score: int, level: RiskLevel, category: str | None = None) -> RiskResult:
    return RiskResult(
        target_entity=entity,
        score=score,
        risk_level=level,
        risk_color="red",
        risk_message="CRITICAL THREAT: Investigative protocols triggered.",
        total_reports=1,
        primary_category=category,
    )


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def users() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def dispatcher(users, registry) -> AlertDispatcher:
    return AlertDispatcher(users, registry, AlertSettings(pending_cap=3, history_cap=2))


# =============================================================================
# Registry
# =============================================================================


class TestConnectionRegistry:
    """Tests for ConnectionRegistry."""

    def test_offline_after_only_channel_closes(self, registry):
        channel = registry.open("u1", Inbox())
        assert registry.is_online("u1")

        assert registry.close(channel) is True
        assert registry.is_online("u1") is False
        assert registry.stats()["total_users"] == 0

    def test_online_while_any_channel_open(self, registry):
        first = registry.open("u1", Inbox())
        second = registry.open("u1", Inbox())

        registry.close(first)

        assert registry.is_online("u1") is True
        assert registry.channels_for("u1") == {second}

    def test_close_twice(self, registry):
        channel = registry.open("u1", Inbox())
        registry.close(channel)
        assert registry.close(channel) is False

    async def test_publish_to_every_channel(self, registry):
        phone, laptop = Inbox(), Inbox()
        registry.open("u1", phone)
        registry.open("u1", laptop)

        delivered = await registry.publish("u1", "alert:new", {"alert": {"id": "a1"}})

        assert delivered is True
        for inbox in (phone, laptop):
            assert inbox.frames[0]["event"] == "alert:new"
            assert inbox.frames[0]["data"]["alert"] == {"id": "a1"}
            assert "timestamp" in inbox.frames[0]["data"]

    async def test_publish_offline_user(self, registry):
        assert await registry.publish("nobody", "alert:new", {}) is False

    async def test_failing_channel_skipped(self, registry):
        good = Inbox()
        registry.open("u1", Inbox(fail=True))
        registry.open("u1", good)

        assert await registry.publish("u1", "pong") is True
        assert good.events() == ["pong"]

    async def test_all_channels_failing(self, registry):
        registry.open("u1", Inbox(fail=True))
        assert await registry.publish("u1", "pong") is False

    async def test_broadcast_system_alert(self, registry):
        a, b = Inbox(), Inbox()
        registry.open("u1", a)
        registry.open("u2", b)

        reached = await registry.broadcast_system_alert({"message": "maintenance"})

        assert reached == 2
        assert a.events() == ["system:alert"]
        assert b.frames[0]["data"]["message"] == "maintenance"

    def test_stats(self, registry):
        registry.open("u1", Inbox())
        registry.open("u1", Inbox())
        registry.open("u2", Inbox())

        stats = registry.stats()

        assert stats["total_users"] == 2
        assert stats["total_connections"] == 3


# =============================================================================
# Dispatcher
# =============================================================================


class TestAlertDispatcher:
    """Tests for AlertDispatcher."""

    async def test_offline_user_alert_kept_pending(self, dispatcher):
        delivery = await dispatcher.raise_alert(
            "u1", AlertType.CALL, "9876543210", RiskLevel.HIGH_RISK, 9, "Phishing"
        )

        assert delivery.delivered is False
        pending = await dispatcher.pending("u1")
        assert [a.id for a in pending] == [delivery.alert.id]
        assert pending[0].category == "Phishing"

    async def test_online_user_receives_alert(self, dispatcher, registry):
        inbox = Inbox()
        registry.open("u1", inbox)

        delivery = await dispatcher.raise_alert(
            "u1", AlertType.SMS, "scam@okaxis", RiskLevel.SUSPICIOUS, 3
        )

        assert delivery.delivered is True
        assert inbox.events() == ["alert:new"]
        assert inbox.frames[0]["data"]["alert"]["id"] == delivery.alert.id
        assert delivery.alert.category == "Unknown"

    async def test_acknowledge_moves_to_history(self, dispatcher, registry):
        inbox = Inbox()
        delivery = await dispatcher.raise_alert(
            "u1", AlertType.CALL, "9876543210", RiskLevel.HIGH_RISK, 9
        )
        registry.open("u1", inbox)

        entry = await dispatcher.acknowledge("u1", delivery.alert.id, AlertAction.BLOCKED)

        assert entry.action == AlertAction.BLOCKED
        assert await dispatcher.pending("u1") == []
        history = await dispatcher.history("u1")
        assert [h.alert_id for h in history] == [delivery.alert.id]
        assert inbox.frames[0]["event"] == "alert:acknowledged"
        assert inbox.frames[0]["data"]["action"] == "blocked"

    async def test_acknowledge_defaults_to_dismissed(self, dispatcher):
        delivery = await dispatcher.raise_alert(
            "u1", AlertType.EMAIL, "x@y.com", RiskLevel.SUSPICIOUS, 2
        )
        entry = await dispatcher.acknowledge("u1", delivery.alert.id)
        assert entry.action == AlertAction.DISMISSED

    async def test_acknowledge_unknown(self, dispatcher):
        with pytest.raises(NotFoundError):
            await dispatcher.acknowledge("u1", "missing")

    async def test_acknowledge_other_users_alert(self, dispatcher):
        delivery = await dispatcher.raise_alert(
            "u1", AlertType.CALL, "9876543210", RiskLevel.HIGH_RISK, 9
        )
        with pytest.raises(NotFoundError):
            await dispatcher.acknowledge("u2", delivery.alert.id)

    async def test_pending_cap_evicts_oldest(self, dispatcher):
        ids = []
        for i in range(5):
            delivery = await dispatcher.raise_alert(
                "u1", AlertType.CALL, f"98765432{i:02d}", RiskLevel.SUSPICIOUS, 1
            )
            ids.append(delivery.alert.id)

        pending = await dispatcher.pending("u1")
        assert [a.id for a in pending] == ids[-3:]

    async def test_history_cap_and_order(self, dispatcher):
        ids = []
        for i in range(3):
            delivery = await dispatcher.raise_alert(
                "u1", AlertType.CALL, f"entity{i}", RiskLevel.SUSPICIOUS, 1
            )
            await dispatcher.acknowledge("u1", delivery.alert.id)
            ids.append(delivery.alert.id)

        history = await dispatcher.history("u1")
        assert [h.alert_id for h in history] == [ids[2], ids[1]]
        assert len(await dispatcher.history("u1", limit=1)) == 1

    async def test_raise_threat_alert(self, dispatcher, registry):
        inbox = Inbox()
        registry.open("u1", inbox)

        delivery = await dispatcher.raise_threat_alert(
            "u1", risk("9876543210", 9, RiskLevel.HIGH_RISK, "Phishing")
        )

        assert delivery.alert.alert_type == AlertType.THREAT_ALERT
        assert delivery.alert.category == "Phishing"
        assert inbox.events() == ["alert:new"]


class TestNotifyProtectedUsers:
    """Tests for screening an incoming contact against protected users."""

    @pytest.fixture
    async def protected(self, users) -> UserProfile:
        user = UserProfile(id="u1", email="alice@example.com")
        user.protection.call = ProtectionSetting(enabled=True, registered_entity="9876543210")
        return await users.save_user(user)

    async def test_alerts_protected_user(self, dispatcher, protected):
        deliveries = await dispatcher.notify_protected_users(
            "9876543210", AlertType.CALL, risk("1112223333", 3, RiskLevel.SUSPICIOUS)
        )

        assert len(deliveries) == 1
        alert = deliveries[0].alert
        assert alert.from_entity == "1112223333"
        assert alert.message == "SUSPICIOUS incoming call"

    async def test_safe_sender_not_alerted(self, dispatcher, protected):
        deliveries = await dispatcher.notify_protected_users(
            "9876543210", AlertType.CALL, risk("1112223333", 0, RiskLevel.SAFE)
        )
        assert deliveries == []
        assert await dispatcher.pending("u1") == []

    async def test_other_channel_not_alerted(self, dispatcher, protected):
        deliveries = await dispatcher.notify_protected_users(
            "9876543210", AlertType.SMS, risk("1112223333", 9, RiskLevel.HIGH_RISK)
        )
        assert deliveries == []

    async def test_disabled_protection_not_alerted(self, dispatcher, users, protected):
        protected.protection.call.enabled = False
        await users.save_user(protected)

        deliveries = await dispatcher.notify_protected_users(
            "9876543210", AlertType.CALL, risk("1112223333", 9, RiskLevel.HIGH_RISK)
        )
        assert deliveries == []
