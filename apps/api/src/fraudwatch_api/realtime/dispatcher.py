"""Alert dispatch.

Turns a risk verdict into a per-user pending alert, keeps it until the user
acts on it, and pushes it to any open channel. The pending list is written
before the push, so an offline user still finds the alert when they next
fetch their pending list.
"""

import logging
from dataclasses import dataclass

from fraudwatch_shared.schemas import (
    AlertAction,
    AlertHistoryEntry,
    AlertType,
    NotificationContent,
    NotificationPriority,
    PendingAlert,
    RiskLevel,
    RiskResult,
    utcnow,
)

from fraudwatch_api.config import AlertSettings
from fraudwatch_api.errors import NotFoundError
from fraudwatch_api.realtime.notifications import NotificationRouter
from fraudwatch_api.realtime.registry import (
    EVENT_ALERT_ACKNOWLEDGED,
    EVENT_ALERT_NEW,
    ConnectionRegistry,
)
from fraudwatch_api.stores.base import UserProfileStore

logger = logging.getLogger("fraudwatch-realtime")


@dataclass
class AlertDelivery:
    """A raised alert and whether any channel received it live."""

    alert: PendingAlert
    delivered: bool


class AlertDispatcher:
    """Raises, acknowledges and lists user alerts."""

    def __init__(
        self,
        users: UserProfileStore,
        registry: ConnectionRegistry,
        settings: AlertSettings | None = None,
        notifier: NotificationRouter | None = None,
    ):
        self.users = users
        self.registry = registry
        self.settings = settings or AlertSettings()
        self.notifier = notifier

    async def raise_alert(
        self,
        user_id: str,
        alert_type: AlertType,
        from_entity: str,
        risk_level: RiskLevel,
        risk_score: int,
        category: str | None = None,
        message: str = "",
    ) -> AlertDelivery:
        """Queue an alert for a user and push it to their open channels.

        Returns:
            AlertDelivery; ``delivered`` is False when the user is offline.
        """
        alert = PendingAlert(
            alert_type=alert_type,
            from_entity=from_entity,
            risk_level=risk_level,
            risk_score=risk_score,
            category=category or "Unknown",
            message=message,
        )
        await self.users.append_pending_alert(user_id, alert, self.settings.pending_cap)

        delivered = await self.registry.publish(
            user_id, EVENT_ALERT_NEW, {"alert": alert.model_dump(mode="json")}
        )
        logger.info(
            f"Alert {alert.id} ({alert_type.value}, {risk_level.value}) for user "
            f"{user_id}: {'delivered' if delivered else 'queued'}"
        )
        return AlertDelivery(alert=alert, delivered=delivered)

    async def acknowledge(
        self,
        user_id: str,
        alert_id: str,
        action: AlertAction = AlertAction.DISMISSED,
    ) -> AlertHistoryEntry:
        """Record the user's action on an alert and remove it from pending.

        Raises:
            NotFoundError: If the user has no pending alert with that id.
        """
        alert = await self.users.pop_pending_alert(user_id, alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")

        now = utcnow()
        alert.acknowledged = True
        alert.acknowledged_at = now
        entry = AlertHistoryEntry(
            alert_id=alert.id,
            alert_type=alert.alert_type,
            from_entity=alert.from_entity,
            risk_level=alert.risk_level,
            risk_score=alert.risk_score,
            action=action,
            timestamp=now,
        )
        await self.users.append_alert_history(user_id, entry, self.settings.history_cap)

        await self.registry.publish(
            user_id,
            EVENT_ALERT_ACKNOWLEDGED,
            {"alert_id": alert.id, "action": action.value},
        )
        logger.info(f"Alert {alert.id} acknowledged by {user_id}: {action.value}")
        return entry

    async def pending(self, user_id: str) -> list[PendingAlert]:
        """Unacknowledged alerts, oldest first."""
        return await self.users.list_pending_alerts(user_id)

    async def history(self, user_id: str, limit: int | None = None) -> list[AlertHistoryEntry]:
        """Acknowledged alerts, newest first."""
        if limit is None:
            limit = self.settings.history_default_limit
        return await self.users.list_alert_history(user_id, limit)

    async def raise_threat_alert(self, user_id: str, risk: RiskResult) -> AlertDelivery:
        """Escalate a high-risk check made on behalf of a user.

        Raises a ``threat_alert`` alert and routes a critical notification,
        which also goes out by SMS and email.
        """
        delivery = await self.raise_alert(
            user_id,
            AlertType.THREAT_ALERT,
            risk.target_entity,
            risk.risk_level,
            risk.score,
            category=risk.primary_category,
            message=risk.risk_message,
        )
        if self.notifier is not None:
            await self.notifier.route(
                user_id,
                NotificationPriority.CRITICAL,
                NotificationContent(
                    title="High Risk Alert",
                    body=f"Critical threat detected for entity: {risk.target_entity}.",
                    metadata={
                        "alert_id": delivery.alert.id,
                        "entity": risk.target_entity,
                        "score": risk.score,
                    },
                ),
                notification_type=AlertType.THREAT_ALERT.value,
                target_channel="web_and_sms",
            )
        return delivery

    async def notify_protected_users(
        self,
        recipient: str,
        alert_type: AlertType,
        risk: RiskResult,
        message: str | None = None,
    ) -> list[AlertDelivery]:
        """Warn every user protecting ``recipient`` about an incoming contact.

        Nothing is raised when the sender is safe. High-risk senders also
        trigger a high-priority notification (push and email).

        Args:
            recipient: Normalized entity being contacted (the user's number,
                address or handle).
            alert_type: Channel of the incoming contact.
            risk: Risk verdict for the sender.
            message: Alert text. Defaults to e.g. "HIGH_RISK incoming call".

        Returns:
            One delivery per alert raised.
        """
        if risk.risk_level == RiskLevel.SAFE:
            return []

        text = message or f"{risk.risk_level.value.upper()} incoming {alert_type.value}"
        deliveries = []
        for user in await self.users.find_protected_users(recipient, alert_type):
            delivery = await self.raise_alert(
                user.id,
                alert_type,
                risk.target_entity,
                risk.risk_level,
                risk.score,
                category=risk.primary_category,
                message=text,
            )
            deliveries.append(delivery)

            if risk.risk_level == RiskLevel.HIGH_RISK and self.notifier is not None:
                await self.notifier.route(
                    user.id,
                    NotificationPriority.HIGH,
                    NotificationContent(
                        title=f"Suspicious incoming {alert_type.value}",
                        body=f"{text} from {risk.target_entity}.",
                        metadata={"alert_id": delivery.alert.id},
                    ),
                    notification_type=alert_type.value,
                )
        return deliveries
