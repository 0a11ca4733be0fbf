"""Priority-based notification routing.

Every notification is pushed to the user's open channels. Critical ones (or
ones that explicitly ask for SMS) also go out as SMS, and high or critical
ones also go out by email. The envelope returned to the caller is the same
whichever channels actually succeed.
"""

import logging

from fraudwatch_shared.email import EmailSender
from fraudwatch_shared.schemas import (
    NotificationChannels,
    NotificationContent,
    NotificationEnvelope,
    NotificationPriority,
)
from fraudwatch_shared.sms import SmsSender

from fraudwatch_api.errors import FraudWatchError
from fraudwatch_api.realtime.registry import EVENT_NOTIFICATION, ConnectionRegistry
from fraudwatch_api.stores.base import UserProfileStore

logger = logging.getLogger("fraudwatch-notify")

# target_channel values that request an SMS copy
SMS_TARGETS = frozenset({"sms", "web_and_sms"})

EMAIL_PRIORITIES = frozenset({NotificationPriority.HIGH, NotificationPriority.CRITICAL})


class NotificationRouter:
    """Builds notification envelopes and fans them out to channels."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        users: UserProfileStore,
        email: EmailSender | None = None,
        sms: SmsSender | None = None,
    ):
        self.registry = registry
        self.users = users
        self.email = email
        self.sms = sms

    @staticmethod
    def select_channels(
        priority: NotificationPriority, target_channel: str | None = None
    ) -> NotificationChannels:
        """Pick delivery channels for a priority."""
        return NotificationChannels(
            websocket=True,
            sms=priority == NotificationPriority.CRITICAL or target_channel in SMS_TARGETS,
            email=priority in EMAIL_PRIORITIES,
        )

    def build_envelope(
        self,
        priority: NotificationPriority,
        content: NotificationContent,
        notification_type: str,
        target_channel: str | None = None,
        notification_id: str | None = None,
    ) -> NotificationEnvelope:
        fields = {}
        if notification_id:
            fields["id"] = notification_id
        return NotificationEnvelope(
            type=notification_type,
            priority=priority,
            payload=content,
            channels=self.select_channels(priority, target_channel),
            **fields,
        )

    async def route(
        self,
        user_id: str,
        priority: NotificationPriority,
        content: NotificationContent,
        notification_type: str = "general",
        target_channel: str | None = None,
        notification_id: str | None = None,
    ) -> NotificationEnvelope:
        """Deliver a notification to a user on every selected channel.

        Args:
            user_id: Recipient.
            priority: Drives SMS and email selection.
            content: Title, body, optional action URL and metadata.
            notification_type: Free-form type tag (e.g. ``threat_alert``).
            target_channel: ``sms`` or ``web_and_sms`` requests an SMS copy.
            notification_id: Reuse an id instead of generating one.

        Returns:
            The envelope, identical regardless of delivery outcomes.
        """
        envelope = self.build_envelope(
            priority, content, notification_type, target_channel, notification_id
        )

        frame = envelope.model_dump(mode="json")
        if not await self.registry.publish(user_id, EVENT_NOTIFICATION, frame):
            logger.info(f"Notification {envelope.id}: user {user_id} offline")

        if envelope.channels.sms or envelope.channels.email:
            await self._deliver_secondary(user_id, envelope)

        return envelope

    async def _deliver_secondary(self, user_id: str, envelope: NotificationEnvelope) -> None:
        try:
            user = await self.users.get_user(user_id)
        except FraudWatchError as e:
            logger.error(f"Notification {envelope.id}: user lookup failed: {e.message}")
            return

        if user is None:
            logger.warning(f"Notification {envelope.id}: unknown user {user_id}")
            return

        if envelope.channels.sms:
            if self.sms is None or not user.phone:
                logger.info(f"Notification {envelope.id}: SMS skipped for {user_id}")
            else:
                try:
                    await self.sms.send_notification(user.phone, envelope)
                except Exception as e:
                    logger.error(f"Notification {envelope.id}: SMS failed: {e!r}")

        if envelope.channels.email:
            if self.email is None or not user.email:
                logger.info(f"Notification {envelope.id}: email skipped for {user_id}")
            else:
                try:
                    await self.email.send_notification(user.email, envelope)
                except Exception as e:
                    logger.error(f"Notification {envelope.id}: email failed: {e!r}")
