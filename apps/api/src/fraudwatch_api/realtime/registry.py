"""Registry of live push channels.

A user may hold any number of channels at once (one per device). The user's
entry disappears when their last channel closes. Pushes are best effort:
no retry, no backpressure, and a dead channel is simply skipped.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from fraudwatch_shared.schemas import utcnow

logger = logging.getLogger("fraudwatch-realtime")

# =============================================================================
# Event Names
# =============================================================================

EVENT_CONNECTED = "connected"
EVENT_PONG = "pong"
EVENT_ERROR = "error"
EVENT_ALERT_NEW = "alert:new"
EVENT_ALERT_ACKNOWLEDGED = "alert:acknowledged"
EVENT_OTC_SENT = "otc:sent"
EVENT_NOTIFICATION = "notification"
EVENT_SYSTEM_ALERT = "system:alert"

# Inbound
EVENT_PING = "ping"
EVENT_ALERT_ACKNOWLEDGE = "alert:acknowledge"

SendFunc = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass(eq=False)
class Channel:
    """One open push channel. Hashes by identity."""

    user_id: str
    send: SendFunc
    id: str = field(default_factory=lambda: uuid4().hex)
    connected_at: datetime = field(default_factory=utcnow)

    async def emit(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Send a ``{"event", "data"}`` frame on this channel."""
        payload = dict(data or {})
        payload.setdefault("timestamp", utcnow().isoformat())
        await self.send({"event": event, "data": payload})


class ConnectionRegistry:
    """Tracks open channels per user and fans pushes out to them."""

    def __init__(self):
        self._channels: dict[str, set[Channel]] = {}

    def open(self, user_id: str, send: SendFunc) -> Channel:
        """Register a channel for a user (subscribe)."""
        channel = Channel(user_id=user_id, send=send)
        self._channels.setdefault(user_id, set()).add(channel)
        logger.info(
            f"Channel {channel.id} opened for user {user_id} "
            f"({len(self._channels[user_id])} active)"
        )
        return channel

    def close(self, channel: Channel) -> bool:
        """Unregister a channel. Returns False if it was not registered."""
        channels = self._channels.get(channel.user_id)
        if not channels or channel not in channels:
            return False
        channels.discard(channel)
        if not channels:
            del self._channels[channel.user_id]
        logger.info(f"Channel {channel.id} closed for user {channel.user_id}")
        return True

    def is_online(self, user_id: str) -> bool:
        return bool(self._channels.get(user_id))

    def channels_for(self, user_id: str) -> set[Channel]:
        """Snapshot of a user's open channels."""
        return set(self._channels.get(user_id, ()))

    async def publish(
        self, user_id: str, event: str, data: dict[str, Any] | None = None
    ) -> bool:
        """Push an event to every open channel of a user.

        Returns:
            True if at least one channel accepted the frame. An offline user
            is a normal outcome, not an error.
        """
        delivered = False
        for channel in self.channels_for(user_id):
            try:
                await channel.emit(event, data)
                delivered = True
            except Exception as e:
                logger.warning(f"Push {event} to channel {channel.id} failed: {e!r}")
        return delivered

    async def broadcast(self, event: str, data: dict[str, Any] | None = None) -> int:
        """Push an event to every connected user. Returns users reached."""
        reached = 0
        for user_id in list(self._channels):
            if await self.publish(user_id, event, data):
                reached += 1
        return reached

    async def broadcast_system_alert(self, data: dict[str, Any]) -> int:
        """Announce a system-wide alert to everyone connected."""
        return await self.broadcast(EVENT_SYSTEM_ALERT, data)

    def stats(self) -> dict[str, Any]:
        """Connection counts for monitoring."""
        return {
            "total_users": len(self._channels),
            "total_connections": sum(len(c) for c in self._channels.values()),
            "users": [
                {"user_id": user_id, "connections": len(channels)}
                for user_id, channels in self._channels.items()
            ],
        }
