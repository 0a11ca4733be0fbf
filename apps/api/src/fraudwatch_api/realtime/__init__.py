"""Live push channels, alert dispatch and notification routing."""

from fraudwatch_api.realtime.dispatcher import AlertDelivery, AlertDispatcher
from fraudwatch_api.realtime.notifications import NotificationRouter
from fraudwatch_api.realtime.registry import Channel, ConnectionRegistry

__all__ = [
    "AlertDelivery",
    "AlertDispatcher",
    "Channel",
    "ConnectionRegistry",
    "NotificationRouter",
]
