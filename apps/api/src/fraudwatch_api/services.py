"""Service wiring.

All components are built once at startup from resolved settings and the
selected storage provider, and hung off ``app.state.services``. Routes
reach them through the ``get_services`` dependency.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi.requests import HTTPConnection
from fraudwatch_shared.email import EmailSender
from fraudwatch_shared.sms import SmsSender

from fraudwatch_api.config import Settings
from fraudwatch_api.otc.service import OTCService
from fraudwatch_api.realtime.dispatcher import AlertDispatcher
from fraudwatch_api.realtime.notifications import NotificationRouter
from fraudwatch_api.realtime.registry import ConnectionRegistry
from fraudwatch_api.security.content_analysis import ContentFraudAnalyzer
from fraudwatch_api.security.risk_scoring import RiskScoringEngine
from fraudwatch_api.stores.base import StorageProvider


@dataclass
class Services:
    """Everything a request handler may need."""

    settings: Settings
    storage: StorageProvider
    registry: ConnectionRegistry
    notifier: NotificationRouter
    dispatcher: AlertDispatcher
    risk: RiskScoringEngine
    content: ContentFraudAnalyzer
    otc: OTCService
    email: EmailSender | None = None
    sms: SmsSender | None = None

    async def start(self) -> None:
        await self.otc.start_sweeper()

    async def stop(self) -> None:
        await self.otc.stop_sweeper()
        await self.risk.drain()
        await self.storage.close()


def build_services(
    settings: Settings,
    storage: StorageProvider,
    email: EmailSender | None = None,
    sms: SmsSender | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    """Wire components together around a storage provider."""
    registry = ConnectionRegistry()
    notifier = NotificationRouter(registry, storage.users, email=email, sms=sms)
    dispatcher = AlertDispatcher(
        storage.users, registry, settings=settings.alerts, notifier=notifier
    )
    risk = RiskScoringEngine(
        storage.reports,
        dispatcher=dispatcher,
        window_days=settings.risk.window_days,
        clock=clock,
    )
    return Services(
        settings=settings,
        storage=storage,
        registry=registry,
        notifier=notifier,
        dispatcher=dispatcher,
        risk=risk,
        content=ContentFraudAnalyzer(),
        otc=OTCService(settings.otc, clock=clock),
        email=email,
        sms=sms,
    )


def get_services(conn: HTTPConnection) -> Services:
    """FastAPI dependency returning the app's services."""
    return conn.app.state.services
