"""FastAPI application for FraudWatch.

Provides:
- Crowd intelligence risk checks for phone numbers, emails and UPI handles
- Keyword-based fraud analysis of message content
- One-time code issue and verification
- Live fraud alerts over websockets, with SMS and email fallback

Flow:
1. POST /check-risk - Score an entity from community reports
2. POST /analyze-content - Score message text (and its sender)
3. POST /otc/generate, /otc/verify - One-time codes
. /actions/block, /actions/mark-safe - Per-user blocked and safe lists
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fraudwatch_shared.email import EmailSender
from fraudwatch_shared.sms import SmsSender
from pydantic import BaseModel

from fraudwatch_api.actions.routes import router as actions_router
from fraudwatch_api.alerts.routes import router as alerts_router
from fraudwatch_api.config import Settings, load_settings
from fraudwatch_api.errors import FraudWatchError
from fraudwatch_api.otc.routes import router as otc_router
from fraudwatch_api.realtime.websocket import router as websocket_router
from fraudwatch_api.security.routes import router as risk_router
from fraudwatch_api.services import Services, build_services, get_services
from fraudwatch_api.stores.base import StorageProvider
from fraudwatch_api.stores.provider import select_storage_provider

_project_root = Path(__file__).resolve().parents[4]

logger = logging.getLogger("fraudwatch-api")


# =============================================================================
# Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    storage: str
    online_users: int
    connections: int
    otc_codes: int


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: StorageProvider | None = None,
    email: EmailSender | None = None,
    sms: SmsSender | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Resolved settings. Loaded from the environment if omitted.
        storage: Storage provider. Selected from settings at startup if omitted.
        email: Email sender. Built from RESEND_* variables if omitted.
        sms: SMS sender. Built from TWILIO_* variables if omitted.
    """
    settings = settings or load_settings(_project_root)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Select storage, wire services, run the OTC sweeper."""
        provider = storage or await select_storage_provider(settings.storage)
        services = build_services(
            settings,
            provider,
            email=email or EmailSender(),
            sms=sms or SmsSender(),
        )
        app.state.services = services
        await services.start()
        logger.info(f"FraudWatch API started with {provider.name} storage")
        yield
        await services.stop()

    app = FastAPI(
        title="FraudWatch API",
        description="Fraud risk scoring, one-time codes and live alerts",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FraudWatchError)
    async def fraudwatch_error_handler(request: Request, exc: FraudWatchError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint."""
        services: Services = get_services(request)
        stats = services.registry.stats()
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            storage=services.storage.name,
            online_users=stats["total_users"],
            connections=stats["total_connections"],
            otc_codes=await services.otc.store_size(),
        )

    app.include_router(risk_router)
    app.include_router(otc_router)
    app.include_router(alerts_router)
    app.include_router(actions_router)
    app.include_router(websocket_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
