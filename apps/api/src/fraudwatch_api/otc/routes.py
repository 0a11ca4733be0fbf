"""One-time code routes."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from fraudwatch_shared.schemas import EntityType, UserProfile
from pydantic import BaseModel, Field

from fraudwatch_api.auth.jwt import get_current_user_optional
from fraudwatch_api.otc.service import DEFAULT_PURPOSE
from fraudwatch_api.realtime.registry import EVENT_OTC_SENT
from fraudwatch_api.security.normalizer import detect_entity_type
from fraudwatch_api.services import Services, get_services

logger = logging.getLogger("fraudwatch-api")

router = APIRouter(prefix="/otc", tags=["One-Time Codes"])

# Failure code -> HTTP status. Anything not listed is a plain 400.
GENERATE_STATUS = {"cooldown": status.HTTP_429_TOO_MANY_REQUESTS}


# =============================================================================
# Request Models
# =============================================================================


class GenerateRequest(BaseModel):
    """Request body for issuing a code."""

    identifier: str = Field(..., min_length=1, max_length=255)
    purpose: str = Field(DEFAULT_PURPOSE, min_length=1, max_length=50)


class VerifyRequest(BaseModel):
    """Request body for checking a code."""

    identifier: str = Field(..., min_length=1, max_length=255)
    purpose: str = Field(DEFAULT_PURPOSE, min_length=1, max_length=50)
    code: str = Field(..., max_length=10)


# =============================================================================
# Routes
# =============================================================================


@router.post("/generate")
async def generate_code(
    request: GenerateRequest,
    user: UserProfile | None = Depends(get_current_user_optional),
    services: Services = Depends(get_services),
):
    """Issue a one-time code.

    Codes for email identifiers are also mailed when email is configured;
    if that delivery fails the code is withdrawn.
    """
    result = await services.otc.generate(request.identifier, request.purpose)
    if not result.success:
        return JSONResponse(
            status_code=GENERATE_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST),
            content=result.to_dict(),
        )

    email = services.email
    if (
        email is not None
        and email.is_configured()
        and detect_entity_type(request.identifier) == EntityType.EMAIL
    ):
        sent = await email.send_otc(
            request.identifier.strip(),
            result.code,
            name=user.name if user else None,
            expires_in_minutes=result.expires_in_minutes,
        )
        if not sent:
            logger.warning("Verification email failed, withdrawing code")
            await services.otc.invalidate(request.identifier, request.purpose)
            return JSONResponse(
                status_code=status.HTTP_502_BAD_GATEWAY,
                content={
                    "success": False,
                    "error": "delivery_failed",
                    "message": "Failed to send verification email",
                },
            )

    if user is not None:
        await services.registry.publish(
            user.id,
            EVENT_OTC_SENT,
            {
                "message": "Verification code sent",
                "expires_in_minutes": result.expires_in_minutes,
            },
        )

    return result.to_dict()


@router.post("/verify")
async def verify_code(
    request: VerifyRequest,
    services: Services = Depends(get_services),
):
    """Check a one-time code."""
    result = await services.otc.verify(request.identifier, request.purpose, request.code)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=result.to_dict()
        )
    return result.to_dict()

