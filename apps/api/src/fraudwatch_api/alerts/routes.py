"""Alert and protection-settings routes."""

from fastapi import APIRouter, Body, Depends, Query
from fraudwatch_shared.schemas import (
    AlertAction,
    AlertHistoryEntry,
    AlertMode,
    AlertType,
    PendingAlert,
    ProtectionSettings,
    RiskResult,
    UserProfile,
    utcnow,
)
from pydantic import BaseModel, Field

from fraudwatch_api.auth.jwt import get_current_user
from fraudwatch_api.errors import ValidationError
from fraudwatch_api.security.normalizer import normalize_entity
from fraudwatch_api.services import Services, get_services

router = APIRouter(tags=["Alerts"])


# =============================================================================
# Request/Response Models
# =============================================================================


class AcknowledgeRequest(BaseModel):
    """What the user did about the alert."""

    action: AlertAction = AlertAction.DISMISSED


class PendingAlertsResponse(BaseModel):
    alerts: list[PendingAlert]
    count: int


class AlertHistoryResponse(BaseModel):
    history: list[AlertHistoryEntry]
    count: int


class AcknowledgeResponse(BaseModel):
    success: bool = True
    entry: AlertHistoryEntry


class TriggerRequest(BaseModel):
    """An incoming contact to screen against protected users."""

    alert_type: AlertType
    from_entity: str = Field(..., max_length=255)
    to_entity: str = Field(..., max_length=255)
    message: str | None = Field(None, max_length=500)


class TriggerResponse(BaseModel):
    risk: RiskResult
    alerts_created: int
    delivered: int


class ProtectionUpdateRequest(BaseModel):
    """Turn protection on or off for one channel."""

    alert_type: AlertType
    enabled: bool
    registered_entity: str | None = Field(None, max_length=255)
    alert_mode: AlertMode | None = None


# =============================================================================
# Alerts
# =============================================================================


@router.get("/alerts/pending", response_model=PendingAlertsResponse)
async def list_pending(
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Alerts waiting for the user, oldest first."""
    alerts = await services.dispatcher.pending(user.id)
    return PendingAlertsResponse(alerts=alerts, count=len(alerts))


@router.post("/alerts/acknowledge/{alert_id}", response_model=AcknowledgeResponse)
async def acknowledge_alert(
    alert_id: str,
    request: AcknowledgeRequest | None = Body(None),
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Record the user's action on an alert."""
    action = request.action if request else AlertAction.DISMISSED
    entry = await services.dispatcher.acknowledge(user.id, alert_id, action)
    return AcknowledgeResponse(entry=entry)


@router.get("/alerts/history", response_model=AlertHistoryResponse)
async def alert_history(
    limit: int | None = Query(None, ge=1, le=500),
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Acknowledged alerts, newest first."""
    history = await services.dispatcher.history(user.id, limit)
    return AlertHistoryResponse(history=history, count=len(history))


@router.post("/alerts/trigger", response_model=TriggerResponse)
async def trigger_alert(
    request: TriggerRequest,
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Screen an incoming call, SMS, email or payment request.

    Every user protecting ``to_entity`` on that channel gets an alert unless
    the sender is safe.
    """
    if request.alert_type == AlertType.THREAT_ALERT:
        raise ValidationError("alert_type must be call, sms, email or upi")

    recipient = normalize_entity(request.to_entity)
    risk = await services.risk.check(request.from_entity)
    deliveries = await services.dispatcher.notify_protected_users(
        recipient, request.alert_type, risk, request.message
    )
    return TriggerResponse(
        risk=risk,
        alerts_created=len(deliveries),
        delivered=sum(1 for d in deliveries if d.delivered),
    )


# =============================================================================
# Protection Settings
# =============================================================================


@router.get("/settings/protection", response_model=ProtectionSettings)
async def get_protection(user: UserProfile = Depends(get_current_user)):
    """The user's protection settings."""
    return user.protection


@router.post("/settings/protection", response_model=ProtectionSettings)
async def update_protection(
    request: ProtectionUpdateRequest,
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Register (or unregister) an entity for protection on one channel."""
    setting = user.protection.for_alert_type(request.alert_type)
    if setting is None:
        raise ValidationError("alert_type must be call, sms, email or upi")

    if request.registered_entity is not None:
        setting.registered_entity = normalize_entity(request.registered_entity)
    if request.enabled and not setting.registered_entity:
        raise ValidationError("registered_entity is required to enable protection")
    if request.alert_mode is not None:
        setting.alert_mode = request.alert_mode

    if request.enabled and not setting.enabled:
        setting.activated_at = utcnow()
    setting.enabled = request.enabled

    saved = await services.storage.users.save_user(user)
    return saved.protection
