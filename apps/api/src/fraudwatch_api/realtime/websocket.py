"""WebSocket endpoint for live alerts.

Client connects to ``/ws?token=<access token>`` (or sends an
``Authorization: Bearer`` header). Frames in both directions are JSON
objects ``{"event": str, "data": {...}}``.

Inbound events:
  {"event": "ping"}
  {"event": "alert:acknowledge", "data": {"alert_id": str, "action": str}}

Outbound events: connected, pong, alert:new, alert:acknowledged, otc:sent,
notification, system:alert, error.
"""

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fraudwatch_shared.schemas import AlertAction

from fraudwatch_api.auth.jwt import authenticate_channel
from fraudwatch_api.errors import AuthenticationError, FraudWatchError
from fraudwatch_api.realtime.registry import (
    EVENT_ALERT_ACKNOWLEDGE,
    EVENT_CONNECTED,
    EVENT_ERROR,
    EVENT_PING,
    EVENT_PONG,
    Channel,
)
from fraudwatch_api.services import Services, get_services

logger = logging.getLogger("fraudwatch-realtime")

router = APIRouter()


def _handshake_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


@router.websocket("/ws")
async def alerts_ws(websocket: WebSocket, services: Services = Depends(get_services)):
    """Authenticate, register the channel, and serve inbound events."""
    try:
        user = await authenticate_channel(
            _handshake_token(websocket),
            services.storage.users,
            services.settings.auth,
        )
    except AuthenticationError as e:
        logger.info(f"Rejected websocket handshake: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    channel = services.registry.open(user.id, websocket.send_json)
    try:
        await channel.emit(
            EVENT_CONNECTED,
            {
                "user_id": user.id,
                "socket_id": channel.id,
                "message": "Connected to FraudWatch real-time alerts",
            },
        )
        while True:
            raw = await websocket.receive_text()
            await _handle_frame(raw, channel, services)
    except WebSocketDisconnect:
        logger.debug(f"Websocket disconnected: channel={channel.id}")
    finally:
        services.registry.close(channel)


async def _handle_frame(raw: str, channel: Channel, services: Services) -> None:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        await channel.emit(EVENT_ERROR, {"message": "Invalid JSON"})
        return

    if not isinstance(msg, dict):
        await channel.emit(EVENT_ERROR, {"message": "Frame must be a JSON object"})
        return

    event = msg.get("event")
    data = msg.get("data") or {}

    if event == EVENT_PING:
        await channel.emit(EVENT_PONG)
        return

    if event == EVENT_ALERT_ACKNOWLEDGE:
        alert_id = data.get("alert_id") if isinstance(data, dict) else None
        if not alert_id:
            await channel.emit(EVENT_ERROR, {"message": "Missing alert_id"})
            return
        try:
            action = AlertAction(data.get("action") or AlertAction.DISMISSED.value)
        except ValueError:
            await channel.emit(EVENT_ERROR, {"message": "Invalid action"})
            return
        try:
            # Confirmation goes out as alert:acknowledged to all the user's channels
            await services.dispatcher.acknowledge(channel.user_id, alert_id, action)
        except FraudWatchError as e:
            await channel.emit(EVENT_ERROR, {"message": e.message, "error": e.code})
        return

    await channel.emit(EVENT_ERROR, {"message": f"Unknown event: {event}"})
