"""Tests for the live alert websocket."""

from datetime import timedelta

import pytest
from fastapi import WebSocketDisconnect

from fraudwatch_api.auth.jwt import create_access_token


def raise_call_alert(client, auth_headers, sender: str = "1112223333") -> None:
    """Report a sender, protect Alice's number, then screen a call to it."""
    client.post(
        "/settings/protection",
        json={"alert_type": "call", "enabled": True, "registered_entity": "9876543210"},
        headers=auth_headers,
    )
    client.post(
        "/fraud/report",
        json={"target_entity": sender, "category": "Spam"},
        headers=auth_headers,
    )
    response = client.post(
        "/alerts/trigger",
        json={"alert_type": "call", "from_entity": sender, "to_entity": "+91 98765 43210"},
        headers=auth_headers,
    )
    assert response.json()["alerts_created"] == 1


class TestHandshake:
    """Tests for authenticating the websocket."""

    def test_missing_token_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws"):
                pass
        assert exc_info.value.code == 1008

    def test_invalid_token_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws?token=not-a-jwt"):
                pass
        assert exc_info.value.code == 1008

    def test_expired_token_rejected(self, client, user, auth_settings):
        token = create_access_token(user.id, auth_settings, expires_delta=timedelta(seconds=-1))
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws?token={token}"):
                pass

    def test_unknown_user_rejected(self, client, auth_settings):
        token = create_access_token("ghost", auth_settings)
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws?token={token}"):
                pass

    def test_connected_event(self, client, user, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            frame = ws.receive_json()

        assert frame["event"] == "connected"
        assert frame["data"]["user_id"] == user.id
        assert frame["data"]["socket_id"]

    def test_bearer_header_accepted(self, client, auth_headers):
        with client.websocket_connect("/ws", headers=auth_headers) as ws:
            assert ws.receive_json()["event"] == "connected"

    def test_health_counts_connections(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            health = client.get("/health").json()
        assert health["online_users"] == 1
        assert health["connections"] == 1


class TestInboundEvents:
    """Tests for frames sent by the client."""

    def test_ping_pong(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_json({"event": "ping"})
            frame = ws.receive_json()

        assert frame["event"] == "pong"
        assert "timestamp" in frame["data"]

    def test_invalid_json(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            frame = ws.receive_json()

        assert frame["event"] == "error"
        assert frame["data"]["message"] == "Invalid JSON"

    def test_non_object_frame(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_json(["ping"])
            assert ws.receive_json()["event"] == "error"

    def test_unknown_event(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_json({"event": "subscribe"})
            frame = ws.receive_json()

        assert frame["event"] == "error"
        assert "subscribe" in frame["data"]["message"]

    def test_acknowledge_missing_alert_id(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_json({"event": "alert:acknowledge", "data": {}})
            assert ws.receive_json()["data"]["message"] == "Missing alert_id"

    def test_acknowledge_unknown_alert(self, client, token):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            ws.send_json({"event": "alert:acknowledge", "data": {"alert_id": "nope"}})
            frame = ws.receive_json()

        assert frame["event"] == "error"
        assert frame["data"]["error"] == "not_found"

    def test_acknowledge_over_websocket(self, client, token, auth_headers):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            raise_call_alert(client, auth_headers)

            new = ws.receive_json()
            assert new["event"] == "alert:new"
            alert_id = new["data"]["alert"]["id"]

            ws.send_json(
                {"event": "alert:acknowledge", "data": {"alert_id": alert_id, "action": "blocked"}}
            )
            ack = ws.receive_json()

        assert ack["event"] == "alert:acknowledged"
        assert ack["data"] == {
            "alert_id": alert_id,
            "action": "blocked",
            "timestamp": ack["data"]["timestamp"],
        }
        assert client.get("/alerts/pending", headers=auth_headers).json()["count"] == 0
        history = client.get("/alerts/history", headers=auth_headers).json()
        assert history["history"][0]["action"] == "blocked"

    def test_acknowledge_invalid_action(self, client, token, auth_headers):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            raise_call_alert(client, auth_headers)
            alert_id = ws.receive_json()["data"]["alert"]["id"]

            ws.send_json(
                {"event": "alert:acknowledge", "data": {"alert_id": alert_id, "action": "nuke"}}
            )
            assert ws.receive_json()["data"]["message"] == "Invalid action"

        assert client.get("/alerts/pending", headers=auth_headers).json()["count"] == 1


class TestThreatAlerts:
    """Tests for threat alerts pushed after an authenticated risk check."""

    def test_high_risk_check_pushes_alert(self, client, token, auth_headers):
        for _ in range(2):
            client.post(
                "/fraud/report",
                json={"target_entity": "scam@okaxis", "category": "Phishing"},
                headers=auth_headers,
            )

        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            response = client.post(
                "/check-risk", json={"entity": "SCAM@okaxis"}, headers=auth_headers
            )
            assert response.json()["risk_level"] == "high_risk"

            frame = ws.receive_json()
            notification = ws.receive_json()

        assert frame["event"] == "alert:new"
        alert = frame["data"]["alert"]
        assert alert["alert_type"] == "threat_alert"
        assert alert["from_entity"] == "scam@okaxis"
        assert alert["category"] == "Phishing"
        assert notification["event"] == "notification"
        assert notification["data"]["priority"] == "critical"
        assert notification["data"]["channels"]["sms"] is True

    def test_otc_sent_event(self, client, token, auth_headers):
        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()
            client.post(
                "/otc/generate",
                json={"identifier": "+919876543210", "purpose": "payment"},
                headers=auth_headers,
            )
            frame = ws.receive_json()

        assert frame["event"] == "otc:sent"
        assert frame["data"]["expires_in_minutes"] == 10
