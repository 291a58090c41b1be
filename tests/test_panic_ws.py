import pytest
from starlette.websockets import WebSocketDisconnect

from migralert.core.config import settings


@pytest.fixture(autouse=True)
def short_hold(monkeypatch):
    monkeypatch.setattr(settings, "PANIC_HOLD_SECONDS", 0.1)
    monkeypatch.setattr(settings, "PANIC_TICK_SECONDS", 0.02)


def _receive_until(ws, event_type):
    events = []
    while True:
        event = ws.receive_json()
        events.append(event)
        if event["type"] == event_type:
            return events


def test_panic_session_requires_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/alerts/panic"):
            pass


def test_panic_session_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/alerts/panic?token=garbage"):
            pass


def test_hold_sends_alert_with_location(client, auth, token, sms):
    client.post(
        "/api/v1/contacts", json={"name": "Ana", "phone": "5125550101"}, headers=auth("owner")
    )

    with client.websocket_connect(f"/api/v1/alerts/panic?token={token('owner')}") as ws:
        assert ws.receive_json() == {"type": "state", "state": "idle"}
        ws.send_json({"action": "press", "latitude": 30.2672, "longitude": -97.7431})
        events = _receive_until(ws, "result")

    types = [e["type"] for e in events]
    assert types[0] == "state" and events[0]["state"] == "pressing"
    assert "progress" in types
    assert {"type": "haptic", "pattern": 50} in events
    result = events[-1]
    assert result["success"] is True
    assert result["result"]["success_count"] == 1

    assert len(sms.sent) == 1
    assert sms.sent[0][0] == "+15125550101"
    assert "maps.google.com/maps?q=30.2672,-97.7431" in sms.sent[0][1]


def test_press_without_contacts_reports_error(client, token, sms):
    with client.websocket_connect(f"/api/v1/alerts/panic?token={token('owner')}") as ws:
        ws.receive_json()
        ws.send_json({"action": "press"})
        event = ws.receive_json()

    assert event == {"type": "error", "message": "Press ignored", "reason": "no_contacts_configured"}
    assert sms.sent == []


def test_release_cancels(client, auth, token, sms, monkeypatch):
    client.post(
        "/api/v1/contacts", json={"name": "Ana", "phone": "5125550101"}, headers=auth("owner")
    )
    monkeypatch.setattr(settings, "PANIC_HOLD_SECONDS", 5.0)

    with client.websocket_connect(f"/api/v1/alerts/panic?token={token('owner')}") as ws:
        ws.receive_json()
        ws.send_json({"action": "press"})
        ws.send_json({"action": "release"})
        events = _receive_until(ws, "state")  # pressing
        events += _receive_until(ws, "state")  # back to idle

    assert events[-1] == {"type": "state", "state": "idle"}
    assert sms.sent == []
