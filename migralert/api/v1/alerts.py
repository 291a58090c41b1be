# migralert/api/v1/alerts.py
"""
Emergency alerts: configuration, history, dispatch and the panic button session
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from migralert.api.dependencies import get_current_user
from migralert.core.database import get_db
from migralert.core.exceptions import MigrAlertError
from migralert.models.user import User
from migralert.schemas.emergency import (
    AlertConfigResponse,
    AlertConfigUpdate,
    AlertHistoryResponse,
    Coordinates,
    DispatchResult,
    EmergencyAlertRequest,
    TestAlertRequest,
)
from migralert.services.alert_dispatcher import AlertDispatcher
from migralert.services.auth_service import AuthService
from migralert.services.contact_service import ContactService
from migralert.services.panic_trigger import PanicState, PanicTrigger
from migralert.services.sms_service import SmsTransport, get_sms_transport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Emergency Alerts"])


def get_contact_service(db: Session = Depends(get_db)) -> ContactService:
    return ContactService(db)


def get_dispatcher(
    contacts: ContactService = Depends(get_contact_service),
    transport: SmsTransport = Depends(get_sms_transport),
) -> AlertDispatcher:
    return AlertDispatcher(contacts, transport)


def _config_response(config) -> AlertConfigResponse:
    return AlertConfigResponse(
        message=config.message,
        share_location=config.share_location,
        is_default=config.is_default,
        updated_at=config.updated_at,
    )


# ============================================
# CONFIG
# ============================================

@router.get("/config", response_model=AlertConfigResponse)
async def get_alert_config(
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return _config_response(service.get_alert_config(current_user))


@router.put("/config", response_model=AlertConfigResponse)
async def set_alert_config(
    payload: AlertConfigUpdate,
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return _config_response(
        service.set_alert_config(current_user, payload.message, payload.share_location)
    )


# ============================================
# HISTORY
# ============================================

@router.get("/history", response_model=List[AlertHistoryResponse])
async def list_alert_history(
    limit: Optional[int] = Query(None, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    return service.list_history(current_user, limit)


@router.delete("/history")
async def clear_alert_history(
    current_user: User = Depends(get_current_user),
    service: ContactService = Depends(get_contact_service),
):
    deleted = service.clear_history(current_user)
    return {"success": True, "deleted": deleted}


# ============================================
# DISPATCH
# ============================================

@router.post("/emergency", response_model=DispatchResult)
async def send_emergency_alert(
    payload: EmergencyAlertRequest,
    current_user: User = Depends(get_current_user),
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
):
    """
    Text every emergency contact.

    Partial delivery is still a success (partial=true, failed_count > 0).
    """
    return await dispatcher.send_emergency_alert(
        current_user,
        message=payload.message,
        share_location=payload.share_location,
        coords=payload.coordinates(),
    )


@router.post("/test", response_model=DispatchResult)
async def send_test_alert(
    payload: Optional[TestAlertRequest] = None,
    current_user: User = Depends(get_current_user),
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
):
    """Send the alert to your own phone to check the setup"""
    message = payload.message if payload else None
    return await dispatcher.send_test_alert(current_user, message)


# ============================================
# PANIC BUTTON (WebSocket)
# ============================================

@router.websocket("/panic")
async def panic_session(
    websocket: WebSocket,
    token: Optional[str] = None,
    db: Session = Depends(get_db),
    transport: SmsTransport = Depends(get_sms_transport),
):
    """
    One press-and-hold machine per connection.

    Client sends {"action": "press" | "release"} with optional latitude and
    longitude. Server emits state, progress, haptic, result and error events.
    """
    user = AuthService(db).get_current_user(token) if token else None
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    contacts = ContactService(db)
    dispatcher = AlertDispatcher(contacts, transport)
    outbox: asyncio.Queue = asyncio.Queue()
    location = {}

    async def dispatch():
        coords = Coordinates(**location) if len(location) == 2 else None
        return await dispatcher.send_emergency_alert(user, coords=coords)

    def has_contacts() -> bool:
        # Contacts may have changed from another client since the last press
        contacts.cache.invalidate(user.id)
        return bool(contacts.list(user))

    def on_result(ok: bool, outcome) -> None:
        if ok:
            outbox.put_nowait({"type": "result", "success": True, "result": outcome.model_dump(mode="json")})
        elif isinstance(outcome, MigrAlertError):
            outbox.put_nowait({"type": "result", "success": False, "error": outcome.to_dict()})
        else:
            outbox.put_nowait({
                "type": "result",
                "success": False,
                "error": {"error": "internal_error", "message": "Failed to send alert", "retryable": True},
            })

    trigger = PanicTrigger(
        dispatch=dispatch,
        has_contacts=has_contacts,
        on_progress=lambda percent: outbox.put_nowait({"type": "progress", "percent": round(percent, 1)}),
        on_haptic=lambda pattern: outbox.put_nowait({"type": "haptic", "pattern": pattern}),
        on_result=on_result,
        on_state=lambda state: outbox.put_nowait({"type": "state", "state": state.value}),
    )

    async def forward():
        while True:
            event = await outbox.get()
            await websocket.send_json(event)

    sender = asyncio.create_task(forward())
    logger.info(f"[Panic] Session opened for {user.id}")
    try:
        await websocket.send_json({"type": "state", "state": trigger.state.value})
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                outbox.put_nowait({"type": "error", "message": "Expected a JSON object"})
                continue

            if data.get("latitude") is not None and data.get("longitude") is not None:
                try:
                    location.update(Coordinates(
                        latitude=data["latitude"], longitude=data["longitude"]
                    ).model_dump())
                except ValueError:
                    outbox.put_nowait({"type": "error", "message": "Invalid coordinates"})

            action = data.get("action")
            if action == "press":
                if not trigger.press():
                    if trigger.busy:
                        reason = "alert_in_flight"
                    elif trigger.state is PanicState.PRESSING:
                        reason = "already_pressing"
                    else:
                        reason = "no_contacts_configured"
                    outbox.put_nowait({"type": "error", "message": "Press ignored", "reason": reason})
            elif action == "release":
                trigger.release()
            elif action is not None:
                outbox.put_nowait({"type": "error", "message": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        logger.info(f"[Panic] Session closed for {user.id}")
    finally:
        trigger.close()
        # A fired alert always completes, even after the client went away
        await trigger.wait_dispatch()
        sender.cancel()
