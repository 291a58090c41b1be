# migralert/api/v1/reports.py
"""
Community reports: submit, browse nearby, confirm/dispute, live stream
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from migralert.api.dependencies import client_ip_hash, get_current_user, get_optional_user
from migralert.core.database import get_db
from migralert.models.user import User
from migralert.schemas.report import (
    InteractionCreate,
    ReportListResponse,
    ReportResponse,
    StatusUpdate,
)
from migralert.services.geocoding_service import MapboxGeocoder, get_geocoder
from migralert.services.image_storage import ImageStorage, PhotoUpload, get_image_storage
from migralert.services.realtime import REPORTS_TOPIC, ChangeBroker, get_broker
from migralert.services.report_service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_report_service(
    db: Session = Depends(get_db),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
    storage: ImageStorage = Depends(get_image_storage),
    broker: ChangeBroker = Depends(get_broker),
) -> ReportService:
    return ReportService(db, geocoder=geocoder, storage=storage, broker=broker)


@router.post("", response_model=ReportResponse, status_code=201)
async def submit_report(
    activity_type: str = Form(...),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Submit a sighting (multipart, optional photo)"""
    upload = None
    if photo is not None and photo.filename:
        upload = PhotoUpload(
            filename=photo.filename,
            content_type=photo.content_type,
            content=await photo.read(),
        )

    report = await service.submit(
        current_user,
        activity_type=activity_type,
        latitude=latitude,
        longitude=longitude,
        description=description,
        photo=upload,
    )
    return ReportResponse.from_model(report)


@router.get("", response_model=ReportListResponse)
async def list_reports(
    latitude: float = Query(..., description="Center latitude"),
    longitude: float = Query(..., description="Center longitude"),
    radius_miles: Optional[float] = Query(None, description="Search radius in miles"),
    service: ReportService = Depends(get_report_service),
):
    """Live reports around a point, most recent first"""
    results = service.query(latitude, longitude, radius_miles)
    return ReportListResponse(
        total=len(results),
        reports=[ReportResponse.from_model(report, distance) for report, distance in results],
    )


@router.websocket("/stream")
async def stream_reports(websocket: WebSocket, broker: ChangeBroker = Depends(get_broker)):
    """Push INSERT/UPDATE/DELETE events for reports as they happen"""
    await websocket.accept()
    subscription = broker.subscribe(REPORTS_TOPIC)

    async def forward():
        while True:
            event = await subscription.get()
            await websocket.send_json(event)

    sender = None
    try:
        await websocket.send_json({"event": "SUBSCRIBED", "topic": REPORTS_TOPIC})
        sender = asyncio.create_task(forward())
        # Inbound messages are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if sender is not None:
            sender.cancel()
        subscription.close()
        if subscription.dropped:
            logger.info(f"[Realtime] Subscriber dropped {subscription.dropped} events")


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(report_id: str, service: ReportService = Depends(get_report_service)):
    return ReportResponse.from_model(service.get(report_id))


@router.post("/{report_id}/interactions", response_model=ReportResponse)
async def record_interaction(
    report_id: str,
    payload: InteractionCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    ip_hash: Optional[str] = Depends(client_ip_hash),
    service: ReportService = Depends(get_report_service),
):
    """Confirm, mark inactive or flag as false. One per person per report."""
    report = service.record_interaction(
        report_id,
        payload.interaction_type.value,
        actor=current_user,
        ip_hash=ip_hash,
    )
    return ReportResponse.from_model(report)


@router.patch("/{report_id}/status", response_model=ReportResponse)
async def update_report_status(
    report_id: str,
    payload: StatusUpdate,
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Moderators only"""
    report = service.set_status(report_id, payload.status.value, current_user)
    return ReportResponse.from_model(report)
