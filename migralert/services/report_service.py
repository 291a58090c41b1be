"""
Report lifecycle: submission, peer interactions, moderation and radius queries

Visibility window is [created_at, expires_at); expiry is a read-time filter,
nothing rewrites expired rows. 'removed' is a soft delete.
"""
import hashlib
import logging
from datetime import timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from migralert.core.config import settings
from migralert.core.database import utcnow
from migralert.core.exceptions import (
    ConcurrentUpdateError,
    DuplicateInteraction,
    Forbidden,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from migralert.models.report import (
    ActivityType,
    InteractionType,
    Report,
    ReportInteraction,
    ReportStatus,
)
from migralert.models.user import User
from migralert.services import scoring
from migralert.services.geocoding_service import MapboxGeocoder, get_geocoder
from migralert.services.image_storage import ImageStorage, PhotoUpload, get_image_storage
from migralert.services.realtime import (
    EVENT_INSERT,
    EVENT_UPDATE,
    ChangeBroker,
    get_broker,
    report_event,
)
from migralert.utils.geo import bounding_box, haversine_miles, validate_coordinates

logger = logging.getLogger(__name__)


def hash_client_ip(ip: str) -> str:
    return hashlib.sha256(f"{settings.IP_HASH_SALT}{ip}".encode("utf-8")).hexdigest()


class ReportService:
    def __init__(
        self,
        db: Session,
        geocoder: Optional[MapboxGeocoder] = None,
        storage: Optional[ImageStorage] = None,
        broker: Optional[ChangeBroker] = None,
        clock: Optional[Callable] = None,
    ):
        self.db = db
        self.geocoder = geocoder or get_geocoder()
        self.storage = storage or get_image_storage()
        self.broker = broker or get_broker()
        self.clock = clock or utcnow

    # ============================================
    # SUBMIT
    # ============================================

    async def submit(
        self,
        actor: Optional[User],
        activity_type: str,
        latitude: Optional[float],
        longitude: Optional[float],
        description: Optional[str] = None,
        photo: Optional[PhotoUpload] = None,
    ) -> Report:
        """
        Validate, geocode, upload the photo and insert the report.

        Geocoding failures fall back to 'Unknown' place names. If the insert
        fails after the photo was uploaded, the photo is deleted again.
        """
        if actor is None:
            raise Unauthorized()

        activity = self._parse_activity_type(activity_type)

        if latitude is None or longitude is None:
            raise ValidationError("Location is required")
        if not validate_coordinates(latitude, longitude):
            raise ValidationError("Invalid coordinates")

        description = (description or "").strip() or None
        if description and len(description) > settings.REPORT_DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description must be at most {settings.REPORT_DESCRIPTION_MAX_LENGTH} characters"
            )

        content = None
        if photo is not None:
            self.storage.validate(photo)
            content = await self.storage.compress(photo.content)

        place = await self.geocoder.resolve_or_placeholder(latitude, longitude)

        image_url = None
        if content is not None:
            image_url = await self.storage.upload(content)

        now = self.clock()
        report = Report(
            latitude=latitude,
            longitude=longitude,
            city=place.city,
            region=place.region,
            activity_type=activity.value,
            description=description,
            image_url=image_url,
            status=ReportStatus.PENDING.value,
            confidence_score=scoring.initial_score(image_url is not None),
            reporter_id=actor.id,
            version=1,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=settings.REPORT_LIFETIME_HOURS),
        )

        try:
            self.db.add(report)
            self.db.commit()
            self.db.refresh(report)
        except Exception:
            self.db.rollback()
            logger.error("[Reports] ❌ Insert failed", exc_info=True)
            if image_url:
                self.storage.delete(image_url)
            raise

        logger.info(
            f"[Reports] ✅ {report.id} {report.activity_type} in {report.city}, {report.region} "
            f"score={report.confidence_score}"
        )
        self.broker.publish(report_event(EVENT_INSERT, report))
        return report

    @staticmethod
    def _parse_activity_type(value) -> ActivityType:
        try:
            return ActivityType(value)
        except ValueError:
            allowed = ", ".join(a.value for a in ActivityType)
            raise ValidationError(f"Invalid activity type. Use: {allowed}")

    # ============================================
    # READ
    # ============================================

    def get(self, report_id: str) -> Report:
        report = self.db.query(Report).filter(Report.id == report_id).first()
        if not report or report.status == ReportStatus.REMOVED.value:
            raise NotFoundError("Report not found")
        return report

    def query(
        self,
        latitude: float,
        longitude: float,
        radius_miles: Optional[float] = None,
    ) -> List[Tuple[Report, float]]:
        """
        Live reports within radius_miles of the center, most recent first.

        Returns (report, distance_miles) pairs.
        """
        if radius_miles is None:
            radius_miles = settings.DEFAULT_RADIUS_MILES
        if not validate_coordinates(latitude, longitude):
            raise ValidationError("Invalid coordinates")
        if radius_miles < 0 or radius_miles > settings.MAX_RADIUS_MILES:
            raise ValidationError(f"radius_miles must be between 0 and {settings.MAX_RADIUS_MILES:g}")

        now = self.clock()
        box = bounding_box(latitude, longitude, radius_miles)

        query = self.db.query(Report).filter(
            Report.status != ReportStatus.REMOVED.value,
            Report.expires_at > now,
            Report.latitude.between(box.min_lat, box.max_lat),
        )
        if box.min_lng is not None:
            query = query.filter(Report.longitude.between(box.min_lng, box.max_lng))

        results = []
        for report in query.order_by(Report.created_at.desc()).all():
            distance = haversine_miles(latitude, longitude, report.latitude, report.longitude)
            if distance <= radius_miles:
                results.append((report, distance))
        return results

    # ============================================
    # INTERACTIONS
    # ============================================

    def record_interaction(
        self,
        report_id: str,
        interaction_type: str,
        actor: Optional[User] = None,
        ip_hash: Optional[str] = None,
    ) -> Report:
        """
        Record one peer interaction, then rescore the report.

        One interaction per (report, identity): 'user:<id>' for signed-in
        actors, 'ip:<hash>' for anonymous ones.
        """
        try:
            kind = InteractionType(interaction_type)
        except ValueError:
            allowed = ", ".join(i.value for i in InteractionType)
            raise ValidationError(f"Invalid interaction type. Use: {allowed}")

        if actor is not None:
            actor_key = f"user:{actor.id}"
        elif ip_hash:
            actor_key = f"ip:{ip_hash}"
        else:
            raise Unauthorized("Cannot identify the sender of this interaction")

        report = self.get(report_id)
        if not report.is_visible(self.clock()):
            raise NotFoundError("Report has expired")

        exists = self.db.query(ReportInteraction.id).filter(
            ReportInteraction.report_id == report_id,
            ReportInteraction.actor_key == actor_key,
        ).first()
        if exists:
            raise DuplicateInteraction()

        interaction = ReportInteraction(
            report_id=report_id,
            user_id=actor.id if actor is not None else None,
            actor_key=actor_key,
            interaction_type=kind.value,
            created_at=self.clock(),
        )
        try:
            self.db.add(interaction)
            self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent identical submission
            self.db.rollback()
            raise DuplicateInteraction()

        try:
            report = self._rescore(report_id, kind)
        except ConcurrentUpdateError:
            # Keep interactions and score consistent: the caller may retry
            self.db.delete(interaction)
            self.db.commit()
            raise

        logger.info(
            f"[Reports] {kind.value} on {report_id}: score={report.confidence_score} status={report.status}"
        )
        self.broker.publish(report_event(EVENT_UPDATE, report))
        return report

    def _confirmations(self, report_id: str) -> int:
        return self.db.query(func.count(ReportInteraction.id)).filter(
            ReportInteraction.report_id == report_id,
            ReportInteraction.interaction_type == InteractionType.CONFIRM.value,
        ).scalar() or 0

    def _rescore(self, report_id: str, kind: InteractionType) -> Report:
        """
        Read-compute-write guarded by the version column; a concurrent writer
        makes the conditional UPDATE match zero rows and the loop retries.
        """
        for attempt in range(1, settings.SCORE_UPDATE_MAX_RETRIES + 1):
            self.db.expire_all()
            report = self.db.query(Report).filter(Report.id == report_id).first()
            if report is None:
                raise NotFoundError("Report not found")

            new_score = scoring.apply_interaction(report.confidence_score, kind)
            new_status = scoring.next_status(report.status, new_score, self._confirmations(report_id))

            values = {
                Report.confidence_score: new_score,
                Report.status: new_status,
                Report.version: report.version + 1,
                Report.updated_at: self.clock(),
            }
            if new_status == ReportStatus.VERIFIED.value and report.status != new_status:
                values[Report.verified_by] = "community"

            updated = self.db.query(Report).filter(
                Report.id == report_id,
                Report.version == report.version,
            ).update(values, synchronize_session=False)
            self.db.commit()

            if updated == 1:
                self.db.refresh(report)
                return report

            logger.info(f"[Reports] Version conflict on {report_id} (attempt {attempt})")

        logger.error(f"[Reports] ❌ Gave up rescoring {report_id} after {settings.SCORE_UPDATE_MAX_RETRIES} attempts")
        raise ConcurrentUpdateError("Report was updated concurrently, please retry")

    # ============================================
    # MODERATION
    # ============================================

    def set_status(self, report_id: str, status: str, actor: Optional[User]) -> Report:
        if actor is None:
            raise Unauthorized()
        if not actor.is_moderator:
            raise Forbidden("Only moderators can change report status")

        try:
            new_status = ReportStatus(status)
        except ValueError:
            allowed = ", ".join(s.value for s in ReportStatus)
            raise ValidationError(f"Invalid status. Use: {allowed}")

        report = self.db.query(Report).filter(Report.id == report_id).first()
        if not report:
            raise NotFoundError("Report not found")

        report.status = new_status.value
        report.version = report.version + 1
        report.updated_at = self.clock()
        if new_status is ReportStatus.VERIFIED:
            report.verified_by = actor.id
        self.db.commit()
        self.db.refresh(report)

        logger.info(f"[Reports] {report_id} -> {new_status.value} by moderator {actor.id}")
        self.broker.publish(report_event(EVENT_UPDATE, report))
        return report
