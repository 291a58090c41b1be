# migralert/models/report.py
"""
Reports of enforcement activity and the peer feedback on them
"""
import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, ForeignKey,
    CheckConstraint, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from migralert.core.database import Base, utcnow


class ActivityType(str, enum.Enum):
    CHECKPOINT = "checkpoint"
    RAID = "raid"
    PATROL = "patrol"
    DETENTION = "detention"
    SURVEILLANCE = "surveillance"
    OTHER = "other"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REMOVED = "removed"


class InteractionType(str, enum.Enum):
    CONFIRM = "confirm"
    NO_LONGER_ACTIVE = "no_longer_active"
    FALSE = "false"


def _new_id() -> str:
    return str(uuid.uuid4())


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="ck_reports_confidence_score_range"
        ),
        CheckConstraint("expires_at > created_at", name="ck_reports_expiry_after_creation"),
        Index("ix_reports_status_expires_at", "status", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)

    # Location (WGS84)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    # Resolved once at creation, never recomputed
    city = Column(String(120), nullable=False, default="Unknown")
    region = Column(String(120), nullable=False, default="Unknown")

    activity_type = Column(String(20), nullable=False)  # ActivityType
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    status = Column(String(20), nullable=False, default=ReportStatus.PENDING.value)  # ReportStatus
    confidence_score = Column(Integer, nullable=False)

    reporter_id = Column(String(64), ForeignKey("users.id"), nullable=True)
    verified_by = Column(String(64), nullable=True)

    # Optimistic concurrency token for score updates
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    interactions = relationship(
        "ReportInteraction",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def is_visible(self, now) -> bool:
        return self.status != ReportStatus.REMOVED.value and self.expires_at > now


class ReportInteraction(Base):
    __tablename__ = "report_interactions"
    __table_args__ = (
        # One interaction per (report, identity); duplicates are rejected, not overwritten
        UniqueConstraint("report_id", "actor_key", name="uq_report_interactions_report_actor"),
    )

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=True)  # NULL for anonymous feedback

    # 'user:<id>' or 'ip:<sha256>'
    actor_key = Column(String(80), nullable=False)

    interaction_type = Column(String(20), nullable=False)  # InteractionType

    created_at = Column(DateTime, nullable=False, default=utcnow)

    report = relationship("Report", back_populates="interactions")
