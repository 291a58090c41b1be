# migralert/schemas/report.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from migralert.models.report import ActivityType, InteractionType, ReportStatus
from migralert.services import scoring


class Location(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ReportResponse(BaseModel):
    id: str
    location: Location
    city: str
    region: str
    activity_type: ActivityType
    description: Optional[str] = None
    image_url: Optional[str] = None
    status: ReportStatus
    confidence_score: int
    confidence_level: str
    created_at: datetime
    expires_at: datetime
    updated_at: datetime
    distance_miles: Optional[float] = None

    @classmethod
    def from_model(cls, report, distance_miles: Optional[float] = None) -> "ReportResponse":
        return cls(
            id=report.id,
            location=Location(latitude=report.latitude, longitude=report.longitude),
            city=report.city,
            region=report.region,
            activity_type=report.activity_type,
            description=report.description,
            image_url=report.image_url,
            status=report.status,
            confidence_score=report.confidence_score,
            confidence_level=scoring.confidence_level(report.confidence_score),
            created_at=report.created_at,
            expires_at=report.expires_at,
            updated_at=report.updated_at or report.created_at,
            distance_miles=round(distance_miles, 3) if distance_miles is not None else None,
        )


class ReportListResponse(BaseModel):
    total: int
    reports: List[ReportResponse]


class InteractionCreate(BaseModel):
    interaction_type: InteractionType


class StatusUpdate(BaseModel):
    status: ReportStatus
