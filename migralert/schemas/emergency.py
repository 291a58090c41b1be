# migralert/schemas/emergency.py
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from migralert.utils.phone import to_e164


def _normalise_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return to_e164(value)


# ============================================
# CONTACTS
# ============================================

class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=7, max_length=20)
    relationship: Optional[str] = Field(None, max_length=50)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("phone")
    @classmethod
    def phone_e164(cls, v: str) -> str:
        return _normalise_phone(v)


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    relationship: Optional[str] = Field(None, max_length=50)

    @field_validator("phone")
    @classmethod
    def phone_e164(cls, v: Optional[str]) -> Optional[str]:
        return _normalise_phone(v)


class ContactResponse(BaseModel):
    id: int
    name: str
    phone: str
    relationship: Optional[str] = Field(
        None, validation_alias=AliasChoices("relationship_label", "relationship")
    )
    contact_order: int
    created_at: datetime

    class Config:
        from_attributes = True


class ContactReorder(BaseModel):
    ordered_ids: List[int] = Field(..., min_length=1)


# ============================================
# ALERT CONFIG / HISTORY
# ============================================

class AlertConfigUpdate(BaseModel):
    message: str = Field(..., min_length=1, max_length=1000)
    share_location: bool = True


class AlertConfigResponse(BaseModel):
    message: str
    share_location: bool
    is_default: bool = False
    updated_at: Optional[datetime] = None


class AlertHistoryResponse(BaseModel):
    id: int
    message: str
    is_test: bool
    contacts_notified: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================
# DISPATCH
# ============================================

class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class EmergencyAlertRequest(BaseModel):
    # Omitted fields fall back to the saved alert config
    message: Optional[str] = Field(None, max_length=1000)
    share_location: Optional[bool] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class TestAlertRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=1000)


class DeliveryResult(BaseModel):
    contact_id: Optional[int] = None
    name: Optional[str] = None
    phone: str  # masked
    success: bool
    error: Optional[str] = None


class DispatchResult(BaseModel):
    success: bool
    message: str
    success_count: int
    failed_count: int
    # Some but not all sends failed: still a success, reported with a caveat
    partial: bool = False
    is_test: bool = False
    results: List[DeliveryResult] = []
