"""Clinic schemas for request/response validation."""

from datetime import date, datetime, time
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator


class ClinicResponse(BaseModel):
    """Clinic response schema."""

    id: UUID
    name: str
    slug: str
    timezone: str
    slot_minutes: int
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublicClinicResponse(BaseModel):
    """What the public booking widget may see about a clinic."""

    name: str
    slug: str
    timezone: str
    slot_minutes: int
    address: str | None = None
    phone: str | None = None


class ClinicUpdate(BaseModel):
    """Schema for updating clinic settings."""

    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=255, pattern="^[a-z0-9-]+$")
    timezone: str | None = None
    slot_minutes: int | None = Field(None, ge=5, le=240)
    address: str | None = None
    phone: str | None = Field(None, max_length=30)
    email: str | None = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        """Reject unknown IANA timezone names."""
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}") from None
        return v


class AvailabilitySpanIn(BaseModel):
    """One opening span on a weekday."""

    weekday: int = Field(..., ge=0, le=6, description="0=Monday ... 6=Sunday")
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def check_order(self) -> "AvailabilitySpanIn":
        """Validate end time is after start time."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilitySpanResponse(AvailabilitySpanIn):
    """Stored opening span."""

    id: UUID

    model_config = {"from_attributes": True}


class AvailabilityReplace(BaseModel):
    """Full weekly schedule; replaces whatever was stored."""

    spans: list[AvailabilitySpanIn] = Field(default_factory=list, max_length=70)


class BlackoutDateCreate(BaseModel):
    """Close the clinic for a day."""

    date: date
    reason: str | None = Field(None, max_length=500)


class BlackoutDateResponse(BlackoutDateCreate):
    """Stored blackout date."""

    id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class PractitionerCreate(BaseModel):
    """Schema for adding a practitioner."""

    full_name: str = Field(..., min_length=1, max_length=200)
    title: str | None = Field(None, max_length=100)


class PractitionerResponse(PractitionerCreate):
    """Practitioner response schema."""

    id: UUID
    clinic_id: UUID
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
