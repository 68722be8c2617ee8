"""Public booking widget schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.slots import parse_clock, parse_day


class SlotResponse(BaseModel):
    """One bookable slot."""

    starts_at: datetime
    ends_at: datetime
    time: str = Field(..., description="Local HH:MM label")


class SlotListResponse(BaseModel):
    """Free slots for a day."""

    date: str
    timezone: str
    slot_minutes: int
    slots: list[SlotResponse]


class PublicBookingRequest(BaseModel):
    """Booking submitted by a patient through the public widget."""

    name: str = Field(default="", max_length=200)
    email: str = Field(default="", max_length=320)
    phone: str | None = Field(None, max_length=30)
    date: str = Field(default="", description="YYYY-MM-DD")
    time: str = Field(default="", description="HH:MM local clinic time")
    notes: str | None = Field(None, max_length=1000)
    practitioner_id: UUID | None = None
    # Honeypot field; humans never see it so it stays empty
    website: str | None = None

    @property
    def is_bot(self) -> bool:
        """Whether the honeypot was filled in."""
        return bool(self.website)

    def missing_fields(self) -> list[str]:
        """Required fields left blank."""
        return [name for name in ("name", "email", "date", "time") if not getattr(self, name).strip()]


class ValidatedBooking(BaseModel):
    """Booking after the honeypot and required-field checks."""

    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str | None = None
    date: str
    time: str
    notes: str | None = None
    practitioner_id: UUID | None = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Validate YYYY-MM-DD."""
        parse_day(v)
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate HH:MM."""
        return parse_clock(v).strftime("%H:%M")


class PublicBookingResponse(BaseModel):
    """Booking result returned to the widget."""

    ok: bool = True
    id: UUID | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
