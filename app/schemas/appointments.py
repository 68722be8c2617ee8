"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from app.core.status import (
    normalize_ui_status,
    status_label,
    to_db_status,
    to_ui_status,
)


class ReminderStatus(str, Enum):
    """Progress of the appointment reminder."""

    NOT_SCHEDULED = "not_scheduled"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class ConfirmationStatus(str, Enum):
    """Patient's response to the reminder."""

    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AppointmentSource(str, Enum):
    """Where the booking came from."""

    DASHBOARD = "dashboard"
    PUBLIC = "public"
    RECEPTION = "reception"
    API = "api"


def _status_to_db(v: str | None) -> str | None:
    return to_db_status(v) if v is not None else None


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment from the dashboard."""

    patient_id: UUID
    practitioner_id: UUID | None = None
    title: str = Field(default="Appointment", min_length=1, max_length=200)
    starts_at: datetime
    ends_at: datetime | None = None
    notes: str | None = Field(None, max_length=2000)
    status: str = Field(default="scheduled", description="Dashboard or stored status")
    source: AppointmentSource = AppointmentSource.DASHBOARD

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        """Store statuses in their database spelling."""
        return to_db_status(v)

    @model_validator(mode="after")
    def check_times(self) -> "AppointmentCreate":
        """Validate end time is after start time and both carry a timezone."""
        if self.starts_at.tzinfo is None:
            raise ValueError("starts_at must include a timezone offset")
        if self.ends_at is not None:
            if self.ends_at.tzinfo is None:
                raise ValueError("ends_at must include a timezone offset")
            if self.ends_at <= self.starts_at:
                raise ValueError("End time must be after start time")
        return self


class AppointmentUpdate(BaseModel):
    """Schema for updating or rescheduling an appointment."""

    practitioner_id: UUID | None = None
    title: str | None = Field(None, min_length=1, max_length=200)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("title", "starts_at", "ends_at", mode="before")
    @classmethod
    def reject_null(cls, v: object) -> object:
        """These columns cannot be cleared; omit the field to leave it unchanged."""
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @model_validator(mode="after")
    def check_times(self) -> "AppointmentUpdate":
        """Validate end time is after start time when both are sent."""
        for value in (self.starts_at, self.ends_at):
            if value is not None and value.tzinfo is None:
                raise ValueError("Timestamps must include a timezone offset")
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("End time must be after start time")
        return self


class AppointmentStatusUpdate(BaseModel):
    """Change the status and/or the patient's confirmation."""

    status: str | None = None
    confirmation_status: ConfirmationStatus | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str | None) -> str | None:
        """Reject statuses the dashboard does not know instead of defaulting them."""
        if v is None:
            return v
        ui = normalize_ui_status(v)
        if ui == "scheduled" and v.strip().lower() not in ("scheduled", "booked"):
            raise ValueError(f"Invalid status: {v}")
        return _status_to_db(ui)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    practitioner_id: UUID | None = None
    title: str
    starts_at: datetime
    ends_at: datetime
    notes: str | None = None
    status: str
    reminder_status: ReminderStatus
    confirmation_status: ConfirmationStatus
    source: str
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None
    deleted_at: datetime | None = None
    patient_name: str | None = None

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ui_status(self) -> str:
        """Dashboard spelling of the status."""
        return to_ui_status(self.status)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_label(self) -> str:
        """Human label of the status."""
        return status_label(self.status)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: str | None = None
    patient_id: UUID | None = None
    practitioner_id: UUID | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=500)

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str | None) -> str | None:
        """Filter on the stored spelling."""
        return _status_to_db(v)


class ReminderResult(BaseModel):
    """Outcome of a one-off email reminder."""

    ok: bool = True
    email_ok: bool
