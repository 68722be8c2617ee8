"""Patient schemas for request/response validation."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


def _validate_phone(v: str | None) -> str | None:
    if v is None:
        return v
    cleaned = v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
    if not cleaned.isdigit():
        raise ValueError("Phone number must contain only digits and separators")
    if len(cleaned) < 7:
        raise ValueError("Phone number must have at least 7 digits")
    return v


class PatientBase(BaseModel):
    """Base patient schema with common fields."""

    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=30)
    date_of_birth: date | None = None
    whatsapp_opt_in: bool = False
    whatsapp_number: str | None = Field(None, max_length=30)
    notes: str | None = Field(None, max_length=2000)

    @field_validator("phone", "whatsapp_number")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return _validate_phone(v)


class PatientCreate(PatientBase):
    """Schema for creating a patient; the code is generated when omitted."""

    patient_code: str | None = Field(None, max_length=64)


class PatientUpdate(BaseModel):
    """Schema for updating a patient."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=30)
    date_of_birth: date | None = None
    whatsapp_opt_in: bool | None = None
    whatsapp_number: str | None = Field(None, max_length=30)
    notes: str | None = Field(None, max_length=2000)
    patient_code: str | None = Field(None, max_length=64)

    @field_validator("phone", "whatsapp_number")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return _validate_phone(v)


class PatientResponse(BaseModel):
    """Schema for patient response; stored values are returned as-is."""

    id: UUID
    clinic_id: UUID
    patient_code: str | None = None
    full_name: str
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    whatsapp_opt_in: bool = False
    whatsapp_number: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PatientSummaryResponse(PatientResponse):
    """Patient row in the dashboard list, with visit summary."""

    appointment_count: int = 0
    last_visit: datetime | None = None


class PatientListResponse(BaseModel):
    """Schema for paginated patient list response."""

    total: int
    page: int
    page_size: int
    items: list[PatientSummaryResponse]


class PatientImportRequest(BaseModel):
    """Rows parsed client-side from a spreadsheet."""

    rows: list[dict[str, Any]] = Field(default_factory=list)


class PatientImportResponse(BaseModel):
    """Result of a bulk import."""

    ok: bool = True
    imported: int
    skipped: int = 0
