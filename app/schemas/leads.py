"""Sales lead schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LeadCreate(BaseModel):
    """Enquiry submitted from the marketing site."""

    clinic_name: str = Field(default="", max_length=255)
    contact_name: str = Field(default="", max_length=200)
    email: EmailStr
    phone: str = Field(default="", max_length=30)
    clinic_type: str = Field(default="", max_length=100)
    practitioners: int | None = Field(None, ge=0, le=10000)
    message: str = Field(default="", max_length=5000)


class LeadResponse(LeadCreate):
    """Stored lead."""

    id: UUID
    email: str
    phone: str | None = None
    clinic_name: str | None = None
    contact_name: str | None = None
    clinic_type: str | None = None
    message: str | None = None
    source: str
    created_at: datetime

    model_config = {"from_attributes": True}
