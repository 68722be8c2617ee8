"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Staff email/password login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class StaffUserResponse(BaseModel):
    """Staff user as returned by the API (never includes the hash)."""

    id: UUID
    clinic_id: UUID
    email: EmailStr
    full_name: str | None = None
    role: str
    is_active: bool = True
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class LoginResponse(Token):
    """Login response with tokens and user info."""

    user: StaffUserResponse


class StaffUserCreate(BaseModel):
    """Schema for an admin adding a staff member to their clinic."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, max_length=200)
    role: str = Field(default="reception", pattern="^(admin|reception|practitioner)$")
