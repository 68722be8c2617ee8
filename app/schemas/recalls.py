"""Recall schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class RecallStatus(str, Enum):
    """Recall lifecycle."""

    PENDING = "pending"
    SNOOZED = "snoozed"
    NOTIFIED = "notified"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecallCreate(BaseModel):
    """Schedule a follow-up for a patient."""

    patient_id: UUID
    rule_code: str = Field(..., min_length=1, max_length=100)
    due_on: date
    notes: str | None = Field(None, max_length=1000)


class RecallStatusUpdate(BaseModel):
    """Move a recall along its lifecycle."""

    status: RecallStatus


class RecallSnooze(BaseModel):
    """Push a recall to a later date."""

    due_on: date


class RecallResponse(BaseModel):
    """Stored recall."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    rule_code: str
    due_on: date
    status: RecallStatus
    last_notified_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    patient_name: str | None = None

    model_config = {"from_attributes": True}


class RecallNotificationResponse(BaseModel):
    """Queued or sent recall message."""

    id: UUID
    recall_id: UUID
    channel: str
    status: str
    payload: dict[str, Any]
    error: str | None = None
    sent_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SweepResponse(BaseModel):
    """Recalls queued by a sweep."""

    ok: bool = True
    queued: int


class SendResultResponse(BaseModel):
    """Email send tally."""

    ok: bool = True
    sent: int
    failed: int
