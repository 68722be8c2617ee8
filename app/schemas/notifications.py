"""WhatsApp queue schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class QueueRemindersResponse(BaseModel):
    """Result of queueing tomorrow's reminders."""

    ok: bool = True
    queued: int
    skipped: int = 0
    failed: int = 0


class SendQueuedResponse(BaseModel):
    """Result of one send batch."""

    ok: bool = True
    provider: str
    processed: int
    sent: int
    failed: int


class DailyRunResponse(BaseModel):
    """Queue followed by batched sends."""

    ok: bool = True
    queued: QueueRemindersResponse
    total_sent: int
    total_failed: int
    loops: int


class WhatsAppStatsResponse(BaseModel):
    """Queue health for the dashboard."""

    ok: bool = True
    queued_total: int
    sent_today: int
    failed_today: int


class InboundMessage(BaseModel):
    """A patient's WhatsApp reply relayed by the provider."""

    from_number: str = Field(..., min_length=5, max_length=30, alias="from")
    body: str = Field(default="", max_length=4096)
    provider_message_id: str | None = None

    model_config = {"populate_by_name": True}


class InboundResult(BaseModel):
    """What an inbound reply did."""

    ok: bool = True
    action: str = Field(..., description="confirmed, cancelled or recorded")
    appointment_id: UUID | None = None


class WhatsAppMessageResponse(BaseModel):
    """Stored WhatsApp message."""

    id: UUID
    clinic_id: UUID | None = None
    patient_id: UUID | None = None
    appointment_id: UUID | None = None
    direction: str
    provider: str
    to_number: str | None = None
    from_number: str | None = None
    template_name: str | None = None
    message_body: str | None = None
    status: str
    provider_message_id: str | None = None
    error: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
