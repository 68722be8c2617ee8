"""WhatsApp reminder queue endpoints (scheduled jobs, provider webhook, dashboard)."""

from fastapi import APIRouter, Depends, Query

from app.dependencies import (
    CurrentUser,
    DatabaseSession,
    require_cron_secret,
    require_stats_secret,
)
from app.schemas.notifications import (
    DailyRunResponse,
    InboundMessage,
    InboundResult,
    QueueRemindersResponse,
    SendQueuedResponse,
    WhatsAppMessageResponse,
    WhatsAppStatsResponse,
)
from app.services.whatsapp_service import DEFAULT_SEND_LIMIT, MAX_SEND_LIMIT, WhatsAppService

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])


@router.api_route(
    "/queue-reminders",
    methods=["GET", "POST"],
    response_model=QueueRemindersResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Queue tomorrow's reminders",
)
async def queue_reminders(db: DatabaseSession) -> QueueRemindersResponse:
    """Queue a WhatsApp reminder for every unconfirmed appointment starting tomorrow."""
    return await WhatsAppService(db).queue_reminders()


@router.api_route(
    "/send-queued",
    methods=["GET", "POST"],
    response_model=SendQueuedResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Send queued messages",
)
async def send_queued(
    db: DatabaseSession,
    limit: int = Query(DEFAULT_SEND_LIMIT, ge=1, le=MAX_SEND_LIMIT),
) -> SendQueuedResponse:
    """Send one batch of queued messages, oldest first."""
    return await WhatsAppService(db).send_queued(limit)


@router.api_route(
    "/daily-run",
    methods=["GET", "POST"],
    response_model=DailyRunResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Queue and send in one go",
)
async def daily_run(db: DatabaseSession) -> DailyRunResponse:
    """Queue reminders, then send batches until nothing more goes out."""
    return await WhatsAppService(db).daily_run()


@router.get(
    "/stats",
    response_model=WhatsAppStatsResponse,
    dependencies=[Depends(require_stats_secret)],
    summary="Queue statistics",
)
async def stats(db: DatabaseSession) -> WhatsAppStatsResponse:
    """Queued backlog plus today's sent and failed counts."""
    return await WhatsAppService(db).stats()


@router.post(
    "/inbound",
    response_model=InboundResult,
    dependencies=[Depends(require_cron_secret)],
    summary="Patient reply relay",
)
async def inbound(message: InboundMessage, db: DatabaseSession) -> InboundResult:
    """
    Record a patient's reply relayed by the provider.

    ``YES`` confirms and ``NO`` cancels the patient's next reminded appointment.
    """
    return await WhatsAppService(db).handle_inbound(
        message.from_number, message.body, message.provider_message_id
    )


@router.get(
    "/messages",
    response_model=list[WhatsAppMessageResponse],
    summary="Recent WhatsApp messages",
)
async def list_messages(
    current_user: CurrentUser,
    db: DatabaseSession,
    status: str | None = Query(None, pattern="^(queued|sent|failed|received)$"),
    limit: int = Query(100, ge=1, le=500),
) -> list[WhatsAppMessageResponse]:
    """Recent WhatsApp traffic of the caller's clinic."""
    rows = await WhatsAppService(db).list_messages(current_user["clinic_id"], status, limit)
    return [WhatsAppMessageResponse.model_validate(row) for row in rows]
