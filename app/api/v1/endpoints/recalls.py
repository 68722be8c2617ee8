"""Recall endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import CurrentUser, DatabaseSession, require_cron_secret
from app.schemas.recalls import (
    RecallCreate,
    RecallNotificationResponse,
    RecallResponse,
    RecallSnooze,
    RecallStatus,
    RecallStatusUpdate,
    SendResultResponse,
    SweepResponse,
)
from app.services.recall_service import SEND_BATCH_LIMIT, RecallService

router = APIRouter(prefix="/recalls", tags=["Recalls"])


@router.post(
    "/",
    response_model=RecallResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create recall",
)
async def create_recall(
    data: RecallCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> RecallResponse:
    """Schedule a follow-up reminder for a patient."""
    return await RecallService(db).create_recall(current_user["clinic_id"], data)


@router.get("/", response_model=list[RecallResponse], summary="List recalls")
async def list_recalls(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: RecallStatus | None = Query(None, alias="status"),
    due_from: date | None = Query(None),
    due_to: date | None = Query(None),
) -> list[RecallResponse]:
    """
    List recalls ordered by due date.

    Args:
        current_user: Authenticated staff user
        db: Database session
        status_filter: Only this status
        due_from: Due on or after
        due_to: Due on or before

    Returns:
        Recalls with patient names
    """
    return await RecallService(db).list_recalls(
        current_user["clinic_id"], status_filter, due_from, due_to
    )


@router.get(
    "/notifications",
    response_model=list[RecallNotificationResponse],
    summary="Recall notification log",
)
async def list_notifications(
    current_user: CurrentUser,
    db: DatabaseSession,
    recall_id: UUID | None = Query(None),
    status_filter: str | None = Query(None, alias="status", pattern="^(queued|sent|failed)$"),
    limit: int = Query(100, ge=1, le=500),
) -> list[RecallNotificationResponse]:
    """Queued and sent recall messages, newest first."""
    return await RecallService(db).list_notifications(
        current_user["clinic_id"], recall_id, status_filter, limit
    )


@router.post(
    "/notifications/{notification_id}/resend",
    response_model=SendResultResponse,
    summary="Resend one recall email",
)
async def resend_notification(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> SendResultResponse:
    """Send a recall email again; only the email channel is supported."""
    return await RecallService(db).resend_one(current_user["clinic_id"], notification_id)


@router.api_route(
    "/sweep",
    methods=["GET", "POST"],
    response_model=SweepResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Queue due recalls",
)
async def sweep(db: DatabaseSession) -> SweepResponse:
    """Queue notifications for recalls due in the next seven days."""
    return await RecallService(db).sweep()


@router.api_route(
    "/send-queued",
    methods=["GET", "POST"],
    response_model=SendResultResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Send queued recall emails",
)
async def send_queued(
    db: DatabaseSession,
    limit: int = Query(SEND_BATCH_LIMIT, ge=1, le=SEND_BATCH_LIMIT),
) -> SendResultResponse:
    """Send queued recall emails."""
    return await RecallService(db).send_queued_email(limit)


@router.patch("/{recall_id}/status", response_model=RecallResponse, summary="Update recall status")
async def update_status(
    recall_id: UUID,
    data: RecallStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> RecallResponse:
    """Move a recall to a new status."""
    return await RecallService(db).update_status(current_user["clinic_id"], recall_id, data.status)


@router.post("/{recall_id}/snooze", response_model=RecallResponse, summary="Snooze recall")
async def snooze(
    recall_id: UUID,
    data: RecallSnooze,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> RecallResponse:
    """Push a recall to a later date."""
    return await RecallService(db).snooze(current_user["clinic_id"], recall_id, data.due_on)
