"""Recall service: follow-up reminders and their notification queue."""

from datetime import UTC, date, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, DeliveryException, NotFoundException
from app.models.patients import patients
from app.models.recalls import recall_notifications, recalls
from app.schemas.recalls import (
    RecallCreate,
    RecallNotificationResponse,
    RecallResponse,
    RecallStatus,
    SendResultResponse,
    SweepResponse,
)
from app.services.email_service import EmailService, plain_email
from app.services.patient_service import PatientService

logger = structlog.get_logger(__name__)

SWEEP_WINDOW_DAYS = 7
RENOTIFY_AFTER = timedelta(days=7)
SEND_BATCH_LIMIT = 100

DEFAULT_SUBJECT = "Appointment reminder"
DEFAULT_BODY = "This is a reminder from your clinic."


def recall_payload(
    channel: str,
    rule_code: str,
    due_on: date,
    full_name: str | None,
    email: str | None,
    phone: str | None,
    patient_code: str | None,
) -> dict:
    """Message stored on a queued recall notification."""
    name = full_name or "Patient"
    tag = patient_code or ""
    if channel == "email":
        return {
            "to": email,
            "subject": "Friendly check-up reminder",
            "body": (
                f"Hi {name}, it's time to book your {rule_code} around {due_on.isoformat()}. "
                "Reply or book via your clinic."
            ),
            "tag": tag,
        }
    return {
        "to": phone,
        "text": f"Reminder: {rule_code} due ~ {due_on.isoformat()}. Reply to book.",
        "tag": tag,
    }


def pick_channel(email: str | None, phone: str | None) -> str:
    """Email when possible, SMS when only a phone is known."""
    if email:
        return "email"
    return "sms" if phone else "email"


class RecallService:
    """Service for managing recalls."""

    def __init__(self, db: AsyncSession, email_service: EmailService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.email = email_service or EmailService()

    async def _fetch(self, clinic_id: UUID, recall_id: UUID) -> dict:
        result = await self.db.execute(
            select(recalls, patients.c.full_name.label("patient_name"))
            .select_from(recalls.join(patients, patients.c.id == recalls.c.patient_id))
            .where(recalls.c.id == recall_id, recalls.c.clinic_id == clinic_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Recall not found")
        return dict(row)

    async def create_recall(self, clinic_id: UUID, data: RecallCreate) -> RecallResponse:
        """Schedule a recall for one of the clinic's patients."""
        await PatientService(self.db).get_patient_row(clinic_id, data.patient_id)
        result = await self.db.execute(
            insert(recalls).values(clinic_id=clinic_id, **data.model_dump()).returning(recalls.c.id)
        )
        recall_id = result.scalar_one()
        await self.db.commit()
        logger.info("recall_created", recall_id=str(recall_id), rule_code=data.rule_code)
        return RecallResponse.model_validate(await self._fetch(clinic_id, recall_id))

    async def list_recalls(
        self,
        clinic_id: UUID,
        status: RecallStatus | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
    ) -> list[RecallResponse]:
        """
        Recalls of a clinic ordered by due date.

        Args:
            clinic_id: Clinic to list
            status: Only this status
            due_from: Due on or after
            due_to: Due on or before
        """
        conditions = [recalls.c.clinic_id == clinic_id]
        if status:
            conditions.append(recalls.c.status == status.value)
        if due_from:
            conditions.append(recalls.c.due_on >= due_from)
        if due_to:
            conditions.append(recalls.c.due_on <= due_to)

        result = await self.db.execute(
            select(recalls, patients.c.full_name.label("patient_name"))
            .select_from(recalls.join(patients, patients.c.id == recalls.c.patient_id))
            .where(and_(*conditions))
            .order_by(recalls.c.due_on.asc())
        )
        return [RecallResponse.model_validate(dict(row)) for row in result.mappings()]

    async def _update(self, clinic_id: UUID, recall_id: UUID, **values) -> RecallResponse:
        await self._fetch(clinic_id, recall_id)
        await self.db.execute(
            update(recalls)
            .where(recalls.c.id == recall_id)
            .values(updated_at=datetime.now(UTC), **values)
        )
        await self.db.commit()
        return RecallResponse.model_validate(await self._fetch(clinic_id, recall_id))

    async def update_status(
        self, clinic_id: UUID, recall_id: UUID, status: RecallStatus
    ) -> RecallResponse:
        """Move a recall to a new status."""
        logger.info("recall_status_updated", recall_id=str(recall_id), status=status.value)
        return await self._update(clinic_id, recall_id, status=status.value)

    async def snooze(self, clinic_id: UUID, recall_id: UUID, due_on: date) -> RecallResponse:
        """Push a recall to ``due_on`` and mark it snoozed."""
        return await self._update(
            clinic_id, recall_id, status=RecallStatus.SNOOZED.value, due_on=due_on
        )

    async def list_notifications(
        self,
        clinic_id: UUID,
        recall_id: UUID | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[RecallNotificationResponse]:
        """Queued and sent recall messages of a clinic, newest first."""
        conditions = [recalls.c.clinic_id == clinic_id]
        if recall_id:
            conditions.append(recall_notifications.c.recall_id == recall_id)
        if status:
            conditions.append(recall_notifications.c.status == status)

        result = await self.db.execute(
            select(recall_notifications)
            .select_from(
                recall_notifications.join(recalls, recalls.c.id == recall_notifications.c.recall_id)
            )
            .where(and_(*conditions))
            .order_by(recall_notifications.c.created_at.desc())
            .limit(limit)
        )
        return [RecallNotificationResponse.model_validate(dict(row)) for row in result.mappings()]

    async def sweep(self, today: date | None = None, now: datetime | None = None) -> SweepResponse:
        """
        Queue notifications for recalls coming due.

        Picks pending or snoozed recalls due within the next seven days that
        were not notified in the last seven days, queues one message each and
        marks them notified.
        """
        now = now or datetime.now(UTC)
        today = today or now.astimezone(ZoneInfo(settings.default_timezone)).date()

        result = await self.db.execute(
            select(
                recalls.c.id,
                recalls.c.rule_code,
                recalls.c.due_on,
                recalls.c.last_notified_at,
                patients.c.full_name,
                patients.c.email,
                patients.c.phone,
                patients.c.patient_code,
            )
            .select_from(recalls.join(patients, patients.c.id == recalls.c.patient_id))
            .where(
                recalls.c.status.in_(
                    [RecallStatus.PENDING.value, RecallStatus.SNOOZED.value]
                ),
                recalls.c.due_on >= today,
                recalls.c.due_on <= today + timedelta(days=SWEEP_WINDOW_DAYS),
                or_(
                    recalls.c.last_notified_at.is_(None),
                    recalls.c.last_notified_at <= now - RENOTIFY_AFTER,
                ),
            )
            .order_by(recalls.c.due_on)
        )
        due = result.mappings().all()

        for recall in due:
            channel = pick_channel(recall["email"], recall["phone"])
            await self.db.execute(
                insert(recall_notifications).values(
                    recall_id=recall["id"],
                    channel=channel,
                    status="queued",
                    payload=recall_payload(
                        channel,
                        recall["rule_code"],
                        recall["due_on"],
                        recall["full_name"],
                        recall["email"],
                        recall["phone"],
                        recall["patient_code"],
                    ),
                )
            )
            await self.db.execute(
                update(recalls)
                .where(recalls.c.id == recall["id"])
                .values(status=RecallStatus.NOTIFIED.value, last_notified_at=now, updated_at=now)
            )

        await self.db.commit()
        logger.info("recall_sweep_completed", queued=len(due), today=today.isoformat())
        return SweepResponse(queued=len(due))

    async def _deliver(self, notification: dict) -> None:
        """Send one email notification, recording the outcome on its row."""
        payload = notification["payload"] or {}
        message = plain_email(
            payload.get("subject") or DEFAULT_SUBJECT,
            payload.get("body") or DEFAULT_BODY,
        )
        try:
            await self.email.send(payload["to"], message)
        except DeliveryException as e:
            await self.db.execute(
                update(recall_notifications)
                .where(recall_notifications.c.id == notification["id"])
                .values(status="failed", error=e.message)
            )
            raise
        await self.db.execute(
            update(recall_notifications)
            .where(recall_notifications.c.id == notification["id"])
            .values(status="sent", sent_at=datetime.now(UTC), error=None)
        )

    def _require_email(self) -> None:
        if not self.email.enabled:
            raise DeliveryException("Email sending is not configured (RESEND_API_KEY missing)")

    async def send_queued_email(self, limit: int = SEND_BATCH_LIMIT) -> SendResultResponse:
        """
        Send queued email recall notifications, oldest first.

        Notifications without a destination are marked failed.

        Raises:
            DeliveryException: If email sending is not configured
        """
        self._require_email()
        result = await self.db.execute(
            select(recall_notifications)
            .where(
                recall_notifications.c.channel == "email",
                recall_notifications.c.status == "queued",
            )
            .order_by(recall_notifications.c.created_at)
            .limit(min(limit, SEND_BATCH_LIMIT))
            .with_for_update(skip_locked=True)
        )
        queued = result.mappings().all()

        sent = failed = 0
        for notification in queued:
            if not (notification["payload"] or {}).get("to"):
                await self.db.execute(
                    update(recall_notifications)
                    .where(recall_notifications.c.id == notification["id"])
                    .values(status="failed", error="No destination email")
                )
                failed += 1
                continue
            try:
                await self._deliver(dict(notification))
                sent += 1
            except DeliveryException:
                failed += 1

        await self.db.commit()
        logger.info("recall_emails_sent", sent=sent, failed=failed)
        return SendResultResponse(sent=sent, failed=failed)

    async def resend_one(self, clinic_id: UUID, notification_id: UUID) -> SendResultResponse:
        """
        Send a single recall email again from the dashboard.

        Raises:
            NotFoundException: If the notification is not in the clinic
            BadRequestException: If it is not an email or has no destination
            DeliveryException: If sending is not configured or fails
        """
        result = await self.db.execute(
            select(recall_notifications)
            .select_from(
                recall_notifications.join(recalls, recalls.c.id == recall_notifications.c.recall_id)
            )
            .where(
                recall_notifications.c.id == notification_id,
                recalls.c.clinic_id == clinic_id,
            )
        )
        notification = result.mappings().first()
        if not notification:
            raise NotFoundException("Notification not found")
        if notification["channel"] != "email":
            raise BadRequestException("Only email channel supported")
        if not (notification["payload"] or {}).get("to"):
            raise BadRequestException("No destination email")

        self._require_email()
        try:
            await self._deliver(dict(notification))
        finally:
            await self.db.commit()

        logger.info("recall_email_resent", notification_id=str(notification_id))
        return SendResultResponse(sent=1, failed=0)
