"""WhatsApp appointment reminders: queueing, sending and patient replies."""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

import httpx
import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.appointments import appointments
from app.models.clinics import clinics
from app.models.notifications import whatsapp_messages
from app.models.patients import patients
from app.schemas.notifications import (
    DailyRunResponse,
    InboundResult,
    QueueRemindersResponse,
    SendQueuedResponse,
    WhatsAppStatsResponse,
)

logger = structlog.get_logger(__name__)

REMINDER_TEMPLATE = "appointment_reminder_24h"
MAX_SEND_LIMIT = 100
DEFAULT_SEND_LIMIT = 25

CONFIRM_WORDS = frozenset({"YES", "Y", "CONFIRM"})
CANCEL_WORDS = frozenset({"NO", "N", "CANCEL"})


def normalize_number(number: str | None) -> str:
    """Digits only, the form the Cloud API expects (e.g. 27821234567)."""
    if not number:
        return ""
    return re.sub(r"\D", "", str(number))


def first_name(full_name: str | None) -> str:
    """First word of a name, or ``there`` for a friendly fallback."""
    parts = (full_name or "").split()
    return parts[0] if parts else "there"


def reminder_message(full_name: str | None, clinic_name: str | None, starts_at_local: datetime) -> str:
    """Text of the day-before reminder."""
    return (
        f"Hi {first_name(full_name)}, this is {clinic_name or 'the clinic'}.\n"
        f"Reminder: Your appointment is on {starts_at_local:%Y/%m/%d} at {starts_at_local:%H:%M}.\n"
        "Reply YES to confirm or NO to cancel."
    )


def parse_reply(body: str | None) -> str | None:
    """Map a patient's reply to ``confirmed``/``cancelled``, or None."""
    match = re.match(r"[A-Za-z]+", (body or "").strip())
    if not match:
        return None
    word = match.group(0).upper()
    if word in CONFIRM_WORDS:
        return "confirmed"
    if word in CANCEL_WORDS:
        return "cancelled"
    return None


@dataclass
class SendResult:
    """Outcome of a provider send."""

    ok: bool
    provider_message_id: str | None = None
    error: str | None = None


class WhatsAppProvider(Protocol):
    """Something that can deliver a text message."""

    name: str

    async def send(self, to: str, body: str) -> SendResult:
        """Deliver one message."""
        ...


class StubProvider:
    """Logs instead of sending; used until a real provider is configured."""

    name = "stub"

    async def send(self, to: str, body: str) -> SendResult:
        """Pretend to deliver and hand back a synthetic id."""
        logger.info("whatsapp_stub_send", to=to, length=len(body))
        return SendResult(ok=True, provider_message_id=f"stub_{int(datetime.now(UTC).timestamp() * 1000)}")


class MetaProvider:
    """WhatsApp Cloud API (graph.facebook.com)."""

    name = "meta"

    def __init__(
        self,
        token: str | None = None,
        phone_number_id: str | None = None,
        graph_version: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize with explicit credentials or fall back to settings."""
        self.token = token or settings.whatsapp_meta_token
        self.phone_number_id = phone_number_id or settings.whatsapp_meta_phone_number_id
        self.graph_version = graph_version or settings.whatsapp_graph_version
        self.transport = transport

    @property
    def url(self) -> str:
        """Messages endpoint for the configured phone number."""
        return f"https://graph.facebook.com/{self.graph_version}/{self.phone_number_id}/messages"

    async def send(self, to: str, body: str) -> SendResult:
        """
        Post a text message.

        Args:
            to: Recipient number, digits only
            body: Message text

        Returns:
            Send result; HTTP and API errors are reported, not raised
        """
        if not self.token or not self.phone_number_id:
            return SendResult(
                ok=False,
                error="Meta provider selected but WHATSAPP_META_TOKEN or "
                "WHATSAPP_META_PHONE_NUMBER_ID missing",
            )

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        }
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
                response = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {self.token}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error("whatsapp_meta_http_error", error=str(e))
            return SendResult(ok=False, error=str(e))

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            error = (data.get("error") or {}).get("message") or f"Meta send failed ({response.status_code})"
            logger.error("whatsapp_meta_rejected", status_code=response.status_code, error=error)
            return SendResult(ok=False, error=error)

        messages = data.get("messages") or [{}]
        return SendResult(ok=True, provider_message_id=messages[0].get("id"))


def get_provider(name: str | None = None) -> WhatsAppProvider:
    """Provider selected by name (``meta`` or anything else for the stub)."""
    if (name or settings.whatsapp_provider).lower() == "meta":
        return MetaProvider()
    return StubProvider()


class WhatsAppService:
    """Service for the WhatsApp reminder queue."""

    def __init__(self, db: AsyncSession, provider: WhatsAppProvider | None = None):
        """Initialize service with database session and delivery provider."""
        self.db = db
        self.provider = provider or get_provider()

    async def queue_reminders(self, now: datetime | None = None) -> QueueRemindersResponse:
        """
        Queue reminders for appointments starting on the reminder day.

        The reminder day is ``REMINDER_LEAD_DAYS`` after today, evaluated in each
        clinic's own timezone. Patients without WhatsApp opt-in or a number are
        marked ``not_scheduled``.

        Returns:
            Counts of queued, skipped and failed appointments
        """
        now = now or datetime.now(UTC)
        lead = settings.reminder_lead_days

        # Wide UTC window, narrowed per clinic timezone below
        stmt = (
            select(
                appointments.c.id,
                appointments.c.clinic_id,
                appointments.c.patient_id,
                appointments.c.starts_at,
                patients.c.full_name,
                patients.c.whatsapp_opt_in,
                patients.c.whatsapp_number,
                clinics.c.name.label("clinic_name"),
                clinics.c.timezone,
            )
            .select_from(
                appointments.join(patients, patients.c.id == appointments.c.patient_id).join(
                    clinics, clinics.c.id == appointments.c.clinic_id
                )
            )
            .where(
                and_(
                    appointments.c.starts_at >= now - timedelta(days=1),
                    appointments.c.starts_at < now + timedelta(days=lead + 2),
                    appointments.c.reminder_status == "scheduled",
                    appointments.c.confirmation_status == "unconfirmed",
                    appointments.c.status != "cancelled",
                    appointments.c.deleted_at.is_(None),
                )
            )
            .order_by(appointments.c.starts_at)
        )
        rows = (await self.db.execute(stmt)).mappings().all()

        queued = skipped = failed = 0
        for row in rows:
            tz = ZoneInfo(row["timezone"])
            local_start = row["starts_at"].astimezone(tz)
            if local_start.date() != now.astimezone(tz).date() + timedelta(days=lead):
                continue

            if not row["whatsapp_opt_in"] or not row["whatsapp_number"]:
                await self._set_reminder_status(row["id"], "not_scheduled")
                skipped += 1
                continue

            try:
                async with self.db.begin_nested():
                    await self.db.execute(
                        insert(whatsapp_messages).values(
                            clinic_id=row["clinic_id"],
                            patient_id=row["patient_id"],
                            appointment_id=row["id"],
                            direction="outbound",
                            channel="whatsapp",
                            provider=self.provider.name,
                            to_number=row["whatsapp_number"],
                            template_name=REMINDER_TEMPLATE,
                            message_body=reminder_message(
                                row["full_name"], row["clinic_name"], local_start
                            ),
                            status="queued",
                        )
                    )
            except SQLAlchemyError as e:
                logger.error("whatsapp_queue_insert_failed", appointment_id=str(row["id"]), error=str(e))
                await self._set_reminder_status(row["id"], "failed")
                failed += 1
                continue

            await self._set_reminder_status(row["id"], "sent")
            queued += 1

        await self.db.commit()
        logger.info("whatsapp_reminders_queued", queued=queued, skipped=skipped, failed=failed)
        return QueueRemindersResponse(queued=queued, skipped=skipped, failed=failed)

    async def _set_reminder_status(self, appointment_id: UUID, reminder_status: str) -> None:
        await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(reminder_status=reminder_status, updated_at=datetime.now(UTC))
        )

    async def _mark_message(self, message_id: UUID, **values) -> None:
        await self.db.execute(
            update(whatsapp_messages)
            .where(whatsapp_messages.c.id == message_id)
            .values(updated_at=datetime.now(UTC), **values)
        )

    async def send_queued(self, limit: int = DEFAULT_SEND_LIMIT) -> SendQueuedResponse:
        """
        Send the oldest queued outbound messages.

        Args:
            limit: Batch size, capped at 100

        Returns:
            Provider name and processed/sent/failed counts
        """
        limit = max(1, min(limit or DEFAULT_SEND_LIMIT, MAX_SEND_LIMIT))
        result = await self.db.execute(
            select(whatsapp_messages.c.id, whatsapp_messages.c.to_number, whatsapp_messages.c.message_body)
            .where(
                whatsapp_messages.c.status == "queued",
                whatsapp_messages.c.direction == "outbound",
            )
            .order_by(whatsapp_messages.c.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        messages = result.mappings().all()

        sent = failed = 0
        for message in messages:
            to = normalize_number(message["to_number"])
            body = (message["message_body"] or "").strip()

            if not to or not body:
                await self._mark_message(
                    message["id"], status="failed", error="Missing to_number or message_body"
                )
                failed += 1
                continue

            outcome = await self.provider.send(to, body)
            if outcome.ok:
                await self._mark_message(
                    message["id"],
                    status="sent",
                    provider=self.provider.name,
                    provider_message_id=outcome.provider_message_id,
                    error=None,
                )
                sent += 1
            else:
                await self._mark_message(
                    message["id"],
                    status="failed",
                    provider=self.provider.name,
                    error=outcome.error or "Send failed",
                )
                failed += 1

        await self.db.commit()
        logger.info(
            "whatsapp_batch_sent",
            provider=self.provider.name,
            processed=len(messages),
            sent=sent,
            failed=failed,
        )
        return SendQueuedResponse(
            provider=self.provider.name,
            processed=len(messages),
            sent=sent,
            failed=failed,
        )

    async def daily_run(self, now: datetime | None = None) -> DailyRunResponse:
        """Queue reminders, then send in batches until a batch sends nothing."""
        queued = await self.queue_reminders(now)

        total_sent = total_failed = loops = 0
        while loops < settings.whatsapp_max_batches:
            batch = await self.send_queued(settings.whatsapp_send_batch_size)
            loops += 1
            total_sent += batch.sent
            total_failed += batch.failed
            if batch.sent == 0:
                break

        return DailyRunResponse(
            queued=queued,
            total_sent=total_sent,
            total_failed=total_failed,
            loops=loops,
        )

    async def stats(self, now: datetime | None = None) -> WhatsAppStatsResponse:
        """Queued backlog plus today's sent and failed counts."""
        now = now or datetime.now(UTC)
        tz = ZoneInfo(settings.default_timezone)
        today_start = datetime.combine(now.astimezone(tz).date(), time.min, tzinfo=tz)

        def count(*conditions):
            return select(func.count()).select_from(whatsapp_messages).where(*conditions)

        queued_total = (await self.db.execute(count(whatsapp_messages.c.status == "queued"))).scalar() or 0
        sent_today = (
            await self.db.execute(
                count(whatsapp_messages.c.status == "sent", whatsapp_messages.c.updated_at >= today_start)
            )
        ).scalar() or 0
        failed_today = (
            await self.db.execute(
                count(whatsapp_messages.c.status == "failed", whatsapp_messages.c.updated_at >= today_start)
            )
        ).scalar() or 0

        return WhatsAppStatsResponse(
            queued_total=queued_total,
            sent_today=sent_today,
            failed_today=failed_today,
        )

    async def handle_inbound(
        self,
        from_number: str,
        body: str,
        provider_message_id: str | None = None,
        now: datetime | None = None,
    ) -> InboundResult:
        """
        Record a patient's reply and act on YES/NO.

        The reply applies to the patient's nearest upcoming appointment whose
        reminder went out. Anything else is stored and left for staff.
        """
        now = now or datetime.now(UTC)
        digits = normalize_number(from_number)

        matches = []
        if digits:
            result = await self.db.execute(
                select(patients.c.id, patients.c.clinic_id)
                .where(func.regexp_replace(patients.c.whatsapp_number, r"\D", "", "g") == digits)
                .order_by(patients.c.created_at)
            )
            matches = result.mappings().all()

        appointment = None
        if matches:
            result = await self.db.execute(
                select(appointments)
                .where(
                    appointments.c.patient_id.in_([m["id"] for m in matches]),
                    appointments.c.starts_at >= now,
                    appointments.c.reminder_status == "sent",
                    appointments.c.status != "cancelled",
                    appointments.c.deleted_at.is_(None),
                )
                .order_by(appointments.c.starts_at.asc())
                .limit(1)
            )
            appointment = result.mappings().first()

        owner = {"clinic_id": None, "patient_id": None, "appointment_id": None}
        if appointment:
            owner.update(
                clinic_id=appointment["clinic_id"],
                patient_id=appointment["patient_id"],
                appointment_id=appointment["id"],
            )
        elif matches:
            owner.update(clinic_id=matches[0]["clinic_id"], patient_id=matches[0]["id"])

        await self.db.execute(
            insert(whatsapp_messages).values(
                **owner,
                direction="inbound",
                channel="whatsapp",
                provider=self.provider.name,
                from_number=digits or from_number,
                message_body=body,
                status="received",
                provider_message_id=provider_message_id,
            )
        )

        action = parse_reply(body)
        if action is None or appointment is None:
            await self.db.commit()
            logger.info("whatsapp_inbound_recorded", matched_patient=bool(matches))
            return InboundResult(action="recorded")

        values = {"confirmation_status": action, "updated_at": now}
        if action == "cancelled":
            values.update(status="cancelled", cancelled_at=now)
        elif appointment["status"] == "booked":
            values["status"] = "confirmed"

        await self.db.execute(
            update(appointments).where(appointments.c.id == appointment["id"]).values(**values)
        )
        await self.db.commit()

        logger.info("whatsapp_reply_applied", appointment_id=str(appointment["id"]), action=action)
        return InboundResult(action=action, appointment_id=appointment["id"])

    async def list_messages(
        self,
        clinic_id: UUID,
        status: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Recent WhatsApp traffic of a clinic, newest first."""
        conditions = [whatsapp_messages.c.clinic_id == clinic_id]
        if status:
            conditions.append(whatsapp_messages.c.status == status)
        result = await self.db.execute(
            select(whatsapp_messages)
            .where(and_(*conditions))
            .order_by(whatsapp_messages.c.created_at.desc())
            .limit(limit)
        )
        return [dict(row) for row in result.mappings().all()]
