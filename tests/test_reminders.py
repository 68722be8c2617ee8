"""Tests for the WhatsApp reminder queue, recalls and scheduled-job endpoints."""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments
from app.models.notifications import whatsapp_messages
from app.models.patients import patients
from app.models.recalls import recall_notifications, recalls
from app.services.email_service import EmailService
from app.services.recall_service import RecallService
from app.services.whatsapp_service import SendResult, WhatsAppService

pytestmark = pytest.mark.db

# 10:00 on 3 March 2031 in Johannesburg
NOW = datetime(2031, 3, 3, 8, 0, tzinfo=UTC)


class RecordingProvider:
    """Provider double that remembers what it was asked to send."""

    name = "recording"

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent: list[tuple[str, str]] = []

    async def send(self, to: str, body: str) -> SendResult:
        self.sent.append((to, body))
        if self.ok:
            return SendResult(ok=True, provider_message_id=f"wamid.{len(self.sent)}")
        return SendResult(ok=False, error="Recipient not on WhatsApp")


async def add_patient(db: AsyncSession, clinic_id, **values) -> dict:
    data = {"clinic_id": clinic_id, "full_name": "Thandi Nkosi", "patient_code": f"P{uuid4().hex[:6]}"}
    data.update(values)
    result = await db.execute(insert(patients).values(**data).returning(patients))
    row = dict(result.mappings().first())
    await db.commit()
    return row


async def add_appointment(db: AsyncSession, clinic_id, patient_id, starts_at: datetime, **values) -> dict:
    data = {
        "clinic_id": clinic_id,
        "patient_id": patient_id,
        "starts_at": starts_at,
        "ends_at": starts_at + timedelta(minutes=30),
    }
    data.update(values)
    result = await db.execute(insert(appointments).values(**data).returning(appointments))
    row = dict(result.mappings().first())
    await db.commit()
    return row


async def get_appointment(db: AsyncSession, appointment_id) -> dict:
    result = await db.execute(select(appointments).where(appointments.c.id == appointment_id))
    return dict(result.mappings().first())


# ============================================================================
# WhatsApp queue
# ============================================================================


@pytest.mark.asyncio
async def test_queue_reminders_for_tomorrow(db_session: AsyncSession, test_clinic: dict) -> None:
    clinic_id = test_clinic["id"]
    opted_in = await add_patient(
        db_session, clinic_id, whatsapp_opt_in=True, whatsapp_number="+27 82 123 4567"
    )
    opted_out = await add_patient(db_session, clinic_id, full_name="Sipho Dlamini")

    # 09:00 local tomorrow
    tomorrow = await add_appointment(db_session, clinic_id, opted_in["id"], NOW + timedelta(hours=23))
    no_opt_in = await add_appointment(
        db_session, clinic_id, opted_out["id"], NOW + timedelta(hours=24)
    )
    later = await add_appointment(db_session, clinic_id, opted_in["id"], NOW + timedelta(days=2))

    result = await WhatsAppService(db_session, RecordingProvider()).queue_reminders(now=NOW)

    assert (result.queued, result.skipped, result.failed) == (1, 1, 0)
    assert (await get_appointment(db_session, tomorrow["id"]))["reminder_status"] == "sent"
    assert (await get_appointment(db_session, no_opt_in["id"]))["reminder_status"] == "not_scheduled"
    assert (await get_appointment(db_session, later["id"]))["reminder_status"] == "scheduled"

    message = (await db_session.execute(select(whatsapp_messages))).mappings().one()
    assert message["status"] == "queued"
    assert message["template_name"] == "appointment_reminder_24h"
    assert message["message_body"].startswith("Hi Thandi, this is Sunrise Dental.")
    assert "on 2031/03/04 at 09:00" in message["message_body"]

    # A second run does not queue the same appointment again
    again = await WhatsAppService(db_session, RecordingProvider()).queue_reminders(now=NOW)
    assert again.queued == 0


@pytest.mark.asyncio
async def test_send_queued_marks_outcomes(db_session: AsyncSession, test_clinic: dict) -> None:
    await db_session.execute(
        insert(whatsapp_messages),
        [
            {"clinic_id": test_clinic["id"], "to_number": "+27 82 123 4567", "message_body": "Hi"},
            {"clinic_id": test_clinic["id"], "to_number": None, "message_body": "Hi"},
        ],
    )
    await db_session.commit()

    provider = RecordingProvider()
    result = await WhatsAppService(db_session, provider).send_queued(limit=10)

    assert (result.processed, result.sent, result.failed) == (2, 1, 1)
    assert result.provider == "recording"
    assert provider.sent == [("27821234567", "Hi")]

    rows = (await db_session.execute(select(whatsapp_messages))).mappings().all()
    by_status = {row["status"]: row for row in rows}
    assert by_status["sent"]["provider_message_id"] == "wamid.1"
    assert by_status["failed"]["error"] == "Missing to_number or message_body"


@pytest.mark.asyncio
async def test_send_queued_records_provider_errors(db_session: AsyncSession, test_clinic: dict) -> None:
    await db_session.execute(
        insert(whatsapp_messages).values(
            clinic_id=test_clinic["id"], to_number="27821234567", message_body="Hi"
        )
    )
    await db_session.commit()

    result = await WhatsAppService(db_session, RecordingProvider(ok=False)).send_queued()

    assert result.failed == 1
    row = (await db_session.execute(select(whatsapp_messages))).mappings().one()
    assert row["status"] == "failed"
    assert row["error"] == "Recipient not on WhatsApp"


@pytest.mark.asyncio
async def test_daily_run_stops_when_queue_is_empty(db_session: AsyncSession, test_clinic: dict) -> None:
    patient = await add_patient(
        db_session, test_clinic["id"], whatsapp_opt_in=True, whatsapp_number="27821234567"
    )
    await add_appointment(db_session, test_clinic["id"], patient["id"], NOW + timedelta(hours=23))

    result = await WhatsAppService(db_session, RecordingProvider()).daily_run(now=NOW)

    assert result.queued.queued == 1
    assert result.total_sent == 1
    assert result.loops == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply,status,confirmation",
    [
        ("Yes", "confirmed", "confirmed"),
        ("NO thanks", "cancelled", "cancelled"),
        ("cancel", "cancelled", "cancelled"),
    ],
)
async def test_inbound_reply_updates_reminded_appointment(
    db_session: AsyncSession, test_clinic: dict, reply: str, status: str, confirmation: str
) -> None:
    patient = await add_patient(
        db_session, test_clinic["id"], whatsapp_opt_in=True, whatsapp_number="+27 82 123 4567"
    )
    appointment = await add_appointment(
        db_session,
        test_clinic["id"],
        patient["id"],
        NOW + timedelta(hours=23),
        reminder_status="sent",
    )

    result = await WhatsAppService(db_session, RecordingProvider()).handle_inbound(
        "27821234567", reply, provider_message_id="wamid.in", now=NOW
    )

    assert result.action == confirmation
    assert result.appointment_id == appointment["id"]
    updated = await get_appointment(db_session, appointment["id"])
    assert updated["status"] == status
    assert updated["confirmation_status"] == confirmation
    assert (updated["cancelled_at"] is not None) == (status == "cancelled")

    inbound = (await db_session.execute(select(whatsapp_messages))).mappings().one()
    assert inbound["direction"] == "inbound"
    assert inbound["status"] == "received"
    assert inbound["appointment_id"] == appointment["id"]


@pytest.mark.asyncio
async def test_inbound_unrecognised_reply_is_only_recorded(
    db_session: AsyncSession, test_clinic: dict
) -> None:
    result = await WhatsAppService(db_session, RecordingProvider()).handle_inbound(
        "27829999999", "What time is it?", now=NOW
    )
    assert result.action == "recorded"
    assert result.appointment_id is None
    inbound = (await db_session.execute(select(whatsapp_messages))).mappings().one()
    assert inbound["clinic_id"] is None


@pytest.mark.asyncio
async def test_cron_endpoints_require_secret(
    client: AsyncClient, cron_headers: dict, test_clinic: dict
) -> None:
    assert (await client.post("/api/v1/whatsapp/queue-reminders")).status_code == 401
    assert (
        await client.post("/api/v1/whatsapp/queue-reminders", params={"key": "wrong"})
    ).status_code == 401

    response = await client.post("/api/v1/whatsapp/queue-reminders", headers=cron_headers)
    assert response.status_code == 200
    assert response.json()["ok"] is True


@pytest.mark.asyncio
async def test_messages_listed_for_clinic(
    client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_clinic: dict
) -> None:
    await db_session.execute(
        insert(whatsapp_messages).values(
            clinic_id=test_clinic["id"], to_number="27821234567", message_body="Hi"
        )
    )
    await db_session.execute(insert(whatsapp_messages).values(to_number="27820000000", message_body="x"))
    await db_session.commit()

    response = await client.get("/api/v1/whatsapp/messages", headers=auth_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_stats_counts_backlog_and_today(db_session: AsyncSession, test_clinic: dict) -> None:
    base = {"clinic_id": test_clinic["id"], "to_number": "27821234567", "message_body": "Hi"}
    earlier_today = NOW - timedelta(hours=1)
    yesterday = NOW - timedelta(days=1)
    await db_session.execute(
        insert(whatsapp_messages),
        [
            {**base, "status": "queued", "updated_at": yesterday},
            {**base, "status": "queued", "updated_at": earlier_today},
            {**base, "status": "sent", "updated_at": earlier_today},
            {**base, "status": "sent", "updated_at": yesterday},
            {**base, "status": "failed", "updated_at": earlier_today},
            {**base, "status": "failed", "updated_at": yesterday},
        ],
    )
    await db_session.commit()

    stats = await WhatsAppService(db_session, RecordingProvider()).stats(now=NOW)

    assert (stats.queued_total, stats.sent_today, stats.failed_today) == (2, 1, 1)


@pytest.mark.asyncio
async def test_stats_endpoint(client: AsyncClient, test_clinic: dict, monkeypatch) -> None:
    from app.config import settings

    monkeypatch.setattr(settings, "stats_secret", None)
    response = await client.get("/api/v1/whatsapp/stats")
    assert response.status_code == 200
    assert response.json()["queued_total"] == 0


# ============================================================================
# Recalls
# ============================================================================


@pytest.mark.asyncio
async def test_recall_sweep_queues_due_recalls(db_session: AsyncSession, test_clinic: dict) -> None:
    today = date(2031, 3, 3)
    emailable = await add_patient(db_session, test_clinic["id"], email="thandi@example.com")
    phone_only = await add_patient(db_session, test_clinic["id"], full_name="Sipho", phone="0821234567")

    await db_session.execute(
        insert(recalls),
        [
            {"clinic_id": test_clinic["id"], "patient_id": emailable["id"], "rule_code": "check-up", "due_on": today + timedelta(days=3)},
            {"clinic_id": test_clinic["id"], "patient_id": phone_only["id"], "rule_code": "cleaning", "due_on": today + timedelta(days=7)},
            {"clinic_id": test_clinic["id"], "patient_id": emailable["id"], "rule_code": "x-ray", "due_on": today + timedelta(days=8)},
            {"clinic_id": test_clinic["id"], "patient_id": emailable["id"], "rule_code": "done", "due_on": today, "status": "completed"},
        ],
    )
    await db_session.commit()

    result = await RecallService(db_session, EmailService(api_key="")).sweep(today=today, now=NOW)
    assert result.queued == 2

    notifications = (await db_session.execute(select(recall_notifications))).mappings().all()
    assert sorted(n["channel"] for n in notifications) == ["email", "sms"]

    statuses = {
        row["rule_code"]: row["status"]
        for row in (await db_session.execute(select(recalls))).mappings()
    }
    assert statuses == {"check-up": "notified", "cleaning": "notified", "x-ray": "pending", "done": "completed"}

    # Notified recalls are not picked up again
    assert (await RecallService(db_session).sweep(today=today, now=NOW)).queued == 0


@pytest.mark.asyncio
async def test_send_queued_recall_emails(db_session: AsyncSession, test_clinic: dict) -> None:
    patient = await add_patient(db_session, test_clinic["id"], email="thandi@example.com")
    recall_id = (
        await db_session.execute(
            insert(recalls)
            .values(clinic_id=test_clinic["id"], patient_id=patient["id"], rule_code="check-up", due_on=date(2031, 3, 5))
            .returning(recalls.c.id)
        )
    ).scalar_one()
    await db_session.execute(
        insert(recall_notifications),
        [
            {"recall_id": recall_id, "channel": "email", "payload": {"to": "thandi@example.com", "subject": "Hi", "body": "Book"}},
            {"recall_id": recall_id, "channel": "email", "payload": {"subject": "Hi"}},
        ],
    )
    await db_session.commit()

    with patch("resend.Emails.send", return_value={"id": "email_1"}) as send:
        result = await RecallService(db_session, EmailService(api_key="re_test")).send_queued_email()

    assert (result.sent, result.failed) == (1, 1)
    assert send.call_count == 1
    rows = (await db_session.execute(select(recall_notifications))).mappings().all()
    errors = {row["status"]: row["error"] for row in rows}
    assert errors == {"sent": None, "failed": "No destination email"}


@pytest.mark.asyncio
async def test_recall_email_send_needs_api_key(
    client: AsyncClient, cron_headers: dict, test_clinic: dict, monkeypatch
) -> None:
    from app.config import settings

    monkeypatch.setattr(settings, "resend_api_key", None)
    response = await client.post("/api/v1/recalls/send-queued", headers=cron_headers)
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_recall_crud_and_snooze(
    client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_clinic: dict
) -> None:
    patient = await add_patient(db_session, test_clinic["id"])
    created = await client.post(
        "/api/v1/recalls/",
        json={"patient_id": str(patient["id"]), "rule_code": "6-month check-up", "due_on": "2031-06-01"},
        headers=auth_headers,
    )
    assert created.status_code == 201
    recall = created.json()
    assert recall["status"] == "pending"
    assert recall["patient_name"] == "Thandi Nkosi"

    snoozed = await client.post(
        f"/api/v1/recalls/{recall['id']}/snooze", json={"due_on": "2031-07-01"}, headers=auth_headers
    )
    assert snoozed.json()["status"] == "snoozed"
    assert snoozed.json()["due_on"] == "2031-07-01"

    done = await client.patch(
        f"/api/v1/recalls/{recall['id']}/status", json={"status": "completed"}, headers=auth_headers
    )
    assert done.json()["status"] == "completed"

    listed = await client.get("/api/v1/recalls/", params={"status": "completed"}, headers=auth_headers)
    assert [r["id"] for r in listed.json()] == [recall["id"]]


async def add_recall_notification(db: AsyncSession, clinic_id, **values) -> dict:
    patient = await add_patient(db, clinic_id, email="thandi@example.com")
    recall_id = (
        await db.execute(
            insert(recalls)
            .values(clinic_id=clinic_id, patient_id=patient["id"], rule_code="check-up", due_on=date(2031, 3, 5))
            .returning(recalls.c.id)
        )
    ).scalar_one()
    data = {"recall_id": recall_id, "channel": "email", "payload": {"to": "thandi@example.com"}}
    data.update(values)
    result = await db.execute(
        insert(recall_notifications).values(**data).returning(recall_notifications)
    )
    row = dict(result.mappings().first())
    await db.commit()
    return row


@pytest.mark.asyncio
async def test_resend_one_recall_email(
    client: AsyncClient,
    db_session: AsyncSession,
    auth_headers: dict,
    test_clinic: dict,
    monkeypatch,
) -> None:
    from app.config import settings

    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    notification = await add_recall_notification(db_session, test_clinic["id"], status="failed")

    with patch("resend.Emails.send", return_value={"id": "email_2"}) as send:
        response = await client.post(
            f"/api/v1/recalls/notifications/{notification['id']}/resend", headers=auth_headers
        )

    assert response.status_code == 200
    assert response.json()["sent"] == 1
    assert send.call_args.args[0]["to"] == ["thandi@example.com"]
    row = (
        await db_session.execute(
            select(recall_notifications).where(recall_notifications.c.id == notification["id"])
        )
    ).mappings().one()
    assert row["status"] == "sent"
    assert row["sent_at"] is not None


@pytest.mark.asyncio
async def test_resend_one_rejects_sms_and_unknown_ids(
    client: AsyncClient, db_session: AsyncSession, auth_headers: dict, test_clinic: dict
) -> None:
    sms = await add_recall_notification(
        db_session, test_clinic["id"], channel="sms", payload={"to": "0821234567"}
    )

    wrong_channel = await client.post(
        f"/api/v1/recalls/notifications/{sms['id']}/resend", headers=auth_headers
    )
    assert wrong_channel.status_code == 400
    assert wrong_channel.json()["message"] == "Only email channel supported"

    missing = await client.post(
        f"/api/v1/recalls/notifications/{uuid4()}/resend", headers=auth_headers
    )
    assert missing.status_code == 404


# ============================================================================
# Leads
# ============================================================================


@pytest.mark.asyncio
async def test_create_lead(client: AsyncClient, auth_headers: dict, monkeypatch) -> None:
    from app.config import settings

    response = await client.post(
        "/api/v1/leads",
        json={"clinic_name": "Bay Physio", "email": "owner@bay.example.com", "practitioners": 3},
    )
    assert response.status_code == 201
    assert response.json()["source"] == "website"

    monkeypatch.setattr(settings, "platform_secret", "operator-key")

    # A clinic admin token does not expose other businesses' enquiries
    as_clinic_admin = await client.get("/api/v1/leads", headers=auth_headers)
    assert as_clinic_admin.status_code == 401

    listed = await client.get("/api/v1/leads", headers={"X-Platform-Secret": "operator-key"})
    assert listed.status_code == 200
    assert listed.json()[0]["clinic_name"] == "Bay Physio"
