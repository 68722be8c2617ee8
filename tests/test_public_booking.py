"""Tests for the public booking widget endpoints."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments
from app.models.clinics import blackout_dates
from app.models.patients import patients

pytestmark = pytest.mark.db

BASE = "/api/v1/public/clinics"


def clinic_day(offset_days: int) -> str:
    """A local date in the test clinic's timezone."""
    today = datetime.now(ZoneInfo("Africa/Johannesburg")).date()
    return (today + timedelta(days=offset_days)).isoformat()


def booking_payload(**overrides) -> dict:
    payload = {
        "name": "Thandi Nkosi",
        "email": "thandi@example.com",
        "phone": "082 123 4567",
        "date": clinic_day(7),
        "time": "10:00",
        "notes": "Sensitive tooth",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_public_clinic_profile(client: AsyncClient, test_clinic: dict) -> None:
    response = await client.get(f"{BASE}/sunrise-dental")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Sunrise Dental"
    assert data["timezone"] == "Africa/Johannesburg"
    assert "id" not in data


@pytest.mark.asyncio
async def test_unknown_clinic_is_404(client: AsyncClient, test_clinic: dict) -> None:
    response = await client.get(f"{BASE}/no-such-clinic/slots", params={"date": clinic_day(1)})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_slots(client: AsyncClient, test_clinic: dict) -> None:
    response = await client.get(f"{BASE}/sunrise-dental/slots", params={"date": clinic_day(7)})
    assert response.status_code == 200
    data = response.json()
    assert data["slot_minutes"] == 30
    labels = [slot["time"] for slot in data["slots"]]
    # 08:00-17:00 in 30 minute steps
    assert labels[0] == "08:00"
    assert labels[-1] == "16:30"
    assert len(labels) == 18


@pytest.mark.asyncio
async def test_list_slots_rejects_bad_date(client: AsyncClient, test_clinic: dict) -> None:
    response = await client.get(f"{BASE}/sunrise-dental/slots", params={"date": "next tuesday"})
    assert response.status_code == 400
    assert "YYYY-MM-DD" in response.json()["message"]


@pytest.mark.asyncio
async def test_book_creates_patient_and_appointment(
    client: AsyncClient, db_session: AsyncSession, test_clinic: dict
) -> None:
    response = await client.post(f"{BASE}/sunrise-dental/book", json=booking_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["ok"] is True
    assert data["id"] is not None

    row = (
        await db_session.execute(select(appointments).where(appointments.c.id == data["id"]))
    ).mappings().first()
    assert row["status"] == "booked"
    assert row["source"] == "public"
    assert row["ends_at"] - row["starts_at"] == timedelta(minutes=30)
    assert row["starts_at"].astimezone(ZoneInfo("Africa/Johannesburg")).strftime("%H:%M") == "10:00"

    patient = (
        await db_session.execute(select(patients).where(patients.c.id == row["patient_id"]))
    ).mappings().first()
    assert patient["email"] == "thandi@example.com"
    assert patient["patient_code"] == "ThandiN"

    # The booked slot disappears from the widget
    slots = await client.get(f"{BASE}/sunrise-dental/slots", params={"date": clinic_day(7)})
    assert "10:00" not in [slot["time"] for slot in slots.json()["slots"]]


@pytest.mark.asyncio
async def test_book_reuses_patient_by_email(
    client: AsyncClient, db_session: AsyncSession, test_clinic: dict
) -> None:
    first = await client.post(f"{BASE}/sunrise-dental/book", json=booking_payload())
    second = await client.post(
        f"{BASE}/sunrise-dental/book",
        json=booking_payload(time="11:00", email="THANDI@example.com"),
    )
    assert first.status_code == 201
    assert second.status_code == 201

    rows = (await db_session.execute(select(patients))).mappings().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_double_booking_is_409(client: AsyncClient, test_clinic: dict) -> None:
    first = await client.post(f"{BASE}/sunrise-dental/book", json=booking_payload())
    assert first.status_code == 201

    second = await client.post(
        f"{BASE}/sunrise-dental/book",
        json=booking_payload(name="Sipho Dlamini", email="sipho@example.com"),
    )
    assert second.status_code == 409
    assert second.json()["message"] == "Time slot already booked. Pick another."


@pytest.mark.asyncio
async def test_honeypot_pretends_success(
    client: AsyncClient, db_session: AsyncSession, test_clinic: dict
) -> None:
    response = await client.post(
        f"{BASE}/sunrise-dental/book",
        json=booking_payload(website="http://spam.example.com"),
    )
    assert response.status_code == 201
    assert response.json()["id"] is None
    assert (await db_session.execute(select(appointments))).first() is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"email": "", "time": ""}, "Missing required fields: email, time"),
        ({"time": "07:00"}, "Selected time is outside clinic hours"),
        ({"time": "10:10"}, "Selected time is outside clinic hours"),
        ({"date": clinic_day(-1)}, "Selected time is in the past"),
    ],
)
async def test_book_rejects_invalid_requests(
    client: AsyncClient, test_clinic: dict, overrides: dict, message: str
) -> None:
    response = await client.post(f"{BASE}/sunrise-dental/book", json=booking_payload(**overrides))
    assert response.status_code == 400
    assert response.json()["message"] == message


@pytest.mark.asyncio
async def test_book_rejects_invalid_email(client: AsyncClient, test_clinic: dict) -> None:
    response = await client.post(
        f"{BASE}/sunrise-dental/book", json=booking_payload(email="not-an-email")
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_book_rejects_blackout_date(
    client: AsyncClient, db_session: AsyncSession, test_clinic: dict
) -> None:
    day = datetime.fromisoformat(clinic_day(7)).date()
    await db_session.execute(
        insert(blackout_dates).values(clinic_id=test_clinic["id"], date=day, reason="Public holiday")
    )
    await db_session.commit()

    response = await client.post(f"{BASE}/sunrise-dental/book", json=booking_payload())
    assert response.status_code == 400
    assert response.json()["message"] == "The clinic is closed on this date"

    slots = await client.get(f"{BASE}/sunrise-dental/slots", params={"date": clinic_day(7)})
    assert slots.json()["slots"] == []


@pytest.mark.asyncio
async def test_public_endpoints_are_rate_limited(
    client: AsyncClient, mock_redis: MagicMock, test_clinic: dict
) -> None:
    mock_redis.incr.return_value = 10_000
    response = await client.get(f"{BASE}/sunrise-dental")
    assert response.status_code == 429
