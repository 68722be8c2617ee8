"""Tests for dashboard appointment endpoints."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.db

BASE = "/api/v1/appointments"


def at(hours: float) -> str:
    """An ISO timestamp ``hours`` after a fixed future instant."""
    start = datetime(2031, 3, 3, 8, 0, tzinfo=UTC)
    return (start + timedelta(hours=hours)).isoformat()


@pytest.fixture
async def patient(client: AsyncClient, auth_headers: dict) -> dict:
    response = await client.post(
        "/api/v1/patients/",
        json={"full_name": "Thandi Nkosi", "email": "thandi@example.com", "phone": "0821234567"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_appointment(client: AsyncClient, auth_headers: dict, patient: dict) -> None:
    """Test creating an appointment; the end defaults to one slot."""
    response = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(1), "title": "Check-up"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Check-up"
    assert data["status"] == "booked"
    assert data["ui_status"] == "scheduled"
    assert data["status_label"] == "Scheduled"
    assert data["reminder_status"] == "scheduled"
    assert data["confirmation_status"] == "unconfirmed"
    assert data["source"] == "dashboard"
    assert data["patient_name"] == "Thandi Nkosi"
    assert datetime.fromisoformat(data["ends_at"]) - datetime.fromisoformat(
        data["starts_at"]
    ) == timedelta(minutes=30)


@pytest.mark.asyncio
async def test_create_appointment_requires_auth(client: AsyncClient, test_clinic: dict) -> None:
    response = await client.get(f"{BASE}/")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_overlapping_appointment_is_409(
    client: AsyncClient, auth_headers: dict, patient: dict
) -> None:
    first = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(1), "ends_at": at(2)},
        headers=auth_headers,
    )
    assert first.status_code == 201

    overlap = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(1.5)},
        headers=auth_headers,
    )
    assert overlap.status_code == 409

    # Back-to-back is fine
    adjacent = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(2)},
        headers=auth_headers,
    )
    assert adjacent.status_code == 201


@pytest.mark.asyncio
async def test_cancelled_appointment_frees_the_slot(
    client: AsyncClient, auth_headers: dict, patient: dict
) -> None:
    created = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(3)}, headers=auth_headers
    )
    appointment_id = created.json()["id"]

    cancelled = await client.patch(
        f"{BASE}/{appointment_id}/status", json={"status": "cancelled"}, headers=auth_headers
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancelled_at"] is not None

    rebooked = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(3)}, headers=auth_headers
    )
    assert rebooked.status_code == 201

    # Reactivating the cancelled one would now double-book
    reactivate = await client.patch(
        f"{BASE}/{appointment_id}/status", json={"status": "scheduled"}, headers=auth_headers
    )
    assert reactivate.status_code == 409


@pytest.mark.asyncio
async def test_confirmation_updates_status(
    client: AsyncClient, auth_headers: dict, patient: dict
) -> None:
    created = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(4)}, headers=auth_headers
    )
    appointment_id = created.json()["id"]

    confirmed = await client.patch(
        f"{BASE}/{appointment_id}/status",
        json={"confirmation_status": "confirmed"},
        headers=auth_headers,
    )
    assert confirmed.json()["confirmation_status"] == "confirmed"
    assert confirmed.json()["status"] == "confirmed"

    declined = await client.patch(
        f"{BASE}/{appointment_id}/status",
        json={"confirmation_status": "cancelled"},
        headers=auth_headers,
    )
    assert declined.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_status_update_requires_a_change(
    client: AsyncClient, auth_headers: dict, patient: dict
) -> None:
    created = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(5)}, headers=auth_headers
    )
    response = await client.patch(
        f"{BASE}/{created.json()['id']}/status", json={}, headers=auth_headers
    )
    assert response.status_code == 400

    invalid = await client.patch(
        f"{BASE}/{created.json()['id']}/status", json={"status": "teleported"}, headers=auth_headers
    )
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_reschedule_keeps_duration_and_checks_conflicts(
    client: AsyncClient, auth_headers: dict, patient: dict
) -> None:
    blocker = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(6), "ends_at": at(7)},
        headers=auth_headers,
    )
    assert blocker.status_code == 201
    moving = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(0), "ends_at": at(1)},
        headers=auth_headers,
    )
    moving_id = moving.json()["id"]

    clash = await client.put(f"{BASE}/{moving_id}", json={"starts_at": at(6.5)}, headers=auth_headers)
    assert clash.status_code == 409

    moved = await client.put(f"{BASE}/{moving_id}", json={"starts_at": at(8)}, headers=auth_headers)
    assert moved.status_code == 200
    data = moved.json()
    assert datetime.fromisoformat(data["ends_at"]) == datetime.fromisoformat(at(9))

    # Moving within its own time does not conflict with itself
    nudged = await client.put(f"{BASE}/{moving_id}", json={"starts_at": at(8.5)}, headers=auth_headers)
    assert nudged.status_code == 200


@pytest.mark.asyncio
async def test_list_and_day_view(client: AsyncClient, auth_headers: dict, patient: dict) -> None:
    for hours in (2, 0, 1):
        response = await client.post(
            f"{BASE}/",
            json={"patient_id": patient["id"], "starts_at": at(hours)},
            headers=auth_headers,
        )
        assert response.status_code == 201

    listed = await client.get(f"{BASE}/", headers=auth_headers)
    assert listed.status_code == 200
    data = listed.json()
    assert data["total"] == 3
    starts = [item["starts_at"] for item in data["items"]]
    assert starts == sorted(starts)

    # 08:00 UTC is 10:00 in Johannesburg, same local day
    day = await client.get(f"{BASE}/day", params={"date": "2031-03-03"}, headers=auth_headers)
    assert day.status_code == 200
    assert len(day.json()) == 3

    empty = await client.get(f"{BASE}/day", params={"date": "2031-03-04"}, headers=auth_headers)
    assert empty.json() == []


@pytest.mark.asyncio
async def test_soft_and_hard_delete(client: AsyncClient, auth_headers: dict, patient: dict) -> None:
    created = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(1)}, headers=auth_headers
    )
    appointment_id = created.json()["id"]

    response = await client.delete(f"{BASE}/{appointment_id}", headers=auth_headers)
    assert response.status_code == 204
    assert (await client.get(f"{BASE}/{appointment_id}", headers=auth_headers)).status_code == 404

    # The soft-deleted appointment no longer blocks its slot
    again = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(1)}, headers=auth_headers
    )
    assert again.status_code == 201

    hard = await client.delete(
        f"{BASE}/{again.json()['id']}", params={"hard_delete": True}, headers=auth_headers
    )
    assert hard.status_code == 204


@pytest.mark.asyncio
async def test_patient_with_appointments_cannot_be_deleted(
    client: AsyncClient, auth_headers: dict, patient: dict
) -> None:
    await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(1)}, headers=auth_headers
    )
    response = await client.delete(f"/api/v1/patients/{patient['id']}", headers=auth_headers)
    assert response.status_code == 409

    history = await client.get(f"/api/v1/patients/{patient['id']}/appointments", headers=auth_headers)
    assert len(history.json()) == 1


@pytest.mark.asyncio
async def test_email_reminder_without_api_key(
    client: AsyncClient, auth_headers: dict, patient: dict, monkeypatch
) -> None:
    from app.config import settings

    monkeypatch.setattr(settings, "resend_api_key", None)
    created = await client.post(
        f"{BASE}/", json={"patient_id": patient["id"], "starts_at": at(1)}, headers=auth_headers
    )
    response = await client.post(f"{BASE}/{created.json()['id']}/remind", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True, "email_ok": False}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"title": None}, {"starts_at": None}, {"ends_at": None}])
async def test_update_rejects_null_for_required_fields(
    client: AsyncClient, auth_headers: dict, patient: dict, body: dict
) -> None:
    created = await client.post(
        f"{BASE}/",
        json={"patient_id": patient["id"], "starts_at": at(3), "title": "Cleaning"},
        headers=auth_headers,
    )
    appointment_id = created.json()["id"]

    response = await client.put(f"{BASE}/{appointment_id}", json=body, headers=auth_headers)
    assert response.status_code == 422

    unchanged = await client.get(f"{BASE}/{appointment_id}", headers=auth_headers)
    assert unchanged.json()["title"] == "Cleaning"
    assert unchanged.json()["starts_at"] == created.json()["starts_at"]
