"""Tests for doctor profile and availability endpoints."""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from pydantic import ValidationError

from medislot.schemas.doctors import AvailabilityEntry

BASE = "/api/v1/doctors"


def next_monday() -> date:
    candidate = date.today() + timedelta(days=7)
    return candidate + timedelta(days=-candidate.weekday() % 7)


@pytest.fixture
def doctor_payload() -> dict:
    return {
        "license_number": "MH-2024-55501",
        "specialization": "Dermatology",
        "qualification": "MBBS, MD",
        "experience_years": 6,
        "consultation_fee": "350.00",
        "clinic_name": "Skin First",
        "clinic_city": "Mumbai",
        "clinic_phone": "9123456780",
        "availability": [
            {"day_of_week": "tuesday", "start_time": "9:00", "end_time": "12:00"},
        ],
    }


# ============================================================================
# Available slots
# ============================================================================


@pytest.mark.asyncio
async def test_available_slots_full_day(client: AsyncClient, doctor: dict) -> None:
    monday = next_monday()

    response = await client.get(
        f"{BASE}/{doctor['id']}/available-slots", params={"date": monday.isoformat()}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["day_of_week"] == "monday"
    assert data["date"] == monday.isoformat()
    assert len(data["available_slots"]) == 16
    assert data["available_slots"][0] == "09:00"
    assert data["available_slots"][-1] == "16:30"
    assert data["availability"]["start_time"] == "09:00"


@pytest.mark.asyncio
async def test_available_slots_exclude_active_bookings(
    client: AsyncClient,
    doctor: dict,
    patient_headers: dict,
    booking_payload,
) -> None:
    monday = next_monday()
    booked = await client.post(
        "/api/v1/appointments/",
        json=booking_payload("10:00", monday),
        headers=patient_headers,
    )
    assert booked.status_code == 201

    response = await client.get(
        f"{BASE}/{doctor['id']}/available-slots", params={"date": monday.isoformat()}
    )
    slots = response.json()["available_slots"]
    assert len(slots) == 15
    assert "10:00" not in slots

    await client.put(
        f"/api/v1/appointments/{booked.json()['id']}/cancel",
        json={"cancellation_reason": "Travelling"},
        headers=patient_headers,
    )

    response = await client.get(
        f"{BASE}/{doctor['id']}/available-slots", params={"date": monday.isoformat()}
    )
    assert "10:00" in response.json()["available_slots"]


@pytest.mark.asyncio
async def test_available_slots_day_off(client: AsyncClient, doctor: dict) -> None:
    tuesday = next_monday() + timedelta(days=1)

    response = await client.get(
        f"{BASE}/{doctor['id']}/available-slots", params={"date": tuesday.isoformat()}
    )
    assert response.status_code == 200
    assert response.json()["available_slots"] == []
    assert response.json()["availability"] is None


@pytest.mark.asyncio
async def test_available_slots_errors(client: AsyncClient, doctor: dict) -> None:
    missing = await client.get(
        f"{BASE}/00000000-0000-0000-0000-000000000009/available-slots",
        params={"date": next_monday().isoformat()},
    )
    assert missing.status_code == 404

    no_date = await client.get(f"{BASE}/{doctor['id']}/available-slots")
    assert no_date.status_code == 422


# ============================================================================
# Profiles
# ============================================================================


@pytest.mark.asyncio
async def test_get_doctor(client: AsyncClient, doctor: dict, doctor_user: dict) -> None:
    response = await client.get(f"{BASE}/{doctor['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["full_name"] == doctor_user["full_name"]
    assert data["consultation_fee"] == 500.0
    assert data["rating_average"] == 0
    assert data["rating_count"] == 0


@pytest.mark.asyncio
async def test_create_doctor_profile(
    client: AsyncClient,
    new_doctor_user: dict,
    new_doctor_headers: dict,
    doctor_payload: dict,
) -> None:
    response = await client.post(f"{BASE}/", json=doctor_payload, headers=new_doctor_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == str(new_doctor_user["id"])
    assert data["is_verified"] is False
    assert data["is_active"] is True
    assert data["availability"][0]["start_time"] == "09:00"

    again = await client.post(f"{BASE}/", json=doctor_payload, headers=new_doctor_headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_create_doctor_profile_rules(
    client: AsyncClient,
    doctor: dict,
    patient_headers: dict,
    new_doctor_headers: dict,
    doctor_payload: dict,
) -> None:
    as_patient = await client.post(f"{BASE}/", json=doctor_payload, headers=patient_headers)
    assert as_patient.status_code == 403

    duplicate_license = dict(doctor_payload, license_number=doctor["license_number"])
    response = await client.post(f"{BASE}/", json=duplicate_license, headers=new_doctor_headers)
    assert response.status_code == 409

    no_availability = dict(doctor_payload, availability=[])
    response = await client.post(f"{BASE}/", json=no_availability, headers=new_doctor_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_only_bookable_doctors(
    client: AsyncClient,
    doctor: dict,
    new_doctor_headers: dict,
    doctor_payload: dict,
) -> None:
    await client.post(f"{BASE}/", json=doctor_payload, headers=new_doctor_headers)

    response = await client.get(f"{BASE}/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(doctor["id"])

    filtered = await client.get(f"{BASE}/", params={"specialization": "cardio"})
    assert filtered.json()["total"] == 1

    other_city = await client.get(f"{BASE}/", params={"city": "Nagpur"})
    assert other_city.json()["total"] == 0

    specializations = await client.get(f"{BASE}/specializations")
    assert specializations.json() == ["Cardiology"]


@pytest.mark.asyncio
async def test_update_doctor_profile(
    client: AsyncClient,
    doctor: dict,
    doctor_headers: dict,
    patient_headers: dict,
    admin_headers: dict,
) -> None:
    url = f"{BASE}/{doctor['id']}"

    own = await client.put(url, json={"consultation_fee": "650.00"}, headers=doctor_headers)
    assert own.status_code == 200
    assert own.json()["consultation_fee"] == 650.0

    self_verify = await client.put(url, json={"is_verified": False}, headers=doctor_headers)
    assert self_verify.status_code == 403

    stranger = await client.put(url, json={"bio": "Not mine"}, headers=patient_headers)
    assert stranger.status_code == 403

    unknown_field = await client.put(url, json={"rating_average": 5}, headers=admin_headers)
    assert unknown_field.status_code == 422

    suspended = await client.put(url, json={"is_active": False}, headers=admin_headers)
    assert suspended.status_code == 200
    assert suspended.json()["is_active"] is False

    listing = await client.get(f"{BASE}/")
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_fee_change_does_not_touch_existing_bookings(
    client: AsyncClient,
    doctor: dict,
    doctor_headers: dict,
    patient_headers: dict,
    booking_payload,
) -> None:
    booked = await client.post(
        "/api/v1/appointments/", json=booking_payload(), headers=patient_headers
    )
    await client.put(
        f"{BASE}/{doctor['id']}", json={"consultation_fee": "900.00"}, headers=doctor_headers
    )

    appointment = await client.get(
        f"/api/v1/appointments/{booked.json()['id']}", headers=patient_headers
    )
    assert appointment.json()["consultation_fee"] == 500.0


@pytest.mark.asyncio
async def test_delete_doctor_guarded_by_open_appointments(
    client: AsyncClient,
    doctor: dict,
    doctor_headers: dict,
    patient_headers: dict,
    admin_headers: dict,
    booking_payload,
) -> None:
    url = f"{BASE}/{doctor['id']}"
    booked = await client.post(
        "/api/v1/appointments/", json=booking_payload(), headers=patient_headers
    )

    not_admin = await client.delete(url, headers=doctor_headers)
    assert not_admin.status_code == 403

    blocked = await client.delete(url, headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.json()["message"] == (
        "Cannot delete doctor with pending or confirmed appointments"
    )

    await client.put(
        f"/api/v1/appointments/{booked.json()['id']}/cancel", json={}, headers=patient_headers
    )

    deleted = await client.delete(url, headers=admin_headers)
    assert deleted.status_code == 204

    assert (await client.get(url)).status_code == 404


@pytest.mark.asyncio
async def test_doctor_appointments_listing(
    client: AsyncClient,
    doctor: dict,
    doctor_headers: dict,
    patient_headers: dict,
    admin_headers: dict,
    booking_payload,
) -> None:
    await client.post("/api/v1/appointments/", json=booking_payload(), headers=patient_headers)
    url = f"{BASE}/{doctor['id']}/appointments"

    own = await client.get(url, headers=doctor_headers)
    assert own.status_code == 200
    assert own.json()["total"] == 1

    assert (await client.get(url, headers=admin_headers)).json()["total"] == 1
    assert (await client.get(url, headers=patient_headers)).status_code == 403


# ============================================================================
# Schemas
# ============================================================================


def test_availability_entry_normalizes_times():
    entry = AvailabilityEntry(day_of_week="monday", start_time="9:00", end_time="17:30")

    assert entry.start_time == "09:00"
    assert entry.end_time == "17:30"
    assert entry.is_available is True


def test_availability_entry_rejects_inverted_window():
    with pytest.raises(ValidationError):
        AvailabilityEntry(day_of_week="monday", start_time="17:00", end_time="09:00")


def test_disabled_availability_entry_skips_window_check():
    entry = AvailabilityEntry(
        day_of_week="sunday", start_time="17:00", end_time="09:00", is_available=False
    )
    assert entry.is_available is False


@pytest.mark.asyncio
async def test_storage_failure_maps_to_503(client: AsyncClient) -> None:
    """Infrastructure errors are reported apart from domain errors."""
    from unittest.mock import AsyncMock

    from sqlalchemy.exc import OperationalError

    from medislot.database import get_db
    from medislot.main import app

    broken_session = AsyncMock()
    broken_session.execute.side_effect = OperationalError(
        "SELECT 1", {}, Exception("connection lost")
    )

    async def override_get_db():
        yield broken_session

    app.dependency_overrides[get_db] = override_get_db

    response = await client.get(f"{BASE}/")
    assert response.status_code == 503
    assert response.json()["code"] == "INFRASTRUCTURE_ERROR"
