"""Tests for appointment endpoints."""

from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient

BASE = "/api/v1/appointments/"


def booking(patient_id: UUID, start: str = "09:00", end: str = "10:00", **extra) -> dict:
    return {
        "patient_id": str(patient_id),
        "day": "2026-03-02",
        "start_time": start,
        "end_time": end,
        **extra,
    }


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_detailed_health_reports_redis_disabled(client: AsyncClient) -> None:
    """Test Redis shows as disabled when no server is configured."""
    response = await client.get("/api/v1/health/detailed")
    assert response.status_code == 200
    assert response.json()["redis"] == "disabled"


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient) -> None:
    """Test appointment endpoints reject anonymous callers."""
    response = await client.get(BASE)
    assert response.status_code == 401

    response = await client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_appointment(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
    tenant_id: UUID,
) -> None:
    """Test booking an appointment."""
    response = await client.post(
        BASE,
        json=booking(patient, modality="virtual", notes="First visit"),
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["modality"] == "virtual"
    assert data["tenant_id"] == str(tenant_id)
    assert data["patient"]["full_name"] == "Ana García"
    assert data["rescheduled_to_id"] is None
    assert data["payment_count"] == 0
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_create_rejects_inverted_times(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
) -> None:
    """Test the end time must be after the start time."""
    response = await client.post(
        BASE,
        json=booking(patient, start="10:00", end="09:00"),
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_create_rejects_unknown_modality(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
) -> None:
    """Test only known modalities are accepted."""
    response = await client.post(
        BASE,
        json=booking(patient, modality="telepathy"),
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_conflict_returns_details(
    client: AsyncClient,
    auth_headers: dict,
    make_patient,
) -> None:
    """Test a double booking is reported with the conflicting patient."""
    ana = await make_patient("Ana García")
    luis = await make_patient("Luis Pérez")

    first = await client.post(BASE, json=booking(ana), headers=auth_headers)
    response = await client.post(
        BASE,
        json=booking(luis, start="09:30", end="10:30"),
        headers=auth_headers,
    )

    assert response.status_code == 409
    data = response.json()
    assert data["error"] == "SlotConflictException"
    assert "Ana García" in data["message"]
    assert data["details"]["conflicting_appointment_id"] == first.json()["id"]
    assert data["details"]["conflicting_patient_name"] == "Ana García"


@pytest.mark.asyncio
async def test_create_for_unknown_patient(
    client: AsyncClient,
    auth_headers: dict,
) -> None:
    """Test booking for a patient outside the directory."""
    response = await client.post(BASE, json=booking(uuid4()), headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_appointments(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
) -> None:
    """Test listing appointments."""
    await client.post(BASE, json=booking(patient), headers=auth_headers)
    await client.post(BASE, json=booking(patient, start="11:00", end="12:00"), headers=auth_headers)

    response = await client.get(BASE, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["items"][0]["start_time"] == "11:00:00"

    response = await client.get(BASE, params={"status": "cancelled"}, headers=auth_headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_get_appointment_from_other_tenant(
    client: AsyncClient,
    auth_headers: dict,
    other_tenant_headers: dict,
    patient: UUID,
) -> None:
    """Test appointments are invisible outside their organization."""
    created = await client.post(BASE, json=booking(patient), headers=auth_headers)
    appointment_id = created.json()["id"]

    response = await client.get(f"{BASE}{appointment_id}", headers=other_tenant_headers)
    assert response.status_code == 404

    response = await client.get(f"{BASE}{appointment_id}", headers=auth_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_reschedule_and_delete_successor(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
) -> None:
    """Test the reschedule round trip through the API."""
    created = await client.post(BASE, json=booking(patient), headers=auth_headers)
    appointment_id = created.json()["id"]

    response = await client.put(
        f"{BASE}{appointment_id}",
        json={
            "status": "rescheduled",
            "new_day": "2026-03-03",
            "new_start_time": "14:00",
            "new_end_time": "15:00",
        },
        headers=auth_headers,
    )
    assert response.status_code == 200
    original = response.json()
    assert original["status"] == "rescheduled"
    successor_id = original["rescheduled_to_id"]
    assert original["rescheduled_to"]["day"] == "2026-03-03"

    successor = (await client.get(f"{BASE}{successor_id}", headers=auth_headers)).json()
    assert successor["status"] == "confirmed"
    assert successor["rescheduled_from_id"] == appointment_id

    response = await client.delete(f"{BASE}{successor_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "restored_appointment_id": appointment_id}

    restored = (await client.get(f"{BASE}{appointment_id}", headers=auth_headers)).json()
    assert restored["status"] == "confirmed"
    assert restored["rescheduled_to_id"] is None


@pytest.mark.asyncio
async def test_reschedule_requires_target_slot(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
) -> None:
    """Test a reschedule without the full target slot is rejected."""
    created = await client.post(BASE, json=booking(patient), headers=auth_headers)

    response = await client.put(
        f"{BASE}{created.json()['id']}",
        json={"status": "rescheduled", "new_day": "2026-03-03"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_invalid_transition_returns_conflict(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
) -> None:
    """Test completed appointments cannot be cancelled."""
    created = await client.post(BASE, json=booking(patient), headers=auth_headers)
    url = f"{BASE}{created.json()['id']}"

    await client.put(url, json={"status": "completed"}, headers=auth_headers)
    response = await client.put(url, json={"status": "cancelled"}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransitionException"


@pytest.mark.asyncio
async def test_delete_with_payment_is_rejected(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
    add_payment,
) -> None:
    """Test deletion is blocked for appointments with payments."""
    created = await client.post(BASE, json=booking(patient), headers=auth_headers)
    appointment_id = created.json()["id"]
    await add_payment(UUID(appointment_id))

    response = await client.delete(f"{BASE}{appointment_id}", headers=auth_headers)
    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "GuardedDeletionException"
    assert data["details"] == {"payment_count": 1}

    response = await client.put(
        f"{BASE}{appointment_id}", json={"status": "cancelled"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_billable_endpoint(
    client: AsyncClient,
    auth_headers: dict,
    patient: UUID,
    add_payment,
) -> None:
    """Test billable appointments leave out paid ones."""
    unpaid = await client.post(BASE, json=booking(patient), headers=auth_headers)
    paid = await client.post(
        BASE, json=booking(patient, start="11:00", end="12:00"), headers=auth_headers
    )
    await add_payment(UUID(paid.json()["id"]))

    response = await client.get(f"{BASE}billable", headers=auth_headers)
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [unpaid.json()["id"]]
