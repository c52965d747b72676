from __future__ import annotations

from typing import Dict

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient
from sqlmodel import Session

from telehealth.api.deps import get_reminder_queue
from telehealth.main import app
from telehealth.models import User
from telehealth.services.reminders import InMemoryReminderQueue

from conftest import PASSWORDS


def _login(client: TestClient, username: str, password: str) -> Dict[str, str]:
    response = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def availability_context(session: Session, users: Dict[str, User]) -> Dict[str, object]:
    app.dependency_overrides[get_reminder_queue] = InMemoryReminderQueue
    context: Dict[str, object] = {"doctor_id": users["doctor"].id}
    with TestClient(app) as client:
        context["client"] = client
        context["doctor"] = _login(client, "doctor", PASSWORDS["doctor"])
        context["other_doctor"] = _login(client, "other_doctor", PASSWORDS["other_doctor"])
        context["patient"] = _login(client, "patient", PASSWORDS["patient"])
        yield context
    app.dependency_overrides.clear()


def test_doctor_manages_own_availability(availability_context: Dict[str, object]) -> None:
    client: TestClient = availability_context["client"]  # type: ignore[assignment]
    doctor = availability_context["doctor"]

    created = client.post(
        "/api/v1/doctors/me/availability",
        json={"start_at": "2025-01-10T16:00:00+02:00", "end_at": "2025-01-10T16:30:00+02:00"},
        headers=doctor,
    )
    assert created.status_code == 201
    assert created.json()["doctor_id"] == availability_context["doctor_id"]
    assert created.json()["start_at"].startswith("2025-01-10T14:00:00")

    overlap = client.post(
        "/api/v1/doctors/me/availability",
        json={"start_at": "2025-01-10T14:15:00Z", "end_at": "2025-01-10T14:45:00Z"},
        headers=doctor,
    )
    assert overlap.status_code == 400
    assert overlap.json()["detail"] == {"code": "SLOT_OVERLAP", "message": "Overlapping slot exists"}

    adjacent = client.post(
        "/api/v1/doctors/me/availability",
        json={"start_at": "2025-01-10T14:30:00Z", "end_at": "2025-01-10T15:00:00Z"},
        headers=doctor,
    )
    assert adjacent.status_code == 201

    listed = client.get(
        f"/api/v1/doctors/{availability_context['doctor_id']}/availability",
        headers=availability_context["patient"],
    )
    assert [slot["id"] for slot in listed.json()] == [created.json()["id"], adjacent.json()["id"]]


def test_only_doctors_open_slots(availability_context: Dict[str, object]) -> None:
    client: TestClient = availability_context["client"]  # type: ignore[assignment]

    response = client.post(
        "/api/v1/doctors/me/availability",
        json={"start_at": "2025-01-10T14:00:00Z", "end_at": "2025-01-10T14:30:00Z"},
        headers=availability_context["patient"],
    )
    assert response.status_code == 403

    inverted = client.post(
        "/api/v1/doctors/me/availability",
        json={"start_at": "2025-01-10T14:30:00Z", "end_at": "2025-01-10T14:00:00Z"},
        headers=availability_context["doctor"],
    )
    assert inverted.status_code == 400
    assert inverted.json()["detail"]["code"] == "INVALID_RANGE"


def test_delete_slot_endpoint(availability_context: Dict[str, object]) -> None:
    client: TestClient = availability_context["client"]  # type: ignore[assignment]
    doctor = availability_context["doctor"]
    slot_id = client.post(
        "/api/v1/doctors/me/availability",
        json={"start_at": "2025-01-10T14:00:00Z", "end_at": "2025-01-10T14:30:00Z"},
        headers=doctor,
    ).json()["id"]

    booked = client.post(
        "/api/v1/appointments",
        json={"doctor_id": availability_context["doctor_id"], "slot_id": slot_id},
        headers=availability_context["patient"],
    )
    assert booked.status_code == 201

    busy = client.delete(f"/api/v1/availability/{slot_id}", headers=doctor)
    assert busy.status_code == 400
    assert busy.json()["detail"]["code"] == "SLOT_HAS_APPOINTMENTS"

    not_owner = client.delete(f"/api/v1/availability/{slot_id}", headers=availability_context["other_doctor"])
    assert not_owner.status_code == 403

    cancelled = client.patch(
        f"/api/v1/appointments/{booked.json()['id']}/cancel",
        headers=availability_context["patient"],
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["cancel_reason"] == "No reason provided"

    removed = client.delete(f"/api/v1/availability/{slot_id}", headers=doctor)
    assert removed.status_code == 200
    assert client.delete(f"/api/v1/availability/{slot_id}", headers=doctor).status_code == 404
