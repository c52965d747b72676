from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Dict, List

import pytest
from sqlmodel import Session

from telehealth.core.clock import utcnow
from telehealth.models import User
from telehealth.models.user import ROLE_DOCTOR, ROLE_PATIENT
from telehealth.schemas import AppointmentCreate, SlotCreate
from telehealth.services import cancel_appointment, create_for_patient, create_slot, delete_appointment
from telehealth.services.notifications import (
    NotificationBackend,
    NotificationMessage,
    reset_notification_backend,
    set_notification_backend,
)
from telehealth.services.reminders import REMINDER_FUNCTION, InMemoryReminderQueue
from telehealth.worker import WorkerSettings, send_appointment_reminder


class RecordingBackend(NotificationBackend):
    def __init__(self) -> None:
        self.sent: List[NotificationMessage] = []

    def send_email(self, *, to: str, subject: str, body: str) -> NotificationMessage:  # type: ignore[override]
        message = super().send_email(to=to, subject=subject, body=body)
        self.sent.append(message)
        return message

    def send_sms(self, *, to: str, body: str) -> NotificationMessage:  # type: ignore[override]
        message = super().send_sms(to=to, body=body)
        self.sent.append(message)
        return message


@pytest.fixture
def notification_backend() -> RecordingBackend:
    backend = RecordingBackend()
    set_notification_backend(backend)
    yield backend
    reset_notification_backend()


@pytest.fixture
def appointment_id(session: Session, users: Dict[str, User], reminder_queue: InMemoryReminderQueue) -> int:
    start = (utcnow() + timedelta(days=2)).replace(second=0, microsecond=0)
    slot = create_slot(
        session,
        doctor_id=users["doctor"].id,
        role=ROLE_DOCTOR,
        data=SlotCreate(start_at=start, end_at=start + timedelta(minutes=20)),
    )
    view = create_for_patient(
        session,
        patient_id=users["patient"].id,
        data=AppointmentCreate(doctor_id=users["doctor"].id, slot_id=slot.id),
    )
    return view.id


def test_worker_registers_reminder_function() -> None:
    assert [function.__name__ for function in WorkerSettings.functions] == [REMINDER_FUNCTION]
    assert WorkerSettings.queue_name == "arq:reminders"


def test_reminder_is_sent_to_patient(appointment_id: int, notification_backend: RecordingBackend) -> None:
    sent = asyncio.run(send_appointment_reminder({}, appointment_id, "reminder-24h"))

    assert sent == 2
    email, sms = notification_backend.sent
    assert email.recipient == "ada@example.com"
    assert "Grace Hopper" in email.body
    assert "tomorrow" in email.body
    assert "20 min" in email.body
    assert sms.recipient == "+358401234567"


def test_reminder_skipped_for_cancelled_appointment(
    session: Session,
    users: Dict[str, User],
    appointment_id: int,
    notification_backend: RecordingBackend,
) -> None:
    cancel_appointment(session, appointment_id=appointment_id, actor_id=users["patient"].id, role=ROLE_PATIENT)

    assert asyncio.run(send_appointment_reminder({}, appointment_id, "reminder-1h")) == 0
    assert notification_backend.sent == []


def test_reminder_skipped_for_deleted_appointment(
    session: Session,
    users: Dict[str, User],
    appointment_id: int,
    notification_backend: RecordingBackend,
) -> None:
    delete_appointment(session, appointment_id=appointment_id, actor_id=users["doctor"].id, role=ROLE_DOCTOR)

    assert asyncio.run(send_appointment_reminder({}, appointment_id, "reminder-1h")) == 0
    assert notification_backend.sent == []
