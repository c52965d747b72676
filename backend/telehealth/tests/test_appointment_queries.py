from __future__ import annotations

from datetime import timedelta
from typing import Dict

import pytest
from sqlmodel import Session

from telehealth.core.clock import utcnow
from telehealth.models import User
from telehealth.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from telehealth.schemas import AppointmentCreate, AppointmentStatusUpdate, SlotCreate
from telehealth.services import (
    ForbiddenError,
    InvalidRangeError,
    InvalidStatusError,
    cancel_appointment,
    create_for_patient,
    create_slot,
    get_all,
    get_appointment,
    get_by_date_range,
    get_cancelled,
    get_past,
    get_upcoming,
    list_appointments,
    list_statuses,
    update_status,
)
from telehealth.services.auth import get_user_by_username
from telehealth.services.reminders import InMemoryReminderQueue


@pytest.fixture
def booked(session: Session, users: Dict[str, User], reminder_queue: InMemoryReminderQueue) -> Dict[str, int]:
    doctor = users["doctor"]
    today = utcnow().replace(hour=9, minute=0, second=0, microsecond=0)

    def book(patient: User, days: int) -> int:
        start = today + timedelta(days=days)
        slot = create_slot(
            session,
            doctor_id=doctor.id,
            role=ROLE_DOCTOR,
            data=SlotCreate(start_at=start, end_at=start + timedelta(minutes=30)),
        )
        view = create_for_patient(
            session,
            patient_id=patient.id,
            data=AppointmentCreate(doctor_id=doctor.id, slot_id=slot.id, modality="hybrid"),
        )
        return view.id

    ids = {
        "past": book(users["patient"], -2),
        "soon": book(users["patient"], 1),
        "later": book(users["patient"], 2),
        "dropped": book(users["other_patient"], 3),
    }
    update_status(
        session,
        appointment_id=ids["past"],
        actor_id=doctor.id,
        role=ROLE_DOCTOR,
        data=AppointmentStatusUpdate(status="COMPLETED"),
    )
    update_status(
        session,
        appointment_id=ids["later"],
        actor_id=doctor.id,
        role=ROLE_DOCTOR,
        data=AppointmentStatusUpdate(status="CONFIRMED"),
    )
    cancel_appointment(
        session,
        appointment_id=ids["dropped"],
        actor_id=users["other_patient"].id,
        role=ROLE_PATIENT,
        cancel_reason="travelling",
    )
    return ids


def test_upcoming_lists_pending_and_confirmed_in_order(
    session: Session, users: Dict[str, User], booked: Dict[str, int]
) -> None:
    patient = users["patient"]
    upcoming = get_upcoming(session, actor_id=patient.id, role=ROLE_PATIENT)
    assert [view.id for view in upcoming] == [booked["soon"], booked["later"]]
    assert [view.status for view in upcoming] == ["PENDING", "CONFIRMED"]
    assert upcoming[0].modality == "hybrid"
    assert upcoming[0].scheduled_at.tzinfo is not None

    limited = get_upcoming(session, actor_id=users["doctor"].id, role=ROLE_DOCTOR, limit=1)
    assert [view.id for view in limited] == [booked["soon"]]

    assert get_upcoming(session, actor_id=users["other_patient"].id, role=ROLE_PATIENT) == []
    assert get_upcoming(session, actor_id=users["other_doctor"].id, role=ROLE_DOCTOR) == []


def test_past_and_cancelled_views(session: Session, users: Dict[str, User], booked: Dict[str, int]) -> None:
    past = get_past(session, actor_id=users["patient"].id, role=ROLE_PATIENT)
    assert [view.id for view in past] == [booked["past"]]
    assert past[0].status == "COMPLETED"

    cancelled = get_cancelled(session, actor_id=users["other_patient"].id, role=ROLE_PATIENT)
    assert [view.id for view in cancelled] == [booked["dropped"]]
    assert cancelled[0].cancel_reason == "travelling"
    assert cancelled[0].cancelled_by.name == "Edsger Dijkstra"

    assert get_cancelled(session, actor_id=users["patient"].id, role=ROLE_PATIENT) == []
    assert len(get_cancelled(session, actor_id=users["doctor"].id, role=ROLE_DOCTOR)) == 1


def test_get_all_paginates_with_ordering(session: Session, users: Dict[str, User], booked: Dict[str, int]) -> None:
    admin = get_user_by_username(session, "admin")

    first_page = get_all(session, actor_id=admin.id, role=ROLE_ADMIN, page=1, limit=3)
    assert first_page.total == 4
    assert first_page.total_pages == 2
    assert first_page.page_size == 3
    assert [view.id for view in first_page.items] == [booked["dropped"], booked["later"], booked["soon"]]

    second_page = get_all(session, actor_id=admin.id, role=ROLE_ADMIN, page=2, limit=3)
    assert [view.id for view in second_page.items] == [booked["past"]]

    ascending = get_all(session, actor_id=admin.id, role=ROLE_ADMIN, order="asc")
    assert ascending.items[0].id == booked["past"]

    own = get_all(session, actor_id=users["patient"].id, role=ROLE_PATIENT)
    assert own.total == 3
    assert own.total_pages == 1


def test_date_range_is_half_open(session: Session, users: Dict[str, User], booked: Dict[str, int]) -> None:
    patient = users["patient"]
    soon = get_appointment(session, appointment_id=booked["soon"], actor_id=patient.id, role=ROLE_PATIENT)
    later = get_appointment(session, appointment_id=booked["later"], actor_id=patient.id, role=ROLE_PATIENT)

    window = get_by_date_range(
        session,
        actor_id=patient.id,
        role=ROLE_PATIENT,
        start_from=soon.scheduled_at,
        end_to=later.scheduled_at,
    )
    assert [view.id for view in window] == [booked["soon"]]

    with pytest.raises(InvalidRangeError):
        get_by_date_range(
            session,
            actor_id=patient.id,
            role=ROLE_PATIENT,
            start_from=later.scheduled_at,
            end_to=soon.scheduled_at,
        )


def test_list_filters_cannot_widen_ownership(
    session: Session, users: Dict[str, User], booked: Dict[str, int]
) -> None:
    doctor = users["doctor"]
    other_patient = users["other_patient"]

    confirmed = list_appointments(session, actor_id=doctor.id, role=ROLE_DOCTOR, status="CONFIRMED")
    assert [view.id for view in confirmed] == [booked["later"]]

    everything = list_appointments(session, actor_id=doctor.id, role=ROLE_DOCTOR)
    assert [view.id for view in everything] == [
        booked["dropped"],
        booked["later"],
        booked["soon"],
        booked["past"],
    ]

    assert (
        list_appointments(session, actor_id=users["patient"].id, role=ROLE_PATIENT, patient_id=other_patient.id)
        == []
    )
    admin = get_user_by_username(session, "admin")
    theirs = list_appointments(session, actor_id=admin.id, role=ROLE_ADMIN, patient_id=other_patient.id)
    assert [view.id for view in theirs] == [booked["dropped"]]


def test_unknown_status_filter_is_a_client_error(
    session: Session, users: Dict[str, User], booked: Dict[str, int]
) -> None:
    with pytest.raises(InvalidStatusError) as excinfo:
        list_appointments(session, actor_id=users["doctor"].id, role=ROLE_DOCTOR, status="BOGUS")
    assert excinfo.value.code == "INVALID_STATUS"
    assert "BOGUS" in excinfo.value.message


def test_reads_require_a_known_role_and_participation(
    session: Session, users: Dict[str, User], booked: Dict[str, int]
) -> None:
    with pytest.raises(ForbiddenError):
        get_upcoming(session, actor_id=users["patient"].id, role="RECEPTIONIST")
    with pytest.raises(ForbiddenError):
        get_appointment(session, appointment_id=booked["soon"], actor_id=users["other_doctor"].id, role=ROLE_DOCTOR)

    detail = get_appointment(session, appointment_id=booked["soon"], actor_id=users["doctor"].id, role=ROLE_DOCTOR)
    assert detail.patient.email == "ada@example.com"
    assert [entry.status for entry in detail.status_history] == ["PENDING"]


def test_list_statuses_returns_seeded_codes(session: Session) -> None:
    codes = [status.code for status in list_statuses(session)]

    assert set(codes) == {"PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "RESCHEDULED", "NO_SHOW"}
