from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func
from sqlmodel import Session, select

from telehealth.core.clock import as_utc, utcnow
from telehealth.models import Appointment, AppointmentStatus, AppointmentStatusHistory, AvailabilitySlot, User
from telehealth.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_NO_SHOW,
    STATUS_PENDING,
)
from telehealth.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from telehealth.schemas.appointment import (
    AppointmentRead,
    AppointmentStatusRead,
    AppointmentView,
    Participant,
    SlotRef,
)
from telehealth.schemas.common import Pagination
from telehealth.services.errors import (
    AppointmentNotFoundError,
    ForbiddenError,
    InvalidRangeError,
    InvalidStatusError,
    UnknownStatusError,
)
from telehealth.services.lifecycle import authorize_participant
from telehealth.services.statuses import StatusRegistry, get_status_registry

Row = Tuple[Appointment, str]


def _ownership_filters(*, actor_id: int, role: Optional[str]) -> list:
    if role == ROLE_PATIENT:
        return [Appointment.patient_id == actor_id]
    if role == ROLE_DOCTOR:
        return [Appointment.doctor_id == actor_id]
    if role == ROLE_ADMIN:
        return []
    raise ForbiddenError


def _base_statement():
    return select(Appointment, AppointmentStatus.code).join(
        AppointmentStatus, AppointmentStatus.id == Appointment.status_id
    )


def _participant(user: Optional[User]) -> Optional[Participant]:
    if user is None:
        return None
    return Participant(id=user.id, name=user.full_name or user.username, email=user.email)


def format_appointments(session: Session, rows: Sequence[Row]) -> List[AppointmentView]:
    """Flatten appointments with their doctor, patient, canceller and slot."""
    if not rows:
        return []

    user_ids = set()
    slot_ids = set()
    for appointment, _ in rows:
        user_ids.update({appointment.doctor_id, appointment.patient_id})
        if appointment.cancelled_by_user_id is not None:
            user_ids.add(appointment.cancelled_by_user_id)
        if appointment.slot_id is not None:
            slot_ids.add(appointment.slot_id)

    users: Dict[int, User] = {
        user.id: user for user in session.exec(select(User).where(User.id.in_(user_ids))).all()
    }
    slots: Dict[int, AvailabilitySlot] = {}
    if slot_ids:
        slots = {
            slot.id: slot
            for slot in session.exec(select(AvailabilitySlot).where(AvailabilitySlot.id.in_(slot_ids))).all()
        }

    views: List[AppointmentView] = []
    for appointment, status_code in rows:
        slot = slots.get(appointment.slot_id) if appointment.slot_id is not None else None
        views.append(
            AppointmentView(
                id=appointment.id,
                scheduled_at=as_utc(appointment.scheduled_at),
                duration_minutes=appointment.duration_minutes,
                status=status_code,
                modality=appointment.modality,
                cancel_reason=appointment.cancel_reason,
                cancelled_by=_participant(users.get(appointment.cancelled_by_user_id))
                if appointment.cancelled_by_user_id is not None
                else None,
                doctor=_participant(users.get(appointment.doctor_id)),
                patient=_participant(users.get(appointment.patient_id)),
                slot=SlotRef(
                    id=slot.id,
                    start_at=as_utc(slot.start_at),
                    end_at=as_utc(slot.end_at),
                )
                if slot
                else None,
                created_at=as_utc(appointment.created_at),
                updated_at=as_utc(appointment.updated_at),
            )
        )
    return views


def view_for(session: Session, appointment: Appointment) -> AppointmentView:
    status = session.get(AppointmentStatus, appointment.status_id)
    return format_appointments(session, [(appointment, status.code)])[0]


def _fetch(session: Session, statement) -> List[AppointmentView]:
    rows: Iterable[Row] = session.exec(statement).all()
    return format_appointments(session, list(rows))


def get_upcoming(
    session: Session,
    *,
    actor_id: int,
    role: Optional[str],
    limit: int = 10,
    registry: Optional[StatusRegistry] = None,
    now: Optional[datetime] = None,
) -> List[AppointmentView]:
    registry = registry or get_status_registry()
    status_ids = registry.resolve_many(session, (STATUS_PENDING, STATUS_CONFIRMED))
    statement = (
        _base_statement()
        .where(
            *_ownership_filters(actor_id=actor_id, role=role),
            Appointment.scheduled_at >= (now or utcnow()),
            Appointment.status_id.in_(status_ids),
        )
        .order_by(Appointment.scheduled_at.asc())
        .limit(limit)
    )
    return _fetch(session, statement)


def get_past(
    session: Session,
    *,
    actor_id: int,
    role: Optional[str],
    limit: int = 20,
    registry: Optional[StatusRegistry] = None,
    now: Optional[datetime] = None,
) -> List[AppointmentView]:
    registry = registry or get_status_registry()
    status_ids = registry.resolve_many(session, (STATUS_COMPLETED, STATUS_NO_SHOW))
    statement = (
        _base_statement()
        .where(
            *_ownership_filters(actor_id=actor_id, role=role),
            Appointment.scheduled_at < (now or utcnow()),
            Appointment.status_id.in_(status_ids),
        )
        .order_by(Appointment.scheduled_at.desc())
        .limit(limit)
    )
    return _fetch(session, statement)


def get_cancelled(
    session: Session,
    *,
    actor_id: int,
    role: Optional[str],
    limit: int = 20,
    registry: Optional[StatusRegistry] = None,
) -> List[AppointmentView]:
    registry = registry or get_status_registry()
    cancelled_id = registry.resolve(session, STATUS_CANCELLED)
    statement = (
        _base_statement()
        .where(
            *_ownership_filters(actor_id=actor_id, role=role),
            Appointment.status_id == cancelled_id,
        )
        .order_by(Appointment.updated_at.desc(), Appointment.id.desc())
        .limit(limit)
    )
    return _fetch(session, statement)


def get_all(
    session: Session,
    *,
    actor_id: int,
    role: Optional[str],
    page: int = 1,
    limit: int = 10,
    order: str = "desc",
) -> Pagination[AppointmentView]:
    filters = _ownership_filters(actor_id=actor_id, role=role)
    count_stmt = select(func.count()).select_from(Appointment)
    statement = _base_statement()
    if filters:
        count_stmt = count_stmt.where(and_(*filters))
        statement = statement.where(and_(*filters))

    ordering = Appointment.scheduled_at.asc() if order == "asc" else Appointment.scheduled_at.desc()
    total = session.exec(count_stmt).one()
    items = _fetch(session, statement.order_by(ordering).offset((page - 1) * limit).limit(limit))
    return Pagination[AppointmentView](
        items=items,
        page=page,
        page_size=limit,
        total=total,
        total_pages=math.ceil(total / limit) if limit else 0,
    )


def get_by_date_range(
    session: Session,
    *,
    actor_id: int,
    role: Optional[str],
    start_from: datetime,
    end_to: datetime,
) -> List[AppointmentView]:
    start_from = as_utc(start_from)
    end_to = as_utc(end_to)
    if start_from >= end_to:
        raise InvalidRangeError("start_from must be before end_to")
    statement = (
        _base_statement()
        .where(
            *_ownership_filters(actor_id=actor_id, role=role),
            Appointment.scheduled_at >= start_from,
            Appointment.scheduled_at < end_to,
        )
        .order_by(Appointment.scheduled_at.asc())
    )
    return _fetch(session, statement)


def list_appointments(
    session: Session,
    *,
    actor_id: int,
    role: Optional[str],
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    status: Optional[str] = None,
    start_from: Optional[datetime] = None,
    end_to: Optional[datetime] = None,
    registry: Optional[StatusRegistry] = None,
) -> List[AppointmentView]:
    registry = registry or get_status_registry()
    filters = _ownership_filters(actor_id=actor_id, role=role)
    if doctor_id:
        filters.append(Appointment.doctor_id == doctor_id)
    if patient_id:
        filters.append(Appointment.patient_id == patient_id)
    if status:
        try:
            status_id = registry.resolve(session, status)
        except UnknownStatusError as exc:
            raise InvalidStatusError(f"Unknown status filter '{status}'") from exc
        filters.append(Appointment.status_id == status_id)
    if start_from:
        filters.append(Appointment.scheduled_at >= as_utc(start_from))
    if end_to:
        filters.append(Appointment.scheduled_at <= as_utc(end_to))

    statement = _base_statement()
    if filters:
        statement = statement.where(and_(*filters))
    return _fetch(session, statement.order_by(Appointment.scheduled_at.desc()))


def get_appointment(
    session: Session,
    *,
    appointment_id: int,
    actor_id: int,
    role: Optional[str],
) -> AppointmentRead:
    appointment = session.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError
    if not authorize_participant(appointment, actor_id=actor_id, role=role):
        raise ForbiddenError

    history = session.exec(
        select(AppointmentStatusHistory)
        .where(AppointmentStatusHistory.appointment_id == appointment.id)
        .order_by(AppointmentStatusHistory.changed_at.desc(), AppointmentStatusHistory.id.desc())
    ).all()
    view = view_for(session, appointment)
    return AppointmentRead(
        **view.model_dump(),
        status_history=[
            AppointmentStatusRead(
                status=entry.status,
                changed_at=as_utc(entry.changed_at),
                changed_by=entry.changed_by,
                note=entry.note,
            )
            for entry in history
        ],
    )
