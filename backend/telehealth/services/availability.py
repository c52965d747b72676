from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from telehealth.core.clock import as_utc
from telehealth.models import Appointment, AvailabilitySlot, User
from telehealth.models.appointment import INACTIVE_STATUSES
from telehealth.models.user import ROLE_DOCTOR
from telehealth.schemas.availability import SlotCreate
from telehealth.services import audit
from telehealth.services.audit_policy import make_user_reference
from telehealth.services.errors import (
    ForbiddenError,
    InvalidRangeError,
    SlotHasAppointmentsError,
    SlotNotFoundError,
    SlotOverlapError,
)
from telehealth.services.statuses import StatusRegistry, get_status_registry

logger = logging.getLogger(__name__)


def _find_overlap(
    session: Session, *, doctor_id: int, start_at: datetime, end_at: datetime
) -> Optional[AvailabilitySlot]:
    statement = select(AvailabilitySlot).where(
        AvailabilitySlot.doctor_id == doctor_id,
        AvailabilitySlot.start_at < end_at,
        AvailabilitySlot.end_at > start_at,
    )
    return session.exec(statement).first()


def get_slot(session: Session, slot_id: int) -> AvailabilitySlot:
    slot = session.get(AvailabilitySlot, slot_id)
    if slot is None:
        raise SlotNotFoundError
    return slot


def create_slot(
    session: Session,
    *,
    doctor_id: int,
    role: Optional[str],
    data: SlotCreate,
    context: Optional[dict] = None,
) -> AvailabilitySlot:
    if role != ROLE_DOCTOR:
        raise ForbiddenError("Only doctors can create availability")

    start_at = as_utc(data.start_at)
    end_at = as_utc(data.end_at)
    if start_at >= end_at:
        raise InvalidRangeError("start_at must be before end_at")

    # Serializes slot creation per doctor where the backend supports row locks.
    doctor = session.exec(select(User).where(User.id == doctor_id).with_for_update()).first()
    if doctor is None:
        raise ForbiddenError("Only doctors can create availability")

    if _find_overlap(session, doctor_id=doctor_id, start_at=start_at, end_at=end_at):
        raise SlotOverlapError

    slot = AvailabilitySlot(
        doctor_id=doctor_id,
        start_at=start_at,
        end_at=end_at,
        rrule=data.rrule,
        is_recurring=False,
    )
    session.add(slot)
    session.flush()

    audit.record_event(
        session,
        actor_id=doctor_id,
        action="slot.create",
        resource_type="availability_slot",
        resource_id=str(slot.id),
        metadata={
            "doctor_ref": make_user_reference("doctor", doctor_id),
            "start_at": start_at.isoformat(),
            "end_at": end_at.isoformat(),
        },
        context=context or {},
    )

    session.commit()
    session.refresh(slot)
    logger.info("Doctor %s opened slot %s (%s - %s)", doctor_id, slot.id, start_at, end_at)
    return slot


def list_slots(
    session: Session,
    *,
    doctor_id: int,
    start_from: Optional[datetime] = None,
    end_to: Optional[datetime] = None,
) -> List[AvailabilitySlot]:
    statement = select(AvailabilitySlot).where(AvailabilitySlot.doctor_id == doctor_id)
    if start_from is not None:
        statement = statement.where(AvailabilitySlot.start_at >= as_utc(start_from))
    if end_to is not None:
        statement = statement.where(AvailabilitySlot.end_at <= as_utc(end_to))
    statement = statement.order_by(AvailabilitySlot.start_at.asc())
    return list(session.exec(statement).all())


def delete_slot(
    session: Session,
    *,
    doctor_id: int,
    slot_id: int,
    registry: Optional[StatusRegistry] = None,
    context: Optional[dict] = None,
) -> None:
    registry = registry or get_status_registry()
    slot = get_slot(session, slot_id)
    if slot.doctor_id != doctor_id:
        raise ForbiddenError("Cannot delete slot of another doctor")

    inactive_ids = registry.resolve_many(session, INACTIVE_STATUSES)
    referencing = session.exec(select(Appointment).where(Appointment.slot_id == slot_id)).all()
    if any(appointment.status_id not in inactive_ids for appointment in referencing):
        raise SlotHasAppointmentsError

    # Cancelled bookings outlive the slot they were made on.
    for appointment in referencing:
        appointment.slot_id = None
        session.add(appointment)

    audit.record_event(
        session,
        actor_id=doctor_id,
        action="slot.delete",
        resource_type="availability_slot",
        resource_id=str(slot.id),
        metadata={
            "doctor_ref": make_user_reference("doctor", doctor_id),
            "start_at": slot.start_at.isoformat(),
            "end_at": slot.end_at.isoformat(),
        },
        context=context or {},
    )

    session.delete(slot)
    session.commit()
    logger.info("Doctor %s deleted slot %s", doctor_id, slot_id)
