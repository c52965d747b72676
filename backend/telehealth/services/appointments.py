from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from telehealth.core.config import settings
from telehealth.models import Appointment, AppointmentStatus, AppointmentStatusHistory, AvailabilitySlot
from telehealth.models.appointment import INACTIVE_STATUSES, STATUS_CANCELLED, STATUS_PENDING
from telehealth.schemas.appointment import AppointmentCreate, AppointmentStatusUpdate, AppointmentView
from telehealth.services import audit
from telehealth.services.appointment_queries import view_for
from telehealth.services.audit_policy import appointment_metadata
from telehealth.services.errors import (
    AppointmentNotFoundError,
    ForbiddenError,
    PatientDoubleBookedError,
    SlotAlreadyBookedError,
    SlotDoctorMismatchError,
)
from telehealth.services.lifecycle import (
    authorize_participant,
    authorize_status_change,
    check_transition,
    is_active,
)
from telehealth.services.notifications import notify_appointment_cancelled
from telehealth.services.reminders import (
    ReminderQueue,
    cancel_appointment_reminders,
    get_reminder_queue,
    schedule_appointment_reminders,
)
from telehealth.services.statuses import StatusRegistry, get_status_registry

logger = logging.getLogger(__name__)


def _add_status_history(
    session: Session,
    appointment_id: int,
    status: str,
    actor_id: Optional[int],
    note: Optional[str] = None,
) -> None:
    session.add(
        AppointmentStatusHistory(
            appointment_id=appointment_id,
            status=status,
            changed_by=actor_id,
            note=note,
        )
    )


def _load(session: Session, appointment_id: int) -> Appointment:
    appointment = session.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError
    return appointment


def _status_code(session: Session, appointment: Appointment) -> str:
    return session.get(AppointmentStatus, appointment.status_id).code


def _check_patient_free(
    session: Session,
    *,
    patient_id: int,
    slot: AvailabilitySlot,
    inactive_ids: list[int],
) -> None:
    candidates = session.exec(
        select(Appointment).where(
            Appointment.patient_id == patient_id,
            Appointment.status_id.not_in(inactive_ids),
            Appointment.scheduled_at < slot.end_at,
        )
    ).all()
    for other in candidates:
        if other.scheduled_at + timedelta(minutes=other.duration_minutes) > slot.start_at:
            raise PatientDoubleBookedError


def create_for_patient(
    session: Session,
    *,
    patient_id: int,
    data: AppointmentCreate,
    registry: Optional[StatusRegistry] = None,
    queue: Optional[ReminderQueue] = None,
    context: Optional[dict] = None,
) -> AppointmentView:
    registry = registry or get_status_registry()
    queue = queue or get_reminder_queue()

    inactive_ids = registry.resolve_many(session, INACTIVE_STATUSES)
    pending_id = registry.resolve(session, STATUS_PENDING)

    slot = session.exec(
        select(AvailabilitySlot).where(AvailabilitySlot.id == data.slot_id).with_for_update()
    ).first()
    if slot is None or slot.doctor_id != data.doctor_id:
        raise SlotDoctorMismatchError

    booked = session.exec(
        select(Appointment.id).where(
            Appointment.slot_id == slot.id,
            Appointment.status_id.not_in(inactive_ids),
        )
    ).first()
    if booked is not None:
        raise SlotAlreadyBookedError

    _check_patient_free(session, patient_id=patient_id, slot=slot, inactive_ids=inactive_ids)

    duration = math.ceil((slot.end_at - slot.start_at).total_seconds() / 60)
    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=slot.doctor_id,
        slot_id=slot.id,
        status_id=pending_id,
        scheduled_at=slot.start_at,
        duration_minutes=duration,
        modality=data.modality,
        created_by=patient_id,
        is_active=True,
    )
    session.add(appointment)
    try:
        session.flush()
    except IntegrityError as exc:
        # Lost a race against a concurrent booking of the same slot.
        session.rollback()
        raise SlotAlreadyBookedError from exc

    _add_status_history(session, appointment.id, STATUS_PENDING, patient_id)
    audit.record_event(
        session,
        actor_id=patient_id,
        action="appointment.create",
        resource_type="appointment",
        resource_id=str(appointment.id),
        metadata=appointment_metadata(
            patient_id=patient_id,
            doctor_id=slot.doctor_id,
            extra={"slot_id": slot.id, "modality": data.modality},
        ),
        context=context or {},
    )
    session.commit()
    session.refresh(appointment)
    logger.info("Patient %s booked slot %s as appointment %s", patient_id, slot.id, appointment.id)

    job_ids = schedule_appointment_reminders(
        queue,
        appointment_id=appointment.id,
        scheduled_at=appointment.scheduled_at,
    )
    if job_ids:
        appointment.reminder_job_ids = job_ids
        session.add(appointment)
        session.commit()
        session.refresh(appointment)

    return view_for(session, appointment)


def _apply_transition(
    session: Session,
    appointment: Appointment,
    *,
    target: str,
    previous: str,
    actor_id: int,
    cancel_reason: Optional[str],
    action: str,
    registry: StatusRegistry,
    queue: ReminderQueue,
    context: Optional[dict],
) -> AppointmentView:
    was_active = appointment.is_active
    appointment.status_id = registry.resolve(session, target)
    appointment.is_active = is_active(target)
    if target == STATUS_CANCELLED:
        appointment.cancel_reason = cancel_reason
        appointment.cancelled_by_user_id = actor_id
    else:
        appointment.cancel_reason = None
        appointment.cancelled_by_user_id = None
    appointment.touch()
    session.add(appointment)

    _add_status_history(session, appointment.id, target, actor_id, cancel_reason)
    audit.record_event(
        session,
        actor_id=actor_id,
        action=action,
        resource_type="appointment",
        resource_id=str(appointment.id),
        metadata=appointment_metadata(
            patient_id=appointment.patient_id,
            extra={"previous_status": previous, "status": target, "reason": cancel_reason},
        ),
        context=context or {},
    )
    session.commit()
    session.refresh(appointment)
    logger.info(
        "Appointment %s moved from %s to %s by user %s", appointment.id, previous, target, actor_id
    )

    if target == STATUS_CANCELLED and actor_id != appointment.patient_id:
        notify_appointment_cancelled(session, appointment, reason=cancel_reason)

    if was_active and not appointment.is_active and appointment.reminder_job_ids:
        cancel_appointment_reminders(queue, appointment.reminder_job_ids)
        appointment.reminder_job_ids = []
        session.add(appointment)
        session.commit()
        session.refresh(appointment)

    return view_for(session, appointment)


def update_status(
    session: Session,
    *,
    appointment_id: int,
    actor_id: int,
    role: Optional[str],
    data: AppointmentStatusUpdate,
    registry: Optional[StatusRegistry] = None,
    queue: Optional[ReminderQueue] = None,
    context: Optional[dict] = None,
) -> AppointmentView:
    appointment = _load(session, appointment_id)
    authorize_status_change(appointment, actor_id=actor_id, role=role, target=data.status)
    previous = _status_code(session, appointment)
    check_transition(previous, data.status)
    return _apply_transition(
        session,
        appointment,
        target=data.status,
        previous=previous,
        actor_id=actor_id,
        cancel_reason=data.cancel_reason if data.status == STATUS_CANCELLED else None,
        action="appointment.status",
        registry=registry or get_status_registry(),
        queue=queue or get_reminder_queue(),
        context=context,
    )


def cancel_appointment(
    session: Session,
    *,
    appointment_id: int,
    actor_id: int,
    role: Optional[str],
    cancel_reason: Optional[str] = None,
    registry: Optional[StatusRegistry] = None,
    queue: Optional[ReminderQueue] = None,
    context: Optional[dict] = None,
) -> AppointmentView:
    appointment = _load(session, appointment_id)
    if not authorize_participant(appointment, actor_id=actor_id, role=role):
        raise ForbiddenError("You do not have permission to cancel this appointment")
    previous = _status_code(session, appointment)
    check_transition(previous, STATUS_CANCELLED)
    return _apply_transition(
        session,
        appointment,
        target=STATUS_CANCELLED,
        previous=previous,
        actor_id=actor_id,
        cancel_reason=cancel_reason or settings.default_cancel_reason,
        action="appointment.cancel",
        registry=registry or get_status_registry(),
        queue=queue or get_reminder_queue(),
        context=context,
    )


def delete_appointment(
    session: Session,
    *,
    appointment_id: int,
    actor_id: int,
    role: Optional[str],
    queue: Optional[ReminderQueue] = None,
    context: Optional[dict] = None,
) -> None:
    """Hard delete in any status, for administrators or either participant."""
    appointment = _load(session, appointment_id)
    if not authorize_participant(appointment, actor_id=actor_id, role=role):
        raise ForbiddenError("Unauthorized")

    previous = _status_code(session, appointment)
    job_ids = list(appointment.reminder_job_ids or [])

    history = session.exec(
        select(AppointmentStatusHistory).where(AppointmentStatusHistory.appointment_id == appointment.id)
    ).all()
    for entry in history:
        session.delete(entry)

    audit.record_event(
        session,
        actor_id=actor_id,
        action="appointment.delete",
        resource_type="appointment",
        resource_id=str(appointment.id),
        metadata=appointment_metadata(
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            extra={"previous_status": previous},
        ),
        context=context or {},
    )
    session.delete(appointment)
    session.commit()
    logger.info("Appointment %s (%s) deleted by user %s", appointment_id, previous, actor_id)

    if job_ids:
        cancel_appointment_reminders(queue or get_reminder_queue(), job_ids)
