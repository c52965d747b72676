"""Appointment status transitions.

A single table drives every status change so that the generic status update
and the dedicated cancellation path reject the same things for the same
reasons. Authorization by role is checked before the table is consulted.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional

from telehealth.models import Appointment
from telehealth.models.appointment import (
    INACTIVE_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_NO_SHOW,
    STATUS_PENDING,
    STATUS_RESCHEDULED,
)
from telehealth.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from telehealth.services.errors import (
    AlreadyCancelledError,
    CannotCancelCompletedError,
    ForbiddenError,
    InvalidTransitionError,
)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    STATUS_PENDING: frozenset(
        {STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW, STATUS_RESCHEDULED}
    ),
    STATUS_CONFIRMED: frozenset({STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW, STATUS_RESCHEDULED}),
    STATUS_RESCHEDULED: frozenset({STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW}),
    STATUS_CANCELLED: frozenset(),
    STATUS_COMPLETED: frozenset(),
    STATUS_NO_SHOW: frozenset(),
}

# Statuses in which a reminder is still worth delivering.
REMINDABLE_STATUSES = frozenset({STATUS_PENDING, STATUS_CONFIRMED, STATUS_RESCHEDULED})


def is_active(status: str) -> bool:
    return status not in INACTIVE_STATUSES


def authorize_status_change(
    appointment: Appointment, *, actor_id: int, role: Optional[str], target: str
) -> None:
    if role == ROLE_ADMIN:
        return
    if role == ROLE_PATIENT:
        if appointment.patient_id != actor_id:
            raise ForbiddenError
        if target != STATUS_CANCELLED:
            raise InvalidTransitionError("Patients can only cancel")
        return
    if role == ROLE_DOCTOR:
        if appointment.doctor_id != actor_id:
            raise ForbiddenError
        return
    raise ForbiddenError


def authorize_participant(appointment: Appointment, *, actor_id: int, role: Optional[str]) -> bool:
    return (
        role == ROLE_ADMIN
        or (role == ROLE_DOCTOR and appointment.doctor_id == actor_id)
        or (role == ROLE_PATIENT and appointment.patient_id == actor_id)
    )


def check_transition(current: str, target: str) -> None:
    allowed = TRANSITIONS.get(current)
    if allowed is None:
        raise InvalidTransitionError(f"Unknown current status {current}")
    if target in allowed:
        return
    if target == STATUS_CANCELLED:
        if current == STATUS_CANCELLED:
            raise AlreadyCancelledError
        if current == STATUS_COMPLETED:
            raise CannotCancelCompletedError
    raise InvalidTransitionError(f"Cannot change status from {current} to {target}")
