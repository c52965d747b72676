from __future__ import annotations

from typing import Optional


class SchedulingError(Exception):
    """Base class for rejected scheduling requests.

    ``code`` is a stable machine readable identifier, ``message`` the reason
    shown to the caller.
    """

    code = "SCHEDULING_ERROR"
    default_message = "Scheduling request rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidRangeError(SchedulingError):
    code = "INVALID_RANGE"
    default_message = "Start must be before end"


class SlotOverlapError(SchedulingError):
    code = "SLOT_OVERLAP"
    default_message = "Overlapping slot exists"


class SlotDoctorMismatchError(SchedulingError):
    code = "SLOT_DOCTOR_MISMATCH"
    default_message = "Slot/Doctor mismatch"


class SlotAlreadyBookedError(SchedulingError):
    code = "SLOT_ALREADY_BOOKED"
    default_message = "Slot already booked"


class PatientDoubleBookedError(SchedulingError):
    code = "PATIENT_DOUBLE_BOOKED"
    default_message = "Patient already has an appointment at this time"


class SlotHasAppointmentsError(SchedulingError):
    code = "SLOT_HAS_APPOINTMENTS"
    default_message = "Slot has appointments"


class AlreadyCancelledError(SchedulingError):
    code = "ALREADY_CANCELLED"
    default_message = "Appointment is already cancelled"


class CannotCancelCompletedError(SchedulingError):
    code = "CANNOT_CANCEL_COMPLETED"
    default_message = "Cannot cancel a completed appointment"


class InvalidTransitionError(SchedulingError):
    code = "INVALID_TRANSITION"
    default_message = "Status change not allowed"


class InvalidStatusError(SchedulingError):
    code = "INVALID_STATUS"
    default_message = "Unknown appointment status"


class ForbiddenError(SchedulingError):
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(SchedulingError):
    code = "NOT_FOUND"
    default_message = "Not found"


class SlotNotFoundError(NotFoundError):
    default_message = "Slot not found"


class AppointmentNotFoundError(NotFoundError):
    default_message = "Appointment not found"


class UnknownStatusError(SchedulingError):
    code = "UNKNOWN_STATUS"

    def __init__(self, status_code: str) -> None:
        super().__init__(f"Appointment status '{status_code}' not found")
        self.status_code = status_code
