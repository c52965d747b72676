from telehealth.services import audit, security
from telehealth.services.appointment_queries import (
    get_all,
    get_appointment,
    get_by_date_range,
    get_cancelled,
    get_past,
    get_upcoming,
    list_appointments,
)
from telehealth.services.appointments import (
    cancel_appointment,
    create_for_patient,
    delete_appointment,
    update_status,
)
from telehealth.services.auth import (
    AuthenticationError,
    authenticate_user,
    create_access_token_for_user,
    create_user,
    ensure_seed_data,
)
from telehealth.services.availability import create_slot, delete_slot, get_slot, list_slots
from telehealth.services.errors import (
    AlreadyCancelledError,
    AppointmentNotFoundError,
    CannotCancelCompletedError,
    ForbiddenError,
    InvalidRangeError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    PatientDoubleBookedError,
    SchedulingError,
    SlotAlreadyBookedError,
    SlotDoctorMismatchError,
    SlotHasAppointmentsError,
    SlotNotFoundError,
    SlotOverlapError,
    UnknownStatusError,
)
from telehealth.services.reminders import (
    ArqReminderQueue,
    InMemoryReminderQueue,
    ReminderQueue,
    get_reminder_queue,
    set_reminder_queue,
)
from telehealth.services.statuses import StatusRegistry, get_status_registry, list_statuses
