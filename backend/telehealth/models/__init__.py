from telehealth.models.appointment import Appointment, AppointmentStatus, AppointmentStatusHistory
from telehealth.models.audit import AuditEvent
from telehealth.models.availability import AvailabilitySlot
from telehealth.models.user import Role, User
