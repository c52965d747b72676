from telehealth.schemas.appointment import (
    AppointmentCancelRequest,
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusOption,
    AppointmentStatusRead,
    AppointmentStatusUpdate,
    AppointmentView,
    Participant,
    SlotRef,
)
from telehealth.schemas.auth import LoginRequest, TokenResponse
from telehealth.schemas.availability import SlotCreate, SlotRead
from telehealth.schemas.common import MessageResponse, Pagination
