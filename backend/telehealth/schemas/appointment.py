from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Modality = Literal["online", "in_person", "hybrid"]
StatusCode = Literal["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "RESCHEDULED", "NO_SHOW"]


class AppointmentCreate(BaseModel):
    doctor_id: int = Field(ge=1)
    slot_id: int = Field(ge=1)
    modality: Modality = "online"


class AppointmentStatusUpdate(BaseModel):
    status: StatusCode
    cancel_reason: Optional[str] = Field(default=None, max_length=255)


class AppointmentCancelRequest(BaseModel):
    cancel_reason: Optional[str] = Field(default=None, max_length=255)


class Participant(BaseModel):
    id: int
    name: str
    email: Optional[str] = None


class SlotRef(BaseModel):
    id: int
    start_at: datetime
    end_at: datetime


class AppointmentStatusRead(BaseModel):
    status: str
    changed_at: datetime
    changed_by: Optional[int]
    note: Optional[str] = None


class AppointmentView(BaseModel):
    id: int
    scheduled_at: datetime
    duration_minutes: int
    status: str
    modality: str
    cancel_reason: Optional[str] = None
    cancelled_by: Optional[Participant] = None
    doctor: Optional[Participant] = None
    patient: Optional[Participant] = None
    slot: Optional[SlotRef] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentRead(AppointmentView):
    status_history: List[AppointmentStatusRead] = Field(default_factory=list)


class AppointmentStatusOption(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
