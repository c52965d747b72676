from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, text
from sqlmodel import Field

from telehealth.core.clock import utcnow
from telehealth.models.base import TimestampMixin, UTCDateTime

STATUS_PENDING = "PENDING"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_CANCELLED = "CANCELLED"
STATUS_COMPLETED = "COMPLETED"
STATUS_RESCHEDULED = "RESCHEDULED"
STATUS_NO_SHOW = "NO_SHOW"

# Statuses that free the slot again.
INACTIVE_STATUSES = (STATUS_CANCELLED, STATUS_NO_SHOW)


class AppointmentStatus(TimestampMixin, table=True):
    __tablename__ = "appointment_statuses"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True, max_length=20)
    name: str = Field(max_length=50)
    description: Optional[str] = Field(default=None, max_length=255)
    color: Optional[str] = Field(default=None, max_length=7)


class Appointment(TimestampMixin, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_slot_status", "slot_id", "status_id"),
        Index("ix_appointments_patient_status", "patient_id", "status_id"),
        Index(
            "ux_appointments_active_slot",
            "slot_id",
            unique=True,
            sqlite_where=text("is_active"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id")
    doctor_id: int = Field(foreign_key="users.id", index=True)
    slot_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("availability_slots.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    status_id: int = Field(foreign_key="appointment_statuses.id")
    scheduled_at: datetime = Field(sa_type=UTCDateTime, index=True)
    duration_minutes: int
    modality: str = Field(default="online", max_length=20)
    cancel_reason: Optional[str] = Field(default=None, max_length=255)
    cancelled_by_user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    created_by: Optional[int] = Field(default=None, foreign_key="users.id")
    is_active: bool = Field(default=True)
    reminder_job_ids: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
    )


class AppointmentStatusHistory(TimestampMixin, table=True):
    __tablename__ = "appointment_status_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", index=True)
    status: str = Field(max_length=20)
    changed_by: Optional[int] = Field(default=None, foreign_key="users.id")
    changed_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    note: Optional[str] = Field(default=None, max_length=255)
