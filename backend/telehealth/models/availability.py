from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field

from telehealth.models.base import TimestampMixin, UTCDateTime


class AvailabilitySlot(TimestampMixin, table=True):
    __tablename__ = "availability_slots"
    __table_args__ = (
        Index("ix_availability_slots_doctor_range", "doctor_id", "start_at", "end_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="users.id")
    start_at: datetime = Field(sa_type=UTCDateTime)
    end_at: datetime = Field(sa_type=UTCDateTime)
    # Stored for clients that send one; slots are never expanded from it.
    rrule: Optional[str] = Field(default=None, max_length=255)
    is_recurring: bool = Field(default=False)
