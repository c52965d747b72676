from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from telehealth.core.clock import as_utc


class SlotCreate(BaseModel):
    start_at: datetime
    end_at: datetime
    rrule: Optional[str] = Field(default=None, max_length=255)
    is_recurring: bool = False


class SlotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    start_at: datetime
    end_at: datetime
    rrule: Optional[str] = None
    is_recurring: bool

    @field_validator("start_at", "end_at")
    @classmethod
    def _mark_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
