from __future__ import annotations


from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from telehealth.core.clock import as_utc, utcnow


class UTCDateTime(TypeDecorator):
    """Binds and returns aware UTC datetimes, also on backends that drop the offset."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class TimestampMixin(SQLModel):
    """Server-populated created/updated columns shared by every table."""

    created_at: datetime = Field(
        default=None,
        sa_type=UTCDateTime,
        sa_column_kwargs={
            "nullable": False,
            "server_default": func.now(),
        },
    )
    updated_at: datetime = Field(
        default=None,
        sa_type=UTCDateTime,
        sa_column_kwargs={
            "nullable": False,
            "server_default": func.now(),
            "onupdate": func.now(),
        },
    )

    def touch(self) -> None:
        self.updated_at = utcnow()
