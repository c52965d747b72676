from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, JSON
from sqlmodel import Field

from telehealth.core.clock import utcnow
from telehealth.models.base import TimestampMixin, UTCDateTime


class AuditEvent(TimestampMixin, table=True):
    __tablename__ = "audit_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    actor_id: Optional[int] = Field(default=None, foreign_key="users.id")
    action: str = Field(max_length=100)
    resource_type: str = Field(max_length=50)
    resource_id: Optional[str] = Field(default=None, index=True, max_length=100)
    metadata_json: dict = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False, default=dict),
    )
    context: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )
    timestamp: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)

