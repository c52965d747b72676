from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from telehealth.core.config import settings
from telehealth.models import AppointmentStatus
from telehealth.services.errors import UnknownStatusError

logger = logging.getLogger(__name__)

DEFAULT_STATUSES: Dict[str, Dict[str, str]] = {
    "PENDING": {
        "name": "Pending",
        "description": "Requested by the patient, not yet confirmed",
        "color": "#F59E0B",
    },
    "CONFIRMED": {
        "name": "Confirmed",
        "description": "Confirmed by the doctor",
        "color": "#10B981",
    },
    "CANCELLED": {
        "name": "Cancelled",
        "description": "Cancelled by the patient, the doctor or an administrator",
        "color": "#EF4444",
    },
    "COMPLETED": {
        "name": "Completed",
        "description": "The consultation took place",
        "color": "#3B82F6",
    },
    "RESCHEDULED": {
        "name": "Rescheduled",
        "description": "Moved to another date",
        "color": "#8B5CF6",
    },
    "NO_SHOW": {
        "name": "No show",
        "description": "The patient did not attend",
        "color": "#6B7280",
    },
}


class StatusRegistry:
    """In-memory map from status code to the ``appointment_statuses`` id.

    Entries are loaded on first use or in bulk with :meth:`prime`. Without a
    ``ttl_seconds`` an entry lives for the lifetime of the process; with one
    it is re-read from storage once it is older than the TTL.
    :meth:`invalidate` drops entries after out-of-band edits to the table.
    """

    def __init__(
        self,
        *,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def _cached(self, code: str) -> Optional[int]:
        entry = self._entries.get(code)
        if entry is None:
            return None
        status_id, loaded_at = entry
        if self.ttl_seconds is not None and self._clock() - loaded_at >= self.ttl_seconds:
            return None
        return status_id

    def _store(self, code: str, status_id: int) -> None:
        with self._lock:
            self._entries[code] = (status_id, self._clock())

    def resolve(self, session: Session, code: str) -> int:
        status_id = self._cached(code)
        if status_id is not None:
            return status_id

        status = session.exec(
            select(AppointmentStatus).where(AppointmentStatus.code == code)
        ).first()
        if status is None:
            raise UnknownStatusError(code)
        self._store(code, status.id)
        return status.id

    def resolve_many(self, session: Session, codes: Iterable[str]) -> List[int]:
        return [self.resolve(session, code) for code in codes]

    def prime(self, session: Session) -> int:
        statuses = session.exec(select(AppointmentStatus)).all()
        for status in statuses:
            self._store(status.code, status.id)
        logger.info("Primed appointment status cache with %d entries", len(statuses))
        return len(statuses)

    def invalidate(self, code: Optional[str] = None) -> None:
        with self._lock:
            if code is None:
                self._entries.clear()
            else:
                self._entries.pop(code, None)


def ensure_statuses(session: Session) -> None:
    existing = set(session.exec(select(AppointmentStatus.code)).all())
    missing = [code for code in DEFAULT_STATUSES if code not in existing]
    for code in missing:
        session.add(AppointmentStatus(code=code, **DEFAULT_STATUSES[code]))
    if missing:
        session.commit()


def list_statuses(session: Session) -> List[AppointmentStatus]:
    return list(session.exec(select(AppointmentStatus).order_by(AppointmentStatus.id)).all())


_registry = StatusRegistry(ttl_seconds=settings.status_cache_ttl_seconds)


def get_status_registry() -> StatusRegistry:
    return _registry


def set_status_registry(registry: StatusRegistry) -> None:
    global _registry
    _registry = registry
