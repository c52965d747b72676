from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from arq import create_pool
from arq.connections import RedisSettings
from arq.constants import job_key_prefix

from telehealth.core.clock import utcnow
from telehealth.core.config import settings

logger = logging.getLogger(__name__)

REMINDER_FUNCTION = "send_appointment_reminder"

REMINDER_OFFSETS = (
    ("reminder-24h", timedelta(hours=24)),
    ("reminder-1h", timedelta(hours=1)),
)


def reminder_job_id(appointment_id: int, label: str) -> str:
    return f"appointment:{appointment_id}:{label}"


class ReminderQueue:
    """Delayed-job queue used to deliver appointment reminders."""

    def enqueue(
        self,
        job_name: str,
        payload: Dict[str, Any],
        *,
        delay: timedelta,
        job_id: Optional[str] = None,
    ) -> Optional[str]:
        """Returns the job id, or None when the queue refused the job."""
        raise NotImplementedError

    def cancel(self, job_id: str) -> bool:
        raise NotImplementedError


@dataclass
class QueuedJob:
    job_id: str
    job_name: str
    payload: Dict[str, Any]
    delay: timedelta
    enqueued_at: datetime = field(default_factory=utcnow)
    cancelled: bool = False


class InMemoryReminderQueue(ReminderQueue):
    """Keeps jobs in a list; used when no Redis is configured and in tests."""

    def __init__(self) -> None:
        self.jobs: List[QueuedJob] = []

    def enqueue(
        self,
        job_name: str,
        payload: Dict[str, Any],
        *,
        delay: timedelta,
        job_id: Optional[str] = None,
    ) -> str:
        job = QueuedJob(
            job_id=job_id or uuid.uuid4().hex,
            job_name=job_name,
            payload=dict(payload),
            delay=delay,
        )
        self.jobs.append(job)
        return job.job_id

    def cancel(self, job_id: str) -> bool:
        for job in self.jobs:
            if job.job_id == job_id and not job.cancelled:
                job.cancelled = True
                return True
        return False

    def pending(self) -> List[QueuedJob]:
        return [job for job in self.jobs if not job.cancelled]


class ArqReminderQueue(ReminderQueue):
    """Schedules reminders as deferred arq jobs in Redis.

    The service layer is synchronous, so each call opens a short-lived pool
    on its own event loop. Request handlers run on worker threads where no
    loop is active.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        queue_name: str = settings.reminder_queue_name,
        function_name: str = REMINDER_FUNCTION,
    ) -> None:
        self.redis_settings = RedisSettings.from_dsn(redis_url)
        self.queue_name = queue_name
        self.function_name = function_name

    def enqueue(
        self,
        job_name: str,
        payload: Dict[str, Any],
        *,
        delay: timedelta,
        job_id: Optional[str] = None,
    ) -> Optional[str]:
        return asyncio.run(self._enqueue(job_name, payload, delay, job_id or uuid.uuid4().hex))

    def cancel(self, job_id: str) -> bool:
        return asyncio.run(self._cancel(job_id))

    async def _enqueue(self, job_name: str, payload: Dict[str, Any], delay: timedelta, job_id: str) -> Optional[str]:
        pool = await create_pool(self.redis_settings, default_queue_name=self.queue_name)
        try:
            job = await pool.enqueue_job(
                self.function_name,
                _job_id=job_id,
                _defer_by=delay,
                label=job_name,
                **payload,
            )
        finally:
            await pool.aclose()
        if job is None:
            # arq refuses ids that still have a queued job or a kept result.
            logger.warning("Reminder job %s was not queued: id already in use", job_id)
            return None
        return job.job_id

    async def _cancel(self, job_id: str) -> bool:
        pool = await create_pool(self.redis_settings, default_queue_name=self.queue_name)
        try:
            removed = await pool.zrem(self.queue_name, job_id)
            await pool.delete(job_key_prefix + job_id)
        finally:
            await pool.aclose()
        return bool(removed)


def schedule_appointment_reminders(
    queue: ReminderQueue,
    *,
    appointment_id: int,
    scheduled_at: datetime,
    now: Optional[datetime] = None,
) -> List[str]:
    """Enqueue the 24h and 1h reminders for a future appointment.

    Delays that would already have elapsed are clamped to zero. A failing
    enqueue is logged and skipped; the returned ids are the accepted jobs.
    """
    now = now or utcnow()
    if scheduled_at <= now:
        return []

    job_ids: List[str] = []
    for label, lead_time in REMINDER_OFFSETS:
        delay = max(scheduled_at - lead_time - now, timedelta(0))
        try:
            job_id = queue.enqueue(
                label,
                {"appointment_id": appointment_id},
                delay=delay,
                job_id=reminder_job_id(appointment_id, label),
            )
        except Exception:
            logger.exception("Could not enqueue %s for appointment %s", label, appointment_id)
            continue
        if job_id is not None:
            job_ids.append(job_id)
    return job_ids


def cancel_appointment_reminders(queue: ReminderQueue, job_ids: Iterable[str]) -> int:
    cancelled = 0
    for job_id in job_ids:
        try:
            if queue.cancel(job_id):
                cancelled += 1
        except Exception:
            logger.warning("Could not cancel reminder job %s", job_id, exc_info=True)
    return cancelled


def _default_queue() -> ReminderQueue:
    if settings.redis_url:
        return ArqReminderQueue(settings.redis_url)
    return InMemoryReminderQueue()


_queue: ReminderQueue = _default_queue()


def get_reminder_queue() -> ReminderQueue:
    return _queue


def set_reminder_queue(queue: ReminderQueue) -> None:
    global _queue
    _queue = queue


def reset_reminder_queue() -> None:
    set_reminder_queue(_default_queue())
