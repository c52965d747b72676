"""arq worker delivering appointment reminders.

Run with ``arq telehealth.worker.WorkerSettings``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from arq.connections import RedisSettings

from telehealth.core.config import settings
from telehealth.db.session import get_session
from telehealth.models import Appointment, AppointmentStatus
from telehealth.services.lifecycle import REMINDABLE_STATUSES
from telehealth.services.notifications import notify_appointment_reminder

logger = logging.getLogger(__name__)


async def send_appointment_reminder(ctx: Dict[str, Any], appointment_id: int, label: str) -> int:
    """Returns the number of messages handed to the notification backend."""
    with get_session() as session:
        appointment = session.get(Appointment, appointment_id)
        if appointment is None:
            logger.info("Skipping %s: appointment %s no longer exists", label, appointment_id)
            return 0
        status = session.get(AppointmentStatus, appointment.status_id)
        if status is None or status.code not in REMINDABLE_STATUSES:
            logger.info(
                "Skipping %s for appointment %s in status %s",
                label,
                appointment_id,
                status.code if status else None,
            )
            return 0
        messages = notify_appointment_reminder(session, appointment, label=label)
    logger.info("Sent %s for appointment %s (%d messages)", label, appointment_id, len(messages))
    return len(messages)


class WorkerSettings:
    functions = [send_appointment_reminder]
    queue_name = settings.reminder_queue_name
    redis_settings = RedisSettings.from_dsn(settings.redis_url) if settings.redis_url else RedisSettings()
    max_tries = 3
