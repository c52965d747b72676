from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from sqlmodel import Session

from telehealth.models import Appointment, User

REMINDER_LEADS = {
    "reminder-24h": "tomorrow",
    "reminder-1h": "in one hour",
}


@dataclass
class NotificationMessage:
    channel: str
    recipient: str
    subject: Optional[str] = None
    body: str = ""


class NotificationBackend:
    """Very small stub backend that records the outgoing payload."""

    def send_email(self, *, to: str, subject: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="email", recipient=to, subject=subject, body=body)

    def send_sms(self, *, to: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="sms", recipient=to, body=body)


_backend: NotificationBackend = NotificationBackend()


def get_notification_backend() -> NotificationBackend:
    return _backend


def set_notification_backend(backend: NotificationBackend) -> None:
    global _backend
    _backend = backend


def reset_notification_backend() -> None:
    set_notification_backend(NotificationBackend())


def _clean(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _display_name(user: Optional[User], fallback: str) -> str:
    if user is None:
        return fallback
    return user.full_name or user.username or fallback


def _send_to(user: Optional[User], *, subject: str, email_body: str, sms_body: str) -> List[NotificationMessage]:
    if user is None:
        return []
    email = _clean(user.email)
    phone = _clean(user.phone)

    backend = get_notification_backend()
    messages: List[NotificationMessage] = []
    if email:
        messages.append(backend.send_email(to=email, subject=subject, body=email_body))
    if phone:
        messages.append(backend.send_sms(to=phone, body=sms_body))
    return messages


def notify_appointment_reminder(session: Session, appointment: Appointment, *, label: str) -> List[NotificationMessage]:
    patient = session.get(User, appointment.patient_id)
    doctor = session.get(User, appointment.doctor_id)
    when = appointment.scheduled_at.strftime("%Y-%m-%d %H:%M UTC")
    lead = REMINDER_LEADS.get(label, "soon")
    doctor_name = _display_name(doctor, "your doctor")
    subject = "Appointment reminder"
    email_body = (
        f"Hello {_display_name(patient, 'there')},\n\n"
        f"Your {appointment.modality.replace('_', ' ')} appointment with {doctor_name} "
        f"is {lead}, at {when} ({appointment.duration_minutes} min)."
    )
    sms_body = f"Reminder: appointment with {doctor_name} at {when}"
    return _send_to(patient, subject=subject, email_body=email_body, sms_body=sms_body)


def notify_appointment_cancelled(
    session: Session,
    appointment: Appointment,
    *,
    reason: Optional[str],
) -> List[NotificationMessage]:
    patient = session.get(User, appointment.patient_id)
    when = appointment.scheduled_at.strftime("%Y-%m-%d %H:%M UTC")
    subject = "Appointment cancelled"
    email_body = f"Hello {_display_name(patient, 'there')},\n\nYour appointment at {when} was cancelled."
    if reason:
        email_body += f"\nReason: {reason}"
    sms_body = f"Your appointment at {when} was cancelled"
    if reason:
        sms_body += f" ({reason})"
    return _send_to(patient, subject=subject, email_body=email_body, sms_body=sms_body)
