from __future__ import annotations

from typing import Any, Dict, Optional, Set

DEFAULT_ALLOWED_KEYS: Set[str] = {"result_count"}

RESOURCE_METADATA_KEYS: Dict[str, Set[str]] = {
    "appointment": {
        "patient_ref",
        "doctor_ref",
        "slot_id",
        "status",
        "previous_status",
        "modality",
        "reason",
        "reminders",
    },
    "availability_slot": {
        "doctor_ref",
        "start_at",
        "end_at",
    },
}

ACTION_METADATA_KEYS: Dict[str, Set[str]] = {
    "appointment.cancel": {"reason"},
    "appointment.status": {"previous_status", "status", "reason"},
    "appointment.delete": {"previous_status"},
}


def _allowed_keys(resource_type: str, action: str) -> Set[str]:
    allowed = set(DEFAULT_ALLOWED_KEYS)
    allowed.update(RESOURCE_METADATA_KEYS.get(resource_type, set()))
    allowed.update(ACTION_METADATA_KEYS.get(action, set()))
    return allowed


def sanitize_metadata(
    resource_type: str,
    action: str,
    metadata: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    if not metadata:
        return {}

    allowed = _allowed_keys(resource_type, action)
    sanitized: Dict[str, Any] = {}
    for key, value in metadata.items():
        if key not in allowed:
            raise ValueError(
                f"Audit metadata key '{key}' is not allowed for action '{action}' on '{resource_type}'"
            )
        if value is not None:
            sanitized[key] = value
    return sanitized


def make_user_reference(kind: str, user_id: int) -> str:
    return f"{kind}:{user_id}"


def appointment_metadata(
    *,
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {}
    if patient_id is not None:
        metadata["patient_ref"] = make_user_reference("patient", patient_id)
    if doctor_id is not None:
        metadata["doctor_ref"] = make_user_reference("doctor", doctor_id)
    if extra:
        metadata.update(extra)
    return metadata
