from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from telehealth.core.clock import utcnow
from telehealth.models import AuditEvent
from telehealth.services.audit_policy import sanitize_metadata


def record_event(
    session: Session,
    *,
    actor_id: Optional[int],
    action: str,
    resource_type: str,
    resource_id: Optional[str],
    metadata: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> AuditEvent:
    """Stage an audit row on the caller's session; committed with the change it describes."""
    event = AuditEvent(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        metadata_json=sanitize_metadata(resource_type, action, metadata),
        context=context or {},
        timestamp=utcnow(),
    )
    session.add(event)
    return event


def events_for(session: Session, *, resource_type: str, resource_id: str) -> List[AuditEvent]:
    statement = (
        select(AuditEvent)
        .where(
            AuditEvent.resource_type == resource_type,
            AuditEvent.resource_id == resource_id,
        )
        .order_by(AuditEvent.timestamp, AuditEvent.id)
    )
    return list(session.exec(statement).all())
