from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from telehealth.api.deps import (
    AuthenticatedUser,
    get_audit_context,
    get_current_user,
    get_db,
    get_status_registry,
    require_roles,
)
from telehealth.api.errors import http_error
from telehealth.models.user import ROLE_DOCTOR
from telehealth.schemas import MessageResponse, SlotCreate, SlotRead
from telehealth.services import SchedulingError, create_slot, delete_slot, list_slots
from telehealth.services.statuses import StatusRegistry

router = APIRouter(tags=["availability"])


@router.post(
    "/doctors/me/availability",
    response_model=SlotRead,
    status_code=status.HTTP_201_CREATED,
)
def create_own_slot(
    payload: SlotCreate,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(require_roles(ROLE_DOCTOR)),
    context: dict = Depends(get_audit_context),
) -> SlotRead:
    try:
        slot = create_slot(
            session,
            doctor_id=current.user.id,
            role=current.role_code,
            data=payload,
            context=context,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc
    return SlotRead.model_validate(slot)


@router.get("/doctors/{doctor_id}/availability", response_model=List[SlotRead])
def list_doctor_slots(
    doctor_id: int,
    start_from: datetime | None = None,
    end_to: datetime | None = None,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
) -> List[SlotRead]:
    slots = list_slots(session, doctor_id=doctor_id, start_from=start_from, end_to=end_to)
    return [SlotRead.model_validate(slot) for slot in slots]


@router.delete("/availability/{slot_id}", response_model=MessageResponse)
def delete_own_slot(
    slot_id: int,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(require_roles(ROLE_DOCTOR)),
    context: dict = Depends(get_audit_context),
    registry: StatusRegistry = Depends(get_status_registry),
) -> MessageResponse:
    try:
        delete_slot(
            session,
            doctor_id=current.user.id,
            slot_id=slot_id,
            registry=registry,
            context=context,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc
    return MessageResponse(detail="Slot deleted")
