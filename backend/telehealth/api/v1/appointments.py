from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from telehealth.api.deps import (
    AuthenticatedUser,
    get_audit_context,
    get_current_user,
    get_db,
    get_reminder_queue,
    get_status_registry,
    require_roles,
)
from telehealth.api.errors import http_error
from telehealth.models.user import ROLE_PATIENT
from telehealth.schemas import (
    AppointmentCancelRequest,
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusOption,
    AppointmentStatusUpdate,
    AppointmentView,
    MessageResponse,
    Pagination,
)
from telehealth.services import (
    SchedulingError,
    cancel_appointment,
    create_for_patient,
    delete_appointment,
    get_all,
    get_appointment,
    get_by_date_range,
    get_cancelled,
    get_past,
    get_upcoming,
    list_appointments,
    list_statuses,
    update_status,
)
from telehealth.services.reminders import ReminderQueue
from telehealth.services.statuses import StatusRegistry

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentView, status_code=status.HTTP_201_CREATED)
def create_appointment_record(
    payload: AppointmentCreate,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(require_roles(ROLE_PATIENT)),
    context: dict = Depends(get_audit_context),
    registry: StatusRegistry = Depends(get_status_registry),
    queue: ReminderQueue = Depends(get_reminder_queue),
) -> AppointmentView:
    try:
        return create_for_patient(
            session,
            patient_id=current.user.id,
            data=payload,
            registry=registry,
            queue=queue,
            context=context,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=List[AppointmentView])
def list_appointment_records(
    doctor_id: int | None = None,
    patient_id: int | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    start_from: datetime | None = None,
    end_to: datetime | None = None,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    registry: StatusRegistry = Depends(get_status_registry),
) -> List[AppointmentView]:
    try:
        return list_appointments(
            session,
            actor_id=current.user.id,
            role=current.role_code,
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=status_filter,
            start_from=start_from,
            end_to=end_to,
            registry=registry,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("/upcoming", response_model=List[AppointmentView])
def list_upcoming(
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    registry: StatusRegistry = Depends(get_status_registry),
) -> List[AppointmentView]:
    try:
        return get_upcoming(session, actor_id=current.user.id, role=current.role_code, limit=limit, registry=registry)
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("/past", response_model=List[AppointmentView])
def list_past(
    limit: int = Query(default=20, ge=1, le=100),
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    registry: StatusRegistry = Depends(get_status_registry),
) -> List[AppointmentView]:
    try:
        return get_past(session, actor_id=current.user.id, role=current.role_code, limit=limit, registry=registry)
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("/cancelled", response_model=List[AppointmentView])
def list_cancelled(
    limit: int = Query(default=20, ge=1, le=100),
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    registry: StatusRegistry = Depends(get_status_registry),
) -> List[AppointmentView]:
    try:
        return get_cancelled(session, actor_id=current.user.id, role=current.role_code, limit=limit, registry=registry)
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("/all", response_model=Pagination[AppointmentView])
def list_all(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    order: Literal["asc", "desc"] = "desc",
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
) -> Pagination[AppointmentView]:
    try:
        return get_all(
            session,
            actor_id=current.user.id,
            role=current.role_code,
            page=page,
            limit=limit,
            order=order,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("/range", response_model=List[AppointmentView])
def list_in_range(
    start_from: datetime,
    end_to: datetime,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
) -> List[AppointmentView]:
    try:
        return get_by_date_range(
            session,
            actor_id=current.user.id,
            role=current.role_code,
            start_from=start_from,
            end_to=end_to,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.get("/statuses", response_model=List[AppointmentStatusOption])
def list_status_options(
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
) -> List[AppointmentStatusOption]:
    return [
        AppointmentStatusOption(
            id=row.id,
            code=row.code,
            name=row.name,
            description=row.description,
            color=row.color,
        )
        for row in list_statuses(session)
    ]


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment_record(
    appointment_id: int,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
) -> AppointmentRead:
    try:
        return get_appointment(
            session,
            appointment_id=appointment_id,
            actor_id=current.user.id,
            role=current.role_code,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.patch("/{appointment_id}/status", response_model=AppointmentView)
def update_appointment_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    context: dict = Depends(get_audit_context),
    registry: StatusRegistry = Depends(get_status_registry),
    queue: ReminderQueue = Depends(get_reminder_queue),
) -> AppointmentView:
    try:
        return update_status(
            session,
            appointment_id=appointment_id,
            actor_id=current.user.id,
            role=current.role_code,
            data=payload,
            registry=registry,
            queue=queue,
            context=context,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.patch("/{appointment_id}/cancel", response_model=AppointmentView)
def cancel_appointment_record(
    appointment_id: int,
    payload: AppointmentCancelRequest | None = None,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    context: dict = Depends(get_audit_context),
    registry: StatusRegistry = Depends(get_status_registry),
    queue: ReminderQueue = Depends(get_reminder_queue),
) -> AppointmentView:
    try:
        return cancel_appointment(
            session,
            appointment_id=appointment_id,
            actor_id=current.user.id,
            role=current.role_code,
            cancel_reason=payload.cancel_reason if payload else None,
            registry=registry,
            queue=queue,
            context=context,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc


@router.delete("/{appointment_id}", response_model=MessageResponse)
def delete_appointment_record(
    appointment_id: int,
    session: Session = Depends(get_db),
    current: AuthenticatedUser = Depends(get_current_user),
    context: dict = Depends(get_audit_context),
    queue: ReminderQueue = Depends(get_reminder_queue),
) -> MessageResponse:
    try:
        delete_appointment(
            session,
            appointment_id=appointment_id,
            actor_id=current.user.id,
            role=current.role_code,
            queue=queue,
            context=context,
        )
    except SchedulingError as exc:
        raise http_error(exc) from exc
    return MessageResponse(detail="Appointment deleted")
