from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.database import get_db
from fieldroute.models.appointment import Appointment, SeriesScope
from fieldroute.models.user import User
from fieldroute.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentStatusChange,
    AppointmentUpdate,
    BacklogScheduleRequest,
    SeriesChangeResponse,
)
from fieldroute.services.appointment_service import AppointmentService
from fieldroute.services.series_resolver import resolve_scope
from fieldroute.utils.security import get_current_user, require_dispatcher, require_technician
from fieldroute.utils.utils import business_today

router = APIRouter()


def _list_response(appointments: List[Appointment]) -> AppointmentListResponse:
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments],
        total=len(appointments),
    )


@router.get("/", response_model=AppointmentListResponse)
async def list_appointments(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    user_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AppointmentListResponse:
    date_from = date_from or business_today()
    date_to = date_to or date_from + timedelta(days=30)
    # Technicians only see their own book.
    if current_user.is_technician:
        user_id = current_user.id
    appointments = await AppointmentService(db).list_between(date_from, date_to, user_id)
    return _list_response(appointments)


@router.post("/", response_model=AppointmentListResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> AppointmentListResponse:
    """Book an appointment; recurring bookings return the whole series, root first."""
    created = await AppointmentService(db).create(payload, owner_id=current_user.id)
    return _list_response(created)


@router.get("/backlog", response_model=AppointmentListResponse)
async def list_backlog(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> AppointmentListResponse:
    return _list_response(await AppointmentService(db).list_backlog())


@router.post("/{appointment_id}/schedule", response_model=AppointmentResponse)
async def schedule_backlog_job(
    appointment_id: int,
    request: BacklogScheduleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> Appointment:
    return await AppointmentService(db).schedule_from_backlog(
        appointment_id, request.appointment_date, request.appointment_time
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Appointment:
    return await AppointmentService(db).get(appointment_id)


@router.get("/{appointment_id}/series", response_model=AppointmentListResponse)
async def get_series_members(
    appointment_id: int,
    scope: SeriesScope = Query(SeriesScope.ALL),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AppointmentListResponse:
    """Preview the appointments an edit or delete with ``scope`` would touch."""
    appointment = await AppointmentService(db).get(appointment_id)
    return _list_response(await resolve_scope(db, appointment, scope))


@router.put("/{appointment_id}", response_model=SeriesChangeResponse)
async def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    scope: str = Query(SeriesScope.SINGLE.value),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> SeriesChangeResponse:
    updated, skipped = await AppointmentService(db).update(
        appointment_id, payload, scope=scope, actor_id=current_user.id
    )
    return SeriesChangeResponse(
        scope=scope,
        affected_ids=[a.id for a in updated],
        skipped_ids=skipped,
        appointments=[AppointmentResponse.model_validate(a) for a in updated],
    )


@router.delete("/{appointment_id}", response_model=SeriesChangeResponse)
async def delete_appointment(
    appointment_id: int,
    scope: str = Query(SeriesScope.SINGLE.value),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> SeriesChangeResponse:
    deleted = await AppointmentService(db).delete(appointment_id, scope=scope, actor_id=current_user.id)
    return SeriesChangeResponse(scope=scope, affected_ids=deleted)


@router.post("/{appointment_id}/status", response_model=AppointmentResponse)
async def change_status(
    appointment_id: int,
    request: AppointmentStatusChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_technician),
) -> Appointment:
    return await AppointmentService(db).change_status(appointment_id, request.status.value)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    request: AppointmentRescheduleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> Appointment:
    return await AppointmentService(db).reschedule(
        appointment_id, request.appointment_date, request.appointment_time
    )
