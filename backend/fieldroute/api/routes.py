"""Daily route endpoints: building, ordering, progress and approval."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.adapters.geocode import MapboxGeocoder
from fieldroute.database import get_db
from fieldroute.models.route import DailyRoute, RouteChangeRequest, RouteStop
from fieldroute.models.user import User
from fieldroute.schemas.route import (
    ChangeRequestCreate,
    ChangeRequestResponse,
    RouteCreate,
    RouteGenerateRequest,
    RouteListResponse,
    RouteResponse,
    RouteStopResponse,
    StopInsertRequest,
    StopLocation,
    StopOrderRequest,
    StopProgressUpdate,
)
from fieldroute.services.route_sequencer import RouteStopSequencer
from fieldroute.services.route_service import RouteService
from fieldroute.services.route_workflow import RouteWorkflow
from fieldroute.utils.security import get_current_user, require_dispatcher, require_technician

router = APIRouter()


@router.get("/", response_model=RouteListResponse)
async def list_routes(
    route_date: Optional[date] = None,
    technician_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> RouteListResponse:
    if current_user.is_technician:
        technician_id = current_user.id
    routes = await RouteService(db).list_routes(route_date=route_date, technician_id=technician_id)
    return RouteListResponse(
        routes=[RouteResponse.model_validate(r) for r in routes],
        total=len(routes),
    )


@router.post("/", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
async def create_route(
    payload: RouteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> DailyRoute:
    return await RouteService(db).create_route(payload, created_by=current_user.id)


@router.post("/generate", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
async def generate_route(
    request: RouteGenerateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> DailyRoute:
    """Build a route from the technician's appointments for the day."""
    return await RouteService(db).generate_from_appointments(
        request.technician_id, request.route_date, created_by=current_user.id
    )


@router.get("/{route_id}", response_model=RouteResponse)
async def get_route(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DailyRoute:
    return await RouteService(db).get_route(route_id)


@router.delete("/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> None:
    await RouteService(db).delete_route(route_id, actor_id=current_user.id)


@router.post("/{route_id}/approve", response_model=RouteResponse)
async def approve_route(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> DailyRoute:
    await RouteWorkflow(db).approve(route_id, current_user)
    return await RouteService(db).get_route(route_id)


@router.get("/{route_id}/locations", response_model=List[StopLocation])
async def get_stop_locations(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list:
    """Stop coordinates for map display; missing ones are geocoded and saved."""
    return await RouteService(db).locate_stops(route_id, MapboxGeocoder())


@router.post("/{route_id}/stops", response_model=RouteStopResponse, status_code=status.HTTP_201_CREATED)
async def insert_stop(
    route_id: int,
    request: StopInsertRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> RouteStop:
    return await RouteStopSequencer(db).insert_stop(
        route_id,
        customer_id=request.customer_id,
        appointment_id=request.appointment_id,
        position=request.position,
        estimated_arrival_time=request.estimated_arrival_time,
        estimated_duration_minutes=request.estimated_duration_minutes,
        notes=request.notes,
    )


@router.delete("/{route_id}/stops/{stop_id}", response_model=List[RouteStopResponse])
async def remove_stop(
    route_id: int,
    stop_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> List[RouteStop]:
    return await RouteStopSequencer(db).remove_stop(route_id, stop_id)


@router.put("/{route_id}/stops/order", response_model=List[RouteStopResponse])
async def reorder_stops(
    route_id: int,
    request: StopOrderRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> List[RouteStop]:
    return await RouteStopSequencer(db).reorder(
        route_id,
        [(item.stop_id, item.stop_order) for item in request.stops],
        actor_id=current_user.id,
    )


@router.post("/{route_id}/stops/{stop_id}/progress", response_model=RouteStopResponse)
async def update_stop_progress(
    route_id: int,
    stop_id: int,
    request: StopProgressUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_technician),
) -> RouteStop:
    return await RouteService(db).update_stop_progress(route_id, stop_id, request.status, request.notes)


@router.post(
    "/{route_id}/change-requests",
    response_model=ChangeRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_change_request(
    route_id: int,
    request: ChangeRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_technician),
) -> RouteChangeRequest:
    return await RouteWorkflow(db).submit_change_request(
        route_id, current_user, request.request_type, request.request_data
    )


@router.get("/{route_id}/change-requests", response_model=List[ChangeRequestResponse])
async def list_route_change_requests(
    route_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> List[RouteChangeRequest]:
    return await RouteWorkflow(db).list_for_route(route_id)
