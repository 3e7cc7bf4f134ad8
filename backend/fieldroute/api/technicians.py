from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.database import get_db
from fieldroute.models.route import TechnicianCustomerAssignment
from fieldroute.models.user import User
from fieldroute.schemas.appointment import AppointmentResponse
from fieldroute.schemas.route import AssignmentCreate, AssignmentResponse, ItineraryResponse
from fieldroute.services.route_assembler import RouteAssembler
from fieldroute.services.route_service import RouteService
from fieldroute.utils.security import ensure_own_schedule, get_current_user, require_dispatcher
from fieldroute.utils.utils import business_today

router = APIRouter()


@router.get("/{technician_id}/itinerary", response_model=ItineraryResponse)
async def get_itinerary(
    technician_id: int,
    on_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ItineraryResponse:
    """Ordered appointments for the technician; defaults to today."""
    ensure_own_schedule(current_user, technician_id)
    itinerary = await RouteAssembler(db).assemble(technician_id, on_date or business_today())
    return ItineraryResponse(
        technician_id=itinerary.technician_id,
        itinerary_date=itinerary.itinerary_date,
        source=itinerary.source.value,
        route_id=itinerary.route_id,
        appointments=[AppointmentResponse.model_validate(a) for a in itinerary.appointments],
    )


@router.get("/{technician_id}/assignments", response_model=List[AssignmentResponse])
async def list_assignments(
    technician_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> List[TechnicianCustomerAssignment]:
    return await RouteService(db).list_assignments(technician_id)


@router.post(
    "/{technician_id}/assignments",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_customer(
    technician_id: int,
    request: AssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> TechnicianCustomerAssignment:
    return await RouteService(db).assign_customer(technician_id, request.customer_id)


@router.delete("/{technician_id}/assignments/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_customer(
    technician_id: int,
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> None:
    await RouteService(db).unassign_customer(technician_id, customer_id)
