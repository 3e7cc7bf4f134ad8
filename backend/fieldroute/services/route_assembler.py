"""Builds a technician's ordered itinerary for one date."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.models.appointment import Appointment
from fieldroute.models.route import DailyRoute, RouteStop, TechnicianCustomerAssignment
from fieldroute.services.store import store_errors
from fieldroute.utils.logging import get_logger

logger = get_logger("services.route_assembler")


class ItinerarySource(str, Enum):
    ROUTE = "route"
    ASSIGNMENTS = "assignments"
    OWNER = "owner"
    CACHE = "cache"


@dataclass
class Itinerary:
    technician_id: int
    itinerary_date: date
    source: ItinerarySource
    appointments: List[Appointment]
    route_id: Optional[int] = None
    cached_at: Optional[datetime] = None


async def latest_route(db: AsyncSession, technician_id: int, on_date: date) -> Optional[DailyRoute]:
    """Most recently created route for the technician and date."""
    with store_errors("route lookup"):
        result = await db.execute(
            select(DailyRoute)
            .where(DailyRoute.technician_id == technician_id, DailyRoute.route_date == on_date)
            .order_by(DailyRoute.created_at.desc(), DailyRoute.id.desc())
            .limit(1)
        )
    return result.scalar_one_or_none()


async def fallback_appointments(
    db: AsyncSession,
    technician_id: int,
    on_date: date,
) -> Tuple[ItinerarySource, List[Appointment]]:
    """Appointments for the date when no route applies, ordered by time.

    Restricted to the technician's assigned customers when there are any,
    otherwise to appointments the technician owns.
    """
    with store_errors("assignment lookup"):
        result = await db.execute(
            select(TechnicianCustomerAssignment.customer_id).where(
                TechnicianCustomerAssignment.technician_id == technician_id
            )
        )
        customer_ids = list(result.scalars().all())

        query = select(Appointment).where(Appointment.appointment_date == on_date)
        if customer_ids:
            source = ItinerarySource.ASSIGNMENTS
            query = query.where(Appointment.customer_id.in_(customer_ids))
        else:
            source = ItinerarySource.OWNER
            query = query.where(Appointment.user_id == technician_id)
        query = query.order_by(Appointment.appointment_time.asc().nulls_last(), Appointment.id.asc())
        result = await db.execute(query)
    return source, list(result.scalars().all())


class RouteAssembler:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def assemble(self, technician_id: int, on_date: date) -> Itinerary:
        """Ordered appointments for ``technician_id`` on ``on_date``.

        Stop order of the latest route wins over appointment times as long as
        at least one of its stops references an appointment.
        """
        route = await latest_route(self.db, technician_id, on_date)
        if route is not None:
            with store_errors("route itinerary"):
                result = await self.db.execute(
                    select(Appointment)
                    .join(RouteStop, RouteStop.appointment_id == Appointment.id)
                    .where(RouteStop.route_id == route.id)
                    .order_by(RouteStop.stop_order.asc(), RouteStop.id.asc())
                )
            appointments = list(result.scalars().all())
            if appointments:
                logger.info(
                    "itinerary_assembled",
                    technician_id=technician_id,
                    date=str(on_date),
                    source=ItinerarySource.ROUTE.value,
                    route_id=route.id,
                    count=len(appointments),
                )
                return Itinerary(
                    technician_id=technician_id,
                    itinerary_date=on_date,
                    source=ItinerarySource.ROUTE,
                    appointments=appointments,
                    route_id=route.id,
                )

        source, appointments = await fallback_appointments(self.db, technician_id, on_date)
        logger.info(
            "itinerary_assembled",
            technician_id=technician_id,
            date=str(on_date),
            source=source.value,
            count=len(appointments),
        )
        return Itinerary(
            technician_id=technician_id,
            itinerary_date=on_date,
            source=source,
            appointments=appointments,
        )
