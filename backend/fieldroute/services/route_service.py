"""Route building, stop progress and technician assignments."""

from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fieldroute.adapters.geocode import MapboxGeocoder
from fieldroute.adapters.notifications import Notifier, get_notifier
from fieldroute.exceptions import DoubleBooking, NotFound, PartialWriteFailure, ValidationFailed
from fieldroute.models.appointment import Appointment, AppointmentStatus
from fieldroute.models.audit_log import AuditAction
from fieldroute.models.customer import Customer
from fieldroute.models.route import (
    DailyRoute,
    RouteStatus,
    RouteStop,
    RouteStopStatus,
    TechnicianCustomerAssignment,
)
from fieldroute.models.user import User
from fieldroute.schemas.route import RouteCreate, RouteStopInput
from fieldroute.services.route_assembler import fallback_appointments
from fieldroute.services.route_sequencer import find_route_for_appointment
from fieldroute.services.store import record_audit, store_errors
from fieldroute.utils.logging import RouteLogger, get_logger

logger = get_logger("services.routes")


class RouteService:
    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        self.db = db
        self.notifier = notifier or get_notifier()

    async def get_route(self, route_id: int) -> DailyRoute:
        with store_errors("route lookup"):
            result = await self.db.execute(
                select(DailyRoute)
                .options(selectinload(DailyRoute.stops))
                .where(DailyRoute.id == route_id)
                .execution_options(populate_existing=True)
            )
        route = result.scalar_one_or_none()
        if route is None:
            raise NotFound("Route", route_id)
        return route

    async def list_routes(
        self,
        route_date: Optional[date] = None,
        technician_id: Optional[int] = None,
    ) -> List[DailyRoute]:
        """Routes newest first; several may exist for one technician and date."""
        query = select(DailyRoute).options(selectinload(DailyRoute.stops))
        if route_date is not None:
            query = query.where(DailyRoute.route_date == route_date)
        if technician_id is not None:
            query = query.where(DailyRoute.technician_id == technician_id)
        query = query.order_by(DailyRoute.created_at.desc(), DailyRoute.id.desc()).execution_options(
            populate_existing=True
        )
        with store_errors("route listing"):
            result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_route(self, payload: RouteCreate, created_by: Optional[int]) -> DailyRoute:
        """Create a route and its stops in the given order.

        The route row is committed first and each stop is committed on its
        own. If a stop write fails, ``PartialWriteFailure`` carries the route
        id, the ids of the stops written and the 1-based positions still
        missing.
        """
        technician = await self.db.get(User, payload.technician_id)
        if technician is None:
            raise NotFound("Technician", payload.technician_id)

        stop_rows = await self._resolve_stops(payload.stops)
        durations = [s["estimated_duration_minutes"] for s in stop_rows if s["estimated_duration_minutes"]]

        route = DailyRoute(
            route_date=payload.route_date,
            technician_id=payload.technician_id,
            status=RouteStatus.PENDING.value,
            created_by=created_by,
            notes=payload.notes,
            total_estimated_duration_minutes=sum(durations) if durations else None,
        )
        with store_errors("route create"):
            self.db.add(route)
            await self.db.flush()
            record_audit(
                self.db,
                user_id=created_by,
                action=AuditAction.ROUTE_CREATED,
                entity_type="route",
                entity_id=route.id,
                payload={"technician_id": route.technician_id, "route_date": route.route_date, "stops": len(stop_rows)},
            )
            await self.db.commit()

        # A failed stop write rolls back and expires ``route``.
        route_id = route.id
        log = RouteLogger(route_id, "services.routes")
        written: List[int] = []
        for position, row in enumerate(stop_rows, start=1):
            stop = RouteStop(route_id=route_id, stop_order=position, status=RouteStopStatus.PENDING.value, **row)
            try:
                self.db.add(stop)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                remaining = list(range(position, len(stop_rows) + 1))
                log.error("route_create_partial_failure", written=written, remaining_positions=remaining, error=str(e))
                raise PartialWriteFailure(
                    f"Route {route_id} was created but only {len(written)} of {len(stop_rows)} stops were written",
                    completed=written,
                    remaining=remaining,
                    route_id=route_id,
                ) from e
            written.append(stop.id)
            log.stop_written(stop.id, position)

        log.log(
            "route_created",
            technician_id=route.technician_id,
            route_date=str(route.route_date),
            stops=len(written),
        )
        return await self.get_route(route_id)

    async def generate_from_appointments(
        self,
        technician_id: int,
        route_date: date,
        created_by: Optional[int],
    ) -> DailyRoute:
        """Build a route from the technician's appointments for the day, by time."""
        existing = await self.list_routes(route_date=route_date, technician_id=technician_id)
        if existing:
            raise ValidationFailed(
                f"Technician {technician_id} already has route {existing[0].id} for {route_date}"
            )

        source, candidates = await fallback_appointments(self.db, technician_id, route_date)
        stops: List[RouteStopInput] = []
        for appointment in candidates:
            if appointment.customer_id is None or appointment.status == AppointmentStatus.CANCELLED.value:
                continue
            if await find_route_for_appointment(self.db, appointment.id) is not None:
                continue
            stops.append(
                RouteStopInput(
                    appointment_id=appointment.id,
                    customer_id=appointment.customer_id,
                    estimated_arrival_time=appointment.appointment_time,
                )
            )
        if not stops:
            raise ValidationFailed(f"No appointments to route for technician {technician_id} on {route_date}")

        logger.info(
            "route_generation_started",
            technician_id=technician_id,
            route_date=str(route_date),
            source=source.value,
            candidates=len(candidates),
            stops=len(stops),
        )
        return await self.create_route(
            RouteCreate(route_date=route_date, technician_id=technician_id, stops=stops),
            created_by,
        )

    async def delete_route(self, route_id: int, actor_id: Optional[int]) -> None:
        route = await self.get_route(route_id)
        with store_errors("route delete"):
            await self.db.delete(route)
            record_audit(
                self.db,
                user_id=actor_id,
                action=AuditAction.ROUTE_DELETED,
                entity_type="route",
                entity_id=route_id,
                payload={"technician_id": route.technician_id, "route_date": route.route_date},
            )
            await self.db.commit()
        logger.info("route_deleted", route_id=route_id)

    async def update_stop_progress(
        self,
        route_id: int,
        stop_id: int,
        status: RouteStopStatus,
        notes: Optional[str] = None,
    ) -> RouteStop:
        """Record a stop status; ``en_route`` texts the customer.

        The notification result is logged and never fails the update.
        """
        with store_errors("route stop lookup"):
            result = await self.db.execute(
                select(RouteStop).where(RouteStop.id == stop_id, RouteStop.route_id == route_id)
            )
        stop = result.scalar_one_or_none()
        if stop is None:
            raise NotFound("RouteStop", stop_id)

        now = datetime.now(timezone.utc)
        stop.status = status.value
        if status == RouteStopStatus.ARRIVED and stop.actual_arrival_time is None:
            stop.actual_arrival_time = now
        elif status in (RouteStopStatus.COMPLETED, RouteStopStatus.SKIPPED):
            stop.actual_departure_time = now
        if notes is not None:
            stop.notes = notes

        with store_errors("route stop progress"):
            await self.db.commit()

        log = RouteLogger(route_id, "services.routes")
        log.log("route_stop_progress", stop_id=stop_id, status=stop.status)

        if status == RouteStopStatus.EN_ROUTE:
            await self._notify_en_route(stop, log)
        return stop

    async def _notify_en_route(self, stop: RouteStop, log: RouteLogger) -> None:
        customer = await self.db.get(Customer, stop.customer_id)
        if customer is None:
            log.warning("en_route_notification_skipped", stop_id=stop.id, reason="customer_missing")
            return
        recipient = customer.phone or customer.email
        if not recipient:
            log.warning("en_route_notification_skipped", stop_id=stop.id, reason="no_contact")
            return

        message = f"Hi {customer.first_name}, your technician is on the way"
        if stop.estimated_arrival_time is not None:
            message += f" and should arrive around {stop.estimated_arrival_time.strftime('%I:%M %p').lstrip('0')}"
        message += "."

        result = await self.notifier.notify(recipient, message)
        if result.sent:
            log.log("en_route_notification_sent", stop_id=stop.id, customer_id=customer.id)
        else:
            log.warning("en_route_notification_failed", stop_id=stop.id, error=result.error)

    async def locate_stops(self, route_id: int, geocoder: MapboxGeocoder) -> List[Dict[str, object]]:
        """Coordinates for each stop, geocoding and saving customers that lack them."""
        route = await self.get_route(route_id)
        located: List[Dict[str, object]] = []
        for stop in route.stops:
            customer = await self.db.get(Customer, stop.customer_id)
            entry: Dict[str, object] = {
                "stop_id": stop.id,
                "stop_order": stop.stop_order,
                "customer_id": stop.customer_id,
                "address": customer.full_address if customer else None,
                "lat": customer.latitude if customer else None,
                "lng": customer.longitude if customer else None,
            }
            if customer is not None and customer.latitude is None and entry["address"]:
                coords = await geocoder.resolve(entry["address"])
                if coords is not None:
                    customer.latitude = coords.lat
                    customer.longitude = coords.lng
                    entry.update(lat=coords.lat, lng=coords.lng)
            located.append(entry)
        with store_errors("customer geocode update"):
            await self.db.commit()
        return located

    async def list_assignments(self, technician_id: int) -> List[TechnicianCustomerAssignment]:
        with store_errors("assignment listing"):
            result = await self.db.execute(
                select(TechnicianCustomerAssignment)
                .where(TechnicianCustomerAssignment.technician_id == technician_id)
                .order_by(TechnicianCustomerAssignment.id)
            )
        return list(result.scalars().all())

    async def assign_customer(self, technician_id: int, customer_id: int) -> TechnicianCustomerAssignment:
        """Assign a customer to a technician; assigning twice returns the existing row."""
        if await self.db.get(User, technician_id) is None:
            raise NotFound("Technician", technician_id)
        if await self.db.get(Customer, customer_id) is None:
            raise NotFound("Customer", customer_id)

        with store_errors("assignment create"):
            result = await self.db.execute(
                select(TechnicianCustomerAssignment).where(
                    TechnicianCustomerAssignment.technician_id == technician_id,
                    TechnicianCustomerAssignment.customer_id == customer_id,
                )
            )
            assignment = result.scalar_one_or_none()
            if assignment is not None:
                return assignment
            assignment = TechnicianCustomerAssignment(technician_id=technician_id, customer_id=customer_id)
            self.db.add(assignment)
            await self.db.flush()
            await self.db.refresh(assignment)
        logger.info("customer_assigned", technician_id=technician_id, customer_id=customer_id)
        return assignment

    async def unassign_customer(self, technician_id: int, customer_id: int) -> None:
        with store_errors("assignment delete"):
            result = await self.db.execute(
                select(TechnicianCustomerAssignment).where(
                    TechnicianCustomerAssignment.technician_id == technician_id,
                    TechnicianCustomerAssignment.customer_id == customer_id,
                )
            )
            assignment = result.scalar_one_or_none()
            if assignment is None:
                raise NotFound("Assignment", f"{technician_id}/{customer_id}")
            await self.db.delete(assignment)
            await self.db.flush()
        logger.info("customer_unassigned", technician_id=technician_id, customer_id=customer_id)

    async def _resolve_stops(self, stops: Sequence[RouteStopInput]) -> List[Dict[str, object]]:
        """Validate requested stops against the store before anything is written."""
        rows: List[Dict[str, object]] = []
        seen: set = set()
        for stop in stops:
            customer_id = stop.customer_id
            arrival = stop.estimated_arrival_time
            if stop.appointment_id is not None:
                if stop.appointment_id in seen:
                    raise ValidationFailed(f"Appointment {stop.appointment_id} listed more than once")
                seen.add(stop.appointment_id)
                appointment = await self.db.get(Appointment, stop.appointment_id)
                if appointment is None:
                    raise NotFound("Appointment", stop.appointment_id)
                existing_route = await find_route_for_appointment(self.db, stop.appointment_id)
                if existing_route is not None:
                    raise DoubleBooking(stop.appointment_id, existing_route)
                if customer_id is None:
                    customer_id = appointment.customer_id
                if arrival is None:
                    arrival = appointment.appointment_time
            if customer_id is None:
                raise ValidationFailed("A stop needs a customer or an appointment with a customer")
            rows.append(
                dict(
                    appointment_id=stop.appointment_id,
                    customer_id=customer_id,
                    estimated_arrival_time=arrival,
                    estimated_duration_minutes=stop.estimated_duration_minutes,
                    notes=stop.notes,
                )
            )
        return rows
