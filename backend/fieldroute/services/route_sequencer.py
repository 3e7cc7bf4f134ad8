"""Dense 1-based ordering of the stops within a route.

Every change to ``RouteStop.stop_order`` goes through this module. New orders
are written one stop per commit, so a failure can leave a route half
renumbered; the failure reports which stops were written and a retry of the
same request writes only the stops whose stored order still differs from the
target.
"""

import asyncio
import weakref
from datetime import time
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.exceptions import DoubleBooking, NotFound, PartialWriteFailure, ValidationFailed
from fieldroute.models.appointment import Appointment
from fieldroute.models.audit_log import AuditAction
from fieldroute.models.route import DailyRoute, RouteStop, RouteStopStatus
from fieldroute.services.store import record_audit, store_errors
from fieldroute.utils.logging import RouteLogger

# Same-route mutations inside one process are serialised; across processes
# callers must not reorder one route concurrently. A lock lives only while
# some mutation holds or awaits it.
_route_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(route_id: int) -> asyncio.Lock:
    lock = _route_locks.get(route_id)
    if lock is None:
        lock = asyncio.Lock()
        _route_locks[route_id] = lock
    return lock


def sequence(entries: Sequence[Tuple[int, float]]) -> List[Tuple[int, int]]:
    """Assign orders ``1..N`` from caller-desired orders.

    Desired orders may have gaps or duplicates; ties keep their input order.
    """
    ranked = sorted(enumerate(entries), key=lambda item: (item[1][1], item[0]))
    return [(stop_id, position) for position, (_, (stop_id, _desired)) in enumerate(ranked, start=1)]


async def find_route_for_appointment(db: AsyncSession, appointment_id: int) -> Optional[int]:
    """Id of the route that already has ``appointment_id`` as a stop, if any."""
    with store_errors("double booking check"):
        result = await db.execute(
            select(RouteStop.route_id).where(RouteStop.appointment_id == appointment_id).limit(1)
        )
    return result.scalar_one_or_none()


class RouteStopSequencer:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_stops(self, route_id: int) -> List[RouteStop]:
        with store_errors("route stop lookup"):
            route = await self.db.get(DailyRoute, route_id)
            if route is None:
                raise NotFound("Route", route_id)
            result = await self.db.execute(
                select(RouteStop)
                .where(RouteStop.route_id == route_id)
                .order_by(RouteStop.stop_order.asc(), RouteStop.id.asc())
                .execution_options(populate_existing=True)
            )
        return list(result.scalars().all())

    async def reorder(
        self,
        route_id: int,
        desired: Sequence[Tuple[int, int]],
        actor_id: Optional[int] = None,
    ) -> List[RouteStop]:
        """Commit a new stop order for ``route_id``.

        ``desired`` lists ``(stop_id, desired_order)`` pairs. Stops of the
        route that are not listed keep their relative order after the listed
        ones. Returns the route's stops in their committed order. A reorder
        that changes anything leaves a ``route_reordered`` audit row.
        """
        async with _lock_for(route_id):
            before = [s.id for s in await self.load_stops(route_id)]
            stops = await self._reorder(route_id, desired)
            after = [s.id for s in stops]
            if after != before:
                with store_errors("route reorder audit"):
                    record_audit(
                        self.db,
                        user_id=actor_id,
                        action=AuditAction.ROUTE_REORDERED,
                        entity_type="route",
                        entity_id=route_id,
                        payload={"stop_ids": after},
                    )
                    await self.db.commit()
            return stops

    async def renumber(self, route_id: int) -> List[RouteStop]:
        """Close gaps and duplicates while keeping the current order."""
        return await self.reorder(route_id, [])

    async def insert_stop(
        self,
        route_id: int,
        *,
        customer_id: Optional[int] = None,
        appointment_id: Optional[int] = None,
        position: Optional[int] = None,
        estimated_arrival_time: Optional[time] = None,
        estimated_duration_minutes: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> RouteStop:
        """Add a stop, appended unless ``position`` (1-based) is given."""
        async with _lock_for(route_id):
            stops = await self.load_stops(route_id)

            if appointment_id is not None:
                appointment = await self.db.get(Appointment, appointment_id)
                if appointment is None:
                    raise NotFound("Appointment", appointment_id)
                existing_route = await find_route_for_appointment(self.db, appointment_id)
                if existing_route is not None:
                    raise DoubleBooking(appointment_id, existing_route)
                if customer_id is None:
                    customer_id = appointment.customer_id
                if estimated_arrival_time is None:
                    estimated_arrival_time = appointment.appointment_time
            if customer_id is None:
                raise ValidationFailed("A stop needs a customer or an appointment with a customer")
            if position is not None and not 1 <= position <= len(stops) + 1:
                raise ValidationFailed(f"Stop position must be between 1 and {len(stops) + 1}")

            stop = RouteStop(
                route_id=route_id,
                customer_id=customer_id,
                appointment_id=appointment_id,
                stop_order=len(stops) + 1,
                estimated_arrival_time=estimated_arrival_time,
                estimated_duration_minutes=estimated_duration_minutes,
                status=RouteStopStatus.PENDING.value,
                notes=notes,
            )
            with store_errors("route stop insert"):
                self.db.add(stop)
                await self.db.commit()

            ordered_ids = [s.id for s in stops]
            index = (position - 1) if position is not None else len(ordered_ids)
            ordered_ids.insert(index, stop.id)
            await self._reorder(route_id, [(sid, i) for i, sid in enumerate(ordered_ids, start=1)])

            RouteLogger(route_id, "services.route_sequencer").log(
                "route_stop_inserted", stop_id=stop.id, stop_order=stop.stop_order
            )
            return stop

    async def remove_stop(self, route_id: int, stop_id: int) -> List[RouteStop]:
        """Delete a stop and renumber the rest to close the gap."""
        async with _lock_for(route_id):
            stops = await self.load_stops(route_id)
            if stop_id not in {s.id for s in stops}:
                raise NotFound("RouteStop", stop_id)
            with store_errors("route stop delete"):
                await self.db.execute(delete(RouteStop).where(RouteStop.id == stop_id))
                await self.db.commit()
            RouteLogger(route_id, "services.route_sequencer").log("route_stop_removed", stop_id=stop_id)
            return await self._reorder(route_id, [])

    async def _reorder(self, route_id: int, desired: Sequence[Tuple[int, int]]) -> List[RouteStop]:
        log = RouteLogger(route_id, "services.route_sequencer")
        stops = await self.load_stops(route_id)
        by_id = {s.id: s for s in stops}

        seen = set()
        for stop_id, _ in desired:
            if stop_id not in by_id:
                raise NotFound("RouteStop", stop_id)
            if stop_id in seen:
                raise ValidationFailed(f"Stop {stop_id} listed more than once")
            seen.add(stop_id)

        entries: List[Tuple[int, float]] = [(sid, float(order)) for sid, order in desired]
        entries.extend((s.id, float("inf")) for s in stops if s.id not in seen)
        targets = sequence(entries)

        pending = [(sid, order) for sid, order in targets if by_id[sid].stop_order != order]
        written: List[int] = []
        for index, (stop_id, order) in enumerate(pending):
            try:
                await self.db.execute(
                    update(RouteStop).where(RouteStop.id == stop_id).values(stop_order=order)
                )
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                remaining = [sid for sid, _ in pending[index:]]
                log.error(
                    "route_reorder_partial_failure",
                    written=written,
                    remaining=remaining,
                    error=str(e),
                )
                raise PartialWriteFailure(
                    f"Reorder of route {route_id} stopped after {len(written)} of {len(pending)} stops",
                    completed=written,
                    remaining=remaining,
                    route_id=route_id,
                ) from e
            written.append(stop_id)
            log.stop_written(stop_id, order)

        if pending:
            log.log("route_reordered", stops=len(targets), written=len(written))
        return await self.load_stops(route_id)
