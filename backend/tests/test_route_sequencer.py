import gc
from datetime import date, time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from fieldroute.database import async_session_maker
from fieldroute.exceptions import DoubleBooking, NotFound, PartialWriteFailure, ValidationFailed
from fieldroute.models.audit_log import AuditAction, AuditLog
from fieldroute.models.route import RouteStop
from fieldroute.services import route_sequencer
from fieldroute.services.route_sequencer import RouteStopSequencer, sequence

from helpers import make_appointment, make_customer, make_route, make_user

ROUTE_DATE = date(2024, 6, 1)


def test_sequence_is_dense_and_stable_on_ties():
    assert sequence([(10, 5), (11, 2), (12, 5), (13, 40)]) == [(11, 1), (10, 2), (12, 3), (13, 4)]
    assert sequence([]) == []


async def _route_with_stops(db, count: int):
    tech = await make_user(db, "tech@example.com")
    customers = [await make_customer(db, first_name=f"C{i}") for i in range(count)]
    route = await make_route(db, tech, ROUTE_DATE, [(None, c, i + 1) for i, c in enumerate(customers)])
    stops = await RouteStopSequencer(db).load_stops(route.id)
    return tech, route, stops


def _orders(stops):
    return [(s.id, s.stop_order) for s in stops]


@pytest.mark.asyncio
async def test_reorder_with_gaps_and_duplicates():
    async with async_session_maker() as db:
        _, route, (a, b, c) = await _route_with_stops(db, 3)

        result = await RouteStopSequencer(db).reorder(route.id, [(c.id, 10), (a.id, 10), (b.id, 3)])

        assert _orders(result) == [(b.id, 1), (c.id, 2), (a.id, 3)]


@pytest.mark.asyncio
async def test_unlisted_stops_follow_listed_ones():
    async with async_session_maker() as db:
        _, route, (a, b, c, d) = await _route_with_stops(db, 4)

        result = await RouteStopSequencer(db).reorder(route.id, [(d.id, 1)])

        assert [s.id for s in result] == [d.id, a.id, b.id, c.id]
        assert [s.stop_order for s in result] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_reorder_rejects_foreign_and_repeated_stops():
    async with async_session_maker() as db:
        _, route, (a, b) = await _route_with_stops(db, 2)
        sequencer = RouteStopSequencer(db)

        with pytest.raises(NotFound):
            await sequencer.reorder(route.id, [(999, 1)])
        with pytest.raises(ValidationFailed):
            await sequencer.reorder(route.id, [(a.id, 1), (a.id, 2)])
        with pytest.raises(NotFound):
            await sequencer.reorder(424242, [])


@pytest.mark.asyncio
async def test_insert_at_position_and_remove_keep_orders_dense():
    async with async_session_maker() as db:
        _, route, (a, b, c) = await _route_with_stops(db, 3)
        extra = await make_customer(db, first_name="Extra")
        sequencer = RouteStopSequencer(db)

        new_stop = await sequencer.insert_stop(route.id, customer_id=extra.id, position=2)
        stops = await sequencer.load_stops(route.id)
        assert [s.id for s in stops] == [a.id, new_stop.id, b.id, c.id]
        assert [s.stop_order for s in stops] == [1, 2, 3, 4]

        appended = await sequencer.insert_stop(route.id, customer_id=extra.id)
        assert appended.stop_order == 5

        stops = await sequencer.remove_stop(route.id, b.id)
        assert [s.id for s in stops] == [a.id, new_stop.id, c.id, appended.id]
        assert [s.stop_order for s in stops] == [1, 2, 3, 4]

        with pytest.raises(ValidationFailed):
            await sequencer.insert_stop(route.id, customer_id=extra.id, position=9)
        with pytest.raises(NotFound):
            await sequencer.remove_stop(route.id, b.id)


@pytest.mark.asyncio
async def test_insert_appointment_refuses_double_booking():
    async with async_session_maker() as db:
        tech = await make_user(db, "tech@example.com")
        customer = await make_customer(db)
        appt = await make_appointment(db, customer, ROUTE_DATE, at_time=time(8, 30))
        first = await make_route(db, tech, ROUTE_DATE)
        second = await make_route(db, tech, ROUTE_DATE)
        sequencer = RouteStopSequencer(db)

        stop = await sequencer.insert_stop(first.id, appointment_id=appt.id)
        assert stop.customer_id == customer.id
        assert stop.estimated_arrival_time == time(8, 30)

        with pytest.raises(DoubleBooking) as exc:
            await sequencer.insert_stop(second.id, appointment_id=appt.id)
        assert exc.value.route_id == first.id


@pytest.mark.asyncio
async def test_partial_write_failure_then_retry_writes_only_the_rest(monkeypatch):
    async with async_session_maker() as db:
        _, route, stops = await _route_with_stops(db, 4)
        route_id = route.id
        a, b, c, d = [s.id for s in stops]
        sequencer = RouteStopSequencer(db)
        desired = [(d, 1), (c, 2), (b, 3), (a, 4)]

        real_commit = db.commit
        calls = {"n": 0}

        async def flaky_commit():
            calls["n"] += 1
            if calls["n"] == 3:
                raise OperationalError("UPDATE route_stops", {}, Exception("connection reset"))
            await real_commit()

        monkeypatch.setattr(db, "commit", flaky_commit)
        with pytest.raises(PartialWriteFailure) as exc:
            await sequencer.reorder(route_id, desired)

        failure = exc.value
        assert failure.route_id == route_id
        assert failure.completed == [d, c]
        assert failure.remaining == [b, a]

        result = await db.execute(
            select(RouteStop.id, RouteStop.stop_order).where(RouteStop.route_id == route_id)
        )
        stored = dict(result.all())
        assert stored == {a: 1, b: 2, c: 2, d: 1}

        commits = {"n": 0}

        async def counting_commit():
            commits["n"] += 1
            await real_commit()

        monkeypatch.setattr(db, "commit", counting_commit)
        final = await sequencer.reorder(route_id, desired)

        # two stop writes, then the audit row
        assert commits["n"] == 3
        assert [s.id for s in final] == [d, c, b, a]
        assert [s.stop_order for s in final] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_reorder_records_audit_only_when_order_changes():
    async with async_session_maker() as db:
        tech, route, (a, b, c) = await _route_with_stops(db, 3)
        sequencer = RouteStopSequencer(db)

        await sequencer.reorder(route.id, [(a.id, 1), (b.id, 2), (c.id, 3)], actor_id=tech.id)
        await sequencer.reorder(route.id, [(c.id, 1)], actor_id=tech.id)

        audits = (
            await db.execute(select(AuditLog).where(AuditLog.action == AuditAction.ROUTE_REORDERED.value))
        ).scalars().all()
        assert len(audits) == 1
        assert audits[0].entity_id == route.id
        assert audits[0].user_id == tech.id


@pytest.mark.asyncio
async def test_route_lock_is_released_after_use():
    async with async_session_maker() as db:
        _, route, (a, b) = await _route_with_stops(db, 2)

        await RouteStopSequencer(db).reorder(route.id, [(b.id, 1)])
        gc.collect()

        assert route.id not in route_sequencer._route_locks
