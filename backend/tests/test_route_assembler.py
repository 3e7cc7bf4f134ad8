from datetime import date, time

import pytest

from fieldroute.database import async_session_maker
from fieldroute.models.user import UserRole
from fieldroute.services.route_assembler import ItinerarySource, RouteAssembler

from helpers import assign, make_appointment, make_customer, make_route, make_user

DAY = date(2024, 6, 1)


@pytest.mark.asyncio
async def test_route_order_wins_over_appointment_time():
    async with async_session_maker() as db:
        tech = await make_user(db, "tech@example.com")
        customer = await make_customer(db)
        appt_a = await make_appointment(db, customer, DAY, at_time=time(8, 0), owner=tech)
        appt_b = await make_appointment(db, customer, DAY, at_time=time(15, 0), owner=tech)
        route = await make_route(db, tech, DAY, [(appt_a, customer, 2), (appt_b, customer, 1)])

        itinerary = await RouteAssembler(db).assemble(tech.id, DAY)

        assert itinerary.source == ItinerarySource.ROUTE
        assert itinerary.route_id == route.id
        assert [a.id for a in itinerary.appointments] == [appt_b.id, appt_a.id]


@pytest.mark.asyncio
async def test_latest_route_is_used():
    async with async_session_maker() as db:
        tech = await make_user(db, "tech@example.com")
        customer = await make_customer(db)
        appt_a = await make_appointment(db, customer, DAY, owner=tech)
        appt_b = await make_appointment(db, customer, DAY, owner=tech)
        await make_route(db, tech, DAY, [(appt_a, customer, 1)])
        newer = await make_route(db, tech, DAY, [(appt_b, customer, 1)])

        itinerary = await RouteAssembler(db).assemble(tech.id, DAY)

        assert itinerary.route_id == newer.id
        assert [a.id for a in itinerary.appointments] == [appt_b.id]


@pytest.mark.asyncio
async def test_route_without_linked_stops_falls_back():
    async with async_session_maker() as db:
        tech = await make_user(db, "tech@example.com")
        customer = await make_customer(db)
        late = await make_appointment(db, customer, DAY, at_time=time(16, 0), owner=tech)
        early = await make_appointment(db, customer, DAY, at_time=time(7, 30), owner=tech)
        await make_route(db, tech, DAY, [(None, customer, 1)])

        itinerary = await RouteAssembler(db).assemble(tech.id, DAY)

        assert itinerary.source == ItinerarySource.OWNER
        assert [a.id for a in itinerary.appointments] == [early.id, late.id]


@pytest.mark.asyncio
async def test_assignments_restrict_the_fallback():
    async with async_session_maker() as db:
        tech = await make_user(db, "tech@example.com")
        office = await make_user(db, "office@example.com", role=UserRole.DISPATCHER)
        mine = await make_customer(db, first_name="Assigned")
        other = await make_customer(db, first_name="Other")
        await assign(db, tech, mine)

        second = await make_appointment(db, mine, DAY, at_time=time(13, 0), owner=office)
        first = await make_appointment(db, mine, DAY, at_time=time(9, 0), owner=office)
        await make_appointment(db, other, DAY, at_time=time(10, 0), owner=tech)
        await make_appointment(db, mine, date(2024, 6, 2), at_time=time(9, 0), owner=office)

        itinerary = await RouteAssembler(db).assemble(tech.id, DAY)

        assert itinerary.source == ItinerarySource.ASSIGNMENTS
        assert [a.id for a in itinerary.appointments] == [first.id, second.id]


@pytest.mark.asyncio
async def test_empty_day():
    async with async_session_maker() as db:
        tech = await make_user(db, "tech@example.com")
        itinerary = await RouteAssembler(db).assemble(tech.id, DAY)
        assert itinerary.appointments == []
        assert itinerary.source == ItinerarySource.OWNER
