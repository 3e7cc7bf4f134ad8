from datetime import date

import pytest
from sqlalchemy import select

from fieldroute.database import async_session_maker
from fieldroute.exceptions import InvalidTransition, NotFound, ValidationFailed
from fieldroute.models.audit_log import AuditAction, AuditLog
from fieldroute.models.route import RouteStop
from fieldroute.models.user import UserRole
from fieldroute.services.route_workflow import RouteWorkflow

from helpers import make_customer, make_route, make_user

DAY = date(2024, 6, 1)


async def _setup(db):
    office = await make_user(db, "office@example.com", role=UserRole.DISPATCHER)
    tech = await make_user(db, "tech@example.com")
    customer = await make_customer(db)
    route = await make_route(db, tech, DAY, [(None, customer, 1)])
    return office, tech, route


@pytest.mark.asyncio
async def test_approve_once():
    async with async_session_maker() as db:
        office, _, route = await _setup(db)
        workflow = RouteWorkflow(db)

        approved = await workflow.approve(route.id, office)
        await db.commit()

        assert approved.status == "approved"
        assert approved.approved_by == office.id
        assert approved.approved_at is not None

        with pytest.raises(InvalidTransition):
            await workflow.approve(route.id, office)


@pytest.mark.asyncio
async def test_technician_cannot_approve():
    async with async_session_maker() as db:
        _, tech, route = await _setup(db)
        with pytest.raises(ValidationFailed):
            await RouteWorkflow(db).approve(route.id, tech)
        with pytest.raises(NotFound):
            await RouteWorkflow(db).approve(404, await make_user(db, "admin@example.com", role=UserRole.ADMIN))


@pytest.mark.asyncio
async def test_change_request_review_records_decision_only():
    async with async_session_maker() as db:
        office, tech, route = await _setup(db)
        workflow = RouteWorkflow(db)

        change = await workflow.submit_change_request(
            route.id, tech, "reorder", {"stops": [{"stop_id": 1, "stop_order": 2}]}
        )
        await db.commit()
        assert change.status == "pending"
        assert [c.id for c in await workflow.list_pending()] == [change.id]

        with pytest.raises(ValidationFailed):
            await workflow.review(change.id, tech, approve=True)

        reviewed = await workflow.review(change.id, office, approve=True, review_notes="ok")
        await db.commit()
        assert reviewed.status == "approved"
        assert reviewed.reviewed_by == office.id
        assert await workflow.list_pending() == []

        with pytest.raises(InvalidTransition):
            await workflow.review(change.id, office, approve=False)

        stops = (await db.execute(select(RouteStop).where(RouteStop.route_id == route.id))).scalars().all()
        assert [s.stop_order for s in stops] == [1]

        actions = (await db.execute(select(AuditLog.action).order_by(AuditLog.id))).scalars().all()
        assert actions == [
            AuditAction.CHANGE_REQUEST_SUBMITTED.value,
            AuditAction.CHANGE_REQUEST_REVIEWED.value,
        ]


@pytest.mark.asyncio
async def test_change_requests_for_route():
    async with async_session_maker() as db:
        office, tech, route = await _setup(db)
        workflow = RouteWorkflow(db)
        first = await workflow.submit_change_request(route.id, tech, "add_stop")
        second = await workflow.submit_change_request(route.id, tech, "remove_stop")
        await db.commit()

        listed = await workflow.list_for_route(route.id)
        assert [c.id for c in listed] == [second.id, first.id]

        with pytest.raises(NotFound):
            await workflow.list_for_route(9999)
        with pytest.raises(NotFound):
            await workflow.submit_change_request(9999, tech, "add_stop")
