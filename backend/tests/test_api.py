from datetime import date, time

import pytest
from fastapi.testclient import TestClient

from fieldroute.api.routes import approve_route
from fieldroute.database import async_session_maker
from fieldroute.main import app
from fieldroute.models.appointment import AppointmentStatus
from fieldroute.models.user import UserRole
from fieldroute.utils.security import create_access_token

from helpers import make_appointment, make_customer, make_route, make_user, run

DAY = date(2024, 6, 1)


def _auth(user) -> dict:
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


async def _seed():
    async with async_session_maker() as db:
        office = await make_user(db, "office@example.com", role=UserRole.DISPATCHER)
        tech = await make_user(db, "tech@example.com")
        other_tech = await make_user(db, "other@example.com")
        customer = await make_customer(db)
        first = await make_appointment(db, customer, DAY, at_time=time(8, 0), owner=tech)
        second = await make_appointment(db, customer, DAY, at_time=time(15, 0), owner=tech)
        cancelled = await make_appointment(db, customer, DAY, owner=tech, status=AppointmentStatus.CANCELLED)
        route = await make_route(db, tech, DAY, [(first, customer, 2), (second, customer, 1)])
        return {
            "office": office,
            "tech": tech,
            "other_tech": other_tech,
            "first": first.id,
            "second": second.id,
            "cancelled": cancelled.id,
            "route": route.id,
        }


@pytest.fixture
def seeded():
    return run(_seed())


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["notifications"] == "disabled"


def test_login_and_me(client, seeded):
    resp = client.post("/auth/login", json={"email": "tech@example.com", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "technician"

    bad = client.post("/auth/login", json={"email": "tech@example.com", "password": "wrong-password"})
    assert bad.status_code == 401


def test_domain_errors_map_to_json_bodies(client, seeded):
    headers = _auth(seeded["office"])

    missing = client.get("/routes/424242", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"

    scope = client.put(f"/appointments/{seeded['first']}?scope=future", json={"notes": "x"}, headers=headers)
    assert scope.status_code == 422
    assert scope.json()["error"] == "invalid_scope"

    closed = client.post(
        f"/appointments/{seeded['cancelled']}/status", json={"status": "scheduled"}, headers=headers
    )
    assert closed.status_code == 409
    body = closed.json()
    assert body["error"] == "invalid_transition"
    assert body["current"] == "cancelled"


def test_itinerary_follows_route_order(client, seeded):
    resp = client.get(
        f"/technicians/{seeded['tech'].id}/itinerary",
        params={"date": DAY.isoformat()},
        headers=_auth(seeded["tech"]),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "route"
    assert body["route_id"] == seeded["route"]
    assert [a["id"] for a in body["appointments"]] == [seeded["second"], seeded["first"]]


def test_technician_cannot_read_another_itinerary_or_build_routes(client, seeded):
    headers = _auth(seeded["other_tech"])
    resp = client.get(f"/technicians/{seeded['tech'].id}/itinerary", headers=headers)
    assert resp.status_code == 403

    create = client.post(
        "/routes/", json={"route_date": DAY.isoformat(), "technician_id": seeded["tech"].id}, headers=headers
    )
    assert create.status_code == 403


def test_service_record_replay_returns_existing(client, seeded):
    headers = _auth(seeded["tech"])
    payload = {
        "appointment_id": seeded["second"],
        "service_date": DAY.isoformat(),
        "service_type": "Pool cleaning",
        "readings": {"ph": 7.4},
        "client_entry_id": "2f0b9d4e-5c1a-4e8b-9a51-0d6f3b7c2e11",
    }

    first = client.post("/service-records/", json=payload, headers=headers)
    again = client.post("/service-records/", json=payload, headers=headers)

    assert first.status_code == 201
    assert again.status_code == 200
    assert again.json()["created"] is False
    assert again.json()["record"]["id"] == first.json()["record"]["id"]

    appt = client.get(f"/appointments/{seeded['second']}", headers=headers)
    assert appt.json()["status"] == "completed"


def test_reorder_then_approve(client, seeded):
    headers = _auth(seeded["office"])
    route = client.get(f"/routes/{seeded['route']}", headers=headers).json()
    ids = [s["id"] for s in route["stops"]]

    resp = client.put(
        f"/routes/{seeded['route']}/stops/order",
        json={"stops": [{"stop_id": ids[0], "stop_order": 5}, {"stop_id": ids[1], "stop_order": 1}]},
        headers=headers,
    )
    assert resp.status_code == 200
    assert [s["id"] for s in resp.json()] == [ids[1], ids[0]]

    approved = client.post(f"/routes/{seeded['route']}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert client.post(f"/routes/{seeded['route']}/approve", headers=headers).status_code == 409


@pytest.mark.asyncio
async def test_approve_endpoint_called_directly():
    async with async_session_maker() as db:
        office = await make_user(db, "office@example.com", role=UserRole.ADMIN)
        tech = await make_user(db, "tech@example.com")
        customer = await make_customer(db)
        route = await make_route(db, tech, DAY, [(None, customer, 1)])

        result = await approve_route(route_id=route.id, db=db, current_user=office)

        assert result.status == "approved"
        assert result.approved_by == office.id
        assert [s.stop_order for s in result.stops] == [1]
