"""Record builders shared by the test modules."""

import asyncio
from datetime import date, time
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.models.appointment import Appointment, AppointmentStatus
from fieldroute.models.customer import Customer
from fieldroute.models.route import DailyRoute, RouteStop, TechnicianCustomerAssignment
from fieldroute.models.user import User, UserRole
from fieldroute.utils.security import get_password_hash


def run(coro: Any) -> Any:
    """Run a coroutine from a synchronous test on a private loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def make_user(
    db: AsyncSession,
    email: str,
    role: UserRole = UserRole.TECHNICIAN,
    password: str = "secret123",
) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        full_name=email.split("@")[0].title(),
        role=role.value,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_customer(
    db: AsyncSession,
    first_name: str = "Dana",
    phone: Optional[str] = "602-555-0101",
    **fields: Any,
) -> Customer:
    customer = Customer(
        first_name=first_name,
        last_name=fields.pop("last_name", "Rivera"),
        phone=phone,
        **fields,
    )
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


async def make_appointment(
    db: AsyncSession,
    customer: Optional[Customer],
    on_date: Optional[date],
    at_time: Optional[time] = time(9, 0),
    owner: Optional[User] = None,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    **fields: Any,
) -> Appointment:
    appointment = Appointment(
        customer_id=customer.id if customer else None,
        user_id=owner.id if owner else None,
        appointment_date=on_date,
        appointment_time=at_time,
        service_type=fields.pop("service_type", "Pool cleaning"),
        status=status.value,
        **fields,
    )
    db.add(appointment)
    await db.commit()
    await db.refresh(appointment)
    return appointment


async def make_route(
    db: AsyncSession,
    technician: User,
    on_date: date,
    stops: Optional[list] = None,
) -> DailyRoute:
    """Route with ``stops`` given as ``(appointment_or_None, customer, stop_order)``."""
    route = DailyRoute(route_date=on_date, technician_id=technician.id)
    db.add(route)
    await db.commit()
    for appointment, customer, order in stops or []:
        db.add(
            RouteStop(
                route_id=route.id,
                appointment_id=appointment.id if appointment else None,
                customer_id=customer.id,
                stop_order=order,
            )
        )
    await db.commit()
    await db.refresh(route)
    return route


async def assign(db: AsyncSession, technician: User, customer: Customer) -> None:
    db.add(TechnicianCustomerAssignment(technician_id=technician.id, customer_id=customer.id))
    await db.commit()
