"""Resolution of the appointment set an edit or delete must touch.

A series is a flat group: the root plus every record whose
``recurring_parent_id`` is the root's id. Resolution is a single query for
every scope, and update and delete share it so they can never disagree.
"""

from typing import List, Union

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.exceptions import InvalidScope
from fieldroute.models.appointment import Appointment, SeriesScope
from fieldroute.services.store import store_errors


def parse_scope(scope: Union[str, SeriesScope]) -> SeriesScope:
    try:
        return SeriesScope(scope)
    except ValueError:
        raise InvalidScope(f"Unknown series scope '{scope}'")


async def resolve_scope(
    db: AsyncSession,
    appointment: Appointment,
    scope: Union[str, SeriesScope],
) -> List[Appointment]:
    """Appointments affected by an operation on ``appointment`` with ``scope``.

    The result is ordered by date then id and always contains ``appointment``.
    """
    scope = parse_scope(scope)
    if scope == SeriesScope.SINGLE:
        return [appointment]

    if not appointment.in_series:
        raise InvalidScope(
            f"Scope '{scope.value}' requires a recurring appointment; "
            f"appointment {appointment.id} is not recurring"
        )

    parent_id = appointment.series_root_id

    if scope == SeriesScope.FUTURE:
        condition = or_(
            Appointment.id == appointment.id,
            and_(
                Appointment.recurring_parent_id == parent_id,
                Appointment.appointment_date >= appointment.appointment_date,
            ),
        )
    else:
        condition = or_(
            Appointment.id == parent_id,
            Appointment.recurring_parent_id == parent_id,
        )

    query = (
        select(Appointment)
        .where(condition)
        .order_by(Appointment.appointment_date.asc(), Appointment.id.asc())
    )
    with store_errors("series resolution"):
        result = await db.execute(query)
    return list(result.scalars().all())
