"""Status transitions for a single appointment."""

from datetime import date, time
from typing import Optional

from fieldroute.exceptions import InvalidTransition, ValidationFailed
from fieldroute.models.appointment import Appointment, AppointmentStatus

# Main path, in order. Moving forward along it (including skips) is allowed.
_MAIN_PATH = [
    AppointmentStatus.UNSCHEDULED,
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
    AppointmentStatus.COMPLETED,
]

TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

# Re-setting these is a no-op rather than an error (calendar edits resubmit the status).
_IDEMPOTENT_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


def parse_status(value: str) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise ValidationFailed(f"Unknown appointment status '{value}'")


def is_terminal(status: str) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def can_transition(current: str, requested: str) -> bool:
    cur = parse_status(current)
    req = parse_status(requested)

    if cur in TERMINAL_STATUSES:
        return False
    if req == AppointmentStatus.CANCELLED:
        return True
    if cur == req:
        return cur in _IDEMPOTENT_STATUSES
    if req == AppointmentStatus.UNSCHEDULED:
        return False
    return _MAIN_PATH.index(req) > _MAIN_PATH.index(cur)


def check_transition(
    appointment: Appointment,
    requested: str,
    on_date: Optional[date] = None,
    at_time: Optional[time] = None,
) -> AppointmentStatus:
    """Validate a status change without applying it.

    ``on_date`` and ``at_time`` are values the same update is about to write;
    when given they stand in for the stored ones.
    """
    req = parse_status(requested)
    if not can_transition(appointment.status, req.value):
        raise InvalidTransition("appointment", appointment.status, req.value)
    effective_date = on_date if on_date is not None else appointment.appointment_date
    effective_time = at_time if at_time is not None else appointment.appointment_time
    if (
        appointment.status == AppointmentStatus.UNSCHEDULED.value
        and req != AppointmentStatus.CANCELLED
        and (effective_date is None or effective_time is None)
    ):
        raise ValidationFailed(
            f"Appointment {appointment.id} needs a date and time before it can be {req.value}"
        )
    return req


def apply_transition(appointment: Appointment, requested: str) -> Appointment:
    req = check_transition(appointment, requested)
    appointment.status = req.value
    return appointment


def promote_from_backlog(appointment: Appointment, on_date: date, at_time: time) -> Appointment:
    """Give a backlog job its date and time and move it to ``scheduled``."""
    if appointment.status != AppointmentStatus.UNSCHEDULED.value:
        raise InvalidTransition("appointment", appointment.status, AppointmentStatus.SCHEDULED.value)
    appointment.appointment_date = on_date
    appointment.appointment_time = at_time
    appointment.status = AppointmentStatus.SCHEDULED.value
    return appointment


def reschedule(
    appointment: Appointment,
    on_date: date,
    at_time: Optional[time] = None,
) -> Appointment:
    """Move an open appointment to a new date/time.

    Completed and cancelled appointments cannot be rescheduled; book a new
    appointment instead.
    """
    current = parse_status(appointment.status)
    if current in TERMINAL_STATUSES:
        raise InvalidTransition("appointment", current.value, "rescheduled")
    appointment.appointment_date = on_date
    if at_time is not None:
        appointment.appointment_time = at_time
    if current == AppointmentStatus.UNSCHEDULED:
        if appointment.appointment_time is None:
            raise ValidationFailed("A time is required to schedule a backlog job")
        appointment.status = AppointmentStatus.SCHEDULED.value
    return appointment
