"""Expansion of a recurring booking into dated occurrences."""

import calendar
from datetime import date, timedelta
from typing import List

from fieldroute.exceptions import ValidationFailed
from fieldroute.models.appointment import RecurrenceFrequency

MAX_OCCURRENCES = 366


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def occurrence_dates(start: date, frequency: str, end_date: date) -> List[date]:
    """Dates of every occurrence from ``start`` through ``end_date`` inclusive.

    Monthly occurrences keep the start's day of month, clamped to the month
    length (Jan 31 -> Feb 28/29 -> Mar 31).
    """
    try:
        freq = RecurrenceFrequency(frequency)
    except ValueError:
        raise ValidationFailed(f"Unknown recurrence frequency '{frequency}'")
    if end_date < start:
        raise ValidationFailed("Recurrence end date is before the first occurrence")

    dates: List[date] = []
    n = 0
    while True:
        if freq == RecurrenceFrequency.DAILY:
            current = start + timedelta(days=n)
        elif freq == RecurrenceFrequency.WEEKLY:
            current = start + timedelta(weeks=n)
        elif freq == RecurrenceFrequency.BIWEEKLY:
            current = start + timedelta(weeks=2 * n)
        else:
            current = _add_months(start, n)
        if current > end_date:
            break
        dates.append(current)
        n += 1
        if len(dates) > MAX_OCCURRENCES:
            raise ValidationFailed(f"Recurring series would exceed {MAX_OCCURRENCES} occurrences")
    return dates
