"""Contracts and implementations of the external collaborators."""

from fieldroute.adapters.calendar import (
    CalendarCredentials,
    CalendarSyncItem,
    GoogleCalendarAdapter,
)
from fieldroute.adapters.geocode import Coordinates, MapboxGeocoder
from fieldroute.adapters.notifications import (
    DeliveryResult,
    LogOnlyNotifier,
    Notifier,
    TwilioSmsNotifier,
    get_notifier,
)

__all__ = [
    "CalendarCredentials",
    "CalendarSyncItem",
    "GoogleCalendarAdapter",
    "Coordinates",
    "MapboxGeocoder",
    "DeliveryResult",
    "LogOnlyNotifier",
    "Notifier",
    "TwilioSmsNotifier",
    "get_notifier",
]
