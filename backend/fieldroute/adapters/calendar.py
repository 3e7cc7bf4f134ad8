"""Mirroring of appointments into a third-party calendar.

Token exchange happens elsewhere; the adapter receives ready-to-use
credentials and reports one result per appointment.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import httpx

from fieldroute.config import settings
from fieldroute.models.appointment import Appointment
from fieldroute.utils.logging import get_logger

logger = get_logger("adapters.calendar")


@dataclass
class CalendarCredentials:
    provider: str
    access_token: str
    calendar_id: str = "primary"


@dataclass
class CalendarSyncItem:
    appointment_id: int
    external_event_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.external_event_id is not None and self.error is None


def build_event(appointment: Appointment) -> Dict[str, Any]:
    start = datetime.combine(appointment.appointment_date, appointment.appointment_time)
    end = start + timedelta(minutes=settings.calendar_event_duration_minutes)
    return {
        "summary": appointment.service_type,
        "description": appointment.notes or "",
        "start": {"dateTime": start.isoformat(), "timeZone": settings.business_timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": settings.business_timezone},
        "extendedProperties": {"private": {"appointment_id": str(appointment.id)}},
    }


class GoogleCalendarAdapter:
    provider = "google"

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.google_calendar_api_base
        self.transport = transport

    async def sync_appointments(
        self,
        credentials: CalendarCredentials,
        appointments: Sequence[Appointment],
    ) -> List[CalendarSyncItem]:
        items: List[CalendarSyncItem] = []
        headers = {"Authorization": f"Bearer {credentials.access_token}"}
        events_path = f"/calendars/{credentials.calendar_id}/events"

        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=settings.http_timeout_seconds,
            transport=self.transport,
        ) as client:
            for appointment in appointments:
                if appointment.appointment_date is None or appointment.appointment_time is None:
                    items.append(CalendarSyncItem(appointment.id, error="Appointment has no date or time"))
                    continue
                event = build_event(appointment)
                try:
                    if appointment.external_event_id:
                        resp = await client.put(
                            f"{events_path}/{appointment.external_event_id}", json=event
                        )
                    else:
                        resp = await client.post(events_path, json=event)
                except httpx.HTTPError as e:
                    logger.warning("calendar_event_request_failed", appointment_id=appointment.id, error=str(e))
                    items.append(CalendarSyncItem(appointment.id, error=str(e)))
                    continue

                if resp.status_code not in (200, 201):
                    logger.warning(
                        "calendar_event_bad_status",
                        appointment_id=appointment.id,
                        status_code=resp.status_code,
                    )
                    items.append(CalendarSyncItem(appointment.id, error=f"HTTP {resp.status_code}"))
                    continue

                items.append(CalendarSyncItem(appointment.id, external_event_id=resp.json().get("id")))

        return items
