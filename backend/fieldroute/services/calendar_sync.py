"""Mirrors a user's upcoming appointments into their external calendar."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.adapters.calendar import CalendarCredentials, CalendarSyncItem, GoogleCalendarAdapter
from fieldroute.exceptions import ValidationFailed
from fieldroute.models.appointment import Appointment, AppointmentStatus
from fieldroute.services.store import store_errors
from fieldroute.utils.logging import get_logger

logger = get_logger("services.calendar_sync")


@dataclass
class CalendarSyncReport:
    provider: str
    items: List[CalendarSyncItem] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return len(self.items) - self.synced


class CalendarSyncService:
    def __init__(self, db: AsyncSession, adapter: Optional[GoogleCalendarAdapter] = None):
        self.db = db
        self.adapter = adapter or GoogleCalendarAdapter()

    async def sync_for_user(
        self,
        user_id: int,
        credentials: CalendarCredentials,
        from_date: date,
    ) -> CalendarSyncReport:
        if credentials.provider != self.adapter.provider:
            raise ValidationFailed(f"Unsupported calendar provider '{credentials.provider}'")

        with store_errors("calendar sync lookup"):
            result = await self.db.execute(
                select(Appointment)
                .where(
                    Appointment.user_id == user_id,
                    Appointment.appointment_date >= from_date,
                    Appointment.status.notin_(
                        [AppointmentStatus.CANCELLED.value, AppointmentStatus.UNSCHEDULED.value]
                    ),
                )
                .order_by(Appointment.appointment_date, Appointment.appointment_time)
            )
        appointments = list(result.scalars().all())

        items = await self.adapter.sync_appointments(credentials, appointments)

        by_id = {a.id: a for a in appointments}
        synced_at = datetime.now(timezone.utc)
        for item in items:
            if item.ok:
                appointment = by_id[item.appointment_id]
                appointment.external_event_id = item.external_event_id
                appointment.last_synced_at = synced_at
        with store_errors("calendar sync write-back"):
            await self.db.flush()

        report = CalendarSyncReport(provider=credentials.provider, items=items)
        logger.info(
            "calendar_sync_finished",
            user_id=user_id,
            provider=credentials.provider,
            synced=report.synced,
            failed=report.failed,
        )
        return report
