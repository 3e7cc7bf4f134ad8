"""Server-side write for field captures.

A capture moves its appointment to the captured status and stores a service
record. Captures carrying a ``client_entry_id`` are applied at most once.
"""

from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.exceptions import NotFound
from fieldroute.models.appointment import Appointment, AppointmentStatus
from fieldroute.models.service_record import ServiceRecord
from fieldroute.schemas.service_record import ServiceRecordCreate
from fieldroute.services import appointment_state
from fieldroute.services.store import store_errors
from fieldroute.utils.logging import get_logger

logger = get_logger("services.service_records")


class ServiceRecordService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_entry(self, client_entry_id: str) -> Optional[ServiceRecord]:
        with store_errors("service record lookup"):
            result = await self.db.execute(
                select(ServiceRecord).where(ServiceRecord.client_entry_id == client_entry_id)
            )
        return result.scalar_one_or_none()

    async def intake(
        self,
        payload: ServiceRecordCreate,
        technician_id: Optional[int],
    ) -> Tuple[ServiceRecord, bool]:
        """Apply a capture; returns ``(record, created)``."""
        if payload.client_entry_id:
            existing = await self.find_by_entry(payload.client_entry_id)
            if existing is not None:
                logger.info(
                    "service_record_replay_acknowledged",
                    client_entry_id=payload.client_entry_id,
                    service_record_id=existing.id,
                )
                return existing, False

        status = payload.service_status.value
        appointment: Optional[Appointment] = None
        if payload.appointment_id is not None:
            with store_errors("appointment lookup"):
                appointment = await self.db.get(Appointment, payload.appointment_id)
            if appointment is None:
                raise NotFound("Appointment", payload.appointment_id)
            if appointment.status != status:
                # A backlog job worked in the field takes the visit's date and time.
                if appointment.status == AppointmentStatus.UNSCHEDULED.value:
                    if appointment.appointment_date is None:
                        appointment.appointment_date = payload.service_date
                    if appointment.appointment_time is None:
                        appointment.appointment_time = payload.service_time
                appointment_state.apply_transition(appointment, status)

        record = ServiceRecord(
            appointment_id=payload.appointment_id,
            customer_id=payload.customer_id or (appointment.customer_id if appointment else None),
            technician_id=payload.technician_id or technician_id,
            service_date=payload.service_date,
            service_time=payload.service_time,
            service_type=payload.service_type,
            service_status=status,
            work_performed=payload.work_performed,
            chemicals_added=payload.chemicals_added,
            technician_notes=payload.technician_notes,
            customer_notes=payload.customer_notes,
            readings=payload.readings,
            total_time_minutes=payload.total_time_minutes,
            needs_follow_up=payload.needs_follow_up,
            follow_up_notes=payload.follow_up_notes,
            photos_taken=payload.photos_taken,
            client_entry_id=payload.client_entry_id,
        )
        try:
            with store_errors("service record insert"):
                self.db.add(record)
                await self.db.flush()
                await self.db.refresh(record)
        except IntegrityError:
            # Another replay of the same entry committed first.
            await self.db.rollback()
            if payload.client_entry_id:
                existing = await self.find_by_entry(payload.client_entry_id)
                if existing is not None:
                    return existing, False
            raise

        logger.info(
            "service_record_created",
            service_record_id=record.id,
            appointment_id=record.appointment_id,
            service_status=status,
            client_entry_id=record.client_entry_id,
        )
        return record, True
