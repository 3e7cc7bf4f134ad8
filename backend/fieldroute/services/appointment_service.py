"""Appointment booking, cascading series edits and status changes."""

from datetime import date, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.exceptions import InvalidTransition, NotFound, ValidationFailed
from fieldroute.models.appointment import Appointment, AppointmentStatus, SeriesScope
from fieldroute.models.audit_log import AuditAction
from fieldroute.schemas.appointment import AppointmentCreate, AppointmentUpdate
from fieldroute.services import appointment_state
from fieldroute.services.recurrence import occurrence_dates
from fieldroute.services.series_resolver import parse_scope, resolve_scope
from fieldroute.services.store import record_audit, store_errors
from fieldroute.utils.logging import get_logger

logger = get_logger("services.appointments")


class AppointmentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, appointment_id: int) -> Appointment:
        with store_errors("appointment lookup"):
            result = await self.db.execute(
                select(Appointment).where(Appointment.id == appointment_id)
            )
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFound("Appointment", appointment_id)
        return appointment

    async def list_between(
        self,
        date_from: date,
        date_to: date,
        user_id: Optional[int] = None,
    ) -> List[Appointment]:
        query = select(Appointment).where(
            Appointment.appointment_date >= date_from,
            Appointment.appointment_date <= date_to,
        )
        if user_id is not None:
            query = query.where(Appointment.user_id == user_id)
        query = query.order_by(Appointment.appointment_date, Appointment.appointment_time)
        with store_errors("appointment listing"):
            result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_backlog(self) -> List[Appointment]:
        """Unscheduled jobs, newest first."""
        with store_errors("backlog listing"):
            result = await self.db.execute(
                select(Appointment)
                .where(Appointment.status == AppointmentStatus.UNSCHEDULED.value)
                .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            )
        return list(result.scalars().all())

    async def create(self, payload: AppointmentCreate, owner_id: Optional[int]) -> List[Appointment]:
        """Book an appointment; a recurring booking creates the whole series.

        Returns the created records, series root first.
        """
        status = payload.status.value if payload.status else None
        if status is None:
            status = (
                AppointmentStatus.SCHEDULED.value
                if payload.appointment_date and payload.appointment_time
                else AppointmentStatus.UNSCHEDULED.value
            )
        if status != AppointmentStatus.UNSCHEDULED.value and (
            payload.appointment_date is None or payload.appointment_time is None
        ):
            raise ValidationFailed("Only unscheduled backlog jobs may omit date and time")

        base: Dict[str, Any] = dict(
            customer_id=payload.customer_id,
            user_id=payload.user_id or owner_id,
            appointment_time=payload.appointment_time,
            service_type=payload.service_type,
            status=status,
            notes=payload.notes,
        )

        if not payload.is_recurring:
            appointment = Appointment(appointment_date=payload.appointment_date, **base)
            with store_errors("appointment create"):
                self.db.add(appointment)
                await self.db.flush()
                await self.db.refresh(appointment)
            logger.info("appointment_created", appointment_id=appointment.id, status=status)
            return [appointment]

        dates = occurrence_dates(
            payload.appointment_date,
            payload.recurrence_frequency.value,
            payload.recurrence_end_date,
        )
        root = Appointment(
            appointment_date=dates[0],
            is_recurring=True,
            recurrence_frequency=payload.recurrence_frequency.value,
            recurrence_end_date=payload.recurrence_end_date,
            **base,
        )
        with store_errors("series create"):
            self.db.add(root)
            await self.db.flush()
            children = [
                Appointment(
                    appointment_date=d,
                    is_recurring=True,
                    recurring_parent_id=root.id,
                    **base,
                )
                for d in dates[1:]
            ]
            self.db.add_all(children)
            await self.db.flush()
            for appt in [root, *children]:
                await self.db.refresh(appt)

        logger.info(
            "appointment_series_created",
            root_id=root.id,
            occurrences=len(dates),
            frequency=root.recurrence_frequency,
        )
        return [root, *children]

    @staticmethod
    def _projected_date(
        member: Appointment, new_date: Optional[date], day_shift: Optional[timedelta]
    ) -> Optional[date]:
        # Series members keep their spacing: the target's date change becomes an offset.
        if new_date is None:
            return None
        if day_shift is not None and member.appointment_date is not None:
            return member.appointment_date + day_shift
        return new_date

    async def update(
        self,
        appointment_id: int,
        payload: AppointmentUpdate,
        scope: str = SeriesScope.SINGLE.value,
        actor_id: Optional[int] = None,
    ) -> Tuple[List[Appointment], List[int]]:
        """Apply ``payload`` to every appointment in ``scope``.

        Returns ``(updated, skipped_ids)``. For a multi-member scope a date
        change shifts each member by the same number of days, and members
        already completed or cancelled are skipped when the change touches
        status, date or time. A single-scope change of that kind to a terminal
        appointment fails instead.
        """
        scope = parse_scope(scope)
        target = await self.get(appointment_id)
        members = await resolve_scope(self.db, target, scope)
        changes = payload.model_dump(exclude_unset=True)

        new_status = changes.pop("status", None)
        if isinstance(new_status, AppointmentStatus):
            new_status = new_status.value
        new_date = changes.pop("appointment_date", None)

        day_shift: Optional[timedelta] = None
        if new_date is not None and target.appointment_date is not None and len(members) > 1:
            day_shift = new_date - target.appointment_date

        touches_schedule = (
            new_status is not None or new_date is not None or "appointment_time" in changes
        )

        # Validate everything before writing anything.
        updated: List[Appointment] = []
        skipped: List[int] = []
        for member in members:
            if touches_schedule and appointment_state.is_terminal(member.status):
                if scope == SeriesScope.SINGLE:
                    raise InvalidTransition("appointment", member.status, "updated")
                skipped.append(member.id)
                continue
            if new_status is not None and new_status != member.status:
                appointment_state.check_transition(
                    member,
                    new_status,
                    on_date=self._projected_date(member, new_date, day_shift),
                    at_time=changes.get("appointment_time"),
                )
            updated.append(member)

        for member in updated:
            for field, value in changes.items():
                setattr(member, field, value)
            if new_date is not None:
                member.appointment_date = self._projected_date(member, new_date, day_shift)
            if new_status is not None and new_status != member.status:
                member.status = new_status

        with store_errors("appointment update"):
            await self.db.flush()
            for member in updated:
                await self.db.refresh(member)

        if scope != SeriesScope.SINGLE:
            record_audit(
                self.db,
                user_id=actor_id,
                action=AuditAction.SERIES_UPDATED,
                entity_type="appointment",
                entity_id=target.id,
                payload={
                    "scope": scope.value,
                    "updated": [m.id for m in updated],
                    "skipped": skipped,
                    "changes": {**changes, "status": new_status, "appointment_date": new_date},
                },
            )
        logger.info(
            "appointments_updated",
            appointment_id=target.id,
            scope=scope.value,
            updated=len(updated),
            skipped=len(skipped),
        )
        return updated, skipped

    async def delete(
        self,
        appointment_id: int,
        scope: str = SeriesScope.SINGLE.value,
        actor_id: Optional[int] = None,
    ) -> List[int]:
        """Delete every appointment in ``scope``; returns the deleted ids."""
        scope = parse_scope(scope)
        target = await self.get(appointment_id)
        members = await resolve_scope(self.db, target, scope)
        ids = [m.id for m in members]

        with store_errors("appointment delete"):
            await self.db.execute(delete(Appointment).where(Appointment.id.in_(ids)))
            await self.db.flush()

        if scope != SeriesScope.SINGLE:
            record_audit(
                self.db,
                user_id=actor_id,
                action=AuditAction.SERIES_DELETED,
                entity_type="appointment",
                entity_id=target.id,
                payload={"scope": scope.value, "deleted": ids},
            )
        logger.info("appointments_deleted", appointment_id=target.id, scope=scope.value, deleted=ids)
        return ids

    async def change_status(self, appointment_id: int, status: str) -> Appointment:
        appointment = await self.get(appointment_id)
        previous = appointment.status
        appointment_state.apply_transition(appointment, status)
        with store_errors("status change"):
            await self.db.flush()
            await self.db.refresh(appointment)
        logger.info(
            "appointment_status_changed",
            appointment_id=appointment.id,
            previous=previous,
            status=appointment.status,
        )
        return appointment

    async def reschedule(
        self,
        appointment_id: int,
        on_date: date,
        at_time: Optional[time] = None,
    ) -> Appointment:
        appointment = await self.get(appointment_id)
        appointment_state.reschedule(appointment, on_date, at_time)
        with store_errors("reschedule"):
            await self.db.flush()
            await self.db.refresh(appointment)
        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment.id,
            appointment_date=str(appointment.appointment_date),
        )
        return appointment

    async def schedule_from_backlog(self, appointment_id: int, on_date: date, at_time: time) -> Appointment:
        appointment = await self.get(appointment_id)
        appointment_state.promote_from_backlog(appointment, on_date, at_time)
        with store_errors("backlog scheduling"):
            await self.db.flush()
            await self.db.refresh(appointment)
        logger.info("backlog_job_scheduled", appointment_id=appointment.id)
        return appointment
