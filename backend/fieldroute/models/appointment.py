"""Appointment model for service visits and their recurring series."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String, Text, Time, func
from sqlalchemy.orm import Mapped, mapped_column

from fieldroute.database import Base


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class SeriesScope(str, Enum):
    """Breadth of a cascading edit or delete across a series."""
    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


class Appointment(Base):
    """A service visit.

    Recurring occurrences form a flat group: every child carries the id of the
    series root in ``recurring_parent_id``; the root itself has it unset.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Backlog jobs have neither date nor time.
    appointment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    appointment_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=AppointmentStatus.SCHEDULED.value,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Series
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_parent_id: Mapped[Optional[int]] = mapped_column(nullable=True, index=True)
    recurrence_frequency: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    recurrence_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Calendar mirroring
    external_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def in_series(self) -> bool:
        return bool(self.is_recurring or self.recurring_parent_id)

    @property
    def series_root_id(self) -> int:
        return self.recurring_parent_id or self.id

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.appointment_date} ({self.status})>"
