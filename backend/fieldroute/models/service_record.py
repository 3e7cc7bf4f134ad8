"""Service record captured by a technician at the end of a visit."""

from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Integer, String, Text, Time, func
from sqlalchemy.orm import Mapped, mapped_column

from fieldroute.database import Base


class ServiceRecord(Base):
    __tablename__ = "service_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    appointment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    technician_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    service_date: Mapped[date] = mapped_column(Date, nullable=False)
    service_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    service_status: Mapped[str] = mapped_column(String(20), default="completed", nullable=False)

    work_performed: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chemicals_added: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    technician_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    readings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    total_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    needs_follow_up: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    follow_up_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photos_taken: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)

    # Offline queue entry id; replays of the same entry resolve to this row.
    client_entry_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ServiceRecord {self.id} appointment={self.appointment_id}>"
