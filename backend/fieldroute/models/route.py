"""Daily route, route stop and change request models."""

from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldroute.database import Base


class RouteStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class RouteStopStatus(str, Enum):
    PENDING = "pending"
    EN_ROUTE = "en_route"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class ChangeRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DailyRoute(Base):
    """A technician's itinerary for one calendar date."""

    __tablename__ = "daily_routes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    route_date: Mapped[date] = mapped_column(Date, nullable=False)
    technician_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RouteStatus.PENDING.value, nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total_estimated_duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    stops: Mapped[List["RouteStop"]] = relationship(
        back_populates="route",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RouteStop.stop_order",
    )

    __table_args__ = (
        Index("idx_daily_routes_technician_date", "technician_id", "route_date"),
    )

    def __repr__(self) -> str:
        return f"<DailyRoute {self.id} tech={self.technician_id} {self.route_date} ({self.status})>"


class RouteStop(Base):
    """One position in a route, optionally bound to an appointment."""

    __tablename__ = "route_stops"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    route_id: Mapped[int] = mapped_column(
        ForeignKey("daily_routes.id", ondelete="CASCADE"), nullable=False
    )
    appointment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True
    )
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    # No unique constraint on (route_id, stop_order): reorders are written one
    # stop at a time and pass through transient duplicates.
    stop_order: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_arrival_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    estimated_duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=RouteStopStatus.PENDING.value, nullable=False)
    actual_arrival_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_departure_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    route: Mapped[DailyRoute] = relationship(back_populates="stops")

    __table_args__ = (
        Index("idx_route_stops_route", "route_id"),
        Index("idx_route_stops_appointment", "appointment_id"),
    )

    def __repr__(self) -> str:
        return f"<RouteStop {self.id} route={self.route_id} #{self.stop_order}>"


class RouteChangeRequest(Base):
    """Advisory request from a non-owning actor to change a route.

    Reviewing a request records the decision only; the change itself is
    applied separately by the reviewer.
    """

    __tablename__ = "route_change_requests"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    route_id: Mapped[int] = mapped_column(
        ForeignKey("daily_routes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requested_by: Mapped[int] = mapped_column(Integer, nullable=False)
    request_type: Mapped[str] = mapped_column(String(50), nullable=False)
    request_data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ChangeRequestStatus.PENDING.value, nullable=False, index=True
    )
    reviewed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class TechnicianCustomerAssignment(Base):
    __tablename__ = "technician_customer_assignments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    technician_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("uq_technician_customer", "technician_id", "customer_id", unique=True),
    )
