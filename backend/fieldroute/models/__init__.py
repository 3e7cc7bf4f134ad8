"""Models package initialization."""

from fieldroute.models.appointment import (
    Appointment,
    AppointmentStatus,
    RecurrenceFrequency,
    SeriesScope,
)
from fieldroute.models.audit_log import AuditAction, AuditLog
from fieldroute.models.customer import Customer
from fieldroute.models.route import (
    ChangeRequestStatus,
    DailyRoute,
    RouteChangeRequest,
    RouteStatus,
    RouteStop,
    RouteStopStatus,
    TechnicianCustomerAssignment,
)
from fieldroute.models.service_record import ServiceRecord
from fieldroute.models.user import User, UserRole

__all__ = [
    # User
    "User",
    "UserRole",
    # Customer
    "Customer",
    # Appointment
    "Appointment",
    "AppointmentStatus",
    "RecurrenceFrequency",
    "SeriesScope",
    # Routes
    "DailyRoute",
    "RouteStatus",
    "RouteStop",
    "RouteStopStatus",
    "RouteChangeRequest",
    "ChangeRequestStatus",
    "TechnicianCustomerAssignment",
    # Service records
    "ServiceRecord",
    # Audit
    "AuditLog",
    "AuditAction",
]
