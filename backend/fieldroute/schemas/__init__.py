"""Schemas package initialization."""

from fieldroute.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentStatusChange,
    AppointmentUpdate,
    BacklogScheduleRequest,
    SeriesChangeResponse,
)
from fieldroute.schemas.auth import LoginRequest, Token, TokenPayload
from fieldroute.schemas.calendar import CalendarSyncRequest, CalendarSyncResponse
from fieldroute.schemas.route import (
    AssignmentCreate,
    AssignmentResponse,
    ChangeRequestCreate,
    ChangeRequestResponse,
    ChangeRequestReview,
    ItineraryResponse,
    RouteCreate,
    RouteGenerateRequest,
    RouteListResponse,
    RouteResponse,
    RouteStopInput,
    RouteStopResponse,
    StopInsertRequest,
    StopLocation,
    StopOrderRequest,
    StopProgressUpdate,
)
from fieldroute.schemas.service_record import (
    ServiceRecordCreate,
    ServiceRecordIntakeResponse,
    ServiceRecordResponse,
)
from fieldroute.schemas.user import UserResponse

__all__ = [
    # Auth
    "Token",
    "TokenPayload",
    "LoginRequest",
    # User
    "UserResponse",
    # Appointment
    "AppointmentCreate",
    "AppointmentUpdate",
    "AppointmentResponse",
    "AppointmentListResponse",
    "AppointmentStatusChange",
    "AppointmentRescheduleRequest",
    "BacklogScheduleRequest",
    "SeriesChangeResponse",
    # Route
    "RouteCreate",
    "RouteGenerateRequest",
    "RouteStopInput",
    "RouteResponse",
    "RouteListResponse",
    "RouteStopResponse",
    "StopInsertRequest",
    "StopOrderRequest",
    "StopProgressUpdate",
    "StopLocation",
    "ChangeRequestCreate",
    "ChangeRequestReview",
    "ChangeRequestResponse",
    "AssignmentCreate",
    "AssignmentResponse",
    "ItineraryResponse",
    # Service record
    "ServiceRecordCreate",
    "ServiceRecordResponse",
    "ServiceRecordIntakeResponse",
    # Calendar
    "CalendarSyncRequest",
    "CalendarSyncResponse",
]
