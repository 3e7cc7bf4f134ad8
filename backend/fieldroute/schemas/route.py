"""Route, stop, change request and itinerary schemas."""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fieldroute.models.route import RouteStopStatus
from fieldroute.schemas.appointment import AppointmentResponse


class RouteStopInput(BaseModel):
    """A stop given when building a route; needs a customer or an appointment."""
    appointment_id: Optional[int] = None
    customer_id: Optional[int] = None
    estimated_arrival_time: Optional[time] = None
    estimated_duration_minutes: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self) -> "RouteStopInput":
        if self.appointment_id is None and self.customer_id is None:
            raise ValueError("A stop needs an appointment_id or a customer_id")
        return self


class RouteCreate(BaseModel):
    route_date: date
    technician_id: int
    notes: Optional[str] = None
    stops: List[RouteStopInput] = []


class RouteGenerateRequest(BaseModel):
    route_date: date
    technician_id: int


class StopInsertRequest(RouteStopInput):
    position: Optional[int] = Field(None, ge=1)


class StopOrderItem(BaseModel):
    stop_id: int
    stop_order: int


class StopOrderRequest(BaseModel):
    stops: List[StopOrderItem]


class StopProgressUpdate(BaseModel):
    status: RouteStopStatus
    notes: Optional[str] = None


class RouteStopResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_id: int
    appointment_id: Optional[int] = None
    customer_id: int
    stop_order: int
    estimated_arrival_time: Optional[time] = None
    estimated_duration_minutes: Optional[int] = None
    status: str
    actual_arrival_time: Optional[datetime] = None
    actual_departure_time: Optional[datetime] = None
    notes: Optional[str] = None


class RouteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_date: date
    technician_id: int
    status: str
    created_by: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    total_estimated_duration_minutes: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    stops: List[RouteStopResponse] = []


class RouteListResponse(BaseModel):
    routes: List[RouteResponse]
    total: int


class StopLocation(BaseModel):
    stop_id: int
    stop_order: int
    customer_id: int
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class ChangeRequestCreate(BaseModel):
    request_type: str = Field(..., min_length=1, max_length=50)
    request_data: Dict[str, Any] = {}


class ChangeRequestReview(BaseModel):
    approve: bool
    review_notes: Optional[str] = None


class ChangeRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    route_id: int
    requested_by: int
    request_type: str
    request_data: Dict[str, Any] = {}
    status: str
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None


class AssignmentCreate(BaseModel):
    customer_id: int


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    technician_id: int
    customer_id: int
    created_at: Optional[datetime] = None


class ItineraryResponse(BaseModel):
    technician_id: int
    itinerary_date: date
    source: str
    route_id: Optional[int] = None
    cached_at: Optional[datetime] = None
    appointments: List[AppointmentResponse]
