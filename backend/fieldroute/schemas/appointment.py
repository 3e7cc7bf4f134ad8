from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fieldroute.models.appointment import AppointmentStatus, RecurrenceFrequency, SeriesScope


class AppointmentCreate(BaseModel):
    customer_id: Optional[int] = None
    user_id: Optional[int] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    service_type: str = Field(..., min_length=1, max_length=100)
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None

    is_recurring: bool = False
    recurrence_frequency: Optional[RecurrenceFrequency] = None
    recurrence_end_date: Optional[date] = None

    @model_validator(mode="after")
    def _check_recurrence(self) -> "AppointmentCreate":
        if self.is_recurring:
            if self.appointment_date is None:
                raise ValueError("A recurring appointment needs a first date")
            if self.recurrence_frequency is None or self.recurrence_end_date is None:
                raise ValueError("A recurring appointment needs a frequency and an end date")
        return self


class AppointmentUpdate(BaseModel):
    customer_id: Optional[int] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    service_type: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: Optional[int] = None
    user_id: Optional[int] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    service_type: str
    status: str
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_parent_id: Optional[int] = None
    recurrence_frequency: Optional[str] = None
    recurrence_end_date: Optional[date] = None
    external_event_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    total: int


class AppointmentStatusChange(BaseModel):
    status: AppointmentStatus


class AppointmentRescheduleRequest(BaseModel):
    appointment_date: date
    appointment_time: Optional[time] = None


class BacklogScheduleRequest(BaseModel):
    appointment_date: date
    appointment_time: time


class SeriesChangeResponse(BaseModel):
    """Outcome of a cascading update or delete."""
    scope: SeriesScope
    affected_ids: List[int]
    skipped_ids: List[int] = []
    appointments: List[AppointmentResponse] = []
