from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fieldroute.models.appointment import AppointmentStatus


class ServiceRecordCreate(BaseModel):
    """A visit captured in the field, possibly replayed from the offline queue."""
    appointment_id: Optional[int] = None
    customer_id: Optional[int] = None
    technician_id: Optional[int] = None
    service_date: date
    service_time: Optional[time] = None
    service_type: str = Field(..., min_length=1, max_length=100)
    service_status: AppointmentStatus = AppointmentStatus.COMPLETED

    work_performed: Optional[str] = None
    chemicals_added: Optional[str] = None
    technician_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    readings: Optional[Dict[str, Any]] = None
    total_time_minutes: Optional[int] = Field(None, ge=0)
    needs_follow_up: bool = False
    follow_up_notes: Optional[str] = None
    photos_taken: Optional[List[str]] = None

    client_entry_id: Optional[str] = Field(None, max_length=64)


class ServiceRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: Optional[int] = None
    customer_id: Optional[int] = None
    technician_id: Optional[int] = None
    service_date: date
    service_time: Optional[time] = None
    service_type: str
    service_status: str
    work_performed: Optional[str] = None
    chemicals_added: Optional[str] = None
    technician_notes: Optional[str] = None
    customer_notes: Optional[str] = None
    readings: Optional[Dict[str, Any]] = None
    total_time_minutes: Optional[int] = None
    needs_follow_up: bool = False
    follow_up_notes: Optional[str] = None
    photos_taken: Optional[List[str]] = None
    client_entry_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ServiceRecordIntakeResponse(BaseModel):
    record: ServiceRecordResponse
    # False when the client_entry_id had already been recorded.
    created: bool
