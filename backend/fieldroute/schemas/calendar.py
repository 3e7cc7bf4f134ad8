from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class CalendarSyncRequest(BaseModel):
    provider: str = "google"
    access_token: str = Field(..., min_length=1)
    calendar_id: str = "primary"
    from_date: Optional[date] = None


class CalendarSyncItemResponse(BaseModel):
    appointment_id: int
    external_event_id: Optional[str] = None
    error: Optional[str] = None


class CalendarSyncResponse(BaseModel):
    provider: str
    synced: int
    failed: int
    items: List[CalendarSyncItemResponse]
