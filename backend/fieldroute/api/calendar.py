from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.adapters.calendar import CalendarCredentials
from fieldroute.database import get_db
from fieldroute.models.user import User
from fieldroute.schemas.calendar import CalendarSyncItemResponse, CalendarSyncRequest, CalendarSyncResponse
from fieldroute.services.calendar_sync import CalendarSyncService
from fieldroute.utils.security import get_current_user
from fieldroute.utils.utils import business_today

router = APIRouter()


@router.post("/sync", response_model=CalendarSyncResponse)
async def sync_calendar(
    request: CalendarSyncRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CalendarSyncResponse:
    """Push the caller's upcoming appointments to their external calendar."""
    credentials = CalendarCredentials(
        provider=request.provider,
        access_token=request.access_token,
        calendar_id=request.calendar_id,
    )
    report = await CalendarSyncService(db).sync_for_user(
        current_user.id, credentials, request.from_date or business_today()
    )
    return CalendarSyncResponse(
        provider=report.provider,
        synced=report.synced,
        failed=report.failed,
        items=[
            CalendarSyncItemResponse(
                appointment_id=item.appointment_id,
                external_event_id=item.external_event_id,
                error=item.error,
            )
            for item in report.items
        ],
    )
