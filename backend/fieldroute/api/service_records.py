from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.database import get_db
from fieldroute.models.user import User
from fieldroute.schemas.service_record import (
    ServiceRecordCreate,
    ServiceRecordIntakeResponse,
    ServiceRecordResponse,
)
from fieldroute.services.service_record_service import ServiceRecordService
from fieldroute.utils.security import require_technician

router = APIRouter()


@router.post("/", response_model=ServiceRecordIntakeResponse, status_code=status.HTTP_201_CREATED)
async def submit_service_record(
    payload: ServiceRecordCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_technician),
) -> ServiceRecordIntakeResponse:
    """Capture intake; a repeated ``client_entry_id`` returns the stored record with 200."""
    record, created = await ServiceRecordService(db).intake(payload, technician_id=current_user.id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return ServiceRecordIntakeResponse(
        record=ServiceRecordResponse.model_validate(record),
        created=created,
    )
