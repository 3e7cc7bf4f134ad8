from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.database import get_db
from fieldroute.models.route import RouteChangeRequest
from fieldroute.models.user import User
from fieldroute.schemas.route import ChangeRequestResponse, ChangeRequestReview
from fieldroute.services.route_workflow import RouteWorkflow
from fieldroute.utils.security import require_dispatcher

router = APIRouter()


@router.get("/pending", response_model=List[ChangeRequestResponse])
async def list_pending_change_requests(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> List[RouteChangeRequest]:
    return await RouteWorkflow(db).list_pending()


@router.post("/{change_request_id}/review", response_model=ChangeRequestResponse)
async def review_change_request(
    change_request_id: int,
    request: ChangeRequestReview,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_dispatcher),
) -> RouteChangeRequest:
    """Record the decision; the requested change is applied separately."""
    return await RouteWorkflow(db).review(
        change_request_id, current_user, request.approve, request.review_notes
    )
