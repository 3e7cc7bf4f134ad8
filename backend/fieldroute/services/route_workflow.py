"""Route approval and change request review."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.exceptions import InvalidTransition, NotFound, ValidationFailed
from fieldroute.models.audit_log import AuditAction
from fieldroute.models.route import ChangeRequestStatus, DailyRoute, RouteChangeRequest, RouteStatus
from fieldroute.models.user import User
from fieldroute.services.store import record_audit, store_errors
from fieldroute.utils.logging import RouteLogger


class RouteWorkflow:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _require_reviewer(user: Optional[User]) -> None:
        if user is None or not user.is_dispatcher:
            raise ValidationFailed("Route decisions require a dispatcher or admin")

    async def _get_route(self, route_id: int) -> DailyRoute:
        with store_errors("route lookup"):
            route = await self.db.get(DailyRoute, route_id)
        if route is None:
            raise NotFound("Route", route_id)
        return route

    async def approve(self, route_id: int, approver: User) -> DailyRoute:
        self._require_reviewer(approver)
        route = await self._get_route(route_id)
        if route.status != RouteStatus.PENDING.value:
            raise InvalidTransition("route", route.status, RouteStatus.APPROVED.value)

        route.status = RouteStatus.APPROVED.value
        route.approved_by = approver.id
        route.approved_at = datetime.now(timezone.utc)
        record_audit(
            self.db,
            user_id=approver.id,
            action=AuditAction.ROUTE_APPROVED,
            entity_type="route",
            entity_id=route.id,
        )
        with store_errors("route approval"):
            await self.db.flush()
            await self.db.refresh(route)

        RouteLogger(route.id, "services.route_workflow").log("route_approved", approved_by=approver.id)
        return route

    async def submit_change_request(
        self,
        route_id: int,
        requested_by: User,
        request_type: str,
        request_data: Optional[Dict[str, Any]] = None,
    ) -> RouteChangeRequest:
        await self._get_route(route_id)
        change = RouteChangeRequest(
            route_id=route_id,
            requested_by=requested_by.id,
            request_type=request_type,
            request_data=request_data or {},
            status=ChangeRequestStatus.PENDING.value,
        )
        with store_errors("change request submit"):
            self.db.add(change)
            await self.db.flush()
            record_audit(
                self.db,
                user_id=requested_by.id,
                action=AuditAction.CHANGE_REQUEST_SUBMITTED,
                entity_type="route_change_request",
                entity_id=change.id,
                payload={"route_id": route_id, "request_type": request_type},
            )
            await self.db.flush()
            await self.db.refresh(change)

        RouteLogger(route_id, "services.route_workflow").log(
            "change_request_submitted",
            change_request_id=change.id,
            request_type=request_type,
            requested_by=requested_by.id,
        )
        return change

    async def review(
        self,
        change_request_id: int,
        reviewer: User,
        approve: bool,
        review_notes: Optional[str] = None,
    ) -> RouteChangeRequest:
        """Approve or reject a pending change request.

        Only the decision is recorded; the route itself is left untouched.
        """
        self._require_reviewer(reviewer)
        with store_errors("change request lookup"):
            change = await self.db.get(RouteChangeRequest, change_request_id)
        if change is None:
            raise NotFound("RouteChangeRequest", change_request_id)

        decision = ChangeRequestStatus.APPROVED if approve else ChangeRequestStatus.REJECTED
        if change.status != ChangeRequestStatus.PENDING.value:
            raise InvalidTransition("change request", change.status, decision.value)

        change.status = decision.value
        change.reviewed_by = reviewer.id
        change.reviewed_at = datetime.now(timezone.utc)
        change.review_notes = review_notes
        record_audit(
            self.db,
            user_id=reviewer.id,
            action=AuditAction.CHANGE_REQUEST_REVIEWED,
            entity_type="route_change_request",
            entity_id=change.id,
            payload={"route_id": change.route_id, "decision": decision.value},
        )
        with store_errors("change request review"):
            await self.db.flush()
            await self.db.refresh(change)

        RouteLogger(change.route_id, "services.route_workflow").log(
            "change_request_reviewed",
            change_request_id=change.id,
            decision=decision.value,
            reviewed_by=reviewer.id,
        )
        return change

    async def list_pending(self) -> List[RouteChangeRequest]:
        with store_errors("change request listing"):
            result = await self.db.execute(
                select(RouteChangeRequest)
                .where(RouteChangeRequest.status == ChangeRequestStatus.PENDING.value)
                .order_by(RouteChangeRequest.created_at.desc(), RouteChangeRequest.id.desc())
            )
        return list(result.scalars().all())

    async def list_for_route(self, route_id: int) -> List[RouteChangeRequest]:
        await self._get_route(route_id)
        with store_errors("change request listing"):
            result = await self.db.execute(
                select(RouteChangeRequest)
                .where(RouteChangeRequest.route_id == route_id)
                .order_by(RouteChangeRequest.created_at.desc(), RouteChangeRequest.id.desc())
            )
        return list(result.scalars().all())
