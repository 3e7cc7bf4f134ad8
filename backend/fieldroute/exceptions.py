"""Domain errors raised by the scheduling services."""

from typing import Any, Dict, List, Optional


class SchedulingError(Exception):
    """Base class for every error the scheduling core raises."""

    code = "scheduling_error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


class InvalidScope(SchedulingError):
    """A series scope other than ``single`` was used on a non-recurring appointment."""

    code = "invalid_scope"
    status_code = 422


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(f"Cannot move {entity} from '{current}' to '{requested}'")
        self.entity = entity
        self.current = current
        self.requested = requested

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(entity=self.entity, current=self.current, requested=self.requested)
        return data


class NotFound(SchedulingError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationFailed(SchedulingError):
    code = "validation_failed"
    status_code = 422


class DoubleBooking(SchedulingError):
    code = "double_booking"
    status_code = 409

    def __init__(self, appointment_id: int, route_id: int):
        super().__init__(f"Appointment {appointment_id} is already a stop on route {route_id}")
        self.appointment_id = appointment_id
        self.route_id = route_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(appointment_id=self.appointment_id, route_id=self.route_id)
        return data


class PartialWriteFailure(SchedulingError):
    """A multi-row write stopped partway.

    ``completed`` holds the ids already persisted and ``remaining`` the ids
    still to write. Callers re-read current state and retry the remainder.
    """

    code = "partial_write_failure"
    status_code = 409

    def __init__(
        self,
        detail: str,
        completed: Optional[List[int]] = None,
        remaining: Optional[List[int]] = None,
        route_id: Optional[int] = None,
    ):
        super().__init__(detail)
        self.completed = list(completed or [])
        self.remaining = list(remaining or [])
        self.route_id = route_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(completed=self.completed, remaining=self.remaining, route_id=self.route_id)
        return data


class RemoteUnavailable(SchedulingError):
    code = "remote_unavailable"
    status_code = 503
