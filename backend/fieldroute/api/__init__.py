"""API package initialization."""

from fieldroute.api.appointments import router as appointments_router
from fieldroute.api.auth import router as auth_router
from fieldroute.api.calendar import router as calendar_router
from fieldroute.api.change_requests import router as change_requests_router
from fieldroute.api.routes import router as routes_router
from fieldroute.api.service_records import router as service_records_router
from fieldroute.api.technicians import router as technicians_router

__all__ = [
    "appointments_router",
    "auth_router",
    "calendar_router",
    "change_requests_router",
    "routes_router",
    "service_records_router",
    "technicians_router",
]
