"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldroute.config import settings
from fieldroute.database import lifespan_db
from fieldroute.exceptions import SchedulingError
from fieldroute.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging(debug=settings.debug)

# Import routers
from fieldroute.api import (  # noqa: E402
    appointments_router,
    auth_router,
    calendar_router,
    change_requests_router,
    routes_router,
    service_records_router,
    technicians_router,
)

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    async with lifespan_db():
        logger.info("app_started", app=settings.app_name, version=settings.app_version)
        yield


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Appointment and route scheduling for field service teams",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.url.path,
        method=request.method,
        error=exc.code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(appointments_router, prefix="/appointments", tags=["Appointments"])
app.include_router(routes_router, prefix="/routes", tags=["Routes"])
app.include_router(change_requests_router, prefix="/change-requests", tags=["Change Requests"])
app.include_router(technicians_router, prefix="/technicians", tags=["Technicians"])
app.include_router(service_records_router, prefix="/service-records", tags=["Service Records"])
app.include_router(calendar_router, prefix="/calendar", tags=["Calendar"])


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "notifications": "enabled" if settings.notifications_enabled else "disabled",
    }
