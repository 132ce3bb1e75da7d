"""
FastAPI Application Entry Point.

This is the main application file for the RideSafe live safety backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from ridesafe.app.core.config import settings
from ridesafe.app.core.observability import ObservabilityMiddleware, configure_logging
from ridesafe.app.core.redis_client import ping_redis, close_redis
from ridesafe.app.api.v1.router import router as api_v1_router
from ridesafe.app.db.session import engine, Base
from ridesafe.app.tracking.registry import tracking_registry
from ridesafe.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from ridesafe.app.models.user import User
from ridesafe.app.models.ride_location import RideLocation
from ridesafe.app.models.emergency_contact import EmergencyContact
from ridesafe.app.models.sos_alert import SOSAlert
from ridesafe.app.models.notification import Notification

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Stops every live tracking session, then closes Redis, on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await tracking_registry.stop_all()
    await close_redis()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Live location tracking, route deviation alerts and SOS dispatch for rides",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and realtime feed reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "realtime_feed": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the RideSafe Live Safety API",
        "docs": "/docs",
        "health": "/health",
    }
