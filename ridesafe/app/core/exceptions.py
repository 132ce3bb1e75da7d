"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers. Leaf I/O
failures (sensor, store, transport) are converted into these types at the
component boundary so callers never see raw driver errors.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("ridesafe.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


# Geolocation

class CapabilityError(AppException):
    """Raised when the position source has no sensor capability."""

    def __init__(self, message: str = "Geolocation is not supported by your device"):
        super().__init__(
            message=message,
            error_code="ERR_GEO_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
        )


class PermissionOrTimeoutError(AppException):
    """Raised when the sensor denied access, lost the fix or timed out."""

    def __init__(self, message: str, code: str = "POSITION_UNAVAILABLE"):
        super().__init__(
            message=message,
            error_code="ERR_GEO_002",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"reason": code}
        )


# Storage

class PersistenceError(AppException):
    """Raised when a store read or write fails."""

    def __init__(self, message: str = "Storage operation failed", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_STORE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


# Tracking sessions

class TrackingSessionNotFoundError(AppException):
    """Raised when no tracking session is running for a ride and user."""

    def __init__(self, ride_id: str, user_id: int):
        super().__init__(
            message=f"No active tracking session for ride {ride_id}",
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"ride_id": ride_id, "user_id": user_id}
        )


class TrackingAlreadyActiveError(AppException):
    """Raised when a second publisher would start for the same ride and user."""

    def __init__(self, ride_id: str, user_id: int):
        super().__init__(
            message=f"Tracking is already active for ride {ride_id}",
            error_code="ERR_TRACK_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"ride_id": ride_id, "user_id": user_id}
        )


# SOS

class SOSActivationError(AppException):
    """Raised when the SOS alert record could not be created."""

    def __init__(self, message: str = "Failed to activate SOS. Please call emergency services directly!"):
        super().__init__(
            message=message,
            error_code="ERR_SOS_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


class LocationUnavailableError(AppException):
    """Raised when SOS is triggered without a user or a current location."""

    def __init__(self):
        super().__init__(
            message="Unable to get your location. Please try again!",
            error_code="ERR_SOS_002",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class NoEmergencyContactsError(AppException):
    """Raised when the user has no emergency contacts configured."""

    def __init__(self, alert_id: int = None):
        super().__init__(
            message="No emergency contacts found. Please add contacts in settings first!",
            error_code="ERR_SOS_003",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"alert_id": alert_id}
        )


class DeliveryError(AppException):
    """Raised by a delivery transport for a single failed send."""

    def __init__(self, channel: str, message: str):
        super().__init__(
            message=message,
            error_code="ERR_DELIVERY_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"channel": channel}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
