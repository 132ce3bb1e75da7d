"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ridesafe.app.api.v1.endpoints import live_tracking, sos, functions, notifications

router = APIRouter()

# Live tracking and the shared location store
router.include_router(live_tracking.router)

# SOS activation and the notification fan-out function
router.include_router(sos.router)
router.include_router(functions.router)

# In-app notifications
router.include_router(notifications.router)
