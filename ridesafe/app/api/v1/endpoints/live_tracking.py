"""
Live Tracking API Endpoints.

Passengers and drivers start a tracking session for their ride, push
device fixes into it and read both their own and the counterpart's
latest position.
"""

from fastapi import APIRouter, Depends, Path, Body, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ridesafe.app.core.dependencies import get_current_user
from ridesafe.app.db.session import get_db
from ridesafe.app.schemas.tracking import (
    TrackingStartRequest, TrackingStatusResponse, TrackingStopResponse,
    PositionFix, PositionFixResponse, SensorErrorReport, RideLocationResponse
)
from ridesafe.app.services.location_store import list_recent_locations
from ridesafe.app.tracking.registry import TrackingRegistry, get_tracking_registry

router = APIRouter(prefix="/rides", tags=["Live Tracking"])


@router.post("/{ride_id}/tracking", status_code=status.HTTP_201_CREATED, response_model=TrackingStatusResponse)
async def start_tracking(
    ride_id: str = Path(..., min_length=1, max_length=64, description="Ride ID"),
    request: TrackingStartRequest = Body(...),
    current_user: dict = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry)
):
    """
    Start live tracking for the caller on a ride.

    Restarts acquisition if a previous attempt ended with a sensor error;
    the restart replaces the planned route with the one in this request
    (an empty list clears it) while `user_type` stays as first started.
    Returns 409 if the caller is already being tracked on this ride.
    """
    session = await registry.start(
        ride_id,
        current_user["user_id"],
        request.user_type,
        route=[p.to_point() for p in request.planned_route]
    )
    return session.status()


@router.post("/{ride_id}/tracking/fixes", response_model=PositionFixResponse)
async def push_fix(
    ride_id: str = Path(..., description="Ride ID"),
    fix: PositionFix = Body(...),
    current_user: dict = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry)
):
    """Deliver one device fix to the caller's tracking session."""
    session = registry.get(ride_id, current_user["user_id"])
    accepted = await session.push_fix(fix.to_sample())
    await session.drain_notices()
    return PositionFixResponse(ride_id=ride_id, accepted=accepted)


@router.post("/{ride_id}/tracking/errors", response_model=TrackingStatusResponse)
async def report_sensor_error(
    ride_id: str = Path(..., description="Ride ID"),
    report: SensorErrorReport = Body(...),
    current_user: dict = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry)
):
    """Report a device sensor failure (permission denied, unavailable, timeout)."""
    session = registry.get(ride_id, current_user["user_id"])
    await session.report_sensor_error(report.code, report.message)
    await session.drain_notices()
    return session.status()


@router.get("/{ride_id}/tracking", response_model=TrackingStatusResponse)
async def get_tracking_status(
    ride_id: str = Path(..., description="Ride ID"),
    current_user: dict = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry)
):
    """Own location, counterpart location, distance between them and deviation flag."""
    return registry.get(ride_id, current_user["user_id"]).status()


@router.delete("/{ride_id}/tracking", response_model=TrackingStopResponse)
async def stop_tracking(
    ride_id: str = Path(..., description="Ride ID"),
    current_user: dict = Depends(get_current_user),
    registry: TrackingRegistry = Depends(get_tracking_registry)
):
    """Stop sampling, publishing and the counterpart feed."""
    await registry.stop(ride_id, current_user["user_id"])
    return TrackingStopResponse(ride_id=ride_id, stopped=True)


@router.get("/{ride_id}/locations", response_model=List[RideLocationResponse])
async def get_ride_locations(
    ride_id: str = Path(..., description="Ride ID"),
    limit: int = Query(50, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Recent location breadcrumb of a ride, newest first.

    Both participants' rows are returned.
    """
    return await list_recent_locations(db, ride_id, limit)
