"""
SOS API Endpoints.
"""

from fastapi import APIRouter, Depends, Body
from sqlalchemy.ext.asyncio import AsyncSession

from ridesafe.app.core.dependencies import get_current_user
from ridesafe.app.core.exceptions import TrackingSessionNotFoundError
from ridesafe.app.db.session import get_db
from ridesafe.app.schemas.sos import SOSActivateRequest, SOSActivationResult, SOSLocation
from ridesafe.app.services.fanout_invoker import FanoutInvoker, get_fanout_invoker
from ridesafe.app.services.sos_dispatcher import SOSDispatcher
from ridesafe.app.tracking.registry import TrackingRegistry, get_tracking_registry

router = APIRouter(prefix="/sos", tags=["SOS"])


@router.post("/activate", response_model=SOSActivationResult)
async def activate_sos(
    request: SOSActivateRequest = Body(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    fanout: FanoutInvoker = Depends(get_fanout_invoker),
    registry: TrackingRegistry = Depends(get_tracking_registry)
):
    """
    Raise an SOS alert for the caller and notify their emergency contacts.

    Errors:
    - 400 ERR_SOS_002: no location available
    - 404 ERR_SOS_003: no emergency contacts configured
    - 500 ERR_SOS_001: the alert could not be created
    """
    location = request.location
    if location is None and request.ride_id:
        try:
            sample = registry.get(request.ride_id, current_user["user_id"]).sampler.location
        except TrackingSessionNotFoundError:
            sample = None
        if sample is not None:
            location = SOSLocation(lat=sample.lat, lng=sample.lng)

    dispatcher = SOSDispatcher(db, fanout)
    return await dispatcher.activate(current_user["user_id"], request.ride_id, location)
