"""
Serverless-style function endpoints.

`send-sos-alerts` is the notification fan-out, callable remotely by a
dispatcher configured with `sos_fanout_url`. Callers must present a
service token (see `core.jwt.create_service_token`).
"""

from fastapi import APIRouter, Depends, Body
from sqlalchemy.ext.asyncio import AsyncSession

from ridesafe.app.core.dependencies import require_service_token
from ridesafe.app.db.session import get_db
from ridesafe.app.schemas.sos import SOSFanoutRequest, SOSFanoutResponse
from ridesafe.app.services.notification_fanout import NotificationFanout

router = APIRouter(prefix="/functions", tags=["Functions"])


@router.post("/send-sos-alerts", response_model=SOSFanoutResponse)
async def send_sos_alerts(
    request: SOSFanoutRequest = Body(...),
    caller: dict = Depends(require_service_token),
    db: AsyncSession = Depends(get_db)
):
    """Send the alert to every contact and report one result per contact."""
    return await NotificationFanout(db).send(request)
