"""
Invocation boundary for the SOS fan-out function.

The dispatcher only needs "call send-sos-alerts with this request". It
can run in the same process or as a remote function over HTTP, chosen by
`settings.sos_fanout_url`.
"""

import logging
from typing import Optional, Protocol

import httpx

from ridesafe.app.core.config import settings
from ridesafe.app.core.jwt import create_service_token
from ridesafe.app.core.reliability import CircuitBreaker, fanout_circuit_breaker
from ridesafe.app.db.session import AsyncSessionLocal
from ridesafe.app.schemas.sos import SOSFanoutRequest, SOSFanoutResponse
from ridesafe.app.services.notification_fanout import DeliveryTransport, NotificationFanout

logger = logging.getLogger("ridesafe.sos.invoker")


class FanoutInvoker(Protocol):
    async def __call__(self, request: SOSFanoutRequest) -> SOSFanoutResponse:
        ...


class LocalFanoutInvoker:
    """Runs the fan-out in-process with its own database session."""

    def __init__(self, session_factory=AsyncSessionLocal, transport: Optional[DeliveryTransport] = None):
        self.session_factory = session_factory
        self.transport = transport

    async def __call__(self, request: SOSFanoutRequest) -> SOSFanoutResponse:
        async with self.session_factory() as db:
            return await NotificationFanout(db, self.transport).send(request)


class HttpFanoutInvoker:
    """Posts the request to a remote send-sos-alerts endpoint with a service token."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        breaker: CircuitBreaker = fanout_circuit_breaker,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.breaker = breaker
        self.transport = transport

    async def _post(self, request: SOSFanoutRequest) -> SOSFanoutResponse:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.url,
                json=request.model_dump(mode="json"),
                headers={"Authorization": f"Bearer {create_service_token()}"},
            )
            response.raise_for_status()
            return SOSFanoutResponse.model_validate(response.json())

    async def __call__(self, request: SOSFanoutRequest) -> SOSFanoutResponse:
        return await self.breaker.call(self._post, request)


def get_fanout_invoker() -> FanoutInvoker:
    """FastAPI dependency selecting the configured invoker."""
    if settings.sos_fanout_url:
        return HttpFanoutInvoker(settings.sos_fanout_url, timeout=settings.sos_fanout_timeout_seconds)
    return LocalFanoutInvoker()
