"""
Registry of running tracking sessions.

Holds at most one session per (ride, user), so a participant never has
two publishers writing for the same ride.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional, Tuple

from ridesafe.app.core.exceptions import TrackingAlreadyActiveError, TrackingSessionNotFoundError
from ridesafe.app.core import redis_client as redis_client_module
from ridesafe.app.db.session import AsyncSessionLocal
from ridesafe.app.models.enums import UserType
from ridesafe.app.realtime.change_feed import ChangeFeed
from ridesafe.app.tracking.position import RoutePoint
from ridesafe.app.tracking.session import TrackingSession

logger = logging.getLogger("ridesafe.tracking.registry")


class TrackingRegistry:

    def __init__(self, session_factory, feed: ChangeFeed, **session_options):
        self._session_factory = session_factory
        self.feed = feed
        self._session_options = session_options
        self._sessions: Dict[Tuple[str, int], TrackingSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def start(
        self,
        ride_id: str,
        user_id: int,
        user_type: UserType,
        route: Optional[Iterable[RoutePoint]] = None
    ) -> TrackingSession:
        """
        Start tracking a participant, or restart the sampler of a session
        whose acquisition ended with an error. A restart applies the new
        route; the participant keeps the user type it started with.

        Raises:
            TrackingAlreadyActiveError: a session is already sampling
            CapabilityError: the device cannot provide positions
        """
        key = (ride_id, user_id)
        async with self._lock:
            existing = self._sessions.get(key)
            if existing is not None:
                if existing.sampler.is_tracking:
                    raise TrackingAlreadyActiveError(ride_id, user_id)
                existing.restart_sampler(route)
                return existing

            session = TrackingSession(
                ride_id, user_id, user_type, self._session_factory, self.feed,
                route=route, **self._session_options
            )
            await session.start()
            self._sessions[key] = session
            return session

    def get(self, ride_id: str, user_id: int) -> TrackingSession:
        session = self._sessions.get((ride_id, user_id))
        if session is None:
            raise TrackingSessionNotFoundError(ride_id, user_id)
        return session

    async def stop(self, ride_id: str, user_id: int) -> None:
        async with self._lock:
            session = self._sessions.pop((ride_id, user_id), None)
        if session is None:
            raise TrackingSessionNotFoundError(ride_id, user_id)
        await session.stop()

    async def stop_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.stop()
        if sessions:
            logger.info("Stopped %d tracking sessions", len(sessions))


# Global registry for the application
tracking_registry = TrackingRegistry(AsyncSessionLocal, ChangeFeed(redis_client_module.redis_client))


def get_tracking_registry() -> TrackingRegistry:
    """FastAPI dependency returning the application registry."""
    return tracking_registry
