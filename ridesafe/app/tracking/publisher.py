"""
Location publisher.

Mirrors the latest own sample into the shared location store on a fixed
cadence, and once immediately when the first sample arrives. Delivery
is best-effort: a failed tick is logged and the next tick tries again.
"""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

from ridesafe.app.core.config import settings
from ridesafe.app.core.exceptions import PersistenceError
from ridesafe.app.models.enums import UserType
from ridesafe.app.realtime.change_feed import ChangeFeed
from ridesafe.app.schemas.realtime import LocationChangeEvent, RideLocationPayload
from ridesafe.app.services.location_store import insert_location
from ridesafe.app.tracking.position import PositionSample

logger = logging.getLogger("ridesafe.tracking.publisher")


class LocationPublisher:
    """
    Periodic publisher owned by one tracking session.

    Ticks run sequentially inside a single task; `stop()` cancels the
    task and waits for it.
    """

    def __init__(
        self,
        session_factory,
        feed: ChangeFeed,
        ride_id: str,
        user_id: int,
        user_type: UserType,
        interval_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._session_factory = session_factory
        self._feed = feed
        self.ride_id = ride_id
        self.user_id = user_id
        self.user_type = user_type
        self.interval = (interval_ms or settings.location_publish_interval_ms) / 1000
        self._sleep = sleep

        self._latest: Optional[PositionSample] = None
        self._has_sample = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        self.publish_count = 0
        self.failure_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def update(self, sample: PositionSample) -> None:
        """Replace the sample the next tick will publish."""
        self._latest = sample
        self._has_sample.set()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(
            self._run(), name=f"location-publisher-{self.ride_id}-{self.user_id}"
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        await self._has_sample.wait()
        while True:
            await self.publish_latest()
            await self._sleep(self.interval)

    async def publish_latest(self) -> bool:
        """
        Run one tick: insert the latest sample and announce it.

        Returns:
            True if the row was stored and announced
        """
        sample = self._latest
        if sample is None:
            return False

        try:
            async with self._session_factory() as db:
                row = await insert_location(db, self.ride_id, self.user_id, self.user_type, sample)
                event = LocationChangeEvent(record=RideLocationPayload.model_validate(row))
            await self._feed.publish(event)
        except PersistenceError as exc:
            self.failure_count += 1
            logger.warning(
                "Location publish failed",
                extra={"ride_id": self.ride_id, "user_id": self.user_id, "error": exc.message}
            )
            return False
        except Exception:
            # keep the loop alive; the next tick retries
            self.failure_count += 1
            logger.exception("Unexpected location publish failure for ride %s", self.ride_id)
            return False

        self.publish_count += 1
        return True
