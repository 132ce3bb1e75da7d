"""
Counterpart location sync.

Follows the realtime feed of one ride and keeps the most recent position
of the other participant. Own inserts coming back over the feed are
ignored.
"""

import asyncio
import contextlib
import logging
from typing import Optional

from redis.exceptions import RedisError

from ridesafe.app.core.exceptions import PersistenceError
from ridesafe.app.realtime.change_feed import ChangeFeed, FeedSubscription
from ridesafe.app.schemas.realtime import LocationChangeEvent
from ridesafe.app.tracking.position import PositionSample

logger = logging.getLogger("ridesafe.tracking.counterpart")


class CounterpartLocationSync:
    """
    Last-write-wins view of the counterpart's position.

    Events are applied in arrival order; an out-of-order delivery can move
    the displayed position backwards and is not corrected.
    """

    def __init__(self, feed: ChangeFeed, user_id: int):
        self._feed = feed
        self.user_id = user_id
        self.ride_id: Optional[str] = None
        self.other_user_location: Optional[PositionSample] = None
        self.other_user_id: Optional[int] = None

        self._subscription: Optional[FeedSubscription] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    async def watch(self, ride_id: str) -> None:
        """
        Follow `ride_id`, replacing any subscription to another ride.

        Raises:
            PersistenceError: If the feed subscription cannot be opened
        """
        if ride_id == self.ride_id and self.is_subscribed:
            return

        await self.close()
        self.ride_id = ride_id
        self.other_user_location = None
        self.other_user_id = None

        self._subscription = await self._feed.subscribe(ride_id)
        self._task = asyncio.create_task(
            self._consume(self._subscription), name=f"counterpart-sync-{ride_id}-{self.user_id}"
        )

    def handle_event(self, event: LocationChangeEvent) -> bool:
        """
        Apply one feed event.

        Returns:
            True if it replaced the counterpart location
        """
        record = event.record
        if event.event != "INSERT" or record.ride_id != self.ride_id:
            return False
        if record.user_id == self.user_id:
            return False

        self.other_user_location = record.to_sample()
        self.other_user_id = record.user_id
        return True

    async def _consume(self, subscription: FeedSubscription) -> None:
        try:
            async for event in subscription:
                self.handle_event(event)
        except RedisError:
            logger.error("Location feed for ride %s dropped", subscription.ride_id)

    async def close(self) -> None:
        """Stop consuming and release the channel."""
        task, self._task = self._task, None
        subscription, self._subscription = self._subscription, None

        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if subscription:
            try:
                await subscription.close()
            except Exception as exc:
                raise PersistenceError(
                    "Failed to close location feed",
                    details={"ride_id": subscription.ride_id, "reason": type(exc).__name__}
                ) from exc
