"""
Realtime change feed for ride locations.

Every committed location insert is announced on a per-ride Redis
channel. Subscribers get a cancellable async iterator of typed events
for exactly one ride.
"""

import logging
from typing import AsyncIterator

from pydantic import ValidationError
from redis.exceptions import RedisError

from ridesafe.app.core.exceptions import PersistenceError
from ridesafe.app.schemas.realtime import LocationChangeEvent

logger = logging.getLogger("ridesafe.realtime.feed")

CHANNEL_PREFIX = "ride_location"


def channel_for(ride_id: str) -> str:
    return f"{CHANNEL_PREFIX}:{ride_id}"


class FeedSubscription:
    """Open subscription to one ride channel. Close it to release the channel."""

    def __init__(self, pubsub, ride_id: str):
        self._pubsub = pubsub
        self.ride_id = ride_id
        self.channel = channel_for(ride_id)
        self.closed = False

    def __aiter__(self) -> AsyncIterator[LocationChangeEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[LocationChangeEvent]:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                yield LocationChangeEvent.model_validate_json(message["data"])
            except ValidationError:
                logger.warning("Malformed event on %s: %r", self.channel, message["data"])

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._pubsub.unsubscribe(self.channel)
        finally:
            await self._pubsub.aclose()


class ChangeFeed:
    """Publishes and subscribes to location change events."""

    def __init__(self, redis):
        self.redis = redis

    async def publish(self, event: LocationChangeEvent) -> int:
        """
        Announce a committed insert.

        Returns:
            Number of subscribers that received it

        Raises:
            PersistenceError: If Redis rejects the publish
        """
        channel = channel_for(event.record.ride_id)
        try:
            return await self.redis.publish(channel, event.model_dump_json())
        except RedisError as exc:
            raise PersistenceError(
                "Failed to publish location event",
                details={"channel": channel, "reason": type(exc).__name__}
            ) from exc

    async def subscribe(self, ride_id: str) -> FeedSubscription:
        """
        Subscribe to INSERT events of one ride.

        Raises:
            PersistenceError: If the subscription cannot be opened
        """
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(channel_for(ride_id))
        except RedisError as exc:
            await pubsub.aclose()
            raise PersistenceError(
                "Failed to subscribe to location feed",
                details={"ride_id": ride_id, "reason": type(exc).__name__}
            ) from exc
        return FeedSubscription(pubsub, ride_id)

