"""
Live tracking session.

Wires one participant of one ride together: sampler → publisher, the
counterpart feed, and route deviation checks on every own sample. The
session owns three independent resources (the position watch, the
publisher task and the feed subscription) and releases all of them on
stop, even when one release fails.
"""

import asyncio
import logging
from typing import Iterable, Optional, Set

from ridesafe.app.core.exceptions import PermissionOrTimeoutError
from ridesafe.app.db.session import STORE_ERRORS
from ridesafe.app.models.enums import UserType
from ridesafe.app.models.notification import NotificationType
from ridesafe.app.realtime.change_feed import ChangeFeed
from ridesafe.app.schemas.tracking import LocationView, TrackingStatusResponse
from ridesafe.app.services.notification_service import NotificationService
from ridesafe.app.tracking.geo import haversine_distance
from ridesafe.app.tracking.position import PositionErrorCode, PositionOptions, PositionSample, RoutePoint
from ridesafe.app.tracking.position_source import DevicePositionSource
from ridesafe.app.tracking.publisher import LocationPublisher
from ridesafe.app.tracking.counterpart_sync import CounterpartLocationSync
from ridesafe.app.tracking.route_monitor import DeviationTransition, RouteDeviationMonitor
from ridesafe.app.tracking.sampler import GeolocationSampler

logger = logging.getLogger("ridesafe.tracking.session")

LOCATION_ERROR_MESSAGE = (
    "Oops! I can't access your location right now. "
    "Please enable location services to use live tracking."
)


class TrackingSession:

    def __init__(
        self,
        ride_id: str,
        user_id: int,
        user_type: UserType,
        session_factory,
        feed: ChangeFeed,
        route: Optional[Iterable[RoutePoint]] = None,
        source: Optional[DevicePositionSource] = None,
        options: Optional[PositionOptions] = None,
        publish_interval_ms: Optional[int] = None,
    ):
        self.ride_id = ride_id
        self.user_id = user_id
        self.user_type = user_type
        self._session_factory = session_factory

        self.source = source or DevicePositionSource()
        self.sampler = GeolocationSampler(self.source, options)
        self.publisher = LocationPublisher(
            session_factory, feed, ride_id, user_id, user_type, interval_ms=publish_interval_ms
        )
        self.counterpart = CounterpartLocationSync(feed, user_id)
        self.route_monitor = RouteDeviationMonitor(route)

        self.active = False
        self._stop_sampler = None
        self._notices: Set[asyncio.Task] = set()

        self.sampler.on_sample(self._on_sample)
        self.sampler.on_error(self._on_sampler_error)

    async def start(self) -> None:
        """
        Start sampling, publishing and following the counterpart.

        Raises:
            CapabilityError: the device cannot provide positions
            PersistenceError: the realtime feed could not be opened
        """
        self._stop_sampler = self.sampler.start_tracking()
        self.active = True
        self.publisher.start()
        try:
            await self.counterpart.watch(self.ride_id)
        except Exception:
            await self.stop()
            raise
        logger.info(
            "Tracking started",
            extra={"ride_id": self.ride_id, "user_id": self.user_id, "user_type": self.user_type.value}
        )

    def restart_sampler(self, route: Optional[Iterable[RoutePoint]] = None) -> None:
        """
        Fresh acquisition after a terminal sampler error.

        A given route replaces the planned one and resets the deviation state.
        """
        if route is not None:
            self.route_monitor = RouteDeviationMonitor(route)
        self._stop_sampler = self.sampler.start_tracking()

    async def push_fix(self, sample: PositionSample) -> bool:
        """Hand a device fix to the open watch. False if tracking is not running."""
        if not self.sampler.is_tracking:
            return False
        return await self.source.push(sample) > 0

    async def report_sensor_error(self, code: PositionErrorCode, message: str) -> bool:
        if not self.sampler.is_tracking:
            return False
        return await self.source.report_error(code, message) > 0

    def _on_sample(self, sample: PositionSample) -> None:
        self.publisher.update(sample)

        transition = self.route_monitor.observe(sample)
        if transition is DeviationTransition.DEVIATED:
            self._notify(
                "Route deviation", transition.message, NotificationType.ROUTE_DEVIATION,
                {"distance_km": self.route_monitor.last_distance_km}
            )
        elif transition is DeviationTransition.BACK_ON_ROUTE:
            self._notify("Back on route", transition.message, NotificationType.SUCCESS)

    def _on_sampler_error(self, exc: PermissionOrTimeoutError) -> None:
        self._notify(
            "Location unavailable", LOCATION_ERROR_MESSAGE, NotificationType.ERROR,
            {"reason": exc.details.get("reason"), "error": exc.message}
        )

    def _notify(self, title: str, message: str, type: NotificationType, metadata: dict = None) -> None:
        task = asyncio.create_task(self._store_notice(title, message, type, metadata))
        self._notices.add(task)
        task.add_done_callback(self._notices.discard)

    async def _store_notice(self, title: str, message: str, type: NotificationType, metadata: Optional[dict]) -> None:
        payload = {"ride_id": self.ride_id, **(metadata or {})}
        try:
            async with self._session_factory() as db:
                await NotificationService.create_notification(
                    db, self.user_id, title, message, type=type, metadata=payload
                )
                await db.commit()
        except STORE_ERRORS:
            logger.warning("Could not store notification '%s' for user %s", title, self.user_id)

    async def drain_notices(self) -> None:
        """Wait for notifications already scheduled."""
        if self._notices:
            await asyncio.gather(*list(self._notices), return_exceptions=True)

    async def stop(self) -> None:
        """Release the watch, the publisher and the feed, each independently."""
        self.active = False

        try:
            if self._stop_sampler:
                self._stop_sampler()
        except Exception:
            logger.exception("Failed to clear position watch for ride %s", self.ride_id)

        try:
            await self.publisher.stop()
        except Exception:
            logger.exception("Failed to stop publisher for ride %s", self.ride_id)

        try:
            await self.counterpart.close()
        except Exception:
            logger.exception("Failed to close location feed for ride %s", self.ride_id)

        await self.drain_notices()
        logger.info("Tracking stopped", extra={"ride_id": self.ride_id, "user_id": self.user_id})

    def status(self) -> TrackingStatusResponse:
        own = self.sampler.location
        other = self.counterpart.other_user_location

        distance_to_other = None
        if own and other:
            distance_to_other = round(haversine_distance(own.lat, own.lng, other.lat, other.lng), 2)

        return TrackingStatusResponse(
            ride_id=self.ride_id,
            user_id=self.user_id,
            user_type=self.user_type,
            is_tracking=self.sampler.is_tracking,
            error=self.sampler.error,
            location=LocationView.from_sample(own),
            other_user_location=LocationView.from_sample(other),
            distance_to_other_km=distance_to_other,
            route_deviation=self.route_monitor.is_deviating,
            distance_from_route_km=self.route_monitor.last_distance_km,
            publish_count=self.publisher.publish_count,
            failed_publish_count=self.publisher.failure_count,
        )
