"""
Geolocation sampler.

Wraps a device position source, keeps the latest fix and surfaces
capability, permission and timeout failures.
"""

import logging
from typing import Callable, List, Optional

from ridesafe.app.core.config import settings
from ridesafe.app.core.exceptions import CapabilityError, PermissionOrTimeoutError
from ridesafe.app.tracking.position import PositionError, PositionOptions, PositionSample
from ridesafe.app.tracking.position_source import PositionSource

logger = logging.getLogger("ridesafe.tracking.sampler")

UNSUPPORTED_MESSAGE = "Geolocation is not supported by your device"


def default_position_options() -> PositionOptions:
    return PositionOptions(
        high_accuracy=settings.geolocation_high_accuracy,
        timeout_ms=settings.geolocation_timeout_ms,
        maximum_age_ms=settings.geolocation_maximum_age_ms,
    )


class GeolocationSampler:
    """
    Continuous position acquisition with at most one open watch.

    A failure stops tracking and is terminal until `start_tracking` is
    called again; there is no automatic retry.
    """

    def __init__(self, source: PositionSource, options: Optional[PositionOptions] = None):
        self.source = source
        self.options = options or default_position_options()

        self.location: Optional[PositionSample] = None
        self.error: Optional[str] = None
        self.is_tracking = False

        self._watch_id: Optional[int] = None
        self._sample_listeners: List[Callable[[PositionSample], None]] = []
        self._error_listeners: List[Callable[[PermissionOrTimeoutError], None]] = []

    def on_sample(self, listener: Callable[[PositionSample], None]) -> None:
        self._sample_listeners.append(listener)

    def on_error(self, listener: Callable[[PermissionOrTimeoutError], None]) -> None:
        self._error_listeners.append(listener)

    def start_tracking(self) -> Callable[[], None]:
        """
        Begin continuous acquisition.

        Returns:
            A handle that cancels this acquisition when called.

        Raises:
            CapabilityError: the source has no position capability
        """
        if not self.source.supported:
            self.error = UNSUPPORTED_MESSAGE
            raise CapabilityError(UNSUPPORTED_MESSAGE)

        self._clear_watch()
        self.is_tracking = True
        self.error = None

        watch_id = self.source.watch_position(self._handle_fix, self._handle_error, self.options)
        if not self.is_tracking:
            # failed synchronously while registering
            self.source.clear_watch(watch_id)
        else:
            self._watch_id = watch_id

        def stop() -> None:
            if self._watch_id == watch_id:
                self._clear_watch()
                self.is_tracking = False

        return stop

    def _clear_watch(self) -> None:
        if self._watch_id is not None:
            watch_id, self._watch_id = self._watch_id, None
            self.source.clear_watch(watch_id)

    def _handle_fix(self, sample: PositionSample) -> None:
        self.location = sample
        for listener in self._sample_listeners:
            try:
                listener(sample)
            except Exception:
                logger.exception("Sample listener failed")

    def _handle_error(self, error: PositionError) -> None:
        logger.warning("Position acquisition failed: %s (%s)", error.message, error.code.value)
        self.error = error.message
        self.is_tracking = False
        self._clear_watch()

        exc = PermissionOrTimeoutError(error.message, error.code.value)
        for listener in self._error_listeners:
            try:
                listener(exc)
            except Exception:
                logger.exception("Error listener failed")
