"""
Route deviation monitor.

Compares every own position sample against the planned route and flags
the ride as deviated when the closest waypoint is farther than the
threshold. Transitions are edge-triggered: a notice fires once when the
state changes, never while it stays the same.
"""

import enum
import math
from typing import Iterable, Optional, Sequence

from ridesafe.app.core.config import settings
from ridesafe.app.tracking.geo import min_distance_to_points
from ridesafe.app.tracking.position import PositionSample, RoutePoint

DEVIATION_MESSAGE = (
    "I noticed we're on a slightly different route than planned. "
    "Everything okay? I'm here if you need help."
)
BACK_ON_ROUTE_MESSAGE = "Back on route! All good!"


class RouteState(str, enum.Enum):
    ON_ROUTE = "ON_ROUTE"
    DEVIATED = "DEVIATED"


class DeviationTransition(str, enum.Enum):
    DEVIATED = "DEVIATED"
    BACK_ON_ROUTE = "BACK_ON_ROUTE"

    @property
    def message(self) -> str:
        if self is DeviationTransition.DEVIATED:
            return DEVIATION_MESSAGE
        return BACK_ON_ROUTE_MESSAGE


class RouteDeviationMonitor:
    """Two-state machine, ON_ROUTE initially, single threshold and no hysteresis band."""

    def __init__(self, route: Optional[Iterable[RoutePoint]] = None, threshold_km: Optional[float] = None):
        self.route: Sequence[RoutePoint] = tuple(route or ())
        self.threshold_km = settings.route_deviation_threshold_km if threshold_km is None else threshold_km
        self.state = RouteState.ON_ROUTE
        self.last_distance_km: Optional[float] = None

    @property
    def is_deviating(self) -> bool:
        return self.state is RouteState.DEVIATED

    def observe(self, sample: PositionSample) -> Optional[DeviationTransition]:
        """
        Feed one own sample.

        Returns:
            The transition that just happened, or None if the state held
            (or the route is empty).
        """
        if not self.route:
            return None

        distance = min_distance_to_points(sample.lat, sample.lng, ((p.lat, p.lng) for p in self.route))
        self.last_distance_km = None if math.isinf(distance) else distance

        if distance > self.threshold_km:
            if self.state is RouteState.ON_ROUTE:
                self.state = RouteState.DEVIATED
                return DeviationTransition.DEVIATED
        elif self.state is RouteState.DEVIATED:
            self.state = RouteState.ON_ROUTE
            return DeviationTransition.BACK_ON_ROUTE

        return None
