"""
Value types exchanged by the live tracking components.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class PositionSample:
    """A single sensor fix. Superseded by the next one, never mutated."""
    lat: float
    lng: float
    accuracy: float
    timestamp: datetime
    heading: Optional[float] = None
    speed: Optional[float] = None


@dataclass(frozen=True)
class RoutePoint:
    lat: float
    lng: float


@dataclass(frozen=True)
class PositionOptions:
    """
    Acquisition options handed to the position source.

    Defaults always ask for a fresh, high-accuracy fix and never reuse a
    cached one.
    """
    high_accuracy: bool = True
    timeout_ms: int = 5000
    maximum_age_ms: int = 0


class PositionErrorCode(str, enum.Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"


@dataclass(frozen=True)
class PositionError:
    code: PositionErrorCode
    message: str
