"""
Great-circle distance between two coordinates.

Every displayed or compared distance in the tracking subsystem goes
through `haversine_distance` so values stay consistent.
"""

import math
from typing import Iterable, Tuple

# Radius of Earth in kilometers
EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    # Convert degrees to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    # Haversine formula
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def min_distance_to_points(lat: float, lng: float, points: Iterable[Tuple[float, float]]) -> float:
    """Smallest haversine distance from (lat, lng) to any point; inf if none."""
    return min(
        (haversine_distance(lat, lng, p_lat, p_lng) for p_lat, p_lng in points),
        default=math.inf,
    )
