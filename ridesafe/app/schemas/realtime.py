"""
Realtime change-feed event schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Literal

from ridesafe.app.models.enums import UserType
from ridesafe.app.tracking.position import PositionSample


class RideLocationPayload(BaseModel):
    """A `ride_locations` row as carried on the feed."""
    id: int
    ride_id: str
    user_id: int
    user_type: UserType
    lat: float
    lng: float
    heading: Optional[float] = None
    speed: Optional[float] = None
    accuracy: Optional[float] = None
    timestamp: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def to_sample(self) -> PositionSample:
        return PositionSample(
            lat=float(self.lat),
            lng=float(self.lng),
            heading=self.heading,
            speed=self.speed,
            accuracy=float(self.accuracy) if self.accuracy is not None else 0.0,
            timestamp=self.timestamp,
        )


class LocationChangeEvent(BaseModel):
    """Change event published after every committed location insert."""
    event: Literal["INSERT"] = "INSERT"
    table: Literal["ride_locations"] = "ride_locations"
    record: RideLocationPayload
