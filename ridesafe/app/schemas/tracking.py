"""
Live tracking schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from ridesafe.app.models.enums import UserType
from ridesafe.app.tracking.position import PositionErrorCode, PositionSample, RoutePoint


class RoutePointSchema(BaseModel):
    """One waypoint of the planned route."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_point(self) -> RoutePoint:
        return RoutePoint(lat=self.lat, lng=self.lng)


class TrackingStartRequest(BaseModel):
    """Start live tracking for the caller on a ride."""
    user_type: UserType
    planned_route: List[RoutePointSchema] = Field(default_factory=list)


class PositionFix(BaseModel):
    """A fix pushed by the client device."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = Field(None, ge=0, lt=360)
    speed: Optional[float] = Field(None, ge=0)
    accuracy: float = Field(..., ge=0)
    timestamp: datetime

    def to_sample(self) -> PositionSample:
        return PositionSample(
            lat=self.lat,
            lng=self.lng,
            heading=self.heading,
            speed=self.speed,
            accuracy=self.accuracy,
            timestamp=self.timestamp,
        )


class PositionFixResponse(BaseModel):
    ride_id: str
    accepted: bool


class SensorErrorReport(BaseModel):
    """A failure reported by the device sensor."""
    code: PositionErrorCode
    message: str = Field(..., min_length=1, max_length=500)


class LocationView(BaseModel):
    lat: float
    lng: float
    heading: Optional[float]
    speed: Optional[float]
    accuracy: float
    timestamp: datetime

    @classmethod
    def from_sample(cls, sample: Optional[PositionSample]) -> Optional["LocationView"]:
        if sample is None:
            return None
        return cls(
            lat=sample.lat,
            lng=sample.lng,
            heading=sample.heading,
            speed=sample.speed,
            accuracy=sample.accuracy,
            timestamp=sample.timestamp,
        )


class TrackingStatusResponse(BaseModel):
    """Live tracking state for one participant of a ride."""
    ride_id: str
    user_id: int
    user_type: UserType
    is_tracking: bool
    error: Optional[str]
    location: Optional[LocationView]
    other_user_location: Optional[LocationView]
    distance_to_other_km: Optional[float]
    route_deviation: bool
    distance_from_route_km: Optional[float]
    publish_count: int
    failed_publish_count: int


class TrackingStopResponse(BaseModel):
    ride_id: str
    stopped: bool


class RideLocationResponse(BaseModel):
    """Stored location breadcrumb."""
    id: int
    user_id: int
    user_type: UserType
    lat: float
    lng: float
    heading: Optional[float]
    speed: Optional[float]
    accuracy: Optional[float]
    timestamp: datetime
    created_at: datetime

    class Config:
        from_attributes = True
