"""
Ride Location database model.

Shared, append-only log of position samples published by both ride
participants. Each participant writes its own rows and reads the other's
through the realtime feed.
"""

from sqlalchemy import Column, Integer, Float, String, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from ridesafe.app.db.session import Base
from ridesafe.app.models.enums import UserType


class RideLocation(Base):
    """
    Ride Location model.

    One row per publish tick. Never updated or deleted by the tracking
    subsystem.
    """
    __tablename__ = "ride_locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    ride_id = Column(String(64), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    user_type = Column(Enum(UserType), nullable=False)

    # GPS coordinates
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    heading = Column(Float, nullable=True)  # degrees clockwise from north
    speed = Column(Float, nullable=True)  # metres per second
    accuracy = Column(Float, nullable=True)  # metres

    # Timing
    timestamp = Column(DateTime(timezone=True), nullable=False)  # When the fix was taken
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # When inserted to DB

    def __repr__(self):
        return f"<RideLocation(ride_id={self.ride_id}, user_id={self.user_id}, lat={self.lat}, lng={self.lng})>"
