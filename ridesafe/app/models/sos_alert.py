"""
SOS Alert database model.
"""

from sqlalchemy import Column, Integer, Float, String, Text, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from ridesafe.app.db.session import Base
from ridesafe.app.models.enums import SOSStatus


class SOSAlert(Base):
    """
    SOS Alert model.

    Created ACTIVE when a user triggers SOS. Resolution is handled by
    operations staff outside this service.
    """
    __tablename__ = "sos_alerts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    ride_id = Column(String(64), nullable=True, index=True)

    # Where the user was when SOS was triggered
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)

    status = Column(Enum(SOSStatus), default=SOSStatus.ACTIVE, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<SOSAlert(id={self.id}, user={self.user_id}, status='{self.status.value}')>"
