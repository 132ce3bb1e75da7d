"""
Emergency Contact database model.

Contacts are maintained by the settings screen of the booking
application; the SOS flow reads them in priority order.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from ridesafe.app.db.session import Base


class EmergencyContact(Base):
    """
    Emergency Contact model.

    Lower priority value = contacted first. Equal priorities keep
    insertion order (ascending id).
    """
    __tablename__ = "emergency_contacts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    relationship = Column(String(100), nullable=True)
    priority = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<EmergencyContact(id={self.id}, user={self.user_id}, priority={self.priority})>"
