"""
SOS schemas: activation, the fan-out function contract and per-contact
results.
"""

from pydantic import BaseModel, Field
from typing import Optional, List

from ridesafe.app.models.enums import SOSStatus


class SOSLocation(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class SOSActivateRequest(BaseModel):
    """
    Trigger SOS for the caller.

    When `location` is omitted the latest fix of the caller's tracking
    session on `ride_id` is used.
    """
    ride_id: Optional[str] = None
    location: Optional[SOSLocation] = None


class EmergencyContactSchema(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    relationship: Optional[str] = None
    priority: int = 1

    class Config:
        from_attributes = True


class SOSFanoutRequest(BaseModel):
    """Input of the send-sos-alerts function."""
    alert_id: int
    user_id: int
    location: SOSLocation
    contacts: List[EmergencyContactSchema]


class NotificationResult(BaseModel):
    """Delivery outcome for one contact."""
    contact_id: int
    contact_name: str
    phone_sent: bool
    email_sent: bool
    error: Optional[str] = None


class SOSFanoutResponse(BaseModel):
    success: bool
    alert_id: int
    notifications_sent: int
    message: str
    results: List[NotificationResult] = Field(default_factory=list)


class SOSActivationResult(BaseModel):
    """What the caller sees after a successful activation."""
    success: bool = True
    alert_id: int
    status: SOSStatus
    message: str
    contacts_count: int
    delivery_confirmed: bool
    notifications_sent: int = 0
    results: List[NotificationResult] = Field(default_factory=list)
