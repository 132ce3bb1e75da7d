"""
Enumerations shared by the safety models.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        PASSENGER: Books rides (default role)
        DRIVER: Drives rides
        ADMIN: Operations staff
    """
    PASSENGER = "passenger"
    DRIVER = "driver"
    ADMIN = "admin"


class UserType(str, enum.Enum):
    """Which side of a ride emitted a location sample."""
    PASSENGER = "passenger"
    DRIVER = "driver"


class SOSStatus(str, enum.Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
