"""
Shared location store.

Append-only access to `ride_locations`. Both participants of a ride
insert their own rows; nothing here updates or deletes.
"""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from ridesafe.app.core.exceptions import PersistenceError
from ridesafe.app.db.session import STORE_ERRORS, safe_rollback
from ridesafe.app.models.enums import UserType
from ridesafe.app.models.ride_location import RideLocation
from ridesafe.app.tracking.position import PositionSample

logger = logging.getLogger("ridesafe.store.locations")


async def insert_location(
    db: AsyncSession,
    ride_id: str,
    user_id: int,
    user_type: UserType,
    sample: PositionSample
) -> RideLocation:
    """
    Append one location row and commit it.

    Args:
        db: Database session
        ride_id: Ride the sample belongs to
        user_id: Participant who emitted the sample
        user_type: Emitter role on the ride
        sample: Position fix to persist

    Returns:
        The committed row

    Raises:
        PersistenceError: If the insert or commit fails
    """
    row = RideLocation(
        ride_id=ride_id,
        user_id=user_id,
        user_type=user_type,
        lat=sample.lat,
        lng=sample.lng,
        heading=sample.heading,
        speed=sample.speed,
        accuracy=sample.accuracy,
        timestamp=sample.timestamp
    )

    try:
        db.add(row)
        await db.commit()
        await db.refresh(row)
    except STORE_ERRORS as exc:
        await safe_rollback(db)
        raise PersistenceError(
            "Failed to store location",
            details={"ride_id": ride_id, "reason": type(exc).__name__}
        ) from exc

    return row


async def list_recent_locations(
    db: AsyncSession,
    ride_id: str,
    limit: int = 50
) -> List[RideLocation]:
    """
    Most recent rows of a ride, newest first.

    Raises:
        PersistenceError: If the query fails
    """
    try:
        result = await db.execute(
            select(RideLocation)
            .where(RideLocation.ride_id == ride_id)
            .order_by(desc(RideLocation.created_at), desc(RideLocation.id))
            .limit(limit)
        )
    except STORE_ERRORS as exc:
        raise PersistenceError(
            "Failed to load locations",
            details={"ride_id": ride_id, "reason": type(exc).__name__}
        ) from exc

    return result.scalars().all()
