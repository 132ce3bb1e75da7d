"""
SOS Dispatcher.

Creating the alert record must succeed; notifying contacts is advisory.
If the fan-out fails the activation still reports success, because the
alert row is the source of truth for responders.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ridesafe.app.core.exceptions import (
    LocationUnavailableError, NoEmergencyContactsError, SOSActivationError
)
from ridesafe.app.db.session import STORE_ERRORS, safe_rollback
from ridesafe.app.models.emergency_contact import EmergencyContact
from ridesafe.app.models.enums import SOSStatus
from ridesafe.app.models.notification import NotificationType
from ridesafe.app.models.sos_alert import SOSAlert
from ridesafe.app.schemas.sos import (
    EmergencyContactSchema, SOSActivationResult, SOSFanoutRequest, SOSLocation
)
from ridesafe.app.services.fanout_invoker import FanoutInvoker
from ridesafe.app.services.notification_service import NotificationService

logger = logging.getLogger("ridesafe.sos.dispatcher")

ACTIVATED_MESSAGE = (
    "SOS Activated! Your emergency contacts have been notified and are being sent your location. "
    "Help is on the way! Stay calm, I'm here with you."
)


async def load_emergency_contacts(db: AsyncSession, user_id: int) -> List[EmergencyContact]:
    """
    Contacts of a user, highest priority first.

    Equal priorities keep insertion order.
    """
    result = await db.execute(
        select(EmergencyContact)
        .where(EmergencyContact.user_id == user_id)
        .order_by(EmergencyContact.priority.asc(), EmergencyContact.id.asc())
    )
    return result.scalars().all()


class SOSDispatcher:

    def __init__(self, db: AsyncSession, fanout: FanoutInvoker):
        self.db = db
        self.fanout = fanout

    async def activate(
        self,
        user_id: Optional[int],
        ride_id: Optional[str],
        current_location: Optional[SOSLocation]
    ) -> SOSActivationResult:
        """
        Raise an SOS alert and notify the user's emergency contacts.

        Not idempotent: every call creates a new alert and a new fan-out.

        Args:
            user_id: User triggering the alert
            ride_id: Ride in progress, if any
            current_location: Latest known position

        Returns:
            Confirmation with per-contact delivery results

        Raises:
            LocationUnavailableError: user or location missing, nothing written
            SOSActivationError: the alert (or the contact list) could not be stored/read
            NoEmergencyContactsError: no contacts configured; the alert row stays
        """
        if not user_id or current_location is None:
            raise LocationUnavailableError()

        alert = await self._create_alert(user_id, ride_id, current_location)

        try:
            contacts = await load_emergency_contacts(self.db, user_id)
        except STORE_ERRORS as exc:
            logger.error("Contact lookup failed for SOS alert %s", alert.id)
            raise SOSActivationError() from exc

        if not contacts:
            logger.warning(
                "SOS alert %s left active: user %s has no emergency contacts", alert.id, user_id
            )
            raise NoEmergencyContactsError(alert_id=alert.id)

        request = SOSFanoutRequest(
            alert_id=alert.id,
            user_id=user_id,
            location=SOSLocation(lat=current_location.lat, lng=current_location.lng),
            contacts=[EmergencyContactSchema.model_validate(c) for c in contacts],
        )

        results = []
        notifications_sent = 0
        delivery_confirmed = False
        try:
            response = await self.fanout(request)
            results = response.results
            notifications_sent = response.notifications_sent
            delivery_confirmed = response.success
        except Exception:
            logger.exception("Error sending alerts for SOS alert %s", alert.id)

        await self._confirm_to_user(user_id, ride_id, alert.id)

        return SOSActivationResult(
            alert_id=alert.id,
            status=alert.status,
            message=ACTIVATED_MESSAGE,
            contacts_count=len(contacts),
            delivery_confirmed=delivery_confirmed,
            notifications_sent=notifications_sent,
            results=results,
        )

    async def _create_alert(self, user_id: int, ride_id: Optional[str], location: SOSLocation) -> SOSAlert:
        alert = SOSAlert(
            user_id=user_id,
            ride_id=ride_id,
            lat=location.lat,
            lng=location.lng,
            status=SOSStatus.ACTIVE
        )
        try:
            self.db.add(alert)
            await self.db.commit()
            await self.db.refresh(alert)
        except STORE_ERRORS as exc:
            await safe_rollback(self.db)
            logger.error("Failed to create SOS alert for user %s", user_id)
            raise SOSActivationError() from exc

        logger.info("SOS alert %s created", alert.id, extra={"user_id": user_id, "ride_id": ride_id})
        return alert

    async def _confirm_to_user(self, user_id: int, ride_id: Optional[str], alert_id: int) -> None:
        try:
            await NotificationService.create_notification(
                self.db, user_id, "SOS activated", ACTIVATED_MESSAGE,
                type=NotificationType.SOS_ALERT,
                metadata={"alert_id": alert_id, "ride_id": ride_id}
            )
            await self.db.commit()
        except STORE_ERRORS:
            await safe_rollback(self.db)
            logger.warning("Could not store SOS confirmation for alert %s", alert_id)
