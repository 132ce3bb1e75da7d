"""
SOS notification fan-out.

Composes one alert message and attempts delivery to every emergency
contact independently. A failed send for one contact is recorded in that
contact's result and never stops the others.

The delivery transport (SMS/email provider) is pluggable; the default one
only logs.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ridesafe.app.core.config import settings
from ridesafe.app.core.exceptions import DeliveryError
from ridesafe.app.db.session import STORE_ERRORS
from ridesafe.app.models.user import User
from ridesafe.app.schemas.sos import (
    EmergencyContactSchema, NotificationResult, SOSFanoutRequest, SOSFanoutResponse, SOSLocation
)

logger = logging.getLogger("ridesafe.sos.fanout")

DEFAULT_USER_NAME = "A user"
ALERT_SUBJECT = "EMERGENCY ALERT"


class DeliveryTransport(Protocol):
    """Sends one message over one channel. Raises DeliveryError on failure."""

    async def send_sms(self, phone: str, message: str) -> None:
        ...

    async def send_email(self, email: str, subject: str, message: str) -> None:
        ...


class LoggingDeliveryTransport:
    """Stand-in transport: records what would be sent."""

    async def send_sms(self, phone: str, message: str) -> None:
        logger.info("SMS alert queued", extra={"phone": phone, "length": len(message)})

    async def send_email(self, email: str, subject: str, message: str) -> None:
        logger.info("Email alert queued", extra={"email": email, "subject": subject})


def build_map_link(location: SOSLocation) -> str:
    return f"{settings.map_link_base_url}?q={location.lat},{location.lng}"


def compose_alert_message(user_name: str, location: SOSLocation, sent_at: datetime) -> str:
    """Human-readable alert sent to every contact."""
    return (
        f"{ALERT_SUBJECT}\n\n"
        f"{user_name} has activated their SOS emergency alert!\n\n"
        f"Current Location:\n{build_map_link(location)}\n\n"
        f"Time: {sent_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}\n\n"
        "They may need immediate assistance. Please try to contact them or check on their safety.\n\n"
        "This is an automated alert from the RideSafe safety system."
    )


class NotificationFanout:

    def __init__(
        self,
        db: AsyncSession,
        transport: Optional[DeliveryTransport] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.db = db
        self.transport = transport or LoggingDeliveryTransport()
        self.clock = clock

    async def resolve_user_name(self, user_id: int) -> str:
        try:
            result = await self.db.execute(select(User.full_name).where(User.id == user_id))
            full_name = result.scalar_one_or_none()
        except STORE_ERRORS:
            logger.warning("Profile lookup failed for user %s", user_id)
            return DEFAULT_USER_NAME
        return full_name or DEFAULT_USER_NAME

    async def send(self, request: SOSFanoutRequest) -> SOSFanoutResponse:
        """
        Deliver the alert to every contact.

        Returns:
            One result per contact, in the order given
        """
        logger.info(
            "SOS alert activated",
            extra={"alert_id": request.alert_id, "user_id": request.user_id, "contact_count": len(request.contacts)}
        )

        user_name = await self.resolve_user_name(request.user_id)
        message = compose_alert_message(user_name, request.location, self.clock())

        results: List[NotificationResult] = []
        for contact in request.contacts:
            results.append(await self._deliver(contact, message))

        failed = sum(1 for r in results if r.error)
        if failed:
            logger.warning("SOS alert %s: %d of %d contacts had delivery failures", request.alert_id, failed, len(results))

        return SOSFanoutResponse(
            success=True,
            alert_id=request.alert_id,
            notifications_sent=len(results),
            message="SOS alerts have been sent to all emergency contacts.",
            results=results,
        )

    async def _deliver(self, contact: EmergencyContactSchema, message: str) -> NotificationResult:
        errors = []

        phone_sent = await self._attempt(contact, "sms", self.transport.send_sms(contact.phone, message), errors)
        email_sent = False
        if contact.email:
            email_sent = await self._attempt(
                contact, "email", self.transport.send_email(contact.email, ALERT_SUBJECT, message), errors
            )

        return NotificationResult(
            contact_id=contact.id,
            contact_name=contact.name,
            phone_sent=phone_sent,
            email_sent=email_sent,
            error="; ".join(errors) or None,
        )

    async def _attempt(self, contact: EmergencyContactSchema, channel: str, send, errors: list) -> bool:
        try:
            await send
        except DeliveryError as exc:
            errors.append(f"{channel}: {exc.message}")
        except Exception as exc:
            logger.exception("Unexpected %s transport failure for contact %s", channel, contact.id)
            errors.append(f"{channel}: {type(exc).__name__}")
        else:
            return True

        logger.warning("SOS %s delivery failed for contact %s", channel, contact.id)
        return False
