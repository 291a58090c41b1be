"""
Emergency alert fan-out

One SMS per contact, sent concurrently. A failed send never cancels or
delays the others; the alert counts as sent when at least one delivery
succeeded.
"""
import asyncio
import logging
from typing import List, Optional

from migralert.core.exceptions import (
    AllSendsFailed,
    NoContactsConfigured,
    NoPhoneOnAccount,
    Unauthorized,
    ValidationError,
)
from migralert.core.logging_config import mask_phone
from migralert.models.user import User
from migralert.schemas.emergency import Coordinates, DeliveryResult, DispatchResult
from migralert.services.contact_service import ContactService
from migralert.services.sms_service import SmsTransport
from migralert.utils.geo import maps_url

logger = logging.getLogger(__name__)

TEST_FOOTER = "This is a test. Your alert setup is working!"


def build_emergency_body(message: str, coords: Optional[Coordinates] = None) -> str:
    body = f"EMERGENCY ALERT from MigrAlert:\n\n{message}"
    if coords is not None:
        body += f"\n\nLast known location:\n{maps_url(coords.latitude, coords.longitude)}"
    return body


def build_test_body(message: str) -> str:
    return f"[TEST] MigrAlert:\n\n{message}\n\n{TEST_FOOTER}"


def _summary(success_count: int, failed_count: int) -> str:
    plural = "contact" if success_count == 1 else "contacts"
    text = f"Alert sent to {success_count} {plural}"
    if failed_count:
        text += f" ({failed_count} failed)"
    return text


class AlertDispatcher:
    def __init__(self, contacts: ContactService, transport: SmsTransport):
        self.contacts = contacts
        self.transport = transport

    async def _deliver(self, to: str, body: str, contact=None) -> DeliveryResult:
        try:
            await self.transport.send(to, body)
            return DeliveryResult(
                contact_id=contact.id if contact else None,
                name=contact.name if contact else None,
                phone=mask_phone(to),
                success=True,
            )
        except Exception as e:
            # Isolated per recipient: one failure must not sink the batch
            logger.warning(f"[Alerts] Send to {mask_phone(to)} failed: {e}")
            return DeliveryResult(
                contact_id=contact.id if contact else None,
                name=contact.name if contact else None,
                phone=mask_phone(to),
                success=False,
                error=str(e) or e.__class__.__name__,
            )

    async def send_emergency_alert(
        self,
        user: Optional[User],
        message: Optional[str] = None,
        share_location: Optional[bool] = None,
        coords: Optional[Coordinates] = None,
    ) -> DispatchResult:
        """
        Text every emergency contact of the user.

        message and share_location default to the saved alert config. The
        location link is appended only when sharing is on and coords exist.
        """
        if user is None:
            raise Unauthorized()

        config = self.contacts.get_alert_config(user)
        if message is None:
            message = config.message
        if share_location is None:
            share_location = config.share_location

        message = message.strip()
        if not message:
            raise ValidationError("Alert message is required")

        contacts = self.contacts.list(user)
        if not contacts:
            raise NoContactsConfigured()

        shared = coords if share_location else None
        body = build_emergency_body(message, shared)

        logger.info(f"[Alerts] 🚨 Emergency alert from {user.id} to {len(contacts)} contact(s)")
        results: List[DeliveryResult] = list(await asyncio.gather(
            *(self._deliver(c.phone, body, c) for c in contacts)
        ))

        success_count = sum(1 for r in results if r.success)
        failed_count = len(results) - success_count

        if success_count == 0:
            logger.error(f"[Alerts] ❌ All {failed_count} sends failed for {user.id}")
            raise AllSendsFailed(details={"results": [r.model_dump() for r in results]})

        self.contacts.record_history(
            user,
            message=message,
            contacts_notified=success_count,
            latitude=shared.latitude if shared else None,
            longitude=shared.longitude if shared else None,
        )

        if failed_count:
            logger.warning(f"[Alerts] Partial delivery for {user.id}: {success_count} ok, {failed_count} failed")
        else:
            logger.info(f"[Alerts] ✅ Delivered to all {success_count} contact(s) of {user.id}")

        return DispatchResult(
            success=True,
            message=_summary(success_count, failed_count),
            success_count=success_count,
            failed_count=failed_count,
            partial=failed_count > 0,
            results=results,
        )

    async def send_test_alert(self, user: Optional[User], message: Optional[str] = None) -> DispatchResult:
        """Send the alert to the account's own verified phone only."""
        if user is None:
            raise Unauthorized()

        phone = user.verified_phone
        if not phone:
            raise NoPhoneOnAccount()

        if message is None:
            message = self.contacts.get_alert_config(user).message
        message = message.strip()
        if not message:
            raise ValidationError("Alert message is required")

        result = await self._deliver(phone, build_test_body(message))
        if not result.success:
            raise AllSendsFailed("Failed to send test alert", details={"results": [result.model_dump()]})

        self.contacts.record_history(user, message=message, contacts_notified=0, is_test=True)
        logger.info(f"[Alerts] Test alert sent to {user.id}")

        return DispatchResult(
            success=True,
            message="Test alert sent to your phone",
            success_count=1,
            failed_count=0,
            is_test=True,
            results=[result],
        )
