"""Outbound customer notifications.

``notify`` never raises: delivery problems come back as a failed
``DeliveryResult`` so scheduling actions are never blocked by messaging.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient

from fieldroute.config import settings
from fieldroute.utils.logging import get_logger
from fieldroute.utils.utils import clean_us_number, is_email

logger = get_logger("adapters.notifications")


@dataclass
class DeliveryResult:
    sent: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


class Notifier(Protocol):
    async def notify(self, recipient: str, message: str) -> DeliveryResult:
        ...


class LogOnlyNotifier:
    """Used when no messaging provider is configured."""

    async def notify(self, recipient: str, message: str) -> DeliveryResult:
        logger.info("notification_not_sent", reason="notifications_disabled", length=len(message))
        return DeliveryResult(sent=False, error="Notifications are not configured")


class TwilioSmsNotifier:
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[TwilioClient] = None,
    ):
        self.from_number = from_number
        self.client = client or TwilioClient(account_sid, auth_token)

    async def notify(self, recipient: str, message: str) -> DeliveryResult:
        if not recipient:
            return DeliveryResult(sent=False, error="No recipient")
        if is_email(recipient):
            return DeliveryResult(sent=False, error="Email delivery is handled by the messaging service")
        try:
            to_number = clean_us_number(recipient)
        except ValueError as e:
            return DeliveryResult(sent=False, error=str(e))

        try:
            # The Twilio REST client is blocking.
            sms = await asyncio.to_thread(
                self.client.messages.create,
                to=to_number,
                from_=self.from_number,
                body=message,
            )
        except TwilioRestException as e:
            logger.warning("sms_delivery_failed", status=e.status, code=e.code, error=e.msg)
            return DeliveryResult(sent=False, error=e.msg or str(e))
        except Exception as e:
            logger.exception("sms_delivery_error", error=str(e))
            return DeliveryResult(sent=False, error=str(e))

        logger.info("sms_sent", message_sid=sms.sid)
        return DeliveryResult(sent=True, message_id=sms.sid)


def get_notifier() -> Notifier:
    if settings.notifications_enabled:
        return TwilioSmsNotifier(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_phone_number,
        )
    return LogOnlyNotifier()
