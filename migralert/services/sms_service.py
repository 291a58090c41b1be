"""
SMS transport

Each send is independent: callers fan out and isolate failures themselves.
"""
import asyncio
import logging
import uuid
from functools import lru_cache
from typing import List, Optional, Tuple

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from migralert.core.config import settings
from migralert.core.exceptions import TransportError
from migralert.core.logging_config import mask_phone

logger = logging.getLogger(__name__)


class SmsTransport:
    """Base transport: send() returns the provider message id or raises TransportError"""

    name = "base"

    async def send(self, to: str, body: str) -> str:
        raise NotImplementedError


class TwilioSmsTransport(SmsTransport):
    name = "twilio"

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.from_number = from_number
        self._client: Optional[Client] = None
        if account_sid and auth_token and from_number:
            http_client = TwilioHttpClient(timeout=timeout or settings.TWILIO_HTTP_TIMEOUT_SECONDS)
            self._client = Client(account_sid, auth_token, http_client=http_client)
        else:
            logger.error("[SMS] CRITICAL: Twilio transport configured WITHOUT credentials!")

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _create(self, to: str, body: str) -> str:
        message = self._client.messages.create(body=body, from_=self.from_number, to=to)
        return message.sid

    async def send(self, to: str, body: str) -> str:
        if not self.configured:
            raise TransportError("SMS transport not configured")

        try:
            # twilio's client is blocking; keep the event loop free for the other sends
            sid = await asyncio.to_thread(self._create, to, body)
        except TwilioException as e:
            logger.warning(f"[SMS] Twilio rejected message to {mask_phone(to)}: {e}")
            raise TransportError(str(e)) from e
        except OSError as e:
            logger.warning(f"[SMS] Network error sending to {mask_phone(to)}: {e}")
            raise TransportError(str(e)) from e

        logger.info(f"[SMS] Sent to {mask_phone(to)} sid={sid}")
        return sid


class ConsoleSmsTransport(SmsTransport):
    """Development transport: logs messages instead of sending them"""

    name = "console"

    def __init__(self):
        self.outbox: List[Tuple[str, str]] = []

    async def send(self, to: str, body: str) -> str:
        self.outbox.append((to, body))
        logger.info(f"[SMS] (console) to {mask_phone(to)}:\n{body}")
        return f"console-{uuid.uuid4().hex[:12]}"


@lru_cache()
def get_sms_transport() -> SmsTransport:
    if settings.SMS_BACKEND == "console":
        logger.warning("[SMS] Using console transport: no real messages will be sent")
        return ConsoleSmsTransport()
    return TwilioSmsTransport(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
        timeout=settings.TWILIO_HTTP_TIMEOUT_SECONDS,
    )
