"""
Twilio WhatsApp channel

Talks to the Twilio Messages REST endpoint directly over httpx; the
request is a single form-encoded POST with basic auth.
"""

from typing import Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import TwilioSettings
from finance_tracker.models.ledger import Channel
from finance_tracker.services.messaging.interface import (
    ChannelNotConfiguredError,
    MessageDeliveryError,
    MessagingChannel,
)


logger = structlog.get_logger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def with_whatsapp_prefix(number: str) -> str:
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


class TwilioWhatsAppChannel(MessagingChannel):
    """Send WhatsApp messages through Twilio."""

    channel = Channel.WHATSAPP

    def __init__(self, settings: TwilioSettings, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            settings: Twilio credentials and sender number
            client: Shared HTTP client; one is created per call if omitted
        """
        self.settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    @property
    def messages_url(self) -> str:
        base = self.settings.api_base_url.rstrip("/")
        return f"{base}/2010-04-01/Accounts/{self.settings.account_sid}/Messages.json"

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _post(self, data: dict) -> httpx.Response:
        auth = (self.settings.account_sid, self.settings.auth_token)
        if self._client is not None:
            return await self._client.post(self.messages_url, data=data, auth=auth)
        async with httpx.AsyncClient(timeout=15) as client:
            return await client.post(self.messages_url, data=data, auth=auth)

    async def send(self, contact: str, text: str) -> dict:
        if not self.is_configured:
            raise ChannelNotConfiguredError("Twilio WhatsApp is not configured")

        response = await self._post({
            "From": with_whatsapp_prefix(self.settings.wa_from),
            "To": with_whatsapp_prefix(contact),
            "Body": text,
        })
        if not response.is_success:
            logger.error(
                "whatsapp_send_failed",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise MessageDeliveryError("whatsapp", response.status_code, response.text)

        sid = response.json().get("sid")
        logger.info("whatsapp_sent", sid=sid)
        return {"id": sid}
