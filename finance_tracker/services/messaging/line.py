"""
LINE Messaging API channel

Push messages go to /v2/bot/message/push with the channel access token
as a bearer token.
"""

from typing import Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import LineSettings
from finance_tracker.models.ledger import Channel
from finance_tracker.services.messaging.interface import (
    ChannelNotConfiguredError,
    MessageDeliveryError,
    MessagingChannel,
)


logger = structlog.get_logger(__name__)


class LineChannel(MessagingChannel):
    """Send LINE push messages."""

    channel = Channel.LINE

    def __init__(self, settings: LineSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    @property
    def push_url(self) -> str:
        return f"{self.settings.api_base_url.rstrip('/')}/v2/bot/message/push"

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _post(self, payload: dict) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.settings.channel_access_token}"}
        if self._client is not None:
            return await self._client.post(self.push_url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=15) as client:
            return await client.post(self.push_url, json=payload, headers=headers)

    async def send(self, contact: str, text: str) -> dict:
        if not self.is_configured:
            raise ChannelNotConfiguredError("LINE is not configured")

        response = await self._post({
            "to": contact,
            "messages": [{"type": "text", "text": text}],
        })
        if not response.is_success:
            logger.error(
                "line_send_failed",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise MessageDeliveryError("line", response.status_code, response.text)

        logger.info("line_sent", to=contact)
        return {"ok": True}
