"""
Abstract Messaging Interface

DESIGN DECISION: Reminders go out over more than one chat provider.
Each provider is a MessagingChannel; the rest of the system only knows
the channel tag stored on a subscription and asks the registry for the
matching implementation.

All implementations:
- Raise ChannelNotConfiguredError when credentials are missing
- Raise MessageDeliveryError on a non-2xx provider response
- Return a small dict describing the accepted message
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from finance_tracker.models.ledger import Channel


class MessagingError(Exception):
    """Base exception for messaging errors."""
    pass


class ChannelNotConfiguredError(MessagingError):
    """Raised when a channel is used without its credentials."""
    pass


class UnsupportedChannelError(MessagingError):
    """Raised when no implementation is registered for a channel tag."""
    pass


class MessageDeliveryError(MessagingError):
    """Raised when the provider refuses a message."""

    def __init__(self, channel: str, status_code: int, body: str):
        self.channel = channel
        self.status_code = status_code
        self.body = body
        super().__init__(f"{channel} send failed: {status_code} {body}")


class MessagingChannel(ABC):
    """A single outbound chat provider."""

    channel: Channel

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def send(self, contact: str, text: str) -> dict:
        """
        Send a text message.

        Args:
            contact: Provider-specific recipient (phone number or user id)
            text: Message body

        Raises:
            ChannelNotConfiguredError: If credentials are missing
            MessageDeliveryError: If the provider rejects the message
        """
        pass


class ChannelRegistry:
    """Maps channel tags to their implementations."""

    def __init__(self, channels: Optional[list[MessagingChannel]] = None):
        self._channels: dict[Channel, MessagingChannel] = {}
        for ch in channels or []:
            self.register(ch)

    def register(self, channel: MessagingChannel) -> None:
        self._channels[channel.channel] = channel

    def get(self, tag: Union[Channel, str]) -> MessagingChannel:
        """
        Look up the implementation for a channel tag.

        Raises:
            UnsupportedChannelError: If the tag is unknown
        """
        try:
            key = Channel(tag)
        except ValueError:
            raise UnsupportedChannelError(f"Unsupported channel: {tag}")
        if key not in self._channels:
            raise UnsupportedChannelError(f"Unsupported channel: {key.value}")
        return self._channels[key]

    def configured(self) -> dict[str, bool]:
        return {tag.value: ch.is_configured for tag, ch in self._channels.items()}
