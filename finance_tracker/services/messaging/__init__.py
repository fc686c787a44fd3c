"""Outbound messaging channels."""

from finance_tracker.services.messaging.interface import (
    ChannelNotConfiguredError,
    ChannelRegistry,
    MessageDeliveryError,
    MessagingChannel,
    MessagingError,
    UnsupportedChannelError,
)
from finance_tracker.services.messaging.line import LineChannel
from finance_tracker.services.messaging.whatsapp import TwilioWhatsAppChannel

__all__ = [
    "ChannelNotConfiguredError",
    "ChannelRegistry",
    "LineChannel",
    "MessageDeliveryError",
    "MessagingChannel",
    "MessagingError",
    "TwilioWhatsAppChannel",
    "UnsupportedChannelError",
]
