"""
Payment Acknowledgements

Users answer a reminder with "PAID" or "PAID <name>". These helpers turn
an inbound chat message into a PaymentAcknowledgement.

DESIGN DECISION: An acknowledgement is a side-channel record. It is
written to the audit log only; it never touches the subscription's
last-posted marker, so the next scheduled posting still happens.
"""

import base64
import hashlib
import hmac
from typing import Any, Iterable, Optional, Union

from finance_tracker.models.ledger import Channel, PaymentAcknowledgement, Subscription
from finance_tracker.services.messaging.whatsapp import WHATSAPP_PREFIX


PAID_KEYWORD = "PAID"


def parse_paid_command(text: Optional[str]) -> Optional[str]:
    """
    Extract the name fragment from a PAID reply.

    'paid netflix ' -> 'netflix', 'PAID' -> '', 'hello' -> None
    """
    if not text:
        return None
    cleaned = text.strip()
    if not cleaned.upper().startswith(PAID_KEYWORD):
        return None
    return cleaned[len(PAID_KEYWORD):].strip()


def _contact_matches(sub: Subscription, channel: Channel, contact: str) -> bool:
    if not sub.contact:
        return False
    if channel == Channel.WHATSAPP:
        sender = contact.replace(WHATSAPP_PREFIX, "")
        return bool(sender) and sender in sub.contact
    return sub.contact == contact


def match_subscription(
    subscriptions: Iterable[Subscription],
    channel: Union[Channel, str],
    contact: str,
    fragment: Optional[str] = None,
) -> Optional[Subscription]:
    """
    Find the subscription a PAID reply refers to.

    Candidates are active subscriptions on the same channel whose contact
    matches the sender. A non-empty fragment must also appear in the
    subscription name (case-insensitive). The first candidate wins.
    """
    channel = Channel(channel)
    needle = (fragment or "").lower()
    for sub in subscriptions:
        if not sub.active or sub.channel != channel:
            continue
        if not _contact_matches(sub, channel, contact):
            continue
        if needle and needle not in sub.name.lower():
            continue
        return sub
    return None


def build_acknowledgement(
    subscription: Subscription,
    channel: Union[Channel, str],
    contact: str,
) -> PaymentAcknowledgement:
    return PaymentAcknowledgement(
        subscription_id=subscription.id,
        subscription_name=subscription.name,
        amount=subscription.amount,
        channel=Channel(channel),
        contact=contact,
    )


def validate_line_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Check the x-line-signature header (base64 HMAC-SHA256 of the raw body)."""
    if not signature:
        return False
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, signature)


def extract_line_messages(payload: dict[str, Any]) -> list[tuple[str, str]]:
    """Pull (user id, text) pairs out of a LINE webhook payload.

    Events, messages or sources that are not objects are skipped, as are
    texts that are not strings.
    """
    events = payload.get("events")
    if not isinstance(events, list):
        return []

    messages = []
    for event in events:
        if not isinstance(event, dict) or event.get("type") != "message":
            continue
        message = event.get("message")
        if not isinstance(message, dict) or message.get("type") != "text":
            continue
        source = event.get("source")
        if not isinstance(source, dict):
            continue
        user_id = source.get("userId")
        text = message.get("text", "")
        if isinstance(user_id, str) and user_id and isinstance(text, str):
            messages.append((user_id, text))
    return messages
