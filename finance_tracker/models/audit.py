"""
Audit Models for Finance Tracker

Every posting, acknowledgement and reminder is logged for audit purposes.
This provides:
1. Traceability of scheduled postings (what was posted, when, and why not)
2. A record of "PAID" replies received over chat
3. Debugging information when a provider rejects a message

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finance_tracker.models.ledger import PaymentAcknowledgement


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Records
    TRANSACTION_ADDED = "transaction_added"
    NETWORTH_SNAPSHOT_TAKEN = "networth_snapshot_taken"
    DATA_RESET = "data_reset"

    # Subscription posting
    SUBSCRIPTION_POSTED = "subscription_posted"
    SUBSCRIPTION_ALREADY_POSTED = "subscription_already_posted"
    SUBSCRIPTION_POST_FAILED = "subscription_post_failed"

    # Chat integrations
    PAYMENT_ACKNOWLEDGED = "payment_acknowledged"
    REMINDER_SENT = "reminder_sent"
    REMINDER_FAILED = "reminder_failed"
    WEBHOOK_SIGNATURE_REJECTED = "webhook_signature_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'subscription', 'transaction')"
    )
    entity_id: Optional[str] = None

    # Correlation - e.g. every event of one posting run
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.subscription_posted(sub_id, name, tx_id, amount, run_id)
        event = AuditEventBuilder.payment_acknowledged(acknowledgement)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        account: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction added: {account} {amount}",
            details={"account": account, "amount": amount},
        )

    @staticmethod
    def subscription_posted(
        subscription_id: str,
        name: str,
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_POSTED,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Subscription posted: {name}",
            details={
                "transaction_id": transaction_id,
                "amount": amount,
            },
        )

    @staticmethod
    def subscription_already_posted(
        subscription_id: str,
        name: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ALREADY_POSTED,
            severity=AuditSeverity.WARNING,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Subscription already posted today: {name}",
            details={"transaction_id": transaction_id},
        )

    @staticmethod
    def subscription_post_failed(
        subscription_id: str,
        name: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_POST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Failed to post subscription: {name}",
            error_message=error_message,
        )

    @staticmethod
    def payment_acknowledged(ack: PaymentAcknowledgement) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_ACKNOWLEDGED,
            entity_type="subscription",
            entity_id=ack.subscription_id,
            description=f"Payment acknowledged: {ack.subscription_name}",
            details=ack.model_dump(mode="json"),
        )

    @staticmethod
    def reminder_sent(
        subscription_id: str,
        kind: str,
        channel: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_SENT,
            entity_type="subscription",
            entity_id=subscription_id,
            description=f"Reminder sent ({kind}) via {channel}",
            details={"kind": kind, "channel": channel},
        )

    @staticmethod
    def reminder_failed(
        subscription_id: str,
        kind: str,
        channel: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="subscription",
            entity_id=subscription_id,
            description=f"Reminder failed ({kind}) via {channel}",
            details={"kind": kind, "channel": channel},
            error_message=error_message,
        )

    @staticmethod
    def webhook_signature_rejected(channel: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WEBHOOK_SIGNATURE_REJECTED,
            severity=AuditSeverity.WARNING,
            description=f"Rejected {channel} webhook with a bad signature",
            details={"channel": channel},
        )

    @staticmethod
    def networth_snapshot_taken(
        snapshot_id: str,
        net_worth: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NETWORTH_SNAPSHOT_TAKEN,
            entity_type="networth",
            entity_id=snapshot_id,
            description=f"Net worth snapshot recorded: {net_worth}",
            details={"net_worth": net_worth},
        )

    @staticmethod
    def data_reset() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            description="All ledger data was reset",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
