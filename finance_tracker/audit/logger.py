"""
Audit Logger

DESIGN DECISION: Every posting, acknowledgement and reminder is logged.
This provides:
1. Traceability of what the scheduler did and when
2. A record of PAID replies (they do not change any ledger record)
3. Debugging capability when a messaging provider misbehaves

The audit logger:
- Always logs locally through structlog
- Persists to audit storage when one is configured
- Gracefully handles storage failures (never breaks the main flow)
- Supports correlation IDs to group the events of one posting run
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.models.ledger import PaymentAcknowledgement
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(debug: bool = False) -> None:
    """Route stdlib logging (and therefore structlog) to stdout."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_added(self, transaction_id: str, account: str, amount: str) -> None:
        await self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            account=account,
            amount=amount,
        ))

    async def log_subscription_posted(
        self,
        subscription_id: str,
        name: str,
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a due subscription turned into a transaction."""
        await self.log(AuditEventBuilder.subscription_posted(
            subscription_id=subscription_id,
            name=name,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_subscription_already_posted(
        self,
        subscription_id: str,
        name: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.subscription_already_posted(
            subscription_id=subscription_id,
            name=name,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_subscription_post_failed(
        self,
        subscription_id: str,
        name: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.subscription_post_failed(
            subscription_id=subscription_id,
            name=name,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_payment_acknowledged(self, ack: PaymentAcknowledgement) -> None:
        """Record a matched PAID reply."""
        await self.log(AuditEventBuilder.payment_acknowledged(ack))

    async def log_reminder_sent(self, subscription_id: str, kind: str, channel: str) -> None:
        await self.log(AuditEventBuilder.reminder_sent(
            subscription_id=subscription_id,
            kind=kind,
            channel=channel,
        ))

    async def log_reminder_failed(
        self,
        subscription_id: str,
        kind: str,
        channel: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.reminder_failed(
            subscription_id=subscription_id,
            kind=kind,
            channel=channel,
            error_message=error_message,
        ))

    async def log_webhook_rejected(self, channel: str) -> None:
        await self.log(AuditEventBuilder.webhook_signature_rejected(channel))

    async def log_networth_snapshot(self, snapshot_id: str, net_worth: str) -> None:
        await self.log(AuditEventBuilder.networth_snapshot_taken(
            snapshot_id=snapshot_id,
            net_worth=net_worth,
        ))

    async def log_data_reset(self) -> None:
        await self.log(AuditEventBuilder.data_reset())

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(self, service: str, error_message: str) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a batch (e.g. one posting run) and pass it
    through all subsequent operations.
    """
    return uuid4()
