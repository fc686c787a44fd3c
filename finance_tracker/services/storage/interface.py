"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Keep ledger data in Google Sheets (or a real table service later)
2. Use in-memory storage for local development and testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - put, scan, filter and one
targeted update. Aggregation happens in Python, not in the store.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from finance_tracker.models.ledger import (
    Account,
    Category,
    NetWorthSnapshot,
    Subscription,
    Transaction,
)
from finance_tracker.models.audit import AuditEvent, AuditEventType


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the five ledger collections.

    Any storage implementation (in-memory, Google Sheets, ...)
    must implement these methods.
    """

    @abstractmethod
    async def add_account(self, account: Account) -> Account:
        """Insert an account and return it."""
        pass

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        pass

    @abstractmethod
    async def add_category(self, category: Category) -> Category:
        """Insert a category and return it."""
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction.

        The transaction id doubles as an idempotency key.

        Raises:
            DuplicateError: If a transaction with the same id exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        month_sheet: Optional[str] = None,
    ) -> list[Transaction]:
        """
        List transactions with optional filters.

        Args:
            date_from: Keep transactions on or after this date
            date_to: Keep transactions on or before this date
            month_sheet: Keep transactions in this month sheet
                         (e.g. 'Transactions-2024-01')

        Returns:
            Matching transactions, newest first
        """
        pass

    @abstractmethod
    async def add_subscription(self, subscription: Subscription) -> Subscription:
        pass

    @abstractmethod
    async def list_subscriptions(self) -> list[Subscription]:
        pass

    @abstractmethod
    async def update_last_posted(self, subscription_id: str, posted_on: date) -> bool:
        """
        Set a subscription's last-posted marker.

        Raises:
            NotFoundError: If the subscription doesn't exist
        """
        pass

    @abstractmethod
    async def add_networth_snapshot(self, snapshot: NetWorthSnapshot) -> NetWorthSnapshot:
        pass

    @abstractmethod
    async def list_networth_snapshots(self) -> list[NetWorthSnapshot]:
        """Return all snapshots, newest first."""
        pass

    @abstractmethod
    async def reset(self) -> None:
        """Remove every record from every collection (development only)."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one run, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_type(
        self,
        event_type: AuditEventType,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get events of one type, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
