"""
In-Memory Storage Implementation

Used for local development (the /reset endpoint clears it) and for tests.
Records are copied on the way in and on the way out so callers can never
mutate stored state by accident.

Insert-if-absent and the last-posted update run under one asyncio lock,
so a duplicate posting id is always detected within a process.
"""

import asyncio
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
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger store, keyed by record id."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._accounts: dict[str, Account] = {}
        self._categories: dict[str, Category] = {}
        self._transactions: dict[str, Transaction] = {}
        self._subscriptions: dict[str, Subscription] = {}
        self._networth: dict[str, NetWorthSnapshot] = {}

    async def add_account(self, account: Account) -> Account:
        async with self._lock:
            self._accounts[account.id] = account.model_copy(deep=True)
        return account

    async def list_accounts(self) -> list[Account]:
        return [a.model_copy(deep=True) for a in self._accounts.values()]

    async def add_category(self, category: Category) -> Category:
        async with self._lock:
            self._categories[category.id] = category.model_copy(deep=True)
        return category

    async def list_categories(self) -> list[Category]:
        return [c.model_copy(deep=True) for c in self._categories.values()]

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return transaction

    async def list_transactions(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        month_sheet: Optional[str] = None,
    ) -> list[Transaction]:
        transactions = []
        for tx in self._transactions.values():
            if date_from and tx.date < date_from:
                continue
            if date_to and tx.date > date_to:
                continue
            if month_sheet and tx.month_sheet != month_sheet:
                continue
            transactions.append(tx.model_copy(deep=True))

        # Stable sort keeps insertion order within a day
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def add_subscription(self, subscription: Subscription) -> Subscription:
        async with self._lock:
            self._subscriptions[subscription.id] = subscription.model_copy(deep=True)
        return subscription

    async def list_subscriptions(self) -> list[Subscription]:
        return [s.model_copy(deep=True) for s in self._subscriptions.values()]

    async def update_last_posted(self, subscription_id: str, posted_on: date) -> bool:
        async with self._lock:
            stored = self._subscriptions.get(subscription_id)
            if stored is None:
                raise NotFoundError(f"Subscription not found: {subscription_id}")
            stored.last_posted = posted_on
        return True

    async def add_networth_snapshot(self, snapshot: NetWorthSnapshot) -> NetWorthSnapshot:
        async with self._lock:
            self._networth[snapshot.id] = snapshot.model_copy(deep=True)
        return snapshot

    async def list_networth_snapshots(self) -> list[NetWorthSnapshot]:
        snapshots = [s.model_copy(deep=True) for s in self._networth.values()]
        snapshots.sort(key=lambda s: s.date, reverse=True)
        return snapshots

    async def reset(self) -> None:
        async with self._lock:
            self._accounts.clear()
            self._categories.clear()
            self._transactions.clear()
            self._subscriptions.clear()
            self._networth.clear()


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_type(
        self,
        event_type: AuditEventType,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.event_type == event_type]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
