"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger entry (accounts, categories, transactions, net worth)
2. Reports (summary, monthly breakdown)
3. Subscriptions (posting due ones, reminders, PAID replies)

DESIGN DECISION: The HTTP layer, the scheduler and the dashboard all go
through LedgerService. None of them touch storage directly, so every
write is audited the same way regardless of where it came from.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import Settings, get_settings
from finance_tracker.models.ledger import (
    Account,
    Category,
    Channel,
    MonthlyBreakdown,
    NetWorthSnapshot,
    NewAccount,
    NewCategory,
    NewNetWorthSnapshot,
    NewSubscription,
    NewTransaction,
    PaymentAcknowledgement,
    PostingResult,
    Subscription,
    Summary,
    Transaction,
)
from finance_tracker.reports import (
    compute_monthly_breakdown,
    compute_summary,
    month_sheet_key,
)
from finance_tracker.services.messaging import (
    ChannelRegistry,
    LineChannel,
    TwilioWhatsAppChannel,
)
from finance_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from finance_tracker.subscriptions import (
    ReminderDispatcher,
    build_acknowledgement,
    match_subscription,
    parse_paid_command,
    plan_reminders,
    post_due_subscriptions,
)


logger = structlog.get_logger(__name__)


# Values recorded by the monthly scheduled snapshot until real balances
# are wired in.
PLACEHOLDER_ACCOUNTS = {
    "Checking": Decimal("50000"),
    "Savings": Decimal("200000"),
    "Credit Card": Decimal("-15000"),
}
PLACEHOLDER_ASSETS = Decimal("250000")
PLACEHOLDER_LIABILITIES = Decimal("-15000")


def _as_date(value: Union[date, str, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


class LedgerService:
    """
    Orchestrates every ledger flow.

    Usage:
        service = LedgerService(storage, audit_logger, registry, settings)
        tx = await service.add_transaction(NewTransaction(...))
        summary = await service.summary(start="2024-01-01")
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        registry: Optional[ChannelRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._registry = registry or ChannelRegistry()
        self._settings = settings or get_settings()
        self._dispatcher = ReminderDispatcher(self._registry, self._audit_logger)

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def registry(self) -> ChannelRegistry:
        return self._registry

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def default_currency(self) -> str:
        return self._settings.app.default_currency

    # =========================================================================
    # ACCOUNTS & CATEGORIES
    # =========================================================================

    async def add_account(self, new: NewAccount) -> Account:
        return await self._storage.add_account(Account(**new.model_dump()))

    async def list_accounts(self) -> list[Account]:
        return await self._storage.list_accounts()

    async def add_category(self, new: NewCategory) -> Category:
        return await self._storage.add_category(Category(**new.model_dump()))

    async def list_categories(self) -> list[Category]:
        return await self._storage.list_categories()

    # =========================================================================
    # TRANSACTIONS & REPORTS
    # =========================================================================

    async def add_transaction(self, new: NewTransaction) -> Transaction:
        """Store a transaction; its id and month sheet are generated here."""
        tx = await self._storage.add_transaction(Transaction(**new.model_dump()))
        await self._audit_logger.log_transaction_added(
            transaction_id=tx.id,
            account=tx.account,
            amount=str(tx.amount),
        )
        return tx

    async def list_transactions(
        self,
        start: Union[date, str, None] = None,
        end: Union[date, str, None] = None,
    ) -> list[Transaction]:
        """Transactions within [start, end], newest first."""
        return await self._storage.list_transactions(
            date_from=_as_date(start),
            date_to=_as_date(end),
        )

    async def summary(
        self,
        start: Union[date, str, None] = None,
        end: Union[date, str, None] = None,
    ) -> Summary:
        transactions = await self._storage.list_transactions()
        return compute_summary(
            transactions,
            start=_as_date(start),
            end=_as_date(end),
            default_currency=self.default_currency,
        )

    async def breakdown(self, month: str) -> MonthlyBreakdown:
        """
        Per-card and per-category totals for a YYYY-MM month.

        Raises:
            ValueError: If month is not YYYY-MM
        """
        sheet = month_sheet_key(month)
        transactions = await self._storage.list_transactions(month_sheet=sheet)
        # Storage returns newest first; totals keep insertion order
        transactions = sorted(transactions, key=lambda tx: tx.created_at)
        return compute_monthly_breakdown(transactions, month)

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    async def add_subscription(self, new: NewSubscription) -> Subscription:
        return await self._storage.add_subscription(Subscription(**new.model_dump()))

    async def list_subscriptions(self) -> list[Subscription]:
        return await self._storage.list_subscriptions()

    async def post_subscriptions(self, today: Optional[date] = None) -> PostingResult:
        """Post every due subscription as of today."""
        return await post_due_subscriptions(
            self._storage,
            today=today or date.today(),
            default_currency=self.default_currency,
            audit_logger=self._audit_logger,
        )

    async def send_reminders(self, today: Optional[date] = None) -> dict[str, list[str]]:
        """Send today's pre / due / overdue reminders."""
        today = today or date.today()
        jobs = plan_reminders(
            await self._storage.list_subscriptions(),
            today=today,
            lead_days=self._settings.app.reminder_lead_days,
            default_currency=self.default_currency,
        )
        logger.info("sending_reminders", count=len(jobs), today=today.isoformat())
        return await self._dispatcher.send_all(jobs)

    async def acknowledge_payment(
        self,
        channel: Union[Channel, str],
        contact: str,
        text: Optional[str],
    ) -> Optional[PaymentAcknowledgement]:
        """
        Handle an inbound chat message.

        Returns the recorded acknowledgement, or None when the message
        is not a PAID reply or matches no subscription.
        """
        fragment = parse_paid_command(text)
        if fragment is None or not contact:
            return None

        sub = match_subscription(
            await self._storage.list_subscriptions(),
            channel,
            contact,
            fragment,
        )
        if sub is None:
            logger.info("paid_reply_unmatched", channel=str(channel), fragment=fragment)
            return None

        ack = build_acknowledgement(sub, channel, contact)
        await self._audit_logger.log_payment_acknowledged(ack)
        return ack

    # =========================================================================
    # NET WORTH
    # =========================================================================

    async def add_networth_snapshot(self, new: NewNetWorthSnapshot) -> NetWorthSnapshot:
        snapshot = await self._storage.add_networth_snapshot(
            NetWorthSnapshot(**new.model_dump())
        )
        await self._audit_logger.log_networth_snapshot(
            snapshot_id=snapshot.id,
            net_worth=str(snapshot.net_worth),
        )
        return snapshot

    async def list_networth_snapshots(self) -> list[NetWorthSnapshot]:
        return await self._storage.list_networth_snapshots()

    async def take_networth_snapshot(self, today: Optional[date] = None) -> NetWorthSnapshot:
        """Record the scheduled monthly snapshot."""
        return await self.add_networth_snapshot(NewNetWorthSnapshot(
            date=today or date.today(),
            assets=PLACEHOLDER_ASSETS,
            liabilities=PLACEHOLDER_LIABILITIES,
            accounts=dict(PLACEHOLDER_ACCOUNTS),
        ))

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def reset(self) -> None:
        """
        Remove all ledger data.

        Raises:
            PermissionError: In production
        """
        if self._settings.app.is_production:
            raise PermissionError("Reset is disabled in production")
        await self._storage.reset()
        await self._audit_logger.log_data_reset()


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[LedgerService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        settings: Configuration to build from (defaults to get_settings())

    Returns:
        (ledger_service, sheets_client); sheets_client is None for the
        in-memory backend
    """
    settings = settings or get_settings()
    sheets_client = None

    if settings.storage.backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        storage = GoogleSheetsLedgerStorage(sheets_client, settings.storage)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client, settings.storage))
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    registry = ChannelRegistry([
        TwilioWhatsAppChannel(settings.twilio),
        LineChannel(settings.line),
    ])

    logger.info(
        "components_created",
        backend=settings.storage.backend,
        channels=registry.configured(),
    )

    service = LedgerService(
        storage=storage,
        audit_logger=audit_logger,
        registry=registry,
        settings=settings,
    )
    return service, sheets_client
