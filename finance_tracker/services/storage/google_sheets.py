"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a natural home for a personal ledger:
1. The data stays viewable (and exportable) without any tooling
2. No database setup required
3. The month-sheet key and breakdown rows are spreadsheet-shaped anyway

TRADEOFFS:
- Not suitable for high-volume data (fine for a personal ledger)
- No transactions or conditional writes (ids are checked with a read
  before the append; a retried append first looks for the row an earlier
  attempt may already have written)
- Limited query capabilities (we filter in Python)

Each collection lives in its own worksheet; the worksheet names come from
StorageSettings so they can be changed per deployment. gspread is blocking,
so every call runs in a worker thread via asyncio.to_thread.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    Retrying,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import GoogleSheetsSettings, StorageSettings
from finance_tracker.models.ledger import (
    Account,
    Category,
    NetWorthSnapshot,
    Subscription,
    Transaction,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventType,
    AuditSeverity,
)
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


ACCOUNT_COLUMNS = ["id", "name", "currency", "created_at"]

CATEGORY_COLUMNS = ["id", "name", "created_at"]

TRANSACTION_COLUMNS = [
    "id",
    "date",
    "account",
    "category",
    "amount",
    "currency",
    "description",
    "month_sheet",
    "created_at",
]

SUBSCRIPTION_COLUMNS = [
    "id",
    "name",
    "account",
    "amount",
    "frequency",
    "currency",
    "last_posted",
    "channel",
    "contact",
    "active",
    "created_at",
]

NETWORTH_COLUMNS = [
    "id",
    "date",
    "assets",
    "liabilities",
    "net_worth",
    "accounts_json",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

RETRY_ATTEMPTS = 3
RETRY_WAIT = wait_exponential(multiplier=1, min=2, max=10)

_retry = retry(
    stop=stop_after_attempt(RETRY_ATTEMPTS),
    wait=RETRY_WAIT,
    reraise=True,
)


def _append_once(
    get_sheet: Callable[[], gspread.Worksheet],
    row: list,
    unique: bool = False,
    label: str = "Record",
) -> None:
    """
    Append a row whose first cell is its id, retrying transient failures.

    A failed append_row may still have landed, so every retry looks for the
    id before writing again. With unique=True an id that is already present
    on the first attempt raises DuplicateError (which is never retried).
    """
    record_id = str(row[0])
    for attempt in Retrying(
        stop=stop_after_attempt(RETRY_ATTEMPTS),
        wait=RETRY_WAIT,
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    ):
        with attempt:
            sheet = get_sheet()
            first = attempt.retry_state.attempt_number == 1
            if (unique or not first) and record_id in sheet.col_values(1)[1:]:
                if first:
                    raise DuplicateError(f"{label} already exists: {record_id}")
                return
            sheet.append_row(row, value_input_option="RAW")


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: GoogleSheetsSettings):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings

    @_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger store.

    One record per row. The per-account balance map of a net-worth
    snapshot is JSON-serialized into a single cell.
    """

    def __init__(self, client: GoogleSheetsClient, tables: StorageSettings):
        self._client = client
        self._tables = tables

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _account_to_row(account: Account) -> list:
        return [account.id, account.name, account.currency, account.created_at.isoformat()]

    @staticmethod
    def _row_to_account(row: list) -> Account:
        return Account(
            id=_cell(row, 0),
            name=_cell(row, 1),
            currency=_cell(row, 2),
            created_at=datetime.fromisoformat(_cell(row, 3)),
        )

    @staticmethod
    def _category_to_row(category: Category) -> list:
        return [category.id, category.name, category.created_at.isoformat()]

    @staticmethod
    def _row_to_category(row: list) -> Category:
        return Category(
            id=_cell(row, 0),
            name=_cell(row, 1),
            created_at=datetime.fromisoformat(_cell(row, 2)),
        )

    @staticmethod
    def _transaction_to_row(tx: Transaction) -> list:
        return [
            tx.id,
            tx.date.isoformat(),
            tx.account,
            tx.category,
            str(tx.amount),
            tx.currency or "",
            tx.description or "",
            tx.month_sheet,
            tx.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        return Transaction(
            id=_cell(row, 0),
            date=date.fromisoformat(_cell(row, 1)),
            account=_cell(row, 2),
            category=_cell(row, 3),
            amount=Decimal(_cell(row, 4, "0")),
            currency=_cell(row, 5) or None,
            description=_cell(row, 6) or None,
            created_at=datetime.fromisoformat(_cell(row, 8)),
        )

    @staticmethod
    def _subscription_to_row(sub: Subscription) -> list:
        return [
            sub.id,
            sub.name,
            sub.account,
            str(sub.amount),
            sub.frequency,
            sub.currency or "",
            sub.last_posted.isoformat() if sub.last_posted else "",
            sub.channel.value if sub.channel else "",
            sub.contact or "",
            str(sub.active),
            sub.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_subscription(row: list) -> Subscription:
        return Subscription(
            id=_cell(row, 0),
            name=_cell(row, 1),
            account=_cell(row, 2),
            amount=Decimal(_cell(row, 3, "0")),
            frequency=_cell(row, 4, "monthly"),
            currency=_cell(row, 5) or None,
            last_posted=date.fromisoformat(_cell(row, 6)) if _cell(row, 6) else None,
            channel=_cell(row, 7) or None,
            contact=_cell(row, 8) or None,
            active=_cell(row, 9, "True").lower() == "true",
            created_at=datetime.fromisoformat(_cell(row, 10)),
        )

    @staticmethod
    def _snapshot_to_row(snapshot: NetWorthSnapshot) -> list:
        accounts = (
            {name: str(amount) for name, amount in snapshot.accounts.items()}
            if snapshot.accounts
            else {}
        )
        return [
            snapshot.id,
            snapshot.date.isoformat(),
            str(snapshot.assets),
            str(snapshot.liabilities),
            str(snapshot.net_worth),
            json.dumps(accounts),
            snapshot.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_snapshot(row: list) -> NetWorthSnapshot:
        accounts_json = _cell(row, 5)
        accounts = json.loads(accounts_json) if accounts_json else {}
        return NetWorthSnapshot(
            id=_cell(row, 0),
            date=date.fromisoformat(_cell(row, 1)),
            assets=Decimal(_cell(row, 2, "0")),
            liabilities=Decimal(_cell(row, 3, "0")),
            accounts={name: Decimal(v) for name, v in accounts.items()} or None,
            created_at=datetime.fromisoformat(_cell(row, 6)),
        )

    # -------------------------------------------------------------------------
    # Generic helpers
    # -------------------------------------------------------------------------

    def _sheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        return self._client.get_worksheet(title, columns)

    def _append(
        self,
        title: str,
        columns: list[str],
        row: list,
        unique: bool = False,
        label: str = "Record",
    ) -> None:
        _append_once(lambda: self._sheet(title, columns), row, unique=unique, label=label)

    def _scan(self, title: str, columns: list[str], parse: Callable[[list], object]) -> list:
        """Read every data row, skipping blanks and malformed rows."""
        all_rows = _retry(self._sheet(title, columns).get_all_values)()[1:]  # Skip header
        records = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                records.append(parse(row))
            except Exception:
                continue  # Skip malformed rows
        return records

    def _update_last_posted(self, subscription_id: str, posted_on: date) -> bool:
        sheet = self._sheet(self._tables.subscriptions_table, SUBSCRIPTION_COLUMNS)
        ids = sheet.col_values(1)
        # Row 1 is the header
        for idx, value in enumerate(ids[1:], start=2):
            if value == subscription_id:
                col = SUBSCRIPTION_COLUMNS.index("last_posted") + 1
                sheet.update_cell(idx, col, posted_on.isoformat())
                return True

        raise NotFoundError(f"Subscription not found: {subscription_id}")

    def _reset(self) -> None:
        tables = [
            (self._tables.accounts_table, ACCOUNT_COLUMNS),
            (self._tables.categories_table, CATEGORY_COLUMNS),
            (self._tables.transactions_table, TRANSACTION_COLUMNS),
            (self._tables.subscriptions_table, SUBSCRIPTION_COLUMNS),
            (self._tables.networth_table, NETWORTH_COLUMNS),
        ]
        for title, columns in tables:
            sheet = self._sheet(title, columns)
            sheet.clear()
            sheet.append_row(columns)

    # -------------------------------------------------------------------------
    # Accounts & categories
    # -------------------------------------------------------------------------

    async def add_account(self, account: Account) -> Account:
        try:
            await asyncio.to_thread(
                self._append,
                self._tables.accounts_table,
                ACCOUNT_COLUMNS,
                self._account_to_row(account),
            )
            return account
        except Exception as e:
            raise StorageError(f"Failed to save account: {e}")

    async def list_accounts(self) -> list[Account]:
        try:
            return await asyncio.to_thread(
                self._scan, self._tables.accounts_table, ACCOUNT_COLUMNS, self._row_to_account
            )
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

    async def add_category(self, category: Category) -> Category:
        try:
            await asyncio.to_thread(
                self._append,
                self._tables.categories_table,
                CATEGORY_COLUMNS,
                self._category_to_row(category),
            )
            return category
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def list_categories(self) -> list[Category]:
        try:
            return await asyncio.to_thread(
                self._scan, self._tables.categories_table, CATEGORY_COLUMNS, self._row_to_category
            )
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        try:
            await asyncio.to_thread(
                self._append,
                self._tables.transactions_table,
                TRANSACTION_COLUMNS,
                self._transaction_to_row(transaction),
                unique=True,
                label="Transaction",
            )
            return transaction
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def list_transactions(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        month_sheet: Optional[str] = None,
    ) -> list[Transaction]:
        try:
            transactions = await asyncio.to_thread(
                self._scan,
                self._tables.transactions_table,
                TRANSACTION_COLUMNS,
                self._row_to_transaction,
            )
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        filtered = [
            tx for tx in transactions
            if not (date_from and tx.date < date_from)
            and not (date_to and tx.date > date_to)
            and not (month_sheet and tx.month_sheet != month_sheet)
        ]
        filtered.sort(key=lambda t: t.date, reverse=True)
        return filtered

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def add_subscription(self, subscription: Subscription) -> Subscription:
        try:
            await asyncio.to_thread(
                self._append,
                self._tables.subscriptions_table,
                SUBSCRIPTION_COLUMNS,
                self._subscription_to_row(subscription),
            )
            return subscription
        except Exception as e:
            raise StorageError(f"Failed to save subscription: {e}")

    async def list_subscriptions(self) -> list[Subscription]:
        try:
            return await asyncio.to_thread(
                self._scan,
                self._tables.subscriptions_table,
                SUBSCRIPTION_COLUMNS,
                self._row_to_subscription,
            )
        except Exception as e:
            raise StorageError(f"Failed to list subscriptions: {e}")

    async def update_last_posted(self, subscription_id: str, posted_on: date) -> bool:
        try:
            return await asyncio.to_thread(self._update_last_posted, subscription_id, posted_on)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update subscription: {e}")

    # -------------------------------------------------------------------------
    # Net worth
    # -------------------------------------------------------------------------

    async def add_networth_snapshot(self, snapshot: NetWorthSnapshot) -> NetWorthSnapshot:
        try:
            await asyncio.to_thread(
                self._append,
                self._tables.networth_table,
                NETWORTH_COLUMNS,
                self._snapshot_to_row(snapshot),
            )
            return snapshot
        except Exception as e:
            raise StorageError(f"Failed to save net worth snapshot: {e}")

    async def list_networth_snapshots(self) -> list[NetWorthSnapshot]:
        try:
            snapshots = await asyncio.to_thread(
                self._scan,
                self._tables.networth_table,
                NETWORTH_COLUMNS,
                self._row_to_snapshot,
            )
        except Exception as e:
            raise StorageError(f"Failed to list net worth snapshots: {e}")
        snapshots.sort(key=lambda s: s.date, reverse=True)
        return snapshots

    async def reset(self) -> None:
        try:
            await asyncio.to_thread(self._reset)
        except Exception as e:
            raise StorageError(f"Failed to reset storage: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: GoogleSheetsClient, tables: StorageSettings):
        self._client = client
        self._title = tables.audit_table

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            correlation_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
        )

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, AUDIT_COLUMNS, rows=5000)

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in _retry(self._sheet().get_all_values)()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(_append_once, self._sheet, event.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = await asyncio.to_thread(self._all_events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events = [e for e in events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_type(
        self,
        event_type: AuditEventType,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = await asyncio.to_thread(self._all_events)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events = [e for e in events if e.event_type == event_type]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
