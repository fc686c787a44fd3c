"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the record
store. In-memory storage is the default; Google Sheets is selected with
STORAGE_BACKEND=google_sheets.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from finance_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
