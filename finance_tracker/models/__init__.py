"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All records flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    MONTH_SHEET_PREFIX,
    SUBSCRIPTION_CATEGORY,
    Account,
    Category,
    Channel,
    CurrencyTotals,
    MonthlyBreakdown,
    NetWorthSnapshot,
    NewAccount,
    NewCategory,
    NewNetWorthSnapshot,
    NewSubscription,
    NewTransaction,
    PaymentAcknowledgement,
    PostingResult,
    ReminderKind,
    Subscription,
    SubscriptionFrequency,
    Summary,
    Transaction,
    month_sheet_for,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MONTH_SHEET_PREFIX",
    "SUBSCRIPTION_CATEGORY",
    "Account",
    "Category",
    "Channel",
    "CurrencyTotals",
    "MonthlyBreakdown",
    "NetWorthSnapshot",
    "NewAccount",
    "NewCategory",
    "NewNetWorthSnapshot",
    "NewSubscription",
    "NewTransaction",
    "PaymentAcknowledgement",
    "PostingResult",
    "ReminderKind",
    "Subscription",
    "SubscriptionFrequency",
    "Summary",
    "Transaction",
    "month_sheet_for",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
