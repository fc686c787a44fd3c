"""
Core Data Models for Finance Tracker

These models define the schemas for all records flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and for the JSON API

DESIGN DECISION: Every persisted record has a "New*" input model (what a
client may send) and a stored model that adds the generated identifier and
creation timestamp. Clients can never choose ids or timestamps.

Wire format is camelCase (monthSheet, lastPosted, byCcy, ...); Python code
uses snake_case. Both spellings are accepted on input.
"""

import datetime as dt
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Money is exact in Python and a plain number on the wire
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

MONTH_SHEET_PREFIX = "Transactions-"
SUBSCRIPTION_CATEGORY = "Subscription"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def month_sheet_for(day: date) -> str:
    """Derive the month-sheet key, e.g. 2024-01-15 -> 'Transactions-2024-01'."""
    return f"{MONTH_SHEET_PREFIX}{day.strftime('%Y-%m')}"


class LedgerModel(BaseModel):
    """Shared configuration for all ledger models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SubscriptionFrequency(str, Enum):
    """
    Known subscription frequencies.

    Subscriptions store frequency as free text; values outside this enum
    fall back to a 30-day period when due dates are computed.
    """
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Channel(str, Enum):
    """Messaging channels used for reminders and PAID replies."""
    WHATSAPP = "whatsapp"
    LINE = "line"


class ReminderKind(str, Enum):
    """When a reminder is sent relative to the due date."""
    PRE = "pre"
    DUE = "due"
    OVERDUE = "overdue"


# =============================================================================
# ACCOUNTS & CATEGORIES
# =============================================================================

class NewAccount(LedgerModel):
    """A financial account, e.g. 'Chase Credit Card' or 'Savings'."""

    name: str = Field(..., min_length=1, max_length=200)
    currency: str = Field(..., min_length=3, max_length=3)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class Account(NewAccount):
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)


class NewCategory(LedgerModel):
    """A transaction category, e.g. 'Food'."""

    name: str = Field(..., min_length=1, max_length=200)


class Category(NewCategory):
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class NewTransaction(LedgerModel):
    """
    A transaction as submitted by a client.

    Positive amounts are inflows, negative amounts are outflows.
    """

    date: dt.date
    account: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=200)
    amount: Money
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class Transaction(NewTransaction):
    """
    A stored transaction.

    Transactions are immutable; there is no update path.
    The month-sheet key is always re-derived from the date.
    """

    id: str = Field(default_factory=_new_id)
    month_sheet: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode='after')
    def derive_month_sheet(self) -> 'Transaction':
        self.month_sheet = month_sheet_for(self.date)
        return self


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class NewSubscription(LedgerModel):
    """
    A recurring subscription.

    CRITICAL: amount is always stored non-negative. The sign is applied
    only when the subscription is posted as a transaction.
    """

    name: str = Field(..., min_length=1, max_length=200)
    account: str = Field(..., min_length=1, max_length=200)
    amount: Money
    frequency: str = Field(default=SubscriptionFrequency.MONTHLY.value)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    last_posted: Optional[date] = None

    # Reminder routing (optional)
    channel: Optional[Channel] = None
    contact: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Phone number (WhatsApp) or user id (LINE)"
    )
    active: bool = True

    @field_validator('amount')
    @classmethod
    def non_negative_amount(cls, v: Decimal) -> Decimal:
        return abs(v)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class Subscription(NewSubscription):
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)


class PaymentAcknowledgement(LedgerModel):
    """
    A "PAID <name>" reply matched to a subscription.

    This is a side-channel record only: it does not advance the
    subscription's last-posted marker.
    """

    id: str = Field(default_factory=_new_id)
    subscription_id: str
    subscription_name: str
    amount: Money
    channel: Channel
    contact: str
    paid_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# NET WORTH
# =============================================================================

class NewNetWorthSnapshot(LedgerModel):
    """
    Net worth at a point in time.

    Liabilities are conventionally negative; net worth is always derived.
    """

    date: Optional[dt.date] = None
    assets: Money
    liabilities: Money
    accounts: Optional[dict[str, Money]] = None


class NetWorthSnapshot(NewNetWorthSnapshot):
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode='after')
    def default_date(self) -> 'NetWorthSnapshot':
        if self.date is None:
            self.date = self.created_at.date()
        return self

    @computed_field(alias="netWorth")
    @property
    def net_worth(self) -> Money:
        return self.assets + self.liabilities


# =============================================================================
# DERIVED REPORTS (never persisted)
# =============================================================================

class CurrencyTotals(LedgerModel):
    inflow: Money = Decimal("0")
    outflow: Money = Decimal("0")


class Summary(LedgerModel):
    """
    Inflow/outflow totals over a set of transactions.

    Outflow is a negative accumulation, so net == inflow + outflow.
    """

    inflow: Money = Decimal("0")
    outflow: Money = Decimal("0")
    net: Money = Decimal("0")
    by_ccy: dict[str, CurrencyTotals] = Field(default_factory=dict)


SheetRow = tuple[str, Union[Money, str]]


class MonthlyBreakdown(LedgerModel):
    """
    Per-credit-card and per-category totals for one month.

    Dict order is the order in which each key was first seen.
    """

    credit_cards: dict[str, Money] = Field(default_factory=dict)
    categories: dict[str, Money] = Field(default_factory=dict)
    sheet_data: list[SheetRow] = Field(default_factory=list)


class PostingResult(LedgerModel):
    """Outcome of one due-subscription posting run."""

    posted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
