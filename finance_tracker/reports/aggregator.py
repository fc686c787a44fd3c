"""
Ledger Aggregations

Pure functions over a collection of transactions. Nothing here touches
storage: the caller fetches the records, these functions fold them.

Two reports are produced:
1. Summary - inflow / outflow / net, plus the same pair per currency
2. Monthly breakdown - totals per credit-card-like account and per category,
   with a flattened label/value view for spreadsheet export
"""

import re
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union

from finance_tracker.models.ledger import (
    CurrencyTotals,
    MonthlyBreakdown,
    Summary,
    Transaction,
    month_sheet_for,
)


# Open bounds of a date-range filter
RANGE_START_SENTINEL = date(1900, 1, 1)
RANGE_END_SENTINEL = date(2099, 12, 31)

CREDIT_MARKER = "credit"

_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _as_date(value: Union[date, str, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def filter_by_date_range(
    transactions: Iterable[Transaction],
    start: Union[date, str, None] = None,
    end: Union[date, str, None] = None,
) -> list[Transaction]:
    """
    Keep transactions whose date lies within [start, end].

    With neither bound, everything is kept. A missing bound is replaced
    by a far-past / far-future sentinel.

    Raises:
        ValueError: If a bound is not an ISO calendar date
    """
    start_day = _as_date(start)
    end_day = _as_date(end)
    if start_day is None and end_day is None:
        return list(transactions)

    start_day = start_day or RANGE_START_SENTINEL
    end_day = end_day or RANGE_END_SENTINEL
    return [tx for tx in transactions if start_day <= tx.date <= end_day]


def compute_summary(
    transactions: Iterable[Transaction],
    start: Union[date, str, None] = None,
    end: Union[date, str, None] = None,
    default_currency: str = "THB",
) -> Summary:
    """
    Fold transactions into inflow / outflow / net totals.

    Amounts >= 0 count as inflow; amounts < 0 accumulate into outflow,
    which therefore stays negative and net == inflow + outflow.
    Transactions without a currency are counted under default_currency.
    """
    inflow = Decimal("0")
    outflow = Decimal("0")
    by_ccy: dict[str, CurrencyTotals] = {}

    for tx in filter_by_date_range(transactions, start, end):
        ccy = tx.currency or default_currency
        bucket = by_ccy.setdefault(ccy, CurrencyTotals())
        if tx.amount >= 0:
            inflow += tx.amount
            bucket.inflow += tx.amount
        else:
            outflow += tx.amount
            bucket.outflow += tx.amount

    return Summary(
        inflow=inflow,
        outflow=outflow,
        net=inflow + outflow,
        by_ccy=by_ccy,
    )


def validate_month(month: str) -> str:
    """
    Check a YYYY-MM month key.

    Raises:
        ValueError: If the month is malformed
    """
    if not _MONTH_PATTERN.match(month or ""):
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM")
    return month


def month_sheet_key(month: str) -> str:
    """'2024-01' -> 'Transactions-2024-01'."""
    year, mon = validate_month(month).split("-")
    return month_sheet_for(date(int(year), int(mon), 1))


def is_credit_card(account: Optional[str]) -> bool:
    return bool(account) and CREDIT_MARKER in account.lower()


def compute_monthly_breakdown(
    transactions: Iterable[Transaction],
    month: str,
) -> MonthlyBreakdown:
    """
    Total one month's transactions per credit card and per category.

    The caller is expected to pass only the transactions of `month`
    (their month sheet equals month_sheet_key(month)). A transaction on
    a credit-card-like account counts in both maps.

    Keys keep first-seen order; nothing is sorted.
    """
    validate_month(month)

    credit_cards: dict[str, Decimal] = {}
    categories: dict[str, Decimal] = {}

    for tx in transactions:
        if is_credit_card(tx.account):
            credit_cards[tx.account] = credit_cards.get(tx.account, Decimal("0")) + tx.amount
        if tx.category:
            categories[tx.category] = categories.get(tx.category, Decimal("0")) + tx.amount

    return MonthlyBreakdown(
        credit_cards=credit_cards,
        categories=categories,
        sheet_data=format_sheet_data(credit_cards, categories),
    )


def format_sheet_data(
    credit_cards: dict[str, Decimal],
    categories: dict[str, Decimal],
) -> list[tuple[str, Union[Decimal, str]]]:
    """Flatten the two maps into label/value rows for a two-column export."""
    rows: list[tuple[str, Union[Decimal, str]]] = [("Credit Cards", "")]
    rows.extend(credit_cards.items())
    rows.append(("", ""))
    rows.append(("Categories", ""))
    rows.extend(categories.items())
    return rows
