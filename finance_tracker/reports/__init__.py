"""Ledger reports package."""

from finance_tracker.reports.aggregator import (
    RANGE_END_SENTINEL,
    RANGE_START_SENTINEL,
    compute_monthly_breakdown,
    compute_summary,
    filter_by_date_range,
    format_sheet_data,
    is_credit_card,
    month_sheet_for,
    month_sheet_key,
    validate_month,
)

__all__ = [
    "RANGE_END_SENTINEL",
    "RANGE_START_SENTINEL",
    "compute_monthly_breakdown",
    "compute_summary",
    "filter_by_date_range",
    "format_sheet_data",
    "is_credit_card",
    "month_sheet_for",
    "month_sheet_key",
    "validate_month",
]
