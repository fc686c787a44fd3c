"""Tests for summary and monthly breakdown aggregations."""

import pytest
from datetime import date
from decimal import Decimal

from conftest import make_transaction
from finance_tracker.reports import (
    compute_monthly_breakdown,
    compute_summary,
    filter_by_date_range,
    month_sheet_key,
    validate_month,
)


class TestComputeSummary:
    """Tests for inflow / outflow / net totals."""

    def test_empty_input(self):
        """Test that no transactions give zero totals."""
        summary = compute_summary([])
        assert summary.inflow == 0
        assert summary.outflow == 0
        assert summary.net == 0
        assert summary.by_ccy == {}

    def test_inflow_outflow_split(self):
        """Test that positive and negative amounts are split."""
        summary = compute_summary([
            make_transaction("2024-01-01", "1000"),
            make_transaction("2024-01-02", "-250.50"),
            make_transaction("2024-01-03", "-49.50"),
        ])
        assert summary.inflow == Decimal("1000")
        assert summary.outflow == Decimal("-300.00")
        assert summary.net == Decimal("700.00")

    def test_zero_counts_as_inflow(self):
        """Test that a zero amount lands in inflow."""
        summary = compute_summary([make_transaction("2024-01-01", "0", currency="USD")])
        assert "USD" in summary.by_ccy
        assert summary.by_ccy["USD"].inflow == 0

    def test_by_currency_with_default(self):
        """Test per-currency totals and the default currency fallback."""
        summary = compute_summary(
            [
                make_transaction("2024-01-01", "100", currency="USD"),
                make_transaction("2024-01-01", "-40", currency="USD"),
                make_transaction("2024-01-01", "-10"),
            ],
            default_currency="THB",
        )
        assert summary.by_ccy["USD"].inflow == Decimal("100")
        assert summary.by_ccy["USD"].outflow == Decimal("-40")
        assert summary.by_ccy["THB"].outflow == Decimal("-10")
        assert summary.net == Decimal("50")
        assert sum(c.inflow + c.outflow for c in summary.by_ccy.values()) == summary.net

    def test_date_range_inclusive(self):
        """Test that both range bounds are inclusive."""
        transactions = [
            make_transaction("2024-01-01", "1"),
            make_transaction("2024-01-15", "10"),
            make_transaction("2024-01-31", "100"),
            make_transaction("2024-02-01", "1000"),
        ]
        summary = compute_summary(transactions, start="2024-01-01", end="2024-01-31")
        assert summary.inflow == Decimal("111")

    def test_open_start_bound(self):
        """Test that only an end bound uses the far-past sentinel."""
        transactions = [
            make_transaction("1950-06-01", "5"),
            make_transaction("2024-03-01", "7"),
        ]
        summary = compute_summary(transactions, end=date(2000, 1, 1))
        assert summary.inflow == Decimal("5")

    def test_open_end_bound(self):
        """Test that only a start bound keeps everything after it."""
        transactions = [
            make_transaction("2023-12-31", "5"),
            make_transaction("2024-03-01", "7"),
        ]
        summary = compute_summary(transactions, start="2024-01-01")
        assert summary.inflow == Decimal("7")

    def test_bad_bound_rejected(self):
        """Test that a malformed bound raises ValueError."""
        with pytest.raises(ValueError):
            compute_summary([], start="01/02/2024")


class TestFilterByDateRange:
    def test_no_bounds_keeps_all(self):
        transactions = [make_transaction("1800-01-01", "1")]
        assert filter_by_date_range(transactions) == transactions


class TestMonthlyBreakdown:
    """Tests for per-card and per-category totals."""

    def test_credit_cards_and_categories(self):
        """Test bucketing and sheet rows."""
        transactions = [
            make_transaction("2024-01-03", "-100", account="Chase Credit Card", category="Food"),
            make_transaction("2024-01-04", "-50", account="Savings", category="Food"),
            make_transaction("2024-01-05", "-25", account="chase credit card", category="Travel"),
            make_transaction("2024-01-06", "-5", account="Chase Credit Card", category="Travel"),
        ]
        breakdown = compute_monthly_breakdown(transactions, "2024-01")

        assert breakdown.credit_cards == {
            "Chase Credit Card": Decimal("-105"),
            "chase credit card": Decimal("-25"),
        }
        assert breakdown.categories == {"Food": Decimal("-150"), "Travel": Decimal("-30")}
        assert breakdown.sheet_data == [
            ("Credit Cards", ""),
            ("Chase Credit Card", Decimal("-105")),
            ("chase credit card", Decimal("-25")),
            ("", ""),
            ("Categories", ""),
            ("Food", Decimal("-150")),
            ("Travel", Decimal("-30")),
        ]

    def test_first_seen_order_kept(self):
        """Test that keys appear in first-seen order, not sorted."""
        transactions = [
            make_transaction("2024-01-03", "-1", category="Zoo"),
            make_transaction("2024-01-04", "-1", category="Apples"),
        ]
        breakdown = compute_monthly_breakdown(transactions, "2024-01")
        assert list(breakdown.categories) == ["Zoo", "Apples"]

    def test_empty_month(self):
        """Test the sheet layout with no data."""
        breakdown = compute_monthly_breakdown([], "2024-02")
        assert breakdown.sheet_data == [("Credit Cards", ""), ("", ""), ("Categories", "")]

    def test_sheet_data_wire_format(self):
        """Test that sheet rows serialise as two-element arrays."""
        breakdown = compute_monthly_breakdown(
            [make_transaction("2024-01-03", "-10", account="Credit", category="Fuel")],
            "2024-01",
        )
        dumped = breakdown.model_dump(mode="json", by_alias=True)
        assert dumped["sheetData"][1] == ["Credit", -10.0]
        assert dumped["creditCards"] == {"Credit": -10.0}

    @pytest.mark.parametrize("month", ["2024-13", "2024-1", "24-01", "2024/01", ""])
    def test_bad_month_rejected(self, month):
        """Test that only YYYY-MM is accepted."""
        with pytest.raises(ValueError):
            validate_month(month)

    def test_month_sheet_key(self):
        assert month_sheet_key("2024-01") == "Transactions-2024-01"
