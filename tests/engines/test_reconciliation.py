"""
Tests for receivable and match arithmetic.

Verifies:
- Receivable status from amount and received
- Minimum payment is down payment plus shipping
- Match summaries classify overpaid, underpaid and exact
"""

from decimal import Decimal

import pytest

from backoffice_engines.reconciliation import (
    derive_receivable_status,
    is_pending_for_display,
    minimum_payment,
    outstanding_balance,
    summarize_match,
)


class TestReceivableStatus:

    @pytest.mark.parametrize("amount,received,expected", [
        ("100.00", "0.00", "pending"),
        ("100.00", "40.00", "partial"),
        ("100.00", "100.00", "paid"),
        ("100.00", "120.00", "paid"),
        ("0.00", "0.00", "pending"),
    ])
    def test_status(self, amount, received, expected):
        assert derive_receivable_status(amount, received) == expected


class TestBalances:

    def test_minimum_payment_with_down_payment(self):
        assert minimum_payment("500.00", "50.00") == "550.00"

    def test_minimum_payment_without_down_payment(self):
        assert minimum_payment(None, "50.00") == "0.00"

    def test_outstanding_never_negative(self):
        assert outstanding_balance("100.00", "150.00") == "0.00"
        assert outstanding_balance("100.00", "30.00") == "70.00"

    def test_display_epsilon(self):
        assert not is_pending_for_display("100.00", "99.99")
        assert is_pending_for_display("100.00", "99.98")
        assert is_pending_for_display("100.00", "99.98", epsilon=Decimal("0.05")) is False


class TestMatchSummary:

    def test_exact(self):
        summary = summarize_match(["600.00", "400.00"], "1000.00")
        assert summary.outcome == "exact"
        assert summary.transaction_total == "1000.00"

    def test_overpaid(self):
        summary = summarize_match(["1050.00"], "1000.00")
        assert summary.outcome == "overpaid"
        assert summary.difference == "50.00"

    def test_underpaid(self):
        assert summarize_match(["900.00"], "1000.00").difference == "-100.00"
        assert summarize_match(["900.00"], "1000.00").outcome == "underpaid"
