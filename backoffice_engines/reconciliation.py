"""
Module: backoffice_engines.reconciliation
Responsibility:
    Receivable arithmetic shared by the order cascade and the bank
    reconciliation service: status derivation, minimum payment,
    outstanding balance and multi-transaction match summaries.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Receivable status is derived only from received vs amount, through
      the MoneyMath 3-way comparator.
    - The display epsilon is used by ``is_pending_for_display`` only and
      never feeds stored receivable state.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from backoffice_kernel.domain.money import (
    add_money,
    compare_money,
    is_positive,
    max_money,
    subtract_money,
    sum_money,
    to_decimal,
)

RECEIVABLE_PENDING = "pending"
RECEIVABLE_PARTIAL = "partial"
RECEIVABLE_PAID = "paid"

DISPLAY_EPSILON = Decimal("0.01")


def derive_receivable_status(amount: str, received: str) -> str:
    """paid when received covers a positive amount, partial when something came in."""
    if is_positive(amount) and compare_money(received, amount) >= 0:
        return RECEIVABLE_PAID
    if is_positive(received):
        return RECEIVABLE_PARTIAL
    return RECEIVABLE_PENDING


def minimum_payment(down_payment: str | None, shipping_cost: str | None) -> str:
    """Down payment plus shipping when a down payment exists, else zero."""
    if is_positive(down_payment):
        return add_money(down_payment, shipping_cost)
    return "0.00"


def outstanding_balance(amount: str, received: str) -> str:
    """Amount still owed, never negative."""
    return max_money(subtract_money(amount, received), "0.00")


def is_pending_for_display(total: str, paid: str, epsilon: Decimal = DISPLAY_EPSILON) -> bool:
    """Reconciliation-screen filter: more than ``epsilon`` still open."""
    return to_decimal(total) - to_decimal(paid) > epsilon


@dataclass(frozen=True)
class MatchSummary:
    """Signed difference of a transaction set against the expected amount."""
    transaction_total: str
    expected_amount: str
    difference: str

    @property
    def outcome(self) -> str:
        cmp = compare_money(self.difference, "0.00")
        if cmp > 0:
            return "overpaid"
        if cmp < 0:
            return "underpaid"
        return "exact"


def summarize_match(amounts: Iterable[str], expected_amount: str) -> MatchSummary:
    """``difference = sum(amounts) - expected``; positive means overpayment."""
    total = sum_money(amounts)
    return MatchSummary(
        transaction_total=total,
        expected_amount=expected_amount,
        difference=subtract_money(total, expected_amount),
    )
