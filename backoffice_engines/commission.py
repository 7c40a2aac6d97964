"""
Module: backoffice_engines.commission
Responsibility:
    Compute the commission plan of one order: the vendor's commission at
    the vendor's own rate, and the partner pool split evenly across every
    active partner.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by
    ``backoffice_modules.commissions.service``.

Invariants enforced:
    - Partner amounts always sum to ``order_total * partner_rate / 100``
      to the cent; leftover cents go to the first partners in id order.
    - Each partner's percentage is ``partner_rate / partner_count``.
    - Zero partners produce zero partner shares (no error).

Failure modes:
    - ``InvalidValueError`` for negative rates.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from backoffice_kernel.domain.money import percentage_of, split_money
from backoffice_kernel.exceptions import InvalidValueError

DEFAULT_VENDOR_COMMISSION_RATE = Decimal("10.00")
DEFAULT_PARTNER_COMMISSION_RATE = Decimal("15.00")

RATE_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class CommissionShare:
    """One beneficiary's slice of an order."""
    beneficiary_id: UUID
    percentage: Decimal
    amount: str


@dataclass(frozen=True)
class CommissionPlan:
    """Vendor share (if commissioned) plus partner shares."""
    vendor: CommissionShare | None
    partners: tuple[CommissionShare, ...]


def vendor_commission(vendor_id: UUID, order_total: str, rate: Decimal | None) -> CommissionShare:
    """Vendor share at ``rate`` (default 10%) of the order total."""
    effective = DEFAULT_VENDOR_COMMISSION_RATE if rate is None else Decimal(rate)
    if effective < 0:
        raise InvalidValueError("vendor_commission_rate", effective, "cannot be negative")
    return CommissionShare(
        beneficiary_id=vendor_id,
        percentage=effective.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP),
        amount=percentage_of(order_total, effective),
    )


def partner_percentage(partner_rate: Decimal, partner_count: int) -> Decimal:
    """Per-partner percentage of the pool, quantized to four places."""
    if partner_count <= 0:
        return Decimal(0)
    return (Decimal(partner_rate) / partner_count).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def split_partner_pool(
    order_total: str,
    partner_ids: Sequence[UUID],
    partner_rate: Decimal | None = None,
) -> tuple[CommissionShare, ...]:
    """
    Split the partner pool evenly across ``partner_ids``.

    The pool is rounded once and then divided in cents, so the sum of the
    shares equals the pool exactly.
    """
    rate = DEFAULT_PARTNER_COMMISSION_RATE if partner_rate is None else Decimal(partner_rate)
    if rate < 0:
        raise InvalidValueError("partner_commission_rate", rate, "cannot be negative")
    ordered = sorted(set(partner_ids), key=str)
    if not ordered:
        return ()
    pool = percentage_of(order_total, rate)
    amounts = split_money(pool, len(ordered))
    pct = partner_percentage(rate, len(ordered))
    return tuple(
        CommissionShare(beneficiary_id=pid, percentage=pct, amount=amount)
        for pid, amount in zip(ordered, amounts)
    )


def plan_commissions(
    order_total: str,
    *,
    vendor_id: UUID | None,
    vendor_rate: Decimal | None,
    vendor_is_commissioned: bool,
    partner_ids: Sequence[UUID],
    partner_rate: Decimal | None = None,
) -> CommissionPlan:
    """Full commission plan for an order total."""
    vendor = None
    if vendor_id is not None and vendor_is_commissioned:
        vendor = vendor_commission(vendor_id, order_total, vendor_rate)
    return CommissionPlan(
        vendor=vendor,
        partners=split_partner_pool(order_total, partner_ids, partner_rate),
    )
