"""
Module: backoffice_engines.pricing
Responsibility:
    Minimum and ideal sale prices derived from product cost, tax rate,
    commission rate and a revenue-tiered margin; detection of budget items
    priced below the minimum.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Consumed by the pricing
    service (approval gate, bulk re-pricing) and the budget service.

Formula:
    divisor = 1 - (tax_rate + commission_rate + margin_rate) / 100
    price   = cost_price / divisor            (rounded half-up to cents)

    All rates are percentages (9 means 9%).

Tier selection:
    The tier whose ``min_revenue`` is the largest value <= revenue wins;
    tiers with a ``max_revenue`` below the revenue are not eligible.  No
    eligible tier (or no tiers at all) falls back to the global settings.

Invariants enforced:
    - A divisor <= 0 raises ``InvalidPricingDivisorError``; no negative or
      infinite price is ever returned.
    - For fixed cost/tax/commission, a larger margin gives a strictly
      larger price (before cent rounding).
    - Discounts never enter the effective unit price used for the floor
      comparison.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal, localcontext
from uuid import UUID

from backoffice_kernel.domain.money import (
    MONEY_CONTEXT,
    compare_money,
    is_positive,
    to_decimal,
    to_money_string,
)
from backoffice_kernel.exceptions import InvalidPricingDivisorError

DEFAULT_TAX_RATE = Decimal("9.00")
DEFAULT_COMMISSION_RATE = Decimal("15.00")
DEFAULT_MINIMUM_MARGIN = Decimal("20.00")
DEFAULT_IDEAL_MARGIN = Decimal("28.00")
DEFAULT_CASH_DISCOUNT = Decimal("5.00")

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class PricingParameters:
    """Global pricing settings (percentages)."""
    tax_rate: Decimal = DEFAULT_TAX_RATE
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    minimum_margin: Decimal = DEFAULT_MINIMUM_MARGIN
    ideal_margin: Decimal = DEFAULT_IDEAL_MARGIN
    cash_discount: Decimal = DEFAULT_CASH_DISCOUNT


@dataclass(frozen=True)
class MarginTier:
    """Revenue band with its own ideal and minimum margin."""
    min_revenue: str
    max_revenue: str | None
    margin_rate: Decimal
    minimum_margin_rate: Decimal
    display_order: int = 0
    tier_id: UUID | None = None


@dataclass(frozen=True)
class MarginRates:
    margin_rate: Decimal
    minimum_margin_rate: Decimal
    tier: MarginTier | None = None


@dataclass(frozen=True)
class PricedItem:
    """The pricing-relevant view of one budget line."""
    item_id: UUID | str
    cost_price: str | None
    unit_price: str
    quantity: Decimal
    item_customization_value: str = "0.00"
    general_customization_value: str = "0.00"


@dataclass(frozen=True)
class FloorViolation:
    item_id: UUID | str
    effective_unit_price: str
    minimum_price: str
    minimum_margin_rate: Decimal


def select_tier(tiers: Iterable[MarginTier], revenue: str) -> MarginTier | None:
    """Tier with the largest ``min_revenue`` not above ``revenue``."""
    best: MarginTier | None = None
    for tier in tiers:
        if compare_money(tier.min_revenue, revenue) > 0:
            continue
        if tier.max_revenue is not None and compare_money(tier.max_revenue, revenue) < 0:
            continue
        if best is None or compare_money(tier.min_revenue, best.min_revenue) > 0:
            best = tier
    return best


def resolve_margin_rates(
    params: PricingParameters,
    tiers: Sequence[MarginTier],
    revenue: str,
) -> MarginRates:
    tier = select_tier(tiers, revenue)
    if tier is None:
        return MarginRates(params.ideal_margin, params.minimum_margin)
    return MarginRates(tier.margin_rate, tier.minimum_margin_rate, tier)


def pricing_divisor(tax_rate: Decimal, commission_rate: Decimal, margin_rate: Decimal) -> Decimal:
    """``1 - (tax + commission + margin) / 100``; raises when not positive."""
    with localcontext(MONEY_CONTEXT):
        divisor = 1 - (Decimal(tax_rate) + Decimal(commission_rate) + Decimal(margin_rate)) / _HUNDRED
    if divisor <= 0:
        raise InvalidPricingDivisorError(str(tax_rate), str(commission_rate), str(margin_rate))
    return divisor


def price_for_margin(
    cost_price: str,
    tax_rate: Decimal,
    commission_rate: Decimal,
    margin_rate: Decimal,
) -> str:
    divisor = pricing_divisor(tax_rate, commission_rate, margin_rate)
    with localcontext(MONEY_CONTEXT):
        return to_money_string(to_decimal(cost_price) / divisor)


def minimum_price(
    cost_price: str,
    params: PricingParameters,
    tiers: Sequence[MarginTier],
    revenue: str,
) -> str:
    """Lowest acceptable sale price at the tier's minimum margin."""
    rates = resolve_margin_rates(params, tiers, revenue)
    return price_for_margin(cost_price, params.tax_rate, params.commission_rate, rates.minimum_margin_rate)


def ideal_price(
    cost_price: str,
    params: PricingParameters,
    tiers: Sequence[MarginTier],
    revenue: str,
) -> str:
    """Target sale price at the tier's (non-minimum) margin."""
    rates = resolve_margin_rates(params, tiers, revenue)
    return price_for_margin(cost_price, params.tax_rate, params.commission_rate, rates.margin_rate)


def validate_pricing(params: PricingParameters, tiers: Sequence[MarginTier]) -> None:
    """Raise ``InvalidPricingDivisorError`` if any configured margin leaves no divisor."""
    for margin in (params.minimum_margin, params.ideal_margin):
        pricing_divisor(params.tax_rate, params.commission_rate, margin)
    for tier in tiers:
        for margin in (tier.minimum_margin_rate, tier.margin_rate):
            pricing_divisor(params.tax_rate, params.commission_rate, margin)


def effective_unit_price(item: PricedItem) -> str:
    """
    Unit price plus per-unit share of customization surcharges.

    Customization values are line-level fixed amounts, so they are spread
    over the quantity.  Discounts are deliberately excluded.
    """
    quantity = Decimal(item.quantity)
    surcharge = to_decimal(item.item_customization_value) + to_decimal(item.general_customization_value)
    with localcontext(MONEY_CONTEXT):
        if quantity <= 0:
            return to_money_string(item.unit_price)
        return to_money_string(to_decimal(item.unit_price) + surcharge / quantity)


def find_items_below_floor(
    items: Iterable[PricedItem],
    params: PricingParameters,
    tiers: Sequence[MarginTier],
    revenue: str,
) -> list[FloorViolation]:
    """Items with a positive cost whose effective unit price is under the minimum."""
    rates = resolve_margin_rates(params, tiers, revenue)
    violations: list[FloorViolation] = []
    for item in items:
        if not is_positive(item.cost_price):
            continue
        floor = price_for_margin(
            item.cost_price, params.tax_rate, params.commission_rate, rates.minimum_margin_rate,
        )
        effective = effective_unit_price(item)
        if compare_money(effective, floor) < 0:
            violations.append(FloorViolation(
                item_id=item.item_id,
                effective_unit_price=effective,
                minimum_price=floor,
                minimum_margin_rate=rates.minimum_margin_rate,
            ))
    return violations
