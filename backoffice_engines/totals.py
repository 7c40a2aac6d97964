"""
Module: backoffice_engines.totals
Responsibility:
    Line and document totals for budgets and orders.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Formulas:
    line     = unit_price * quantity
               + item customization value + general customization value
               - line discount
    document = sum(lines) - document discount

    A discount is either a percentage of the amount it applies to or a
    fixed value.  Both totals are floored at zero and rounded to cents.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from backoffice_kernel.domain.money import (
    add_money,
    max_money,
    multiply_money,
    percentage_of,
    subtract_money,
    sum_money,
)
from backoffice_kernel.exceptions import InvalidValueError

DISCOUNT_NONE = "none"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_VALUE = "value"

DISCOUNT_TYPES = frozenset({DISCOUNT_NONE, DISCOUNT_PERCENTAGE, DISCOUNT_VALUE})


@dataclass(frozen=True)
class Discount:
    discount_type: str = DISCOUNT_NONE
    percentage: Decimal = Decimal(0)
    value: str = "0.00"

    def __post_init__(self) -> None:
        if self.discount_type not in DISCOUNT_TYPES:
            raise InvalidValueError("discount_type", self.discount_type, "unknown discount type")
        if Decimal(self.percentage) < 0 or Decimal(self.percentage) > 100:
            raise InvalidValueError("discount_percentage", self.percentage, "must be between 0 and 100")

    def amount_for(self, base: str) -> str:
        if self.discount_type == DISCOUNT_PERCENTAGE:
            return percentage_of(base, self.percentage)
        if self.discount_type == DISCOUNT_VALUE:
            return max_money(self.value, "0.00")
        return "0.00"


NO_DISCOUNT = Discount()


def line_total(
    unit_price: str,
    quantity: Decimal,
    item_customization_value: str = "0.00",
    general_customization_value: str = "0.00",
    discount: Discount = NO_DISCOUNT,
) -> str:
    """Total of one line; a percentage discount applies to the whole line."""
    gross = add_money(
        multiply_money(unit_price, quantity),
        add_money(item_customization_value, general_customization_value),
    )
    return max_money(subtract_money(gross, discount.amount_for(gross)), "0.00")


def document_total(line_totals: Iterable[str], discount: Discount = NO_DISCOUNT) -> str:
    subtotal = sum_money(line_totals)
    return max_money(subtract_money(subtotal, discount.amount_for(subtotal)), "0.00")
