"""
MoneyMath -- fixed-point currency arithmetic.

Responsibility:
    The exclusive path for every monetary add, subtract, scale and compare
    in the core.  Amounts travel as decimal strings with exactly two
    fraction digits ("1234.50"); every operation converts to ``Decimal``
    under a dedicated context (20 significant digits, ROUND_HALF_UP),
    computes, and re-serializes to a 2-decimal string.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Every returned amount string has exactly two fraction digits.
    - Comparison is a 3-way comparator (-1 / 0 / 1); callers never compare
      money with float ``<`` / ``>``.
    - ``split_money`` parts always sum to the input total to the cent.

Failure modes:
    - ``InvalidValueError`` for non-numeric input or division by zero.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Iterable, Union

from backoffice_kernel.exceptions import InvalidValueError

MoneyInput = Union[str, int, float, Decimal, None]

MONEY_PRECISION = 20
MONEY_ROUNDING = ROUND_HALF_UP
CENT = Decimal("0.01")
ZERO = "0.00"

MONEY_CONTEXT = Context(prec=MONEY_PRECISION, rounding=MONEY_ROUNDING)


def to_decimal(value: MoneyInput) -> Decimal:
    """Parse a money input into a Decimal.  None and blank strings are zero."""
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        text = str(value).strip()
        if not text:
            return Decimal(0)
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise InvalidValueError("amount", value, "not a decimal number") from None
    if not result.is_finite():
        raise InvalidValueError("amount", value, "not a finite number")
    return result


def normalize_separators(text: str) -> str:
    """Rewrite ``1.234,56``, ``1,234.56`` and ``24,90`` into plain decimal notation."""
    text = text.strip().replace(" ", "").replace("\u2212", "-")
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    return text.replace(",", ".")


def round_money(value: Decimal) -> Decimal:
    """Quantize to cents, half-up."""
    with localcontext(MONEY_CONTEXT):
        return value.quantize(CENT, rounding=MONEY_ROUNDING)


def to_money_string(value: MoneyInput) -> str:
    """Serialize any money input as a 2-decimal string."""
    rounded = round_money(to_decimal(value))
    if rounded == 0:
        # Normalize "-0.00"
        rounded = abs(rounded)
    return f"{rounded:.2f}"


def add_money(a: MoneyInput, b: MoneyInput) -> str:
    with localcontext(MONEY_CONTEXT):
        return to_money_string(to_decimal(a) + to_decimal(b))


def subtract_money(a: MoneyInput, b: MoneyInput) -> str:
    with localcontext(MONEY_CONTEXT):
        return to_money_string(to_decimal(a) - to_decimal(b))


def multiply_money(amount: MoneyInput, factor: MoneyInput) -> str:
    """Multiply an amount by a (possibly fractional) factor such as a quantity."""
    with localcontext(MONEY_CONTEXT):
        return to_money_string(to_decimal(amount) * to_decimal(factor))


def divide_money(amount: MoneyInput, divisor: MoneyInput) -> str:
    divisor_value = to_decimal(divisor)
    if divisor_value == 0:
        raise InvalidValueError("divisor", divisor, "division by zero")
    with localcontext(MONEY_CONTEXT):
        return to_money_string(to_decimal(amount) / divisor_value)


def percentage_of(amount: MoneyInput, percentage: MoneyInput) -> str:
    """``amount * percentage / 100`` rounded to cents."""
    with localcontext(MONEY_CONTEXT):
        return to_money_string(to_decimal(amount) * to_decimal(percentage) / Decimal(100))


def compare_money(a: MoneyInput, b: MoneyInput) -> int:
    """3-way comparison of two amounts at cent precision: -1, 0 or 1."""
    left = round_money(to_decimal(a))
    right = round_money(to_decimal(b))
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def is_zero(value: MoneyInput) -> bool:
    return compare_money(value, ZERO) == 0


def is_positive(value: MoneyInput) -> bool:
    return compare_money(value, ZERO) > 0


def is_negative(value: MoneyInput) -> bool:
    return compare_money(value, ZERO) < 0


def absolute_money(value: MoneyInput) -> str:
    return to_money_string(abs(to_decimal(value)))


def sum_money(values: Iterable[MoneyInput]) -> str:
    """Sum an iterable of amounts.  An empty iterable sums to "0.00"."""
    total = Decimal(0)
    with localcontext(MONEY_CONTEXT):
        for value in values:
            total += to_decimal(value)
    return to_money_string(total)


def max_money(*values: MoneyInput) -> str:
    if not values:
        raise InvalidValueError("values", None, "at least one amount is required")
    return to_money_string(max((round_money(to_decimal(v)) for v in values)))


def min_money(*values: MoneyInput) -> str:
    if not values:
        raise InvalidValueError("values", None, "at least one amount is required")
    return to_money_string(min((round_money(to_decimal(v)) for v in values)))


def split_money(total: MoneyInput, parts: int) -> list[str]:
    """
    Split ``total`` into ``parts`` 2-decimal shares that sum exactly to it.

    Shares differ by at most one cent; the extra cents go to the first
    shares so the result is deterministic.
    """
    if parts <= 0:
        raise InvalidValueError("parts", parts, "must be a positive integer")
    cents = int(round_money(to_decimal(total)) * 100)
    sign = -1 if cents < 0 else 1
    base, remainder = divmod(abs(cents), parts)
    shares = []
    for index in range(parts):
        share_cents = base + (1 if index < remainder else 0)
        shares.append(to_money_string(Decimal(sign * share_cents) / 100))
    return shares

