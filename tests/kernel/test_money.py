"""
Unit and property tests for money math.

Verifies:
- Two-decimal string serialization with half-up rounding
- Three-way comparison instead of float subtraction
- split_money shares always sum to the total
- Invalid input rejected with InvalidValueError
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from backoffice_kernel.domain.money import (
    add_money,
    compare_money,
    divide_money,
    is_negative,
    is_positive,
    is_zero,
    max_money,
    min_money,
    multiply_money,
    normalize_separators,
    percentage_of,
    split_money,
    subtract_money,
    sum_money,
    to_decimal,
    to_money_string,
)
from backoffice_kernel.exceptions import InvalidValueError

cents = st.integers(min_value=-10_000_000_00, max_value=10_000_000_00).map(
    lambda c: to_money_string(Decimal(c) / 100)
)


class TestToMoneyString:

    def test_rounds_half_up(self):
        assert to_money_string("2.345") == "2.35"
        assert to_money_string("2.344") == "2.34"

    def test_negative_half_rounds_away_from_zero(self):
        assert to_money_string("-2.345") == "-2.35"

    def test_none_and_blank_are_zero(self):
        assert to_money_string(None) == "0.00"
        assert to_money_string("  ") == "0.00"

    def test_negative_zero_normalized(self):
        assert to_money_string("-0.001") == "0.00"

    def test_float_uses_repr(self):
        assert to_money_string(0.1 + 0.2) == "0.30"

    def test_invalid_text_raises(self):
        with pytest.raises(InvalidValueError):
            to_decimal("twelve")

    def test_infinity_rejected(self):
        with pytest.raises(InvalidValueError):
            to_decimal("Infinity")


class TestArithmetic:

    def test_add_and_subtract(self):
        assert add_money("0.10", "0.20") == "0.30"
        assert subtract_money("10.00", "10.01") == "-0.01"

    def test_multiply_by_quantity(self):
        assert multiply_money("19.99", Decimal("3")) == "59.97"

    def test_divide(self):
        assert divide_money("50.00", Decimal("0.56")) == "89.29"

    def test_percentage_of(self):
        assert percentage_of("1800.00", Decimal("10")) == "180.00"
        assert percentage_of("33.33", Decimal("15")) == "5.00"

    def test_sum_empty_is_zero(self):
        assert sum_money([]) == "0.00"

    def test_min_max(self):
        assert max_money("1.00", "-3.00", "2.50") == "2.50"
        assert min_money("1.00", "-3.00", "2.50") == "-3.00"

    def test_predicates(self):
        assert is_zero("0.00")
        assert is_positive("0.01")
        assert is_negative("-0.01")
        assert not is_positive(None)


class TestCompareMoney:

    def test_three_way(self):
        assert compare_money("1.00", "1.00") == 0
        assert compare_money("1.01", "1.00") == 1
        assert compare_money("0.99", "1.00") == -1

    def test_rounding_applied_before_compare(self):
        assert compare_money("1.004", "1.00") == 0


class TestNormalizeSeparators:

    @pytest.mark.parametrize("raw, expected", [
        ("24,90", "24.90"),
        ("1.234,56", "1234.56"),
        ("1,234.56", "1234.56"),
        (" -12.50 ", "-12.50"),
    ])
    def test_locale_forms(self, raw, expected):
        assert normalize_separators(raw) == expected


class TestSplitMoney:

    def test_remainder_goes_to_first_shares(self):
        assert split_money("100.00", 3) == ["33.34", "33.33", "33.33"]

    def test_single_part(self):
        assert split_money("12.34", 1) == ["12.34"]


class TestMoneyProperties:

    @given(a=cents, b=cents)
    @settings(max_examples=200)
    def test_addition_commutes(self, a, b):
        assert add_money(a, b) == add_money(b, a)

    @given(a=cents, b=cents)
    @settings(max_examples=200)
    def test_subtract_inverts_add(self, a, b):
        assert subtract_money(add_money(a, b), b) == a

    @given(a=cents, b=cents)
    @settings(max_examples=200)
    def test_compare_is_antisymmetric(self, a, b):
        assert compare_money(a, b) == -compare_money(b, a)

    @given(total=cents, parts=st.integers(min_value=1, max_value=40))
    @settings(max_examples=200)
    def test_split_sums_to_total(self, total, parts):
        shares = split_money(total, parts)
        assert len(shares) == parts
        assert sum_money(shares) == total

    @given(total=cents.filter(lambda v: not is_negative(v)), parts=st.integers(min_value=1, max_value=40))
    def test_split_shares_differ_by_at_most_one_cent(self, total, parts):
        shares = [Decimal(s) for s in split_money(total, parts)]
        assert max(shares) - min(shares) <= Decimal("0.01")

    @given(value=st.decimals(min_value=-10**9, max_value=10**9, allow_nan=False, allow_infinity=False))
    def test_serialization_is_idempotent(self, value):
        once = to_money_string(value)
        assert to_money_string(once) == once
        assert len(once.split(".")[1]) == 2
