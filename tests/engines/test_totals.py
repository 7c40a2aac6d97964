"""
Tests for line and document totals.

Verifies:
- Customization values are added once per line
- Percentage and value discounts, never below zero
- Unknown discount types are rejected
"""

from decimal import Decimal

import pytest

from backoffice_engines.totals import Discount, document_total, line_total
from backoffice_kernel.exceptions import InvalidValueError


class TestLineTotal:

    def test_plain_line(self):
        assert line_total("100.00", Decimal(10)) == "1000.00"

    def test_customizations_added_per_line(self):
        assert line_total("10.00", Decimal(5), "15.00", "5.00") == "70.00"

    def test_percentage_discount(self):
        assert line_total("100.00", Decimal(2), discount=Discount("percentage", Decimal(10))) == "180.00"

    def test_value_discount_floors_at_zero(self):
        assert line_total("10.00", Decimal(1), discount=Discount("value", value="50.00")) == "0.00"


class TestDocumentTotal:

    def test_sum_of_lines(self):
        assert document_total(["1000.00", "800.00"]) == "1800.00"

    def test_document_discount(self):
        assert document_total(["1000.00", "800.00"], Discount("percentage", Decimal(5))) == "1710.00"

    def test_empty(self):
        assert document_total([]) == "0.00"


class TestDiscountValidation:

    def test_unknown_type(self):
        with pytest.raises(InvalidValueError):
            Discount("coupon")

    @pytest.mark.parametrize("pct", [Decimal(-1), Decimal(101)])
    def test_percentage_range(self, pct):
        with pytest.raises(InvalidValueError):
            Discount("percentage", pct)
