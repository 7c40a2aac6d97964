"""
Tests for the pricing engine.

Verifies:
- Minimum and ideal prices from the margin divisor
- Tier selection by revenue
- Floor detection over effective unit prices (customizations included)
- Non-positive divisors are rejected
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from backoffice_engines.pricing import (
    MarginTier,
    PricedItem,
    PricingParameters,
    effective_unit_price,
    find_items_below_floor,
    ideal_price,
    minimum_price,
    pricing_divisor,
    select_tier,
    validate_pricing,
)
from backoffice_kernel.domain.money import compare_money
from backoffice_kernel.exceptions import InvalidPricingDivisorError

DEFAULTS = PricingParameters()

TIERS = [
    MarginTier(min_revenue="0.00", max_revenue="9999.99", margin_rate=Decimal(30), minimum_margin_rate=Decimal(25)),
    MarginTier(min_revenue="10000.00", max_revenue=None, margin_rate=Decimal(22), minimum_margin_rate=Decimal(18)),
]


class TestDivisor:

    def test_default_minimum_divisor(self):
        assert pricing_divisor(Decimal(9), Decimal(15), Decimal(20)) == Decimal("0.56")

    @pytest.mark.parametrize("margin", [Decimal(76), Decimal(90)])
    def test_non_positive_divisor_raises(self, margin):
        with pytest.raises(InvalidPricingDivisorError):
            pricing_divisor(Decimal(9), Decimal(15), margin)

    def test_validate_pricing_checks_tiers(self):
        bad = [MarginTier(min_revenue="0.00", max_revenue=None, margin_rate=Decimal(80), minimum_margin_rate=Decimal(20))]
        with pytest.raises(InvalidPricingDivisorError):
            validate_pricing(DEFAULTS, bad)


class TestPrices:

    def test_minimum_price_without_tiers(self):
        assert minimum_price("50.00", DEFAULTS, [], "0.00") == "89.29"

    def test_ideal_price_without_tiers(self):
        assert ideal_price("50.00", DEFAULTS, [], "0.00") == "104.17"

    def test_tier_overrides_default_margins(self):
        assert minimum_price("50.00", DEFAULTS, TIERS, "5000.00") == "98.04"

    def test_zero_cost_prices_at_zero(self):
        assert minimum_price("0.00", DEFAULTS, [], "0.00") == "0.00"


class TestSelectTier:

    def test_picks_tier_containing_revenue(self):
        assert select_tier(TIERS, "12000.00") is TIERS[1]
        assert select_tier(TIERS, "500.00") is TIERS[0]

    def test_boundary_belongs_to_upper_tier(self):
        assert select_tier(TIERS, "10000.00") is TIERS[1]

    def test_no_tiers(self):
        assert select_tier([], "100.00") is None


class TestFloor:

    def test_item_below_minimum_flagged(self):
        items = [PricedItem(item_id="a", cost_price="50.00", unit_price="80.00", quantity=Decimal(10))]
        violations = find_items_below_floor(items, DEFAULTS, [], "800.00")
        assert len(violations) == 1
        assert violations[0].minimum_price == "89.29"
        assert violations[0].effective_unit_price == "80.00"

    def test_item_above_minimum_passes(self):
        items = [PricedItem(item_id="a", cost_price="50.00", unit_price="90.00", quantity=Decimal(10))]
        assert find_items_below_floor(items, DEFAULTS, [], "900.00") == []

    def test_customization_lifts_effective_price(self):
        item = PricedItem(
            item_id="a", cost_price="50.00", unit_price="80.00", quantity=Decimal(10),
            item_customization_value="150.00",
        )
        assert effective_unit_price(item) == "95.00"
        assert find_items_below_floor([item], DEFAULTS, [], "950.00") == []

    def test_items_without_cost_are_skipped(self):
        items = [PricedItem(item_id="a", cost_price=None, unit_price="1.00", quantity=Decimal(1))]
        assert find_items_below_floor(items, DEFAULTS, [], "1.00") == []


class TestPricingProperties:

    @given(
        low=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2),
        delta=st.decimals(min_value=Decimal("0.00"), max_value=Decimal("1000"), places=2),
    )
    @settings(max_examples=200)
    def test_minimum_price_monotonic_in_cost(self, low, delta):
        high = low + delta
        assert compare_money(
            minimum_price(str(low), DEFAULTS, [], "0.00"),
            minimum_price(str(high), DEFAULTS, [], "0.00"),
        ) <= 0

    @given(cost=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2))
    @settings(max_examples=200)
    def test_ideal_never_below_minimum(self, cost):
        assert compare_money(
            minimum_price(str(cost), DEFAULTS, [], "0.00"),
            ideal_price(str(cost), DEFAULTS, [], "0.00"),
        ) <= 0

    @given(cost=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2))
    @settings(max_examples=200)
    def test_minimum_price_never_flagged(self, cost):
        floor = minimum_price(str(cost), DEFAULTS, [], "0.00")
        item = PricedItem(item_id="a", cost_price=str(cost), unit_price=floor, quantity=Decimal(1))
        assert find_items_below_floor([item], DEFAULTS, [], floor) == []
