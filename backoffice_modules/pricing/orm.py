"""
Pricing ORM Models (``backoffice_modules.pricing.orm``).

The global pricing settings row (a singleton, created on first read) and
the revenue-banded margin tiers.
"""

from sqlalchemy import Boolean
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_engines.pricing import MarginTier, PricingParameters
from backoffice_kernel.db.base import MoneyString, TrackedBase
from backoffice_kernel.db.types import MoneyColumn, Rate


class PricingSettingsModel(TrackedBase):
    """Global pricing percentages (9 means 9%)."""

    __tablename__ = "pricing_settings"

    tax_rate: Mapped[Rate]
    commission_rate: Mapped[Rate]
    minimum_margin: Mapped[Rate]
    ideal_margin: Mapped[Rate]
    cash_discount: Mapped[Rate]

    def to_parameters(self) -> PricingParameters:
        return PricingParameters(
            tax_rate=self.tax_rate,
            commission_rate=self.commission_rate,
            minimum_margin=self.minimum_margin,
            ideal_margin=self.ideal_margin,
            cash_discount=self.cash_discount,
        )


class PricingMarginTierModel(TrackedBase):
    """
    Revenue band ``min_revenue .. max_revenue`` with its own margins.

    ``max_revenue`` None means open-ended.
    """

    __tablename__ = "pricing_margin_tiers"

    min_revenue: Mapped[MoneyColumn]
    max_revenue: Mapped[str | None] = mapped_column(MoneyString(), nullable=True)
    margin_rate: Mapped[Rate]
    minimum_margin_rate: Mapped[Rate]
    display_order: Mapped[int] = mapped_column(default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_tier(self) -> MarginTier:
        return MarginTier(
            min_revenue=self.min_revenue,
            max_revenue=self.max_revenue,
            margin_rate=self.margin_rate,
            minimum_margin_rate=self.minimum_margin_rate,
            display_order=self.display_order,
            tier_id=self.id,
        )
