"""
Pricing Configuration Schema (``backoffice_modules.pricing.config``).

Named defaults used when the pricing settings row is initialized.  The
values themselves live in ``backoffice_engines.pricing``.
"""

from dataclasses import dataclass
from decimal import Decimal

from backoffice_engines.pricing import (
    DEFAULT_CASH_DISCOUNT,
    DEFAULT_COMMISSION_RATE,
    DEFAULT_IDEAL_MARGIN,
    DEFAULT_MINIMUM_MARGIN,
    DEFAULT_TAX_RATE,
    PricingParameters,
    validate_pricing,
)
from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.pricing.config")


@dataclass(frozen=True)
class PricingDefaults:
    """Seed values for ``PricingSettingsModel``.

    Guarantees: every rate is within [0, 100] and both margins leave a
    positive pricing divisor.
    """
    tax_rate: Decimal = DEFAULT_TAX_RATE
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    minimum_margin: Decimal = DEFAULT_MINIMUM_MARGIN
    ideal_margin: Decimal = DEFAULT_IDEAL_MARGIN
    cash_discount: Decimal = DEFAULT_CASH_DISCOUNT

    def __post_init__(self):
        for name in ("tax_rate", "commission_rate", "minimum_margin", "ideal_margin", "cash_discount"):
            value = getattr(self, name)
            if value < 0 or value > 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        if self.minimum_margin > self.ideal_margin:
            raise ValueError("minimum_margin cannot exceed ideal_margin")
        validate_pricing(self.to_parameters(), ())
        logger.debug(
            "pricing_defaults_initialized",
            extra={
                "tax_rate": str(self.tax_rate),
                "commission_rate": str(self.commission_rate),
                "minimum_margin": str(self.minimum_margin),
                "ideal_margin": str(self.ideal_margin),
            },
        )

    def to_parameters(self) -> PricingParameters:
        return PricingParameters(
            tax_rate=self.tax_rate,
            commission_rate=self.commission_rate,
            minimum_margin=self.minimum_margin,
            ideal_margin=self.ideal_margin,
            cash_discount=self.cash_discount,
        )
