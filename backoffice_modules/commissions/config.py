"""
Commission Configuration Schema (``backoffice_modules.commissions.config``).

Seed values for the commission settings row.
"""

from dataclasses import dataclass
from decimal import Decimal

from backoffice_engines.commission import (
    DEFAULT_PARTNER_COMMISSION_RATE,
    DEFAULT_VENDOR_COMMISSION_RATE,
)


@dataclass(frozen=True)
class CommissionDefaults:
    """Vendor and partner-pool rates, as percentages of the order total."""
    vendor_rate: Decimal = DEFAULT_VENDOR_COMMISSION_RATE
    partner_rate: Decimal = DEFAULT_PARTNER_COMMISSION_RATE

    def __post_init__(self):
        if not Decimal(0) <= self.vendor_rate <= Decimal(100):
            raise ValueError(f"vendor_rate must be between 0 and 100, got {self.vendor_rate}")
        if not Decimal(0) <= self.partner_rate <= Decimal(100):
            raise ValueError(f"partner_rate must be between 0 and 100, got {self.partner_rate}")
