"""
Pricing Module (``backoffice_modules.pricing``).

Global pricing settings, revenue-banded margin tiers, the minimum-price
approval gate for budgets, and catalog re-pricing.
"""

from backoffice_modules.pricing.config import PricingDefaults
from backoffice_modules.pricing.service import PricingService

__all__ = ["PricingDefaults", "PricingService"]
