"""
Pricing Module Service (``backoffice_modules.pricing.service``).

Responsibility
--------------
Owns the pricing settings singleton and the margin tiers, answers the
budget approval question (are any items below the minimum price?) and
re-prices the catalog when the rules change.

Architecture position
---------------------
**Modules layer** -- all arithmetic is delegated to
``backoffice_engines.pricing``.

Invariants enforced
-------------------
* Settings and tier changes are validated (every configured margin leaves
  a positive divisor) BEFORE anything is written.
* A settings or tier change re-prices every product with a positive cost
  to the ideal margin, in the same transaction.
* ``update_settings`` / ``save_tier`` / ``delete_tier`` own the
  transaction (commit on success, rollback on failure).

Failure modes
-------------
* ``InvalidPricingDivisorError`` -- rejected configuration; nothing written.
* ``EntityNotFoundError`` -- unknown tier id.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_engines.pricing import (
    FloorViolation,
    MarginTier,
    PricedItem,
    PricingParameters,
    find_items_below_floor,
    ideal_price,
    validate_pricing,
)
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.money import compare_money, is_negative, max_money, to_money_string
from backoffice_kernel.exceptions import InvalidValueError
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.services.audit_service import AuditTrail
from backoffice_modules._service_helpers import get_or_raise
from backoffice_modules.catalog.service import CatalogService
from backoffice_modules.pricing.config import PricingDefaults
from backoffice_modules.pricing.orm import PricingMarginTierModel, PricingSettingsModel

logger = get_logger("modules.pricing.service")

# Catalog prices are not tied to a budget total; the lowest revenue band applies.
CATALOG_REVENUE = "0.00"


class PricingService:
    """
    Pricing settings, margin tiers, approval gate and bulk re-pricing.

    Contract:
        ``get_or_initialize_settings``, ``load_rules``,
        ``check_budget_needs_approval`` and ``recalculate_product_prices``
        flush only; the remaining public methods commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        defaults: PricingDefaults | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)
        self._defaults = defaults or PricingDefaults()
        self._catalog = CatalogService(session)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_or_initialize_settings(self) -> PricingSettingsModel:
        """The settings row, created from ``PricingDefaults`` on first use."""
        settings = self._session.scalar(select(PricingSettingsModel).limit(1))
        if settings is None:
            defaults = self._defaults
            settings = PricingSettingsModel(
                tax_rate=defaults.tax_rate,
                commission_rate=defaults.commission_rate,
                minimum_margin=defaults.minimum_margin,
                ideal_margin=defaults.ideal_margin,
                cash_discount=defaults.cash_discount,
            )
            self._session.add(settings)
            self._session.flush()
            logger.info("pricing_settings_initialized", extra={"settings_id": str(settings.id)})
        return settings

    def active_tiers(self) -> list[PricingMarginTierModel]:
        return list(self._session.scalars(
            select(PricingMarginTierModel)
            .where(PricingMarginTierModel.is_active.is_(True))
            .order_by(PricingMarginTierModel.display_order, PricingMarginTierModel.min_revenue)
        ))

    def load_rules(self) -> tuple[PricingParameters, list[MarginTier]]:
        settings = self.get_or_initialize_settings()
        return settings.to_parameters(), [t.to_tier() for t in self.active_tiers()]

    def update_settings(
        self,
        *,
        tax_rate: Decimal | None = None,
        commission_rate: Decimal | None = None,
        minimum_margin: Decimal | None = None,
        ideal_margin: Decimal | None = None,
        cash_discount: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> PricingSettingsModel:
        """Validate, write, re-price the catalog, commit."""
        logger.info("pricing_settings_update_started", extra={"actor_id": str(actor_id) if actor_id else None})
        try:
            settings = self.get_or_initialize_settings()
            changes = {
                "tax_rate": tax_rate,
                "commission_rate": commission_rate,
                "minimum_margin": minimum_margin,
                "ideal_margin": ideal_margin,
                "cash_discount": cash_discount,
            }
            changes = {k: Decimal(v) for k, v in changes.items() if v is not None}
            for name, value in changes.items():
                if value < 0 or value > 100:
                    raise InvalidValueError(name, value, "must be between 0 and 100")

            current = settings.to_parameters()
            candidate = replace(current, **changes)
            validate_pricing(candidate, [t.to_tier() for t in self.active_tiers()])

            for name, value in changes.items():
                setattr(settings, name, value)
            settings.updated_by_id = actor_id
            self._session.flush()

            repriced = self.recalculate_product_prices()
            self._audit.record(
                self._session,
                "pricing_settings_updated",
                entity="pricing_settings",
                entity_id=settings.id,
                actor_id=actor_id,
                description="Pricing settings updated",
                details={"changes": {k: str(v) for k, v in changes.items()}, "repriced_products": repriced},
            )
            self._session.commit()
            logger.info("pricing_settings_updated", extra={"repriced_products": repriced})
            return settings
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    def save_tier(
        self,
        *,
        min_revenue: str,
        margin_rate: Decimal,
        minimum_margin_rate: Decimal,
        max_revenue: str | None = None,
        display_order: int = 0,
        tier_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> PricingMarginTierModel:
        """Create (``tier_id`` None) or update a margin tier, then re-price and commit."""
        try:
            if is_negative(min_revenue):
                raise InvalidValueError("min_revenue", min_revenue, "cannot be negative")
            if max_revenue is not None and compare_money(max_revenue, min_revenue) < 0:
                raise InvalidValueError("max_revenue", max_revenue, "must not be below min_revenue")
            if Decimal(minimum_margin_rate) > Decimal(margin_rate):
                raise InvalidValueError("minimum_margin_rate", minimum_margin_rate, "cannot exceed margin_rate")

            params = self.get_or_initialize_settings().to_parameters()
            candidate = MarginTier(
                min_revenue=to_money_string(min_revenue),
                max_revenue=to_money_string(max_revenue) if max_revenue is not None else None,
                margin_rate=Decimal(margin_rate),
                minimum_margin_rate=Decimal(minimum_margin_rate),
                display_order=display_order,
            )
            validate_pricing(params, [candidate])

            if tier_id is None:
                tier = PricingMarginTierModel(created_by_id=actor_id)
                self._session.add(tier)
            else:
                tier = get_or_raise(self._session, PricingMarginTierModel, tier_id, "pricing_margin_tier")
                tier.updated_by_id = actor_id
            tier.min_revenue = candidate.min_revenue
            tier.max_revenue = candidate.max_revenue
            tier.margin_rate = candidate.margin_rate
            tier.minimum_margin_rate = candidate.minimum_margin_rate
            tier.display_order = display_order
            self._session.flush()

            repriced = self.recalculate_product_prices()
            self._audit.record(
                self._session,
                "pricing_tier_saved",
                entity="pricing_margin_tier",
                entity_id=tier.id,
                actor_id=actor_id,
                description=f"Margin tier from {tier.min_revenue} saved",
                details={"repriced_products": repriced},
            )
            self._session.commit()
            return tier
        except Exception:
            self._session.rollback()
            raise

    def delete_tier(self, tier_id: UUID, actor_id: UUID | None = None) -> int:
        """Delete a tier and re-price; returns the number of re-priced products."""
        try:
            tier = get_or_raise(self._session, PricingMarginTierModel, tier_id, "pricing_margin_tier")
            self._session.delete(tier)
            self._session.flush()
            repriced = self.recalculate_product_prices()
            self._audit.record(
                self._session,
                "pricing_tier_deleted",
                entity="pricing_margin_tier",
                entity_id=tier_id,
                actor_id=actor_id,
                description="Margin tier deleted",
            )
            self._session.commit()
            return repriced
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Approval gate and re-pricing
    # ------------------------------------------------------------------

    def check_budget_needs_approval(self, revenue: str, items: Sequence[PricedItem]) -> list[FloorViolation]:
        """Items priced below the minimum for a budget whose total is ``revenue``."""
        params, tiers = self.load_rules()
        violations = find_items_below_floor(items, params, tiers, revenue)
        if violations:
            logger.info(
                "budget_items_below_minimum_price",
                extra={
                    "revenue": revenue,
                    "item_ids": [str(v.item_id) for v in violations],
                },
            )
        return violations

    def recalculate_product_prices(self) -> int:
        """
        Re-price every product with a positive cost to the ideal margin.

        The new base price never goes below the cost price.  Returns the
        number of products whose base price changed.
        """
        params, tiers = self.load_rules()
        changed = 0
        for product in self._catalog.products_with_cost():
            price = max_money(ideal_price(product.cost_price, params, tiers, CATALOG_REVENUE), product.cost_price)
            if compare_money(price, product.base_price) != 0:
                product.base_price = price
                changed += 1
        self._session.flush()
        logger.info("product_prices_recalculated", extra={"changed": changed})
        return changed
