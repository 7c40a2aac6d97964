"""
Catalog Service (``backoffice_modules.catalog.service``).

Product and customization-option creation, lookups, and the supplier
upsert used by the catalog import.  Helper service: flushes, never commits.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.money import is_negative, is_positive, to_money_string
from backoffice_kernel.exceptions import InvalidValueError, MissingFieldError
from backoffice_kernel.logging_config import get_logger
from backoffice_modules._service_helpers import get_or_raise
from backoffice_modules.catalog.orm import CustomizationOptionModel, ProductModel

logger = get_logger("modules.catalog.service")

# Supplier columns a re-import may overwrite on an existing product
SUPPLIER_FIELDS = (
    "name", "description", "category", "base_price", "external_id",
    "composite_code", "friendly_code", "site_link", "image_link",
    "primary_color", "secondary_color", "weight", "height", "width",
    "depth", "available_quantity", "stock_status", "ncm",
)


class CatalogService:
    """Products and customization options."""

    def __init__(self, session: Session):
        self._session = session

    def create_product(
        self,
        name: str,
        *,
        base_price: str = "0.00",
        cost_price: str | None = None,
        producer_id: UUID | None = None,
        category: str | None = None,
        description: str | None = None,
        **supplier_fields: Any,
    ) -> ProductModel:
        if not name:
            raise MissingFieldError("name", "product")
        if is_negative(base_price):
            raise InvalidValueError("base_price", base_price, "cannot be negative")
        if cost_price is not None and is_negative(cost_price):
            raise InvalidValueError("cost_price", cost_price, "cannot be negative")
        product = ProductModel(
            name=name,
            base_price=to_money_string(base_price),
            cost_price=to_money_string(cost_price) if cost_price is not None else None,
            producer_id=producer_id,
            category=category,
            description=description,
            **supplier_fields,
        )
        self._session.add(product)
        self._session.flush()
        return product

    def get_product(self, product_id: UUID) -> ProductModel:
        return get_or_raise(self._session, ProductModel, product_id, "product")

    def products_with_cost(self) -> list[ProductModel]:
        """Products with a positive cost price, the ones bulk re-pricing touches."""
        products = self._session.scalars(
            select(ProductModel).where(ProductModel.cost_price.is_not(None)).order_by(ProductModel.name)
        )
        return [p for p in products if is_positive(p.cost_price)]

    def upsert_supplier_product(
        self,
        fields: dict[str, Any],
        producer_id: UUID | None = None,
    ) -> tuple[ProductModel, bool]:
        """
        Insert or update a product keyed by its supplier code.

        Returns ``(product, created)``.  Rows without ``external_code``
        are always inserted.
        """
        code = fields.get("external_code")
        existing = None
        if code:
            existing = self._session.scalar(select(ProductModel).where(ProductModel.external_code == code))
        if existing is None:
            return self.create_product(producer_id=producer_id, **fields), True
        for key in SUPPLIER_FIELDS:
            if key in fields and fields[key] is not None:
                setattr(existing, key, fields[key])
        if producer_id is not None:
            existing.producer_id = producer_id
        self._session.flush()
        return existing, False

    # ------------------------------------------------------------------
    # Customization options
    # ------------------------------------------------------------------

    def create_customization_option(
        self,
        name: str,
        value: str,
        *,
        min_quantity: Decimal = Decimal(1),
        category: str | None = None,
    ) -> CustomizationOptionModel:
        if not name:
            raise MissingFieldError("name", "customization_option")
        if Decimal(min_quantity) < 0:
            raise InvalidValueError("min_quantity", min_quantity, "cannot be negative")
        option = CustomizationOptionModel(
            name=name,
            value=to_money_string(value),
            min_quantity=Decimal(min_quantity),
            category=category,
        )
        self._session.add(option)
        self._session.flush()
        return option

    def get_customization_option(self, option_id: UUID) -> CustomizationOptionModel:
        return get_or_raise(self._session, CustomizationOptionModel, option_id, "customization_option")
