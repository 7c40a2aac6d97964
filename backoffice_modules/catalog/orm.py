"""
Catalog ORM Models (``backoffice_modules.catalog.orm``).

Products (own catalog and supplier-imported) and customization options.

Guarantees:
    - ``external_code`` (supplier SKU) is unique when present, so a
      re-imported supplier catalog updates rows instead of duplicating them.
    - ``cost_price`` is nullable: products without a known cost are never
      checked against the minimum price and never bulk re-priced.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import MoneyString, TrackedBase
from backoffice_kernel.db.types import MoneyColumn, Quantity


class ProductModel(TrackedBase):
    """ORM model for sellable products."""

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_products_producer_id", "producer_id"),
        Index("idx_products_category", "category"),
    )

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cost_price: Mapped[str | None] = mapped_column(MoneyString(), nullable=True)
    base_price: Mapped[MoneyColumn]
    producer_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Supplier catalog fields
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    external_code: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    composite_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    friendly_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    site_link: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    image_link: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    primary_color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    secondary_color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    weight: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    height: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    width: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    depth: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    available_quantity: Mapped[int | None] = mapped_column(nullable=True)
    stock_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    ncm: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<ProductModel {self.name} base={self.base_price} cost={self.cost_price}>"


class CustomizationOptionModel(TrackedBase):
    """
    A selectable customization (engraving, printing, ...).

    ``min_quantity`` is the smallest item quantity the option can be
    ordered for.
    """

    __tablename__ = "customization_options"

    name: Mapped[str] = mapped_column(String(255))
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    value: Mapped[MoneyColumn]
    min_quantity: Mapped[Quantity] = mapped_column(default=Decimal(1))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
