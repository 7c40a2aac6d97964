"""
Sales ORM Models (``backoffice_modules.sales.orm``).

Responsibility
--------------
Budgets with their items, photos and payment terms; orders derived from
them; production orders per (order, producer) with their denormalized
item copies.

Guarantees
----------
* ``budget_items`` rows belong to a budget OR to an order: conversion
  copies the budget's lines into new rows owned by the order, so later
  order edits never rewrite the quote.
* One order per budget (unique ``orders.budget_id``).
* Money columns load as 2-decimal strings (``MoneyString``).
* ``client_id`` columns hold a client id or a user id (clients that only
  exist as a login) and therefore carry no foreign key.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_engines.fulfillment import FulfillmentItem
from backoffice_engines.pricing import PricedItem
from backoffice_engines.totals import Discount
from backoffice_kernel.db.base import MoneyString, TrackedBase
from backoffice_kernel.db.types import DocumentNumber, MoneyColumn, Quantity, Rate, StatusCode
from backoffice_kernel.utils.hashing import item_content_key


class _DiscountColumns:
    """Discount terms stored on budgets, orders and items."""

    discount_type: Mapped[StatusCode] = mapped_column(default="none")
    discount_percentage: Mapped[Rate] = mapped_column(default=Decimal(0))
    discount_value: Mapped[MoneyColumn]

    def to_discount(self) -> Discount:
        return Discount(
            discount_type=self.discount_type or "none",
            percentage=self.discount_percentage or Decimal(0),
            value=self.discount_value or "0.00",
        )

    def set_discount(self, discount: Discount) -> None:
        self.discount_type = discount.discount_type
        self.discount_percentage = Decimal(discount.percentage)
        self.discount_value = discount.value


class BudgetModel(_DiscountColumns, TrackedBase):
    """A quote.  Becomes immutable once converted."""

    __tablename__ = "budgets"

    __table_args__ = (
        Index("idx_budgets_status", "status"),
        Index("idx_budgets_vendor", "vendor_id"),
    )

    budget_number: Mapped[DocumentNumber] = mapped_column(unique=True)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"))
    branch_id: Mapped[UUID | None] = mapped_column(nullable=True)
    contact_name: Mapped[str] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    total_value: Mapped[MoneyColumn]
    status: Mapped[StatusCode] = mapped_column(default="draft")
    valid_until: Mapped[datetime | None] = mapped_column(nullable=True)
    delivery_deadline: Mapped[datetime | None] = mapped_column(nullable=True)
    delivery_type: Mapped[StatusCode] = mapped_column(default="delivery")
    admin_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    admin_approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    items: Mapped[list[BudgetItemModel]] = relationship(
        primaryjoin="BudgetModel.id == BudgetItemModel.budget_id",
        order_by="BudgetItemModel.position",
        cascade="all, delete-orphan",
    )
    photos: Mapped[list[BudgetPhotoModel]] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
    )
    payment_info: Mapped[BudgetPaymentInfoModel | None] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<BudgetModel {self.budget_number} ({self.status})>"


class BudgetItemModel(_DiscountColumns, TrackedBase):
    """One product line of a budget or of an order."""

    __tablename__ = "budget_items"

    __table_args__ = (
        Index("idx_budget_items_budget", "budget_id"),
        Index("idx_budget_items_order", "order_id"),
        Index("idx_budget_items_producer", "producer_id"),
    )

    budget_id: Mapped[UUID | None] = mapped_column(ForeignKey("budgets.id"), nullable=True)
    order_id: Mapped[UUID | None] = mapped_column(ForeignKey("orders.id"), nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    product_id: Mapped[UUID] = mapped_column(ForeignKey("products.id"))
    producer_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    quantity: Mapped[Quantity]
    unit_price: Mapped[MoneyColumn]
    total_price: Mapped[MoneyColumn]
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    has_item_customization: Mapped[bool] = mapped_column(Boolean, default=False)
    customization_option_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("customization_options.id"), nullable=True,
    )
    item_customization_value: Mapped[MoneyColumn]
    item_customization_description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    has_general_customization: Mapped[bool] = mapped_column(Boolean, default=False)
    general_customization_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    general_customization_value: Mapped[MoneyColumn]

    product_width: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    product_height: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    product_depth: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)

    purchase_status: Mapped[StatusCode] = mapped_column(default="pending")

    @property
    def content_key(self) -> str:
        return item_content_key(
            self.product_id,
            self.quantity,
            self.customization_option_id,
            self.item_customization_description,
        )

    def to_fulfillment_item(self) -> FulfillmentItem:
        return FulfillmentItem(
            item_id=self.id,
            product_id=self.product_id,
            producer_id=self.producer_id,
            quantity=Decimal(self.quantity),
            customization_option_id=self.customization_option_id,
            customization_description=self.item_customization_description,
        )

    def to_priced_item(self, cost_price: str | None) -> PricedItem:
        return PricedItem(
            item_id=self.id,
            cost_price=cost_price,
            unit_price=self.unit_price,
            quantity=Decimal(self.quantity),
            item_customization_value=self.item_customization_value,
            general_customization_value=self.general_customization_value,
        )

    def __repr__(self) -> str:
        return f"<BudgetItemModel {self.product_id} x{self.quantity} = {self.total_price}>"


class BudgetPhotoModel(TrackedBase):
    __tablename__ = "budget_photos"

    budget_id: Mapped[UUID] = mapped_column(ForeignKey("budgets.id"))
    photo_url: Mapped[str] = mapped_column(String(1000))
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    uploaded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    budget: Mapped[BudgetModel] = relationship(back_populates="photos")


class BudgetPaymentInfoModel(TrackedBase):
    """Payment and shipping terms of a budget."""

    __tablename__ = "budget_payment_info"

    budget_id: Mapped[UUID] = mapped_column(ForeignKey("budgets.id"), unique=True)
    payment_method_id: Mapped[UUID | None] = mapped_column(nullable=True)
    shipping_method_id: Mapped[UUID | None] = mapped_column(nullable=True)
    installments: Mapped[int] = mapped_column(Integer, default=1)
    down_payment: Mapped[MoneyColumn]
    remaining_amount: Mapped[MoneyColumn]
    shipping_cost: Mapped[MoneyColumn]

    budget: Mapped[BudgetModel] = relationship(back_populates="payment_info")


class OrderModel(_DiscountColumns, TrackedBase):
    """
    An order derived from a converted budget.

    ``paid_value`` is the sum of confirmed payments; on cancellation it is
    zeroed and the prior value moves to ``refund_amount``.
    """

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_vendor", "vendor_id"),
        Index("idx_orders_client", "client_id"),
    )

    order_number: Mapped[DocumentNumber] = mapped_column(unique=True)
    budget_id: Mapped[UUID | None] = mapped_column(ForeignKey("budgets.id"), unique=True, nullable=True)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"))
    branch_id: Mapped[UUID | None] = mapped_column(nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    delivery_type: Mapped[StatusCode] = mapped_column(default="delivery")

    total_value: Mapped[MoneyColumn]
    paid_value: Mapped[MoneyColumn]
    refund_amount: Mapped[MoneyColumn]
    status: Mapped[StatusCode] = mapped_column(default="pending")
    product_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    deadline: Mapped[datetime | None] = mapped_column(nullable=True)

    payment_method_id: Mapped[UUID | None] = mapped_column(nullable=True)
    shipping_method_id: Mapped[UUID | None] = mapped_column(nullable=True)
    installments: Mapped[int] = mapped_column(Integer, default=1)
    down_payment: Mapped[MoneyColumn]
    remaining_amount: Mapped[MoneyColumn]
    shipping_cost: Mapped[MoneyColumn]

    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    items: Mapped[list[BudgetItemModel]] = relationship(
        primaryjoin="OrderModel.id == BudgetItemModel.order_id",
        order_by="BudgetItemModel.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<OrderModel {self.order_number} {self.total_value} ({self.status})>"


class ProductionOrderModel(TrackedBase):
    """One order's work for one producer."""

    __tablename__ = "production_orders"

    __table_args__ = (
        Index("idx_production_orders_order", "order_id"),
        Index("idx_production_orders_producer", "producer_id"),
        Index("idx_production_orders_status", "status"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"))
    producer_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"))
    status: Mapped[StatusCode] = mapped_column(default="pending")
    deadline: Mapped[datetime | None] = mapped_column(nullable=True)
    delivery_deadline: Mapped[datetime | None] = mapped_column(nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    producer_value: Mapped[str | None] = mapped_column(MoneyString(), nullable=True)
    producer_value_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    producer_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    tracking_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_address: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    items: Mapped[list[ProductionOrderItemModel]] = relationship(
        back_populates="production_order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ProductionOrderModel {self.producer_id} ({self.status})>"


class ProductionOrderItemModel(TrackedBase):
    """Denormalized copy of an order item inside a production order."""

    __tablename__ = "production_order_items"

    production_order_id: Mapped[UUID] = mapped_column(ForeignKey("production_orders.id"))
    source_item_id: Mapped[UUID | None] = mapped_column(nullable=True)
    product_id: Mapped[UUID] = mapped_column(ForeignKey("products.id"))
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[Quantity]
    unit_price: Mapped[MoneyColumn]
    total_price: Mapped[MoneyColumn]
    customization_option_id: Mapped[UUID | None] = mapped_column(nullable=True)
    customization_description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    production_order: Mapped[ProductionOrderModel] = relationship(back_populates="items")

    @property
    def content_key(self) -> str:
        return item_content_key(
            self.product_id,
            self.quantity,
            self.customization_option_id,
            self.customization_description,
        )
