"""
Sales Domain Models (``backoffice_modules.sales.models``).

Responsibility
--------------
Status enums for budgets, orders, production orders and dropshipped
items, plus the frozen input / result value objects of the sales
services.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* Every status enum aligns with the ``states`` of its workflow in
  ``workflows.py``.
* Money travels as 2-decimal strings, quantities as ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from backoffice_engines.totals import NO_DISCOUNT, Discount


class BudgetStatus(Enum):
    DRAFT = "draft"
    SENT = "sent"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    ADMIN_APPROVED = "admin_approved"
    NOT_APPROVED = "not_approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


CONVERTIBLE_BUDGET_STATUSES = frozenset({BudgetStatus.APPROVED.value, BudgetStatus.ADMIN_APPROVED.value})


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PRODUCTION = "production"
    READY = "ready"
    PARTIAL_SHIPPED = "partial_shipped"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ProductionStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    PRODUCTION = "production"
    QUALITY_CHECK = "quality_check"
    READY = "ready"
    PREPARING_SHIPMENT = "preparing_shipment"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PurchaseStatus(Enum):
    """Dropshipping purchase stage of one item."""
    PENDING = "pending"
    TO_BUY = "to_buy"
    PURCHASED = "purchased"
    IN_STORE = "in_store"


class DeliveryType(Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BudgetItemInput:
    """
    One line of a budget draft.

    ``producer_id`` defaults to the product's producer; ``internal=True``
    forces internal fulfilment (no production order).  When a
    customization option is selected and no value is given, the option's
    value is used.
    """
    product_id: UUID
    quantity: Decimal
    unit_price: str
    producer_id: UUID | None = None
    internal: bool = False
    notes: str | None = None
    customization_option_id: UUID | None = None
    item_customization_value: str | None = None
    item_customization_description: str | None = None
    general_customization_name: str | None = None
    general_customization_value: str = "0.00"
    discount: Discount = NO_DISCOUNT
    product_width: Decimal | None = None
    product_height: Decimal | None = None
    product_depth: Decimal | None = None


@dataclass(frozen=True)
class PaymentTerms:
    """Payment and shipping sub-record of a budget, copied onto the order."""
    payment_method_id: UUID | None = None
    shipping_method_id: UUID | None = None
    installments: int = 1
    down_payment: str = "0.00"
    remaining_amount: str = "0.00"
    shipping_cost: str = "0.00"


@dataclass(frozen=True)
class BudgetPhotoInput:
    photo_url: str
    description: str | None = None


@dataclass(frozen=True)
class BudgetDraft:
    """Everything needed to create or fully rewrite a budget."""
    vendor_id: UUID
    title: str
    contact_name: str
    items: tuple[BudgetItemInput, ...] = ()
    client_id: UUID | None = None
    branch_id: UUID | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    description: str | None = None
    valid_until: datetime | None = None
    delivery_deadline: datetime | None = None
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    discount: Discount = NO_DISCOUNT
    payment: PaymentTerms = field(default_factory=PaymentTerms)
    photos: tuple[BudgetPhotoInput, ...] = ()


@dataclass(frozen=True)
class OrderUpdate:
    """
    Partial order update; ``None`` leaves a field unchanged.

    ``items`` replaces every line and recomputes the total.
    ``total_value`` sets the total directly and is ignored when ``items``
    is given.
    """
    items: tuple[BudgetItemInput, ...] | None = None
    total_value: str | None = None
    description: str | None = None
    deadline: datetime | None = None
    shipping_address: str | None = None
    discount: Discount | None = None
    down_payment: str | None = None
    shipping_cost: str | None = None
    remaining_amount: str | None = None
    installments: int | None = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConversionResult:
    """What ``convert_budget_to_order`` produced."""
    order: Any
    production_orders: tuple[Any, ...]
    commissions: tuple[Any, ...]
    receivable: Any


@dataclass(frozen=True)
class ProductionSyncResult:
    created: tuple[UUID, ...] = ()
    cancelled: tuple[UUID, ...] = ()
    backfilled_items: int = 0
    pruned_items: int = 0


@dataclass(frozen=True)
class DispatchConflict:
    producer_id: UUID
    production_order_id: UUID
    status: str


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of sending an order to production."""
    created: tuple[UUID, ...] = ()
    promoted: tuple[UUID, ...] = ()
    backfilled_items: int = 0
    conflicts: tuple[DispatchConflict, ...] = ()
