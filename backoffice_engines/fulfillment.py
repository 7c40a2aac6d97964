"""
Module: backoffice_engines.fulfillment
Responsibility:
    Pure helpers for the order -> production-order derivation: grouping
    line items by producer, fingerprinting items to find which ones are
    already represented in a production order, diffing producer groups
    against existing production orders, rolling production statuses up
    into the parent order status, and deriving the order-level purchase
    status of dropshipped items.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Statuses are plain
    strings here; the sales module owns the enums and transition tables.

Invariants enforced:
    - Items without a producer are internal fulfilment and never appear
      in a producer group.
    - ``missing_items`` compares by content key (product + quantity +
      customization), not by list position, and respects multiplicity.
    - ``surplus_keys`` is the reverse multiset difference: copies whose
      source line was edited or removed.
    - Only pending production orders are ever proposed for cancellation.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from backoffice_kernel.utils.hashing import item_content_key

CANCELLED_STATES = frozenset({"cancelled", "rejected"})
SHIPPED_OR_LATER = frozenset({"shipped", "delivered", "completed"})
DELIVERED_STATES = frozenset({"delivered", "completed"})
READY_OR_LATER = frozenset({"ready", "preparing_shipment"}) | SHIPPED_OR_LATER


@dataclass(frozen=True)
class FulfillmentItem:
    """Fulfilment-relevant view of a budget/order line."""
    item_id: UUID
    product_id: UUID
    producer_id: UUID | None
    quantity: Decimal
    customization_option_id: UUID | None = None
    customization_description: str | None = None

    @property
    def content_key(self) -> str:
        return item_content_key(
            self.product_id,
            self.quantity,
            self.customization_option_id,
            self.customization_description,
        )


@dataclass(frozen=True)
class ExistingProduction:
    production_order_id: UUID
    producer_id: UUID
    status: str


@dataclass(frozen=True)
class ProductionSyncPlan:
    """What has to change so production orders match the producer groups."""
    create_for_producers: tuple[UUID, ...] = ()
    backfill_for_producers: tuple[UUID, ...] = ()
    cancel_production_orders: tuple[UUID, ...] = ()
    left_in_progress: tuple[UUID, ...] = ()


def group_items_by_producer(items: Iterable[FulfillmentItem]) -> dict[UUID, list[FulfillmentItem]]:
    """Producer id -> its items, in first-seen order.  Internal items are dropped."""
    groups: dict[UUID, list[FulfillmentItem]] = {}
    for item in items:
        if item.producer_id is None:
            continue
        groups.setdefault(item.producer_id, []).append(item)
    return groups


def missing_items(expected: Sequence[FulfillmentItem], existing_keys: Iterable[str]) -> list[FulfillmentItem]:
    """Items of ``expected`` not yet represented among ``existing_keys``."""
    available = Counter(existing_keys)
    missing = []
    for item in expected:
        key = item.content_key
        if available[key] > 0:
            available[key] -= 1
        else:
            missing.append(item)
    return missing


def surplus_keys(expected: Sequence[FulfillmentItem], existing_keys: Iterable[str]) -> Counter:
    """Content keys in ``existing_keys`` beyond what ``expected`` still holds, with counts."""
    return Counter(existing_keys) - Counter(item.content_key for item in expected)


def plan_production_sync(
    groups: dict[UUID, list[FulfillmentItem]],
    existing: Sequence[ExistingProduction],
) -> ProductionSyncPlan:
    """
    Diff producer groups against existing production orders.

    - producer group with no live production order -> create
    - producer group with a live production order -> backfill missing items
    - live pending production order whose producer left the order -> cancel
    - live non-pending production order whose producer left -> left alone
    """
    live = [p for p in existing if p.status not in CANCELLED_STATES]
    live_producers = {p.producer_id for p in live}

    create = tuple(pid for pid in groups if pid not in live_producers)
    backfill = tuple(pid for pid in groups if pid in live_producers)
    cancel = tuple(p.production_order_id for p in live if p.producer_id not in groups and p.status == "pending")
    untouched = tuple(p.production_order_id for p in live if p.producer_id not in groups and p.status != "pending")
    return ProductionSyncPlan(
        create_for_producers=create,
        backfill_for_producers=backfill,
        cancel_production_orders=cancel,
        left_in_progress=untouched,
    )


def aggregate_order_status(current_status: str, production_statuses: Sequence[str]) -> str | None:
    """
    Order status implied by its production orders, or None for "no change".

    Cancelled and rejected production orders do not count.
    - every production delivered/completed        -> delivered
    - every production shipped or later            -> shipped
    - some production shipped or later             -> partial_shipped
    - every production ready or later, order in production -> ready
    """
    active = [s for s in production_statuses if s not in CANCELLED_STATES]
    if not active:
        return None
    if all(s in DELIVERED_STATES for s in active):
        target = "delivered"
    elif all(s in SHIPPED_OR_LATER for s in active):
        target = "shipped"
    elif any(s in SHIPPED_OR_LATER for s in active):
        target = "partial_shipped"
    elif all(s in READY_OR_LATER for s in active) and current_status == "production":
        target = "ready"
    else:
        return None
    return None if target == current_status else target


PURCHASE_STAGES = ("pending", "to_buy", "purchased", "in_store")


def derive_product_status(purchase_statuses: Sequence[str]) -> str | None:
    """
    Order-level dropshipping status: the least advanced item stage.

    ``pending`` items count as ``to_buy``.  No items -> None.
    """
    if not purchase_statuses:
        return None
    least = min(PURCHASE_STAGES.index(s) for s in purchase_statuses)
    return PURCHASE_STAGES[max(least, 1)]
