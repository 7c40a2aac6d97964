"""
Production Order Derivation (``backoffice_modules.sales.production``).

Responsibility
--------------
Keeps an order's production orders in step with its items: one live
production order per external producer, each holding copies of that
producer's items.

Architecture position
---------------------
**Modules layer** -- helper service used by ``BudgetService`` and
``OrderService``.  Flush only.  Grouping, diffing and content keys come
from ``backoffice_engines.fulfillment``.

Invariants enforced
-------------------
* At most one live (not cancelled / rejected) production order per
  (order, producer).
* Items without a producer never reach a production order.
* Missing items are found by content key, not list position, so a retry
  backfills instead of duplicating.
* A pending production order drops copies of lines that were edited or
  removed, so it mirrors its producer group exactly.
* Only ``pending`` production orders are ever cancelled by a sync; work
  already in progress is left alone.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_engines.fulfillment import (
    CANCELLED_STATES,
    ExistingProduction,
    group_items_by_producer,
    missing_items,
    plan_production_sync,
    surplus_keys,
)
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.logging_config import get_logger
from backoffice_modules._service_helpers import apply_transition
from backoffice_modules.catalog.orm import ProductModel
from backoffice_modules.sales.models import (
    DispatchConflict,
    DispatchResult,
    ProductionStatus,
    ProductionSyncResult,
)
from backoffice_modules.sales.orm import (
    BudgetItemModel,
    OrderModel,
    ProductionOrderItemModel,
    ProductionOrderModel,
)
from backoffice_modules.sales.workflows import PRODUCTION_WORKFLOW

logger = get_logger("modules.sales.production")


class ProductionService:
    """Derives production orders from order items."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def production_orders_for(self, order_id: UUID) -> list[ProductionOrderModel]:
        return list(self._session.scalars(
            select(ProductionOrderModel)
            .where(ProductionOrderModel.order_id == order_id)
            .order_by(ProductionOrderModel.created_at, ProductionOrderModel.producer_id)
        ))

    def live_production_orders(self, order_id: UUID) -> dict[UUID, ProductionOrderModel]:
        """Producer id -> its live production order."""
        return {
            po.producer_id: po
            for po in self.production_orders_for(order_id)
            if po.status not in CANCELLED_STATES
        }

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def create_production_order(
        self,
        order: OrderModel,
        producer_id: UUID,
        items: Sequence[BudgetItemModel],
        status: ProductionStatus = ProductionStatus.PENDING,
    ) -> ProductionOrderModel:
        production_order = ProductionOrderModel(
            order_id=order.id,
            producer_id=producer_id,
            status=status.value,
            deadline=order.deadline,
            shipping_address=order.shipping_address,
        )
        if status == ProductionStatus.ACCEPTED:
            production_order.accepted_at = self._clock.now()
        self._session.add(production_order)
        for item in items:
            production_order.items.append(self._copy_item(item))
        self._session.flush()
        logger.info(
            "production_order_created",
            extra={
                "order_id": str(order.id),
                "producer_id": str(producer_id),
                "production_order_id": str(production_order.id),
                "item_count": len(items),
                "production_status": production_order.status,
            },
        )
        return production_order

    def backfill_items(
        self,
        production_order: ProductionOrderModel,
        expected: Sequence[BudgetItemModel],
    ) -> int:
        """Copy the items of ``expected`` not yet in ``production_order``; returns how many."""
        by_id = {item.id: item for item in expected}
        missing = missing_items(
            [item.to_fulfillment_item() for item in expected],
            [existing.content_key for existing in production_order.items],
        )
        for fulfillment_item in missing:
            production_order.items.append(self._copy_item(by_id[fulfillment_item.item_id]))
        if missing:
            self._session.flush()
            logger.info(
                "production_items_backfilled",
                extra={
                    "production_order_id": str(production_order.id),
                    "backfilled": len(missing),
                },
            )
        return len(missing)

    def prune_stale_items(
        self,
        production_order: ProductionOrderModel,
        expected: Sequence[BudgetItemModel],
    ) -> int:
        """Drop copies of edited or removed lines from a pending production order."""
        if production_order.status != ProductionStatus.PENDING.value:
            return 0
        stale = surplus_keys(
            [item.to_fulfillment_item() for item in expected],
            [existing.content_key for existing in production_order.items],
        )
        removed = 0
        for existing in list(production_order.items):
            if stale[existing.content_key] > 0:
                stale[existing.content_key] -= 1
                production_order.items.remove(existing)
                removed += 1
        if removed:
            self._session.flush()
            logger.info(
                "production_items_pruned",
                extra={
                    "production_order_id": str(production_order.id),
                    "pruned": removed,
                },
            )
        return removed

    def _copy_item(self, item: BudgetItemModel) -> ProductionOrderItemModel:
        product = self._session.get(ProductModel, item.product_id)
        return ProductionOrderItemModel(
            source_item_id=item.id,
            product_id=item.product_id,
            product_name=product.name if product is not None else None,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            customization_option_id=item.customization_option_id,
            customization_description=item.item_customization_description,
            notes=item.notes,
        )

    def _groups(self, order: OrderModel) -> dict[UUID, list[BudgetItemModel]]:
        by_id = {item.id: item for item in order.items}
        groups = group_items_by_producer(item.to_fulfillment_item() for item in order.items)
        return {
            producer_id: [by_id[f.item_id] for f in fulfillment_items]
            for producer_id, fulfillment_items in groups.items()
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def sync_production_orders(self, order: OrderModel) -> ProductionSyncResult:
        """
        Diff producer groups against the order's production orders.

        New producers get a ``pending`` production order, existing ones are
        backfilled, and pending production orders whose producer left the
        order are cancelled.
        """
        groups = self._groups(order)
        existing = self.production_orders_for(order.id)
        plan = plan_production_sync(
            {pid: [i.to_fulfillment_item() for i in items] for pid, items in groups.items()},
            [ExistingProduction(po.id, po.producer_id, po.status) for po in existing],
        )
        live = self.live_production_orders(order.id)

        created = tuple(
            self.create_production_order(order, producer_id, groups[producer_id]).id
            for producer_id in plan.create_for_producers
        )
        pruned = sum(
            self.prune_stale_items(live[producer_id], groups[producer_id])
            for producer_id in plan.backfill_for_producers
        )
        backfilled = sum(
            self.backfill_items(live[producer_id], groups[producer_id])
            for producer_id in plan.backfill_for_producers
        )
        by_id = {po.id: po for po in existing}
        for production_order_id in plan.cancel_production_orders:
            apply_transition(PRODUCTION_WORKFLOW, by_id[production_order_id], ProductionStatus.CANCELLED)
        if plan.left_in_progress:
            logger.warning(
                "production_orders_left_in_progress",
                extra={
                    "order_id": str(order.id),
                    "production_order_ids": [str(p) for p in plan.left_in_progress],
                },
            )
        self._session.flush()
        result = ProductionSyncResult(
            created=created,
            cancelled=plan.cancel_production_orders,
            backfilled_items=backfilled,
            pruned_items=pruned,
        )
        logger.info(
            "production_orders_synced",
            extra={
                "order_id": str(order.id),
                "created_count": len(result.created),
                "cancelled": len(result.cancelled),
                "backfilled": backfilled,
                "pruned": pruned,
            },
        )
        return result

    def dispatch(self, order: OrderModel) -> DispatchResult:
        """
        Send every producer group to production.

        Pending production orders are promoted to ``accepted`` and
        backfilled; producers without one get a new ``accepted`` order.
        A producer whose production order already left pending is
        reported as a conflict, after its missing items are backfilled.
        """
        groups = self._groups(order)
        live = self.live_production_orders(order.id)
        now = self._clock.now()
        created: list[UUID] = []
        promoted: list[UUID] = []
        conflicts: list[DispatchConflict] = []
        backfilled = 0
        for producer_id, items in groups.items():
            production_order = live.get(producer_id)
            if production_order is None:
                created.append(
                    self.create_production_order(order, producer_id, items, ProductionStatus.ACCEPTED).id
                )
                continue
            self.prune_stale_items(production_order, items)
            backfilled += self.backfill_items(production_order, items)
            if production_order.status == ProductionStatus.PENDING.value:
                apply_transition(PRODUCTION_WORKFLOW, production_order, ProductionStatus.ACCEPTED)
                production_order.accepted_at = now
                promoted.append(production_order.id)
            else:
                conflicts.append(DispatchConflict(producer_id, production_order.id, production_order.status))
        self._session.flush()
        logger.info(
            "order_dispatched_to_production",
            extra={
                "order_id": str(order.id),
                "created_count": len(created),
                "promoted": len(promoted),
                "backfilled": backfilled,
                "conflicts": len(conflicts),
            },
        )
        return DispatchResult(
            created=tuple(created),
            promoted=tuple(promoted),
            backfilled_items=backfilled,
            conflicts=tuple(conflicts),
        )

    def cancel_all(self, order_id: UUID) -> int:
        """Cancel every production order of an order that can still be cancelled."""
        cancelled = 0
        for production_order in self.production_orders_for(order_id):
            if PRODUCTION_WORKFLOW.can_transition(production_order.status, ProductionStatus.CANCELLED):
                apply_transition(PRODUCTION_WORKFLOW, production_order, ProductionStatus.CANCELLED)
                cancelled += 1
        self._session.flush()
        logger.info("production_orders_cancelled", extra={"order_id": str(order_id), "count": cancelled})
        return cancelled
