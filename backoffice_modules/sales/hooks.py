"""
Order Update Cascade (``backoffice_modules.sales.hooks``).

Every order mutation ends by running an explicit list of hooks over an
``OrderChange``.  Each hook owns one cascade effect and can be tested on
its own:

* ``recalculate_commissions`` -- total changed on a live order
* ``sync_receivable``         -- always, for live orders
* ``sync_production``         -- items changed on a live order
* ``confirm_delivery``        -- order reached ``delivered``

Hooks run inside the caller's transaction (before commit), so the
cascade is atomic with the change that triggered it.  Hooks flush only.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from uuid import UUID

from backoffice_kernel.domain.money import compare_money
from backoffice_kernel.logging_config import get_logger
from backoffice_modules.ar.service import ReceivableService
from backoffice_modules.commissions.service import CommissionService
from backoffice_modules.sales.models import OrderStatus
from backoffice_modules.sales.orm import OrderModel
from backoffice_modules.sales.production import ProductionService

logger = get_logger("modules.sales.hooks")


@dataclass(frozen=True)
class OrderChange:
    """An order after a mutation, with the values it had before."""
    order: OrderModel
    previous_total: str
    previous_status: str
    items_changed: bool = False
    actor_id: UUID | None = None

    @property
    def total_changed(self) -> bool:
        return compare_money(self.previous_total, self.order.total_value) != 0

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.order.status

    @property
    def is_live(self) -> bool:
        return self.order.status != OrderStatus.CANCELLED.value


@dataclass(frozen=True)
class HookContext:
    commissions: CommissionService
    receivables: ReceivableService
    production: ProductionService


OrderHook = Callable[[HookContext, OrderChange], None]


def recalculate_commissions(ctx: HookContext, change: OrderChange) -> None:
    if change.is_live and change.total_changed:
        ctx.commissions.recalculate_commissions_for_order(change.order)


def sync_receivable(ctx: HookContext, change: OrderChange) -> None:
    if change.is_live:
        ctx.receivables.sync_receivable(change.order)


def sync_production(ctx: HookContext, change: OrderChange) -> None:
    if change.is_live and change.items_changed:
        ctx.production.sync_production_orders(change.order)


def confirm_delivery(ctx: HookContext, change: OrderChange) -> None:
    if change.status_changed and change.order.status == OrderStatus.DELIVERED.value:
        ctx.commissions.update_commissions_by_order_status(change.order.id, change.order.status)


DEFAULT_ORDER_HOOKS: tuple[OrderHook, ...] = (
    recalculate_commissions,
    sync_receivable,
    sync_production,
    confirm_delivery,
)


def run_order_hooks(hooks: Sequence[OrderHook], ctx: HookContext, change: OrderChange) -> None:
    """Run ``hooks`` in order; a failing hook propagates and the caller rolls back."""
    for hook in hooks:
        hook(ctx, change)
    logger.debug(
        "order_hooks_completed",
        extra={
            "order_id": str(change.order.id),
            "hook_count": len(hooks),
            "total_changed": change.total_changed,
            "items_changed": change.items_changed,
        },
    )
