"""
Tests for order mutations and their cascade.

Verifies:
- A total change recomputes commissions and resyncs the receivable
- Replacing items re-derives production orders
- Manual payments move paid value and the receivable status
- Cancellation unwinds commissions, production, receivable and opens a refund
"""

from decimal import Decimal

import pytest

from backoffice_kernel.exceptions import (
    IllegalTransitionError,
    InvalidValueError,
    OrderCancelledError,
    OrderNotCancellableError,
)
from backoffice_modules.sales.hooks import DEFAULT_ORDER_HOOKS
from backoffice_modules.sales.models import OrderUpdate
from backoffice_modules.sales.service import OrderService

from tests.modules.builders import item


def _amounts(commission_service, order_id):
    return [(c.type, c.amount) for c in commission_service.commissions_for_order(order_id)]


class TestUpdateOrder:

    def test_total_change_recomputes_commissions(self, order_service, commission_service, order):
        order_service.update_order(order.id, OrderUpdate(total_value="2000.00"))
        assert _amounts(commission_service, order.id) == [
            ("vendor", "200.00"), ("partner", "150.00"), ("partner", "150.00"),
        ]

    def test_commission_ids_preserved(self, order_service, commission_service, order):
        before = [c.id for c in commission_service.commissions_for_order(order.id)]
        order_service.update_order(order.id, OrderUpdate(total_value="900.00"))
        assert [c.id for c in commission_service.commissions_for_order(order.id)] == before

    def test_receivable_follows_total(self, order_service, receivable_service, order):
        order_service.update_order(order.id, OrderUpdate(total_value="2000.00"))
        assert receivable_service.get_receivable(order.id).amount == "2000.00"

    def test_non_total_fields(self, order_service, commission_service, order):
        before = _amounts(commission_service, order.id)
        updated = order_service.update_order(
            order.id, OrderUpdate(description="Rush", shipping_address="Rua Dois, 5", installments=3),
        )
        assert (updated.description, updated.shipping_address, updated.installments) == ("Rush", "Rua Dois, 5", 3)
        assert _amounts(commission_service, order.id) == before

    def test_item_change_cancels_dropped_producer(
        self, order_service, production_service, order, mug, producer_a, producer_b,
    ):
        updated = order_service.update_order(order.id, OrderUpdate(items=(item(mug, 10, "100.00"),)))
        assert updated.total_value == "1000.00"
        statuses = {po.producer_id: po.status for po in production_service.production_orders_for(order.id)}
        assert statuses == {producer_a.id: "pending", producer_b.id: "cancelled"}

    def test_item_change_adds_producer(self, order_service, production_service, order, mug, shirt, producer_b):
        order_service.update_order(order.id, OrderUpdate(items=(item(mug, 10, "100.00"),)))
        order_service.update_order(order.id, OrderUpdate(items=(item(mug, 10, "100.00"), item(shirt, 5, "40.00"))))
        live = production_service.live_production_orders(order.id)
        assert live[producer_b.id].status == "pending"
        assert len(production_service.production_orders_for(order.id)) == 3

    def test_quantity_change_replaces_pending_copy(
        self, order_service, production_service, order, mug, shirt, producer_a,
    ):
        order_service.update_order(order.id, OrderUpdate(items=(item(mug, 20, "100.00"), item(shirt, 20, "40.00"))))
        mug_po = production_service.live_production_orders(order.id)[producer_a.id]
        assert [i.quantity for i in mug_po.items] == [Decimal(20)]

    def test_dispatched_copy_is_left_alone(
        self, order_service, production_service, order, mug, shirt, producer_a,
    ):
        order_service.send_to_production(order.id)
        order_service.update_order(order.id, OrderUpdate(items=(item(mug, 20, "100.00"), item(shirt, 20, "40.00"))))
        mug_po = production_service.live_production_orders(order.id)[producer_a.id]
        assert sorted(i.quantity for i in mug_po.items) == [Decimal(10), Decimal(20)]

    def test_negative_total_rejected(self, order_service, order):
        with pytest.raises(InvalidValueError):
            order_service.update_order(order.id, OrderUpdate(total_value="-1.00"))
        assert order_service.get_order(order.id).total_value == "1800.00"


class TestPayments:

    def test_partial_payment(self, order_service, receivable_service, order):
        order_service.record_payment(order.id, "500.00", method="pix")
        assert order_service.get_order(order.id).paid_value == "500.00"
        receivable = receivable_service.get_receivable(order.id)
        assert (receivable.received_amount, receivable.status) == ("500.00", "partial")

    def test_full_payment(self, order_service, receivable_service, order):
        order_service.record_payment(order.id, "1000.00")
        order_service.record_payment(order.id, "800.00")
        assert receivable_service.get_receivable(order.id).status == "paid"

    def test_overpayment_logged(self, order_service, order, captured_logs):
        order_service.record_payment(order.id, "2000.00")
        assert order_service.get_order(order.id).paid_value == "2000.00"
        assert any(r["message"] == "order_overpaid" for r in captured_logs())

    @pytest.mark.parametrize("amount,method", [("0.00", "pix"), ("10.00", "barter")])
    def test_invalid_payment(self, order_service, order, amount, method):
        with pytest.raises(InvalidValueError):
            order_service.record_payment(order.id, amount, method=method)


class TestCancelOrder:

    def test_cascade(
        self, order_service, commission_service, production_service,
        receivable_service, payables_service, order,
    ):
        order_service.record_payment(order.id, "500.00")
        cancelled = order_service.cancel_order(order.id, reason="client gave up")

        assert cancelled.status == "cancelled"
        assert (cancelled.paid_value, cancelled.refund_amount) == ("0.00", "500.00")
        assert cancelled.cancellation_reason == "client gave up"
        assert {(c.status, c.amount) for c in commission_service.commissions_for_order(order.id)} == {
            ("cancelled", "0.00"),
        }
        assert {po.status for po in production_service.production_orders_for(order.id)} == {"cancelled"}
        assert receivable_service.get_receivable(order.id).status == "cancelled"
        (refund,) = payables_service.refunds_for_order(order.id)
        assert (refund.amount, refund.status, refund.client_id) == ("500.00", "pending", order.client_id)

    def test_unpaid_order_has_no_refund(self, order_service, payables_service, order):
        order_service.cancel_order(order.id)
        assert payables_service.refunds_for_order(order.id) == []

    def test_idempotent(self, order_service, payables_service, order, audit_sink):
        order_service.record_payment(order.id, "500.00")
        order_service.cancel_order(order.id)
        order_service.cancel_order(order.id)
        assert len(payables_service.refunds_for_order(order.id)) == 1
        assert audit_sink.actions().count("order_cancelled") == 1

    def test_status_cancelled_delegates(self, order_service, order):
        assert order_service.update_order_status(order.id, "cancelled").status == "cancelled"

    def test_cancelled_order_refuses_mutations(self, order_service, order):
        order_service.cancel_order(order.id)
        with pytest.raises(OrderCancelledError):
            order_service.record_payment(order.id, "10.00")
        with pytest.raises(OrderCancelledError):
            order_service.update_order(order.id, OrderUpdate(total_value="10.00"))

    def test_delivered_order_not_cancellable(self, order_service, order, deliver_everything):
        deliver_everything(order)
        with pytest.raises(OrderNotCancellableError):
            order_service.cancel_order(order.id)
        assert order_service.get_order(order.id).status == "delivered"


class TestStatus:

    def test_confirm(self, order_service, order):
        assert order_service.update_order_status(order.id, "confirmed").status == "confirmed"

    def test_shipped_requires_production(self, order_service, order):
        with pytest.raises(IllegalTransitionError):
            order_service.update_order_status(order.id, "shipped")
        assert order_service.get_order(order.id).status == "pending"


class TestHooks:

    def test_custom_hook_list(
        self, session, deterministic_clock, audit, commission_service,
        receivable_service, payables_service, production_service, order,
    ):
        seen = []
        service = OrderService(
            session,
            clock=deterministic_clock,
            audit=audit,
            commissions=commission_service,
            receivables=receivable_service,
            payables=payables_service,
            production=production_service,
            hooks=(lambda ctx, change: seen.append((change.previous_total, change.total_changed)),),
        )
        service.update_order(order.id, OrderUpdate(total_value="2000.00"))
        assert seen == [("1800.00", True)]
        assert receivable_service.get_receivable(order.id).amount == "1800.00"

    def test_failing_hook_rolls_back(
        self, session, deterministic_clock, audit, commission_service,
        receivable_service, payables_service, production_service, order, audit_sink,
    ):
        def explode(ctx, change):
            raise RuntimeError("hook failed")

        service = OrderService(
            session,
            clock=deterministic_clock,
            audit=audit,
            commissions=commission_service,
            receivables=receivable_service,
            payables=payables_service,
            production=production_service,
            hooks=DEFAULT_ORDER_HOOKS + (explode,),
        )
        with pytest.raises(RuntimeError):
            service.update_order(order.id, OrderUpdate(total_value="2000.00"))
        assert service.get_order(order.id).total_value == "1800.00"
        assert "order_updated" not in audit_sink.actions()
