"""
Tests for production dispatch, the status roll-up and dropshipping stages.

Verifies:
- Dispatch promotes pending production orders and moves the order into production
- A second dispatch reports the conflict after committing backfills
- Production progress rolls up into the order status
- Delivery confirms vendor commissions
- Producer values and producer payments
"""

import pytest

from backoffice_kernel.exceptions import (
    IllegalTransitionError,
    ProducerValueLockedError,
    ProductionAlreadyDispatchedError,
)

from tests.modules.conftest import PATH_TO_DELIVERED


@pytest.fixture
def production_orders(production_service, order, producer_a, producer_b):
    by_producer = {po.producer_id: po for po in production_service.production_orders_for(order.id)}
    return by_producer[producer_a.id], by_producer[producer_b.id]


class TestDispatch:

    def test_promotes_pending(self, order_service, production_service, order):
        result = order_service.send_to_production(order.id)
        assert len(result.promoted) == 2
        assert result.created == ()
        assert result.conflicts == ()
        assert {po.status for po in production_service.production_orders_for(order.id)} == {"accepted"}
        assert order_service.get_order(order.id).status == "production"

    def test_dispatch_logs_counts(self, order_service, order, captured_logs):
        order_service.send_to_production(order.id)
        (record,) = [r for r in captured_logs() if r["message"] == "order_dispatched_to_production"]
        assert (record["created_count"], record["promoted"], record["conflicts"]) == (0, 2, 0)
        assert record["order_id"] == str(order.id)

    def test_second_dispatch_conflicts(self, order_service, order, audit_sink):
        order_service.send_to_production(order.id)
        with pytest.raises(ProductionAlreadyDispatchedError) as excinfo:
            order_service.send_to_production(order.id)
        assert excinfo.value.status == "accepted"
        assert excinfo.value.order_id == str(order.id)
        assert audit_sink.actions().count("order_sent_to_production") == 2

    def test_creates_missing_production_order(self, order_service, production_service, order, production_orders):
        _, shirt_po = production_orders
        order_service.update_production_status(shirt_po.id, "rejected")
        result = order_service.send_to_production(order.id)
        assert len(result.created) == 1
        assert len(result.promoted) == 1
        assert len(production_service.production_orders_for(order.id)) == 3


class TestRollUp:

    def test_partial_then_full_shipment(self, order_service, order, production_orders, advance):
        mug_po, shirt_po = production_orders
        order_service.send_to_production(order.id)
        advance(mug_po, "production", "ready", "shipped")
        assert order_service.get_order(order.id).status == "partial_shipped"
        advance(shirt_po, "production", "ready", "shipped")
        assert order_service.get_order(order.id).status == "shipped"

    def test_all_ready(self, order_service, order, production_orders, advance):
        order_service.send_to_production(order.id)
        for po in production_orders:
            advance(po, "production", "ready")
        assert order_service.get_order(order.id).status == "ready"

    def test_delivery_confirms_vendor_commission(
        self, order_service, commission_service, order, deliver_everything,
    ):
        delivered = deliver_everything(order)
        assert delivered.status == "delivered"
        assert {c.status for c in commission_service.commissions_for_order(order.id)} == {"confirmed"}

    def test_shipping_stamps(self, order_service, order, production_orders, advance, deterministic_clock):
        mug_po, _ = production_orders
        order_service.send_to_production(order.id)
        advance(mug_po, "production", "ready")
        shipped = order_service.update_production_status(mug_po.id, "shipped", tracking_code="BR123")
        assert shipped.tracking_code == "BR123"
        assert shipped.shipped_at == deterministic_clock.now()

    def test_illegal_production_step(self, order_service, production_orders):
        mug_po, _ = production_orders
        with pytest.raises(IllegalTransitionError):
            order_service.update_production_status(mug_po.id, "shipped")

    def test_rejected_production_does_not_block_delivery(
        self, order_service, production_service, order, production_orders, producer_b, advance,
    ):
        mug_po, shirt_po = production_orders
        order_service.update_production_status(shirt_po.id, "rejected")
        order_service.send_to_production(order.id)
        replacement = production_service.live_production_orders(order.id)[producer_b.id]
        assert replacement.id != shirt_po.id
        advance(mug_po, *PATH_TO_DELIVERED)
        assert order_service.get_order(order.id).status == "partial_shipped"
        advance(replacement, *PATH_TO_DELIVERED)
        assert order_service.get_order(order.id).status == "delivered"


class TestProducerValue:

    def test_locked_value_cannot_change(self, order_service, production_orders):
        mug_po, _ = production_orders
        updated = order_service.set_producer_value(mug_po.id, "420.00", lock=True, notes="quote #12")
        assert (updated.producer_value, updated.producer_value_locked) == ("420.00", True)
        with pytest.raises(ProducerValueLockedError):
            order_service.set_producer_value(mug_po.id, "10.00")

    def test_ready_opens_producer_payment(self, order_service, payables_service, order, production_orders, advance):
        mug_po, shirt_po = production_orders
        order_service.set_producer_value(mug_po.id, "420.00")
        order_service.send_to_production(order.id)
        advance(mug_po, "production", "ready")
        advance(shirt_po, "production", "ready")
        payment = payables_service.producer_payment_for(mug_po.id)
        assert (payment.amount, payment.status, payment.order_id) == ("420.00", "pending", order.id)
        assert payables_service.producer_payment_for(shirt_po.id) is None

    def test_value_change_updates_pending_payment(self, order_service, payables_service, order, production_orders, advance):
        mug_po, _ = production_orders
        order_service.set_producer_value(mug_po.id, "420.00")
        order_service.send_to_production(order.id)
        advance(mug_po, "production", "ready")
        order_service.set_producer_value(mug_po.id, "450.00")
        assert payables_service.producer_payment_for(mug_po.id).amount == "450.00"

    def test_value_set_after_ready_opens_payment(
        self, order_service, payables_service, order, production_orders, advance,
    ):
        mug_po, _ = production_orders
        order_service.send_to_production(order.id)
        advance(mug_po, "production", "ready")
        assert payables_service.producer_payment_for(mug_po.id) is None
        order_service.set_producer_value(mug_po.id, "300.00", lock=True)
        payment = payables_service.producer_payment_for(mug_po.id)
        assert (payment.amount, payment.status) == ("300.00", "pending")

    def test_value_set_before_ready_waits(self, order_service, payables_service, order, production_orders):
        mug_po, _ = production_orders
        order_service.send_to_production(order.id)
        order_service.set_producer_value(mug_po.id, "300.00")
        assert payables_service.producer_payment_for(mug_po.id) is None


class TestPurchaseStatus:

    def test_product_status_follows_least_advanced_item(self, order_service, order):
        first, second = order.items
        order_service.update_item_purchase_status(first.id, "to_buy")
        order_service.update_item_purchase_status(first.id, "purchased")
        assert order_service.get_order(order.id).product_status == "to_buy"
        order_service.update_item_purchase_status(second.id, "to_buy")
        order_service.update_item_purchase_status(second.id, "purchased")
        assert order_service.get_order(order.id).product_status == "purchased"

    def test_stages_cannot_be_skipped(self, order_service, order):
        with pytest.raises(IllegalTransitionError):
            order_service.update_item_purchase_status(order.items[0].id, "in_store")
