"""
Tests for PayablesService.

Verifies:
- Producer payments move through approve / reject / manual payment
- Manual payables can be settled outside the bank feed
- Producer payments are created once per production order
"""

import pytest

from backoffice_kernel.exceptions import IllegalTransitionError


@pytest.fixture
def producer_payment(order_service, payables_service, production_service, order, advance):
    mug_po = production_service.production_orders_for(order.id)[0]
    order_service.set_producer_value(mug_po.id, "420.00")
    order_service.send_to_production(order.id)
    advance(mug_po, "production", "ready")
    return payables_service.producer_payment_for(mug_po.id)


class TestProducerPayments:

    def test_approve_then_pay(self, payables_service, producer_payment, vendor, deterministic_clock):
        approved = payables_service.approve_producer_payment(producer_payment.id, actor_id=vendor.id)
        assert (approved.status, approved.approved_by_id) == ("approved", vendor.id)
        paid = payables_service.mark_producer_payment_paid_manually(producer_payment.id)
        assert (paid.status, paid.reconciliation_status) == ("paid", "manual")
        assert paid.paid_at == deterministic_clock.now()

    def test_rejected_is_final(self, payables_service, producer_payment):
        rejected = payables_service.reject_producer_payment(producer_payment.id, reason="wrong quote")
        assert (rejected.status, rejected.notes) == ("rejected", "wrong quote")
        with pytest.raises(IllegalTransitionError):
            payables_service.approve_producer_payment(producer_payment.id)

    def test_created_once(self, payables_service, production_service, order, producer_payment):
        mug_po = production_service.production_orders_for(order.id)[0]
        assert payables_service.ensure_producer_payment(mug_po) is producer_payment

    def test_audited(self, payables_service, producer_payment, audit_sink):
        payables_service.approve_producer_payment(producer_payment.id)
        assert audit_sink.actions()[-1] == "producer_payment_approved"


class TestManualPayables:

    def test_refund_paid_manually(self, payables_service, order_service, order):
        order_service.record_payment(order.id, "300.00")
        order_service.cancel_order(order.id)
        (refund,) = payables_service.refunds_for_order(order.id)
        assert refund.category == "refund"
        paid = payables_service.mark_payable_paid_manually(refund.id)
        assert (paid.status, paid.reconciliation_status) == ("paid", "manual")
        with pytest.raises(IllegalTransitionError):
            payables_service.mark_payable_paid_manually(refund.id)
