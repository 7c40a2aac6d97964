"""
Tests for converting an approved budget into an order.

Verifies:
- The order copies items, totals and terms, and takes contact data from the client
- Commissions, the receivable and pending production orders are created together
- Conversion is refused for unapproved budgets and without a client
"""

from decimal import Decimal

import pytest

from backoffice_kernel.exceptions import BudgetNotApprovedError, MissingFieldError
from backoffice_modules.sales.models import PaymentTerms

from tests.modules.builders import item


class TestConversion:

    def test_order_copies_budget(self, converted, approved_budget):
        order = converted.order
        assert order.order_number == "PED-2503-000001"
        assert order.total_value == "1800.00"
        assert order.paid_value == "0.00"
        assert order.status == "pending"
        assert order.budget_id == approved_budget.id
        assert [i.total_price for i in order.items] == ["1000.00", "800.00"]
        assert {i.id for i in order.items}.isdisjoint({i.id for i in approved_budget.items})

    def test_contact_from_client(self, converted):
        order = converted.order
        assert order.contact_name == "Acme Ltda"
        assert order.contact_email == "buyer@acme.example"
        assert order.shipping_address == "Rua Um, 100, Sao Paulo, SP, 01000-000"

    def test_budget_marked_converted(self, converted, budget_service, approved_budget):
        assert budget_service.get_budget(approved_budget.id).status == "converted"

    def test_one_pending_production_order_per_producer(self, converted, producer_a, producer_b):
        assert {po.producer_id for po in converted.production_orders} == {producer_a.id, producer_b.id}
        assert {po.status for po in converted.production_orders} == {"pending"}
        assert all(len(po.items) == 1 for po in converted.production_orders)

    def test_commissions_created(self, converted, vendor, partners):
        by_type = {}
        for commission in converted.commissions:
            by_type.setdefault(commission.type, []).append(commission)
        (vendor_commission,) = by_type["vendor"]
        assert vendor_commission.vendor_id == vendor.id
        assert vendor_commission.amount == "180.00"
        assert vendor_commission.status == "pending"
        assert sorted(c.amount for c in by_type["partner"]) == ["135.00", "135.00"]
        assert {c.status for c in by_type["partner"]} == {"confirmed"}
        assert {Decimal(c.percentage) for c in by_type["partner"]} == {Decimal("7.5")}

    def test_receivable_created(self, converted):
        receivable = converted.receivable
        assert receivable.amount == "1800.00"
        assert receivable.received_amount == "0.00"
        assert receivable.status == "pending"

    def test_production_sync_logged(self, captured_logs, converted):
        (record,) = [r for r in captured_logs() if r["message"] == "production_orders_synced"]
        assert (record["created_count"], record["cancelled"], record["pruned"]) == (2, 0, 0)

    def test_audited(self, converted, audit_sink):
        assert audit_sink.actions()[-1] == "budget_converted"
        event = audit_sink.events[-1]
        assert event.entity_id == str(converted.order.id)

    def test_order_numbers_increment(self, budget_service, make_draft, mug, client, converted):
        budget = budget_service.create_budget(make_draft(item(mug, 10, "100.00"), client_id=client.id))
        budget_service.send_budget(budget.id)
        budget_service.approve_budget(budget.id)
        second = budget_service.convert_budget_to_order(budget.id)
        assert second.order.order_number == "PED-2503-000002"


class TestConversionTerms:

    def test_down_payment_sets_minimum_payment(self, budget_service, make_draft, mug, client):
        terms = PaymentTerms(installments=2, down_payment="300.00", shipping_cost="25.00")
        budget = budget_service.create_budget(make_draft(item(mug, 10, "100.00"), client_id=client.id, payment=terms))
        budget_service.send_budget(budget.id)
        budget_service.approve_budget(budget.id)
        result = budget_service.convert_budget_to_order(budget.id)
        assert result.order.installments == 2
        assert result.receivable.minimum_payment == "325.00"

    def test_internal_items_have_no_production_order(self, budget_service, make_draft, mug, shirt, client):
        budget = budget_service.create_budget(make_draft(
            item(mug, 10, "100.00", internal=True), item(shirt, 20, "40.00"), client_id=client.id,
        ))
        budget_service.send_budget(budget.id)
        budget_service.approve_budget(budget.id)
        result = budget_service.convert_budget_to_order(budget.id)
        assert len(result.production_orders) == 1


class TestConversionRefused:

    def test_draft_budget(self, budget_service, standard_draft):
        budget = budget_service.create_budget(standard_draft)
        with pytest.raises(BudgetNotApprovedError):
            budget_service.convert_budget_to_order(budget.id)
        assert budget_service.get_budget(budget.id).status == "draft"

    def test_no_client(self, budget_service, make_draft, mug):
        budget = budget_service.create_budget(make_draft(item(mug, 10, "100.00")))
        budget_service.send_budget(budget.id)
        budget_service.approve_budget(budget.id)
        with pytest.raises(MissingFieldError):
            budget_service.convert_budget_to_order(budget.id)

    def test_admin_approved_budget_converts(self, budget_service, make_draft, mug, client):
        budget = budget_service.create_budget(make_draft(item(mug, 10, "80.00")))
        budget_service.admin_approve_budget(budget.id)
        result = budget_service.convert_budget_to_order(budget.id, client_id=client.id)
        assert result.order.total_value == "800.00"
