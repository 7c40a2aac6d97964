"""
Tests for CommissionService.

Verifies:
- Settings initialize from defaults and reject out-of-range rates
- The vendor's own rate wins over the settings rate
- Recalculation updates rows in place and leaves paid rows alone
- The historical sweep reports what it touched
"""

from decimal import Decimal

import pytest

from backoffice_kernel.exceptions import IllegalTransitionError, InvalidValueError
from backoffice_modules.sales.models import OrderUpdate

from tests.modules.builders import item


def _convert(budget_service, draft):
    budget = budget_service.create_budget(draft)
    budget_service.send_budget(budget.id)
    budget_service.approve_budget(budget.id)
    return budget_service.convert_budget_to_order(budget.id)


class TestSettings:

    def test_defaults(self, commission_service):
        settings = commission_service.get_or_initialize_settings()
        assert settings.vendor_commission_rate == Decimal("10")
        assert settings.partner_commission_rate == Decimal("15")

    def test_initialized_once(self, commission_service):
        assert commission_service.get_or_initialize_settings() is commission_service.get_or_initialize_settings()

    @pytest.mark.parametrize("rates", [{"vendor_rate": Decimal("101")}, {"partner_rate": Decimal("-1")}])
    def test_out_of_range(self, commission_service, rates):
        with pytest.raises(InvalidValueError):
            commission_service.update_settings(**rates)


class TestVendorTerms:

    def test_profile_rate_wins(self, budget_service, party_service, session, make_draft, mug, client, partners):
        seller = party_service.create_vendor("vendor2", "Sam Seller", commission_rate=Decimal("7.5"))
        session.commit()
        result = _convert(budget_service, make_draft(item(mug, 10, "100.00"), vendor_id=seller.id, client_id=client.id))
        (vendor_commission,) = [c for c in result.commissions if c.type == "vendor"]
        assert vendor_commission.amount == "75.00"

    def test_uncommissioned_vendor(self, budget_service, party_service, session, make_draft, mug, client, partners):
        manager = party_service.create_vendor("manager", "Mia Manager", is_commissioned=False)
        session.commit()
        result = _convert(budget_service, make_draft(item(mug, 10, "100.00"), vendor_id=manager.id, client_id=client.id))
        assert {c.type for c in result.commissions} == {"partner"}

    def test_no_partners(self, budget_service, standard_draft):
        result = _convert(budget_service, standard_draft)
        assert [c.type for c in result.commissions] == ["vendor"]


class TestRecalculation:

    def test_paid_rows_frozen(self, commission_service, order_service, order):
        vendor_row, paid_partner, other_partner = commission_service.commissions_for_order(order.id)
        commission_service.transition_commission(paid_partner.id, "paid")

        order_service.update_order(order.id, OrderUpdate(total_value="2000.00"))
        assert paid_partner.amount == "135.00"
        assert paid_partner.paid_at is not None
        assert (vendor_row.amount, other_partner.amount) == ("200.00", "150.00")
        assert other_partner.order_value == "2000.00"

    def test_unchanged_total_changes_nothing(self, commission_service, order):
        assert commission_service.recalculate_commissions_for_order(order) == []

    def test_pending_commission_cannot_be_paid(self, commission_service, order):
        vendor_row = commission_service.commissions_for_order(order.id)[0]
        with pytest.raises(IllegalTransitionError):
            commission_service.transition_commission(vendor_row.id, "paid")

    def test_sweep_reports_updates(self, commission_service, order_service, order):
        report = order_service.recalculate_all_commissions()
        assert (report.processed, report.updated, report.failed) == (1, 0, 0)

        commission_service.update_settings(partner_rate=Decimal("20"))
        report = order_service.recalculate_all_commissions()
        assert (report.processed, report.updated) == (1, 2)
        amounts = [c.amount for c in commission_service.commissions_for_order(order.id)]
        assert amounts == ["180.00", "180.00", "180.00"]

    def test_sweep_skips_cancelled_orders(self, order_service, order):
        order_service.cancel_order(order.id)
        assert order_service.recalculate_all_commissions().processed == 0
