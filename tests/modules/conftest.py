"""
Service fixtures for the module tests.

All services share one session, the deterministic clock and the
recording audit sink, so a test can follow a cascade end to end.
"""

import pytest

from backoffice_modules.ap.service import PayablesService
from backoffice_modules.ar.service import ReceivableService
from backoffice_modules.cash.service import ReconciliationService
from backoffice_modules.commissions.service import CommissionService
from backoffice_modules.pricing.service import PricingService
from backoffice_modules.sales.models import BudgetDraft
from backoffice_modules.sales.production import ProductionService
from backoffice_modules.sales.service import BudgetService, OrderService

from tests.modules.builders import item


@pytest.fixture
def pricing_service(session, deterministic_clock, audit):
    return PricingService(session, clock=deterministic_clock, audit=audit)


@pytest.fixture
def commission_service(session, deterministic_clock, audit, party_service):
    return CommissionService(session, clock=deterministic_clock, audit=audit, parties=party_service)


@pytest.fixture
def receivable_service(session, deterministic_clock):
    return ReceivableService(session, clock=deterministic_clock)


@pytest.fixture
def payables_service(session, deterministic_clock, audit):
    return PayablesService(session, clock=deterministic_clock, audit=audit)


@pytest.fixture
def production_service(session, deterministic_clock):
    return ProductionService(session, clock=deterministic_clock)


@pytest.fixture
def budget_service(
    session, deterministic_clock, audit, pricing_service, commission_service,
    receivable_service, production_service, party_service,
):
    return BudgetService(
        session,
        clock=deterministic_clock,
        audit=audit,
        pricing=pricing_service,
        commissions=commission_service,
        receivables=receivable_service,
        production=production_service,
        parties=party_service,
    )


@pytest.fixture
def order_service(
    session, deterministic_clock, audit, commission_service,
    receivable_service, payables_service, production_service,
):
    return OrderService(
        session,
        clock=deterministic_clock,
        audit=audit,
        commissions=commission_service,
        receivables=receivable_service,
        payables=payables_service,
        production=production_service,
    )


@pytest.fixture
def reconciliation_service(session, deterministic_clock, audit, receivable_service, payables_service):
    return ReconciliationService(
        session,
        clock=deterministic_clock,
        audit=audit,
        receivables=receivable_service,
        payables=payables_service,
    )


@pytest.fixture
def make_draft(vendor):
    """Build a ``BudgetDraft`` for the fixture vendor from item inputs."""

    def _make(*items, **kwargs) -> BudgetDraft:
        fields = {"vendor_id": vendor.id, "title": "Event kit", "contact_name": "Ana Souza"}
        fields.update(kwargs)
        return BudgetDraft(items=tuple(items), **fields)

    return _make


@pytest.fixture
def standard_draft(make_draft, mug, shirt, client):
    """Mug 10 x 100.00 + shirt 20 x 40.00 = 1800.00, both above their floors."""
    return make_draft(item(mug, 10, "100.00"), item(shirt, 20, "40.00"), client_id=client.id)


@pytest.fixture
def approved_budget(budget_service, standard_draft):
    budget = budget_service.create_budget(standard_draft)
    budget_service.send_budget(budget.id)
    return budget_service.approve_budget(budget.id)


@pytest.fixture
def converted(budget_service, approved_budget, client, partners):
    return budget_service.convert_budget_to_order(approved_budget.id, client_id=client.id)


@pytest.fixture
def order(converted):
    return converted.order


PATH_TO_DELIVERED = ("production", "ready", "shipped", "delivered")


@pytest.fixture
def advance(order_service):
    """Move a production order through several statuses."""

    def _advance(production_order, *statuses):
        for status in statuses:
            production_order = order_service.update_production_status(production_order.id, status)
        return production_order

    return _advance


@pytest.fixture
def deliver_everything(order_service, production_service, advance):
    """Dispatch an order and deliver every production order."""

    def _deliver(order):
        order_service.send_to_production(order.id)
        for production_order in production_service.production_orders_for(order.id):
            advance(production_order, *PATH_TO_DELIVERED)
        return order_service.get_order(order.id)

    return _deliver
