"""
Sales Module (``backoffice_modules.sales``).

Budgets, their conversion into orders, production orders per producer
and the cascade that keeps commissions, receivables and production in
step with every order change.
"""

from backoffice_modules.sales.hooks import DEFAULT_ORDER_HOOKS, OrderChange
from backoffice_modules.sales.models import (
    BudgetDraft,
    BudgetItemInput,
    BudgetPhotoInput,
    BudgetStatus,
    ConversionResult,
    DeliveryType,
    DispatchResult,
    OrderStatus,
    OrderUpdate,
    PaymentTerms,
    ProductionStatus,
    PurchaseStatus,
)
from backoffice_modules.sales.production import ProductionService
from backoffice_modules.sales.service import BudgetService, OrderService
from backoffice_modules.sales.workflows import (
    BUDGET_WORKFLOW,
    ORDER_WORKFLOW,
    PRODUCTION_WORKFLOW,
    PURCHASE_WORKFLOW,
)

__all__ = [
    "BUDGET_WORKFLOW",
    "BudgetDraft",
    "BudgetItemInput",
    "BudgetPhotoInput",
    "BudgetService",
    "BudgetStatus",
    "ConversionResult",
    "DEFAULT_ORDER_HOOKS",
    "DeliveryType",
    "DispatchResult",
    "ORDER_WORKFLOW",
    "OrderChange",
    "OrderService",
    "OrderStatus",
    "OrderUpdate",
    "PRODUCTION_WORKFLOW",
    "PURCHASE_WORKFLOW",
    "PaymentTerms",
    "ProductionService",
    "ProductionStatus",
    "PurchaseStatus",
]
