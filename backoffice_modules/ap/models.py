"""
Accounts Payable Domain Models (``backoffice_modules.ap.models``).

Money the business owes: producers for finished production orders, and
manual payables such as refunds to clients of cancelled orders.
"""

from enum import Enum


class ProducerPaymentStatus(Enum):
    """Producer payment states.  Must align with ``workflows.PRODUCER_PAYMENT_WORKFLOW.states``."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class PayableStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class PayableCategory(Enum):
    REFUND = "refund"
    SUPPLIER = "supplier"
    OTHER = "other"
