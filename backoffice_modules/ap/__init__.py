"""
Accounts Payable Module (``backoffice_modules.ap``).

Producer payments and manual payables (client refunds).
"""

from backoffice_modules.ap.models import PayableCategory, PayableStatus, ProducerPaymentStatus
from backoffice_modules.ap.service import PayablesService
from backoffice_modules.ap.workflows import PAYABLE_WORKFLOW, PRODUCER_PAYMENT_WORKFLOW

__all__ = [
    "PAYABLE_WORKFLOW",
    "PRODUCER_PAYMENT_WORKFLOW",
    "PayableCategory",
    "PayableStatus",
    "PayablesService",
    "ProducerPaymentStatus",
]
