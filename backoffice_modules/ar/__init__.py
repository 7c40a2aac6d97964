"""
Accounts Receivable Module (``backoffice_modules.ar``).

One receivable per order and the client payments that settle it.
"""

from backoffice_modules.ar.models import (
    PaymentMethod,
    PaymentStatus,
    ReceivableStatus,
    ReconciliationStatus,
)
from backoffice_modules.ar.service import ReceivableService

__all__ = [
    "PaymentMethod",
    "PaymentStatus",
    "ReceivableService",
    "ReceivableStatus",
    "ReconciliationStatus",
]
