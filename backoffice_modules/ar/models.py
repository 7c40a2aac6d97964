"""
Accounts Receivable Domain Models (``backoffice_modules.ar.models``).

Enums for the receivable and client payment lifecycles, plus the
reconciliation status shared by every payment-like record.
"""

from enum import Enum


class ReceivableStatus(Enum):
    """Receivable states; all but ``cancelled`` are derived from received vs amount."""
    PENDING = "pending"
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"


class ReconciliationStatus(Enum):
    """How a payment was settled: not yet, by hand, or against a bank line."""
    PENDING = "pending"
    MANUAL = "manual"
    OFX_MATCHED = "ofx_matched"


class PaymentMethod(Enum):
    PIX = "pix"
    CREDIT_CARD = "credit_card"
    BANK_SLIP = "bank_slip"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    OTHER = "other"
