"""
Commission domain models (``backoffice_modules.commissions.models``).

Enums for commission type and status, and the report returned by the
historical recalculation sweep.
"""

from dataclasses import dataclass, field
from enum import Enum


class CommissionType(Enum):
    VENDOR = "vendor"
    PARTNER = "partner"


class CommissionStatus(Enum):
    """Commission workflow states.  Must align with ``workflows.COMMISSION_WORKFLOW.states``."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"
    DEDUCTED = "deducted"
    CANCELLED = "cancelled"


# Amounts of these are frozen: recalculation never touches them.
FROZEN_STATUSES = frozenset({CommissionStatus.CANCELLED.value, CommissionStatus.PAID.value})


@dataclass(frozen=True)
class RecalculationFailure:
    order_id: str
    error: str


@dataclass(frozen=True)
class RecalculationReport:
    """Outcome of ``recalculate_all_commissions``; failures never raise."""
    processed: int = 0
    updated: int = 0
    failures: tuple[RecalculationFailure, ...] = field(default_factory=tuple)

    @property
    def failed(self) -> int:
        return len(self.failures)
