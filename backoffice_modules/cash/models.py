"""
Cash domain models (``backoffice_modules.cash.models``).

Enums for bank transaction state and the DTOs returned by imports and
matches.  No business logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from backoffice_engines.reconciliation import MatchSummary


class TransactionKind(Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    OTHER = "other"


class MatchStatus(Enum):
    """Bank transaction states.  See ``workflows.TRANSACTION_MATCH_WORKFLOW``."""
    UNMATCHED = "unmatched"
    MATCHED = "matched"


class MatchedEntity(Enum):
    """What a matched transaction points at."""
    PAYMENT = "payment"
    PRODUCER_PAYMENT = "producer_payment"
    MANUAL_PAYABLE = "manual_payable"


@dataclass(frozen=True)
class ImportStats:
    """Counters of one statement import; ``skipped`` are FITIDs already known."""
    total: int = 0
    imported: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of associating transactions with one obligation.

    ``summary.difference`` is ``sum(transactions) - expected``: positive for
    an overpayment, negative for an underpayment.  It is informational; the
    match is recorded either way.
    """
    transaction_ids: tuple[UUID, ...]
    entity_type: str
    entity_id: UUID
    summary: MatchSummary
    payment_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def difference(self) -> str:
        return self.summary.difference
