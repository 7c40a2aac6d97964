"""
Cash Module (``backoffice_modules.cash``).

Bank statement imports and the reconciliation of bank transactions with
client payments, producer payments and manual payables.
"""

from backoffice_modules.cash.config import ReconciliationConfig
from backoffice_modules.cash.models import (
    ImportStats,
    MatchedEntity,
    MatchResult,
    MatchStatus,
    TransactionKind,
)
from backoffice_modules.cash.service import ReconciliationService
from backoffice_modules.cash.workflows import TRANSACTION_MATCH_WORKFLOW

__all__ = [
    "ImportStats",
    "MatchResult",
    "MatchStatus",
    "MatchedEntity",
    "ReconciliationConfig",
    "ReconciliationService",
    "TRANSACTION_MATCH_WORKFLOW",
    "TransactionKind",
]
