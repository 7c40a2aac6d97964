"""
Reconciliation Configuration Schema (``backoffice_modules.cash.config``).

Upload cap for bank statements and the epsilon used by the pending-orders
screen.  Loaded from ``backoffice_config`` via ``from_app_config``.

Invariants enforced:
    - ``max_upload_bytes`` is positive.
    - ``pending_epsilon`` is non-negative.  It filters a display list only
      and never decides whether an obligation is paid.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from backoffice_config.schema import DEFAULT_OFX_MAX_BYTES, AppConfig
from backoffice_engines.reconciliation import DISPLAY_EPSILON


@dataclass(frozen=True)
class ReconciliationConfig:
    max_upload_bytes: int = DEFAULT_OFX_MAX_BYTES
    pending_epsilon: Decimal = DISPLAY_EPSILON

    def __post_init__(self):
        if self.max_upload_bytes <= 0:
            raise ValueError(f"max_upload_bytes must be positive, got {self.max_upload_bytes}")
        if self.pending_epsilon < 0:
            raise ValueError(f"pending_epsilon cannot be negative, got {self.pending_epsilon}")

    @classmethod
    def from_app_config(cls, config: AppConfig) -> ReconciliationConfig:
        return cls(
            max_upload_bytes=config.reconciliation.ofx_max_bytes,
            pending_epsilon=config.reconciliation.pending_balance_epsilon,
        )
