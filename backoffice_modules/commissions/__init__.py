"""
Commissions Module (``backoffice_modules.commissions``).

Vendor and partner commissions per order: creation on conversion,
in-place recomputation on value changes, zeroing on cancellation and
vendor confirmation on delivery.
"""

from backoffice_modules.commissions.config import CommissionDefaults
from backoffice_modules.commissions.models import (
    CommissionStatus,
    CommissionType,
    RecalculationReport,
)
from backoffice_modules.commissions.service import CommissionService
from backoffice_modules.commissions.workflows import COMMISSION_WORKFLOW

__all__ = [
    "COMMISSION_WORKFLOW",
    "CommissionDefaults",
    "CommissionService",
    "CommissionStatus",
    "CommissionType",
    "RecalculationReport",
]
