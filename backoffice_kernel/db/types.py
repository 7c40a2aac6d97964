"""
Module: backoffice_kernel.db.types
Responsibility: Annotated column aliases shared by every ``orm.py`` so that
    money, rates, quantities and status strings use identical column
    definitions system-wide.
Architecture position: Kernel > DB.

Invariants enforced:
    CRITICAL: No floats for money.  ``MoneyColumn`` stores Numeric(20, 2)
    and loads 2-decimal strings; arithmetic happens in domain/money.py.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String
from sqlalchemy.orm import mapped_column

from backoffice_kernel.db.base import MoneyString

# Non-null monetary amount, defaulting to zero.
MoneyColumn = Annotated[str, mapped_column(MoneyString(), nullable=False, default="0.00")]

# Percentage rate such as 9.00 (tax) or 7.5000 (15% split across two partners).
Rate = Annotated[Decimal, mapped_column(Numeric(9, 4))]

# Item quantity; fractional units are allowed (meters, kilograms).
Quantity = Annotated[Decimal, mapped_column(Numeric(14, 3))]

# Status / enum value stored as its string value.
StatusCode = Annotated[str, mapped_column(String(30))]

# Human-readable document number (PED-2401-000001).
DocumentNumber = Annotated[str, mapped_column(String(30))]

# Free text descriptions.
LongText = Annotated[str, mapped_column(String(4000))]
