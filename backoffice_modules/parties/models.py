"""
Party domain models (``backoffice_modules.parties.models``).

Roles of the people the back office deals with, and the contact snapshot
copied onto an order when a budget is converted.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class UserRole(Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    PARTNER = "partner"
    CLIENT = "client"
    PRODUCER = "producer"
    FINANCE = "finance"
    LOGISTICS = "logistics"


@dataclass(frozen=True)
class ContactInfo:
    """Contact fields resolved for a client (client record first, user record second)."""
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class VendorTerms:
    """Commission terms of one vendor; ``rate`` None means "use the settings rate"."""
    rate: Decimal | None
    is_commissioned: bool = True
