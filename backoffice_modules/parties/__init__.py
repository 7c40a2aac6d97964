"""
Parties Module (``backoffice_modules.parties``).

Users (admins, vendors, partners, producers, finance, logistics), vendor
commission profiles and clients.
"""

from backoffice_modules.parties.models import ContactInfo, UserRole, VendorTerms
from backoffice_modules.parties.service import PartyService

__all__ = [
    "ContactInfo",
    "PartyService",
    "UserRole",
    "VendorTerms",
]
