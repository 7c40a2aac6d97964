"""Tests for PartyService lookups used by conversion and commissions."""

from decimal import Decimal
from uuid import uuid4

import pytest

from backoffice_kernel.exceptions import EntityNotFoundError, InvalidValueError
from backoffice_modules.parties.models import UserRole


class TestVendors:

    def test_terms_from_profile(self, party_service):
        seller = party_service.create_vendor("seller", "Sam", commission_rate=Decimal("12"))
        terms = party_service.vendor_terms(seller.id)
        assert (terms.rate, terms.is_commissioned) == (Decimal("12"), True)

    def test_vendor_without_profile_uses_settings_rate(self, party_service):
        user = party_service.create_user("plain", "Pat", UserRole.VENDOR)
        assert party_service.vendor_terms(user.id).rate is None

    def test_negative_rate_rejected(self, party_service, vendor):
        with pytest.raises(InvalidValueError):
            party_service.set_vendor_commission_rate(vendor.id, Decimal("-1"))

    def test_unknown_role(self, party_service):
        with pytest.raises(InvalidValueError):
            party_service.create_user("x", "X", "wizard")


class TestPartners:

    def test_only_active_partners(self, party_service, partners):
        party_service.create_user("retired", "Rita", UserRole.PARTNER, is_active=False)
        assert party_service.active_partner_ids() == sorted(p.id for p in partners)


class TestClientContact:

    def test_client_record(self, party_service, client):
        contact = party_service.resolve_client_contact(client.id)
        assert (contact.name, contact.address) == ("Acme Ltda", "Rua Um, 100, Sao Paulo, SP, 01000-000")

    def test_blank_fields_fall_back_to_user(self, party_service):
        login = party_service.create_user("buyer", "Bia Buyer", UserRole.CLIENT, email="bia@example.com")
        record = party_service.create_client("Bia Buyer ME", user_id=login.id)
        assert party_service.resolve_client_contact(record.id).email == "bia@example.com"

    def test_user_only_client(self, party_service):
        login = party_service.create_user("walkin", "Walk In", UserRole.CLIENT, phone="11 9999-0000")
        contact = party_service.resolve_client_contact(login.id)
        assert (contact.name, contact.phone, contact.address) == ("Walk In", "11 9999-0000", None)

    def test_unknown_client(self, party_service):
        with pytest.raises(EntityNotFoundError):
            party_service.resolve_client_contact(uuid4())
