"""
Party Service (``backoffice_modules.parties.service``).

Responsibility
--------------
Creates and looks up users, vendor profiles and clients, and answers the
questions the order flow asks about parties: who are the active partners,
what are a vendor's commission terms, what contact data belongs to a
client.

Architecture position
---------------------
**Modules layer** -- helper service.  Flushes, never commits; the calling
orchestrator owns the transaction.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_kernel.exceptions import EntityNotFoundError, InvalidValueError, MissingFieldError
from backoffice_kernel.logging_config import get_logger
from backoffice_modules._service_helpers import get_or_raise
from backoffice_modules.parties.models import ContactInfo, UserRole, VendorTerms
from backoffice_modules.parties.orm import ClientModel, UserModel, VendorProfileModel

logger = get_logger("modules.parties.service")


class PartyService:
    """Lookups and creation of users, vendor profiles and clients."""

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        username: str,
        name: str,
        role: UserRole | str,
        *,
        email: str | None = None,
        phone: str | None = None,
        password_hash: str | None = None,
        is_active: bool = True,
    ) -> UserModel:
        if not username:
            raise MissingFieldError("username", "user")
        try:
            role_value = UserRole(role).value
        except ValueError:
            raise InvalidValueError("role", role, "unknown user role") from None
        user = UserModel(
            username=username,
            name=name,
            role=role_value,
            email=email,
            phone=phone,
            password_hash=password_hash,
            is_active=is_active,
        )
        self._session.add(user)
        self._session.flush()
        logger.info("user_created", extra={"user_id": str(user.id), "role": role_value})
        return user

    def create_vendor(
        self,
        username: str,
        name: str,
        *,
        commission_rate: Decimal | None = None,
        is_commissioned: bool = True,
        branch_id: UUID | None = None,
        email: str | None = None,
    ) -> UserModel:
        """Vendor user plus its commission profile."""
        if commission_rate is not None and Decimal(commission_rate) < 0:
            raise InvalidValueError("commission_rate", commission_rate, "cannot be negative")
        user = self.create_user(username, name, UserRole.VENDOR, email=email)
        self._session.add(VendorProfileModel(
            user_id=user.id,
            commission_rate=commission_rate,
            is_commissioned=is_commissioned,
            branch_id=branch_id,
        ))
        self._session.flush()
        return user

    def get_user(self, user_id: UUID) -> UserModel:
        return get_or_raise(self._session, UserModel, user_id, "user")

    def active_partner_ids(self) -> list[UUID]:
        """Every active partner user, whatever orders they took part in."""
        return list(self._session.scalars(
            select(UserModel.id)
            .where(UserModel.role == UserRole.PARTNER.value, UserModel.is_active.is_(True))
            .order_by(UserModel.id)
        ))

    def vendor_terms(self, vendor_id: UUID | None) -> VendorTerms:
        """Commission terms of ``vendor_id``; a vendor without a profile is commissioned at the settings rate."""
        if vendor_id is None:
            return VendorTerms(rate=None, is_commissioned=False)
        profile = self._session.scalar(
            select(VendorProfileModel).where(VendorProfileModel.user_id == vendor_id)
        )
        if profile is None:
            return VendorTerms(rate=None, is_commissioned=True)
        return VendorTerms(rate=profile.commission_rate, is_commissioned=profile.is_commissioned)

    def set_vendor_commission_rate(self, vendor_id: UUID, rate: Decimal) -> VendorProfileModel:
        if Decimal(rate) < 0:
            raise InvalidValueError("commission_rate", rate, "cannot be negative")
        profile = self._session.scalar(
            select(VendorProfileModel).where(VendorProfileModel.user_id == vendor_id)
        )
        if profile is None:
            self.get_user(vendor_id)
            profile = VendorProfileModel(user_id=vendor_id)
            self._session.add(profile)
        profile.commission_rate = Decimal(rate)
        self._session.flush()
        logger.info(
            "vendor_commission_rate_updated",
            extra={"vendor_id": str(vendor_id), "rate": str(rate)},
        )
        return profile

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def create_client(
        self,
        name: str,
        *,
        email: str | None = None,
        phone: str | None = None,
        document: str | None = None,
        address: str | None = None,
        city: str | None = None,
        state: str | None = None,
        zip_code: str | None = None,
        user_id: UUID | None = None,
        vendor_id: UUID | None = None,
    ) -> ClientModel:
        if not name:
            raise MissingFieldError("name", "client")
        client = ClientModel(
            name=name,
            email=email,
            phone=phone,
            document=document,
            address=address,
            city=city,
            state=state,
            zip_code=zip_code,
            user_id=user_id,
            vendor_id=vendor_id,
        )
        self._session.add(client)
        self._session.flush()
        return client

    def resolve_client_contact(self, client_id: UUID) -> ContactInfo:
        """
        Contact data for ``client_id``.

        ``client_id`` may be a client record or, for clients that only
        exist as a login, a user record.  Blank client fields fall back to
        the linked user's.
        """
        client = self._session.get(ClientModel, client_id)
        if client is not None:
            user = self._session.get(UserModel, client.user_id) if client.user_id else None
            return ContactInfo(
                name=client.name,
                email=client.email or (user.email if user else None),
                phone=client.phone or (user.phone if user else None),
                address=client.full_address(),
            )
        user = self._session.get(UserModel, client_id)
        if user is None:
            raise EntityNotFoundError("client", client_id)
        return ContactInfo(name=user.name, email=user.email, phone=user.phone)
