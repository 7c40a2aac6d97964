"""
Party ORM Models (``backoffice_modules.parties.orm``).

Users of every role, vendor commission profiles and client records.
Authentication lives outside this package; ``password_hash`` is kept for
it and is redacted by the backup export.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_kernel.db.base import TrackedBase
from backoffice_kernel.db.types import StatusCode


class UserModel(TrackedBase):
    """
    ORM model for system users (admins, vendors, partners, producers, ...).

    Guarantees:
        - username is unique.
        - role stored as ``UserRole`` string value.
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    username: Mapped[str] = mapped_column(String(100), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[StatusCode]
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    vendor_profile: Mapped["VendorProfileModel | None"] = relationship(
        back_populates="user", uselist=False,
    )

    def __repr__(self) -> str:
        return f"<UserModel {self.username} ({self.role})>"


class VendorProfileModel(TrackedBase):
    """Commission terms of a vendor user (one per user)."""

    __tablename__ = "vendor_profiles"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), unique=True)
    commission_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    is_commissioned: Mapped[bool] = mapped_column(Boolean, default=True)
    branch_id: Mapped[UUID | None] = mapped_column(nullable=True)

    user: Mapped[UserModel] = relationship(back_populates="vendor_profile")


class ClientModel(TrackedBase):
    """
    ORM model for clients.

    A client may be linked to a ``users`` row (self-service login); the
    link is optional.
    """

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_clients_user_id", "user_id"),
        Index("idx_clients_vendor_id", "vendor_id"),
    )

    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    document: Mapped[str | None] = mapped_column(String(30), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    vendor_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    def full_address(self) -> str | None:
        parts = [p for p in (self.address, self.city, self.state, self.zip_code) if p]
        return ", ".join(parts) if parts else None

    def __repr__(self) -> str:
        return f"<ClientModel {self.name}>"
