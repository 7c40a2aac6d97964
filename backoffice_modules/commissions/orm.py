"""
Commission ORM Models (``backoffice_modules.commissions.orm``).

Guarantees:
    - One row per (order, vendor) or (order, partner); the beneficiary is
      ``vendor_id`` or ``partner_id`` depending on ``type``.
    - Cancelled commissions keep their row with amount 0.00; paid
      timestamps survive cancellation.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase
from backoffice_kernel.db.types import MoneyColumn, Rate, StatusCode


class CommissionModel(TrackedBase):
    """ORM model for one vendor or partner commission on an order."""

    __tablename__ = "commissions"

    __table_args__ = (
        Index("idx_commissions_order_id", "order_id"),
        Index("idx_commissions_vendor_id", "vendor_id"),
        Index("idx_commissions_partner_id", "partner_id"),
        Index("idx_commissions_status", "status"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"))
    type: Mapped[StatusCode]
    vendor_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    partner_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    percentage: Mapped[Rate]
    amount: Mapped[MoneyColumn]
    status: Mapped[StatusCode]
    order_value: Mapped[MoneyColumn]
    order_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def beneficiary_id(self) -> UUID | None:
        return self.vendor_id if self.type == "vendor" else self.partner_id

    def __repr__(self) -> str:
        return f"<CommissionModel {self.type} {self.amount} ({self.status})>"


class CommissionSettingsModel(TrackedBase):
    """Singleton: default vendor rate and partner pool rate."""

    __tablename__ = "commission_settings"

    vendor_commission_rate: Mapped[Rate]
    partner_commission_rate: Mapped[Rate]
