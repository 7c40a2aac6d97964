"""
Accounts Receivable ORM Models (``backoffice_modules.ar.orm``).

Guarantees:
    - At most one receivable per order (unique ``order_id``).
    - A payment linked to a bank transaction carries its id in
      ``bank_transaction_id``; manual payments leave it NULL.
    - ``client_id`` holds a client id or, for clients that only exist as
      a login, a user id, so it carries no foreign key.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase
from backoffice_kernel.db.types import MoneyColumn, StatusCode


class AccountsReceivableModel(TrackedBase):
    """What the client owes on one order."""

    __tablename__ = "accounts_receivable"

    __table_args__ = (
        Index("idx_receivable_status", "status"),
        Index("idx_receivable_client", "client_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"), unique=True)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    vendor_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    amount: Mapped[MoneyColumn]
    received_amount: Mapped[MoneyColumn]
    minimum_payment: Mapped[MoneyColumn]
    status: Mapped[StatusCode] = mapped_column(default="pending")

    def __repr__(self) -> str:
        return f"<AccountsReceivableModel {self.order_id} {self.received_amount}/{self.amount} ({self.status})>"


class PaymentModel(TrackedBase):
    """A client payment against an order, manual or matched from a bank statement."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_order_id", "order_id"),
        Index("idx_payments_bank_transaction", "bank_transaction_id"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"))
    amount: Mapped[MoneyColumn]
    method: Mapped[StatusCode] = mapped_column(default="other")
    status: Mapped[StatusCode] = mapped_column(default="confirmed")
    transaction_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reconciliation_status: Mapped[StatusCode] = mapped_column(default="pending")
    bank_transaction_id: Mapped[UUID | None] = mapped_column(ForeignKey("bank_transactions.id"), nullable=True)

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount} ({self.status})>"
