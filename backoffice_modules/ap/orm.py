"""
Accounts Payable ORM Models (``backoffice_modules.ap.orm``).

Guarantees:
    - At most one producer payment per production order (unique
      ``production_order_id``), so the ready-status trigger is idempotent
      even under a race.
    - ``bank_transaction_id`` is set only while ``reconciliation_status``
      is ``ofx_matched``.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase
from backoffice_kernel.db.types import LongText, MoneyColumn, StatusCode


class ProducerPaymentModel(TrackedBase):
    """What the business owes a producer for one production order."""

    __tablename__ = "producer_payments"

    __table_args__ = (
        Index("idx_producer_payments_producer", "producer_id"),
        Index("idx_producer_payments_status", "status"),
    )

    production_order_id: Mapped[UUID] = mapped_column(ForeignKey("production_orders.id"), unique=True)
    producer_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"))
    order_id: Mapped[UUID] = mapped_column(ForeignKey("orders.id"))
    amount: Mapped[MoneyColumn]
    status: Mapped[StatusCode] = mapped_column(default="pending")
    reconciliation_status: Mapped[StatusCode] = mapped_column(default="pending")
    bank_transaction_id: Mapped[UUID | None] = mapped_column(ForeignKey("bank_transactions.id"), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<ProducerPaymentModel {self.amount} ({self.status}/{self.reconciliation_status})>"


class ManualPayableModel(TrackedBase):
    """A payable not tied to a production order, e.g. a refund owed to a client."""

    __tablename__ = "manual_payables"

    __table_args__ = (
        Index("idx_manual_payables_status", "status"),
        Index("idx_manual_payables_order", "order_id"),
    )

    description: Mapped[LongText]
    amount: Mapped[MoneyColumn]
    category: Mapped[StatusCode] = mapped_column(default="other")
    status: Mapped[StatusCode] = mapped_column(default="pending")
    order_id: Mapped[UUID | None] = mapped_column(ForeignKey("orders.id"), nullable=True)
    client_id: Mapped[UUID | None] = mapped_column(nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    reconciliation_status: Mapped[StatusCode] = mapped_column(default="pending")
    bank_transaction_id: Mapped[UUID | None] = mapped_column(ForeignKey("bank_transactions.id"), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<ManualPayableModel {self.category} {self.amount} ({self.status})>"
