"""
Bank Reconciliation ORM Models (``backoffice_modules.cash.orm``).

Responsibility
--------------
Persistence for statement import batches and the bank transactions they
carry.  Transactions are created only by the import path and changed only
by ``ReconciliationService``.

Guarantees:
    - ``fit_id`` is unique across every import, so re-importing a
      statement cannot duplicate a transaction.
    - ``matched_entity_type`` / ``matched_entity_id`` are set iff
      ``status`` is ``matched``.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_kernel.db.base import TrackedBase
from backoffice_kernel.db.types import MoneyColumn, StatusCode


class BankImportModel(TrackedBase):
    """One uploaded statement file."""

    __tablename__ = "bank_imports"

    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    account_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    account_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    total_transactions: Mapped[int] = mapped_column(default=0)
    imported_count: Mapped[int] = mapped_column(default=0)
    skipped_count: Mapped[int] = mapped_column(default=0)
    error_count: Mapped[int] = mapped_column(default=0)
    credit_total: Mapped[MoneyColumn]
    debit_total: Mapped[MoneyColumn]
    imported_at: Mapped[datetime]

    transactions: Mapped[list[BankTransactionModel]] = relationship(
        back_populates="bank_import",
        order_by="BankTransactionModel.posted_date",
    )

    def __repr__(self) -> str:
        return f"<BankImportModel {self.file_name} +{self.imported_count}/~{self.skipped_count}>"


class BankTransactionModel(TrackedBase):
    """A statement line, matched at most once to a payment, producer payment or payable."""

    __tablename__ = "bank_transactions"

    __table_args__ = (
        Index("idx_bank_transactions_status", "status"),
        Index("idx_bank_transactions_posted", "posted_date"),
        Index("idx_bank_transactions_matched", "matched_entity_type", "matched_entity_id"),
    )

    fit_id: Mapped[str] = mapped_column(String(100), unique=True)
    fit_id_synthetic: Mapped[bool] = mapped_column(default=False)
    import_id: Mapped[UUID] = mapped_column(ForeignKey("bank_imports.id"))
    posted_date: Mapped[date | None] = mapped_column(nullable=True)
    has_valid_date: Mapped[bool] = mapped_column(default=True)
    amount: Mapped[MoneyColumn]
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    kind: Mapped[StatusCode] = mapped_column(default="other")
    type_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[StatusCode] = mapped_column(default="unmatched")
    matched_entity_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    matched_entity_id: Mapped[UUID | None] = mapped_column(nullable=True)
    matched_at: Mapped[datetime | None] = mapped_column(nullable=True)
    matched_by_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    bank_import: Mapped[BankImportModel] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return f"<BankTransactionModel {self.fit_id} {self.amount} ({self.status})>"
