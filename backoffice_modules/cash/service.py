"""
Bank Reconciliation Service (``backoffice_modules.cash.service``).

Responsibility
--------------
Persists parsed statement lines (deduplicated by FITID) and associates
unmatched bank transactions with the obligations they settle: client
payments on an order, producer payments and manual payables.

Architecture position
---------------------
**Modules layer**.  ``record_import``, ``list_unmatched`` and
``pending_orders`` flush only; every ``match_*`` / ``unmatch_*`` method
owns its transaction.  Payment rows are written through
``ReceivableService`` and ``PayablesService`` so the paid-value and
receivable cascade is the same as for manual payments.

Invariants enforced
-------------------
* A transaction is matched at most once.  The row is locked
  (``SELECT ... FOR UPDATE``) and its status re-read before the
  check-then-set, so two concurrent matches cannot both succeed.
* Whether an obligation is paid is decided with ``compare_money``; the
  display epsilon only filters ``pending_orders``.
* Over- and under-payment never block a match; the signed difference is
  returned in ``MatchResult.summary``.

Failure modes
-------------
* ``TransactionAlreadyMatchedError`` -- transaction already associated.
* ``OrderCancelledError`` -- matching money to a cancelled order.
* ``IllegalTransitionError`` -- producer payment or payable cannot be paid
  from its current status, or unmatching an unmatched transaction.
* ``InvalidValueError`` -- non-positive credit against an order, or a
  transaction listed twice.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_engines.reconciliation import (
    is_pending_for_display,
    outstanding_balance,
    summarize_match,
)
from backoffice_ingestion.adapters.ofx_adapter import OFXParseResult, OFXTransaction
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.money import absolute_money
from backoffice_kernel.exceptions import (
    InvalidValueError,
    MissingFieldError,
    OrderCancelledError,
    TransactionAlreadyMatchedError,
)
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.services.audit_service import AuditTrail
from backoffice_modules._service_helpers import apply_transition, lock_or_raise
from backoffice_modules.ap.orm import ManualPayableModel, ProducerPaymentModel
from backoffice_modules.ap.service import PayablesService
from backoffice_modules.ar.models import PaymentMethod, ReconciliationStatus
from backoffice_modules.ar.orm import PaymentModel
from backoffice_modules.ar.service import ReceivableService
from backoffice_modules.cash.config import ReconciliationConfig
from backoffice_modules.cash.models import (
    ImportStats,
    MatchedEntity,
    MatchResult,
    MatchStatus,
    TransactionKind,
)
from backoffice_modules.cash.orm import BankImportModel, BankTransactionModel
from backoffice_modules.cash.workflows import TRANSACTION_MATCH_WORKFLOW
from backoffice_modules.sales.models import OrderStatus
from backoffice_modules.sales.orm import OrderModel

logger = get_logger("modules.cash.service")


class ReconciliationService:
    """Statement import bookkeeping and transaction matching."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        config: ReconciliationConfig | None = None,
        receivables: ReceivableService | None = None,
        payables: PayablesService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)
        self._config = config or ReconciliationConfig()
        self._receivables = receivables or ReceivableService(session, clock=self._clock)
        self._payables = payables or PayablesService(session, clock=self._clock, audit=self._audit)

    @property
    def config(self) -> ReconciliationConfig:
        return self._config

    # ------------------------------------------------------------------
    # Import (flush only)
    # ------------------------------------------------------------------

    def record_import(
        self,
        parsed: OFXParseResult,
        file_name: str | None = None,
        file_hash: str | None = None,
    ) -> tuple[BankImportModel, ImportStats]:
        """
        Persist the transactions of a parsed statement.

        FITIDs already stored, or repeated earlier in the same file, are
        skipped and counted.  New rows start ``unmatched``.
        """
        fit_ids = {txn.fit_id for txn in parsed.transactions}
        known = set(self._session.scalars(
            select(BankTransactionModel.fit_id).where(BankTransactionModel.fit_id.in_(fit_ids))
        )) if fit_ids else set()

        account = parsed.account
        bank_import = BankImportModel(
            file_name=file_name,
            file_hash=file_hash,
            account_id=account.account_id if account else None,
            bank_id=account.bank_id if account else None,
            account_type=account.account_type if account else None,
            currency=account.currency if account else None,
            credit_total=parsed.stats.credit_total,
            debit_total=parsed.stats.debit_total,
            imported_at=self._clock.now(),
        )
        self._session.add(bank_import)
        self._session.flush()

        imported = skipped = 0
        for txn in parsed.transactions:
            if txn.fit_id in known:
                skipped += 1
                continue
            known.add(txn.fit_id)
            self._session.add(self._transaction_row(bank_import.id, txn))
            imported += 1

        stats = ImportStats(
            total=len(parsed.transactions),
            imported=imported,
            skipped=skipped,
            errors=parsed.stats.errors,
        )
        bank_import.total_transactions = stats.total
        bank_import.imported_count = stats.imported
        bank_import.skipped_count = stats.skipped
        bank_import.error_count = stats.errors
        self._session.flush()
        logger.info(
            "bank_import_recorded",
            extra={
                "import_id": str(bank_import.id),
                "total": stats.total,
                "imported": stats.imported,
                "skipped": stats.skipped,
                "errors": stats.errors,
            },
        )
        return bank_import, stats

    @staticmethod
    def _transaction_row(import_id: UUID, txn: OFXTransaction) -> BankTransactionModel:
        return BankTransactionModel(
            fit_id=txn.fit_id,
            fit_id_synthetic=txn.fit_id_synthetic,
            import_id=import_id,
            posted_date=txn.posted_date,
            has_valid_date=txn.has_valid_date,
            amount=txn.amount,
            description=txn.memo or txn.name or None,
            memo=txn.memo or None,
            name=txn.name or None,
            reference=txn.reference,
            kind=txn.kind,
            type_code=txn.type_code or None,
            status=MatchStatus.UNMATCHED.value,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_unmatched(self, kind: TransactionKind | str | None = None) -> list[BankTransactionModel]:
        stmt = select(BankTransactionModel).where(
            BankTransactionModel.status == MatchStatus.UNMATCHED.value
        )
        if kind is not None:
            stmt = stmt.where(BankTransactionModel.kind == TransactionKind(kind).value)
        return list(self._session.scalars(
            stmt.order_by(BankTransactionModel.posted_date, BankTransactionModel.fit_id)
        ))

    def pending_orders(self) -> list[OrderModel]:
        """Live orders with more than the display epsilon still to collect."""
        orders = self._session.scalars(
            select(OrderModel)
            .where(OrderModel.status != OrderStatus.CANCELLED.value)
            .order_by(OrderModel.created_at)
        )
        epsilon = self._config.pending_epsilon
        return [o for o in orders if is_pending_for_display(o.total_value, o.paid_value, epsilon)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_unmatched(self, transaction_ids: Sequence[UUID]) -> list[BankTransactionModel]:
        if not transaction_ids:
            raise MissingFieldError("transaction_ids", "bank_match")
        if len(set(transaction_ids)) != len(transaction_ids):
            raise InvalidValueError("transaction_ids", [str(t) for t in transaction_ids], "listed more than once")
        locked = {}
        # Fixed lock order so two multi-matches cannot deadlock.
        for transaction_id in sorted(transaction_ids, key=str):
            txn = lock_or_raise(self._session, BankTransactionModel, transaction_id, "bank_transaction")
            if txn.status == MatchStatus.MATCHED.value:
                raise TransactionAlreadyMatchedError(txn.id, txn.matched_entity_type, txn.matched_entity_id)
            locked[transaction_id] = txn
        return [locked[t] for t in transaction_ids]

    def _mark_matched(
        self,
        txn: BankTransactionModel,
        entity: MatchedEntity,
        entity_id: UUID,
        actor_id: UUID | None,
    ) -> None:
        apply_transition(TRANSACTION_MATCH_WORKFLOW, txn, MatchStatus.MATCHED)
        txn.matched_entity_type = entity.value
        txn.matched_entity_id = entity_id
        txn.matched_at = self._clock.now()
        txn.matched_by_id = actor_id

    @staticmethod
    def _mark_unmatched(txn: BankTransactionModel) -> None:
        apply_transition(TRANSACTION_MATCH_WORKFLOW, txn, MatchStatus.UNMATCHED)
        txn.matched_entity_type = None
        txn.matched_entity_id = None
        txn.matched_at = None
        txn.matched_by_id = None

    def _paid_at(self, txn: BankTransactionModel) -> datetime:
        now = self._clock.now()
        if txn.posted_date is None:
            return now
        return datetime.combine(txn.posted_date, time(), tzinfo=now.tzinfo)

    def _matched_siblings(self, entity: MatchedEntity, entity_id: UUID) -> list[BankTransactionModel]:
        return list(self._session.scalars(
            select(BankTransactionModel)
            .where(
                BankTransactionModel.matched_entity_type == entity.value,
                BankTransactionModel.matched_entity_id == entity_id,
            )
            .with_for_update()
        ))

    # ------------------------------------------------------------------
    # Client side
    # ------------------------------------------------------------------

    def match_transaction_to_order(
        self,
        transaction_id: UUID,
        order_id: UUID,
        actor_id: UUID | None = None,
    ) -> MatchResult:
        """Record one credit as a confirmed payment on ``order_id``."""
        return self.match_transactions_to_order([transaction_id], order_id, actor_id=actor_id)

    def match_transactions_to_order(
        self,
        transaction_ids: Sequence[UUID],
        order_id: UUID,
        actor_id: UUID | None = None,
    ) -> MatchResult:
        """
        Record each credit as a confirmed payment on ``order_id``.

        Each transaction gets its own payment (``ofx_matched``, linked both
        ways), then the order's paid value and receivable are recomputed.
        The summary compares the credits with what was outstanding before
        the match.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                transactions = self._lock_unmatched(list(transaction_ids))
                order = lock_or_raise(self._session, OrderModel, order_id, "order")
                if order.status == OrderStatus.CANCELLED.value:
                    raise OrderCancelledError(order_id)
                expected = outstanding_balance(order.total_value, order.paid_value)

                payment_ids = []
                for txn in transactions:
                    payment = self._receivables.create_payment(
                        order.id,
                        txn.amount,
                        method=PaymentMethod.BANK_TRANSFER,
                        paid_at=self._paid_at(txn),
                        reconciliation_status=ReconciliationStatus.OFX_MATCHED,
                        bank_transaction_id=txn.id,
                        transaction_reference=txn.fit_id,
                        notes=txn.description,
                        actor_id=actor_id,
                    )
                    self._mark_matched(txn, MatchedEntity.PAYMENT, payment.id, actor_id)
                    payment_ids.append(payment.id)
                self._session.flush()
                self._receivables.refresh_paid_value(order)

                summary = summarize_match((t.amount for t in transactions), expected)
                result = MatchResult(
                    transaction_ids=tuple(t.id for t in transactions),
                    entity_type="order",
                    entity_id=order.id,
                    summary=summary,
                    payment_ids=tuple(payment_ids),
                )
                self._record_match(result, actor_id, f"order {order.order_number}")
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                raise

    # ------------------------------------------------------------------
    # Supplier side
    # ------------------------------------------------------------------

    def match_transaction_to_producer_payment(
        self,
        transaction_id: UUID,
        producer_payment_id: UUID,
        actor_id: UUID | None = None,
    ) -> MatchResult:
        return self.match_transactions_to_producer_payment(
            [transaction_id], producer_payment_id, actor_id=actor_id,
        )

    def match_transactions_to_producer_payment(
        self,
        transaction_ids: Sequence[UUID],
        producer_payment_id: UUID,
        actor_id: UUID | None = None,
    ) -> MatchResult:
        """
        Settle a producer payment from one or more debits.

        The payment becomes ``paid`` / ``ofx_matched`` and links to the first
        transaction; every transaction points back at the payment.
        """
        try:
            transactions = self._lock_unmatched(list(transaction_ids))
            payment = lock_or_raise(self._session, ProducerPaymentModel, producer_payment_id, "producer_payment")
            self._payables.settle_producer_payment_from_bank(payment, transactions[0].id)
            for txn in transactions:
                self._mark_matched(txn, MatchedEntity.PRODUCER_PAYMENT, payment.id, actor_id)
            self._session.flush()

            summary = summarize_match((absolute_money(t.amount) for t in transactions), payment.amount)
            result = MatchResult(
                transaction_ids=tuple(t.id for t in transactions),
                entity_type=MatchedEntity.PRODUCER_PAYMENT.value,
                entity_id=payment.id,
                summary=summary,
            )
            self._record_match(result, actor_id, f"producer payment {payment.id}")
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    def match_transaction_to_payable(
        self,
        transaction_id: UUID,
        payable_id: UUID,
        actor_id: UUID | None = None,
    ) -> MatchResult:
        """Settle a manual payable (e.g. a client refund) from one debit."""
        try:
            (txn,) = self._lock_unmatched([transaction_id])
            payable = lock_or_raise(self._session, ManualPayableModel, payable_id, "manual_payable")
            self._payables.settle_payable_from_bank(payable, txn.id)
            self._mark_matched(txn, MatchedEntity.MANUAL_PAYABLE, payable.id, actor_id)
            self._session.flush()

            result = MatchResult(
                transaction_ids=(txn.id,),
                entity_type=MatchedEntity.MANUAL_PAYABLE.value,
                entity_id=payable.id,
                summary=summarize_match([absolute_money(txn.amount)], payable.amount),
            )
            self._record_match(result, actor_id, f"payable {payable.id}")
            self._session.commit()
            return result
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def unmatch_transaction(self, transaction_id: UUID, actor_id: UUID | None = None) -> list[UUID]:
        """
        Revert an association made from the bank feed.

        A client payment is cancelled and the order's paid value
        recomputed.  A producer payment or payable goes back to
        ``pending``, and every transaction matched to it is released.
        Returns the ids of the released transactions.
        """
        try:
            txn = lock_or_raise(self._session, BankTransactionModel, transaction_id, "bank_transaction")
            if txn.status != MatchStatus.MATCHED.value:
                TRANSACTION_MATCH_WORKFLOW.require_transition(txn.status, MatchStatus.UNMATCHED)
            entity = MatchedEntity(txn.matched_entity_type)
            entity_id = txn.matched_entity_id

            if entity == MatchedEntity.PAYMENT:
                released = [txn]
                payment = lock_or_raise(self._session, PaymentModel, entity_id, "payment")
                self._receivables.cancel_payment(payment.id)
                order = lock_or_raise(self._session, OrderModel, payment.order_id, "order")
                self._session.flush()
                self._receivables.refresh_paid_value(order)
            elif entity == MatchedEntity.PRODUCER_PAYMENT:
                released = self._matched_siblings(entity, entity_id)
                payment = lock_or_raise(self._session, ProducerPaymentModel, entity_id, "producer_payment")
                self._payables.revert_producer_payment_match(payment)
            else:
                released = self._matched_siblings(entity, entity_id)
                payable = lock_or_raise(self._session, ManualPayableModel, entity_id, "manual_payable")
                self._payables.revert_payable_match(payable)

            for released_txn in released:
                self._mark_unmatched(released_txn)
            self._session.flush()
            self._audit.record(
                self._session,
                "bank_transaction_unmatched",
                entity="bank_transaction",
                entity_id=txn.id,
                actor_id=actor_id,
                description=f"Bank match with {entity.value} {entity_id} reverted",
                details={"released": [str(t.id) for t in released]},
            )
            self._session.commit()
            return [t.id for t in released]
        except Exception:
            self._session.rollback()
            raise

    def _record_match(self, result: MatchResult, actor_id: UUID | None, target: str) -> None:
        summary = result.summary
        logger.info(
            "bank_transactions_matched",
            extra={
                "entity_type": result.entity_type,
                "entity_id": str(result.entity_id),
                "transaction_count": len(result.transaction_ids),
                "transaction_total": summary.transaction_total,
                "expected_amount": summary.expected_amount,
                "difference": summary.difference,
                "outcome": summary.outcome,
            },
        )
        self._audit.record(
            self._session,
            "bank_transactions_matched",
            entity=result.entity_type,
            entity_id=result.entity_id,
            actor_id=actor_id,
            description=f"{len(result.transaction_ids)} bank transaction(s) matched to {target}",
            level="warning" if summary.outcome != "exact" else "info",
            details={
                "transaction_ids": [str(t) for t in result.transaction_ids],
                "difference": summary.difference,
                "outcome": summary.outcome,
            },
        )
