"""
Accounts Payable Service (``backoffice_modules.ap.service``).

Responsibility
--------------
Producer payments (one per production order, created when the
production order reaches ``ready``) and manual payables (refunds owed
to clients of cancelled orders).

Architecture position
---------------------
**Modules layer**.  ``ensure_producer_payment``,
``create_refund_payable`` and the ``settle_*`` / ``revert_*`` helpers
flush only: they run inside the sales and cash transactions.  The
approve / reject / mark-paid methods are user actions and commit.

Invariants enforced
-------------------
* Marking anything paid by hand sets ``reconciliation_status=manual``
  and clears the bank-transaction link, so the bank matching path never
  settles it a second time.
* A bank match sets ``paid`` + ``ofx_matched`` and stores the link.

Failure modes
-------------
* ``EntityNotFoundError`` -- unknown payment / payable id.
* ``IllegalTransitionError`` -- move not allowed by the workflow.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.money import is_positive, to_money_string
from backoffice_kernel.exceptions import InvalidValueError
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.services.audit_service import AuditTrail
from backoffice_modules._service_helpers import apply_transition, lock_or_raise
from backoffice_modules.ap.models import PayableCategory, PayableStatus, ProducerPaymentStatus
from backoffice_modules.ap.orm import ManualPayableModel, ProducerPaymentModel
from backoffice_modules.ap.workflows import PAYABLE_WORKFLOW, PRODUCER_PAYMENT_WORKFLOW
from backoffice_modules.ar.models import ReconciliationStatus

logger = get_logger("modules.ap.service")


class PayablesService:
    """Producer payments and manual payables."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)

    # ------------------------------------------------------------------
    # Producer payments (flush only)
    # ------------------------------------------------------------------

    def producer_payment_for(self, production_order_id: UUID) -> ProducerPaymentModel | None:
        return self._session.scalar(
            select(ProducerPaymentModel).where(
                ProducerPaymentModel.production_order_id == production_order_id
            )
        )

    def ensure_producer_payment(self, production_order: Any) -> ProducerPaymentModel | None:
        """
        Producer payment for a production order that reached ``ready``.

        Idempotent: an existing payment is returned unchanged.  Nothing is
        created while the production order has no producer value.
        """
        existing = self.producer_payment_for(production_order.id)
        if existing is not None:
            return existing
        if not is_positive(production_order.producer_value):
            logger.info(
                "producer_payment_skipped_no_value",
                extra={"production_order_id": str(production_order.id)},
            )
            return None
        payment = ProducerPaymentModel(
            production_order_id=production_order.id,
            producer_id=production_order.producer_id,
            order_id=production_order.order_id,
            amount=production_order.producer_value,
            status=ProducerPaymentStatus.PENDING.value,
            reconciliation_status=ReconciliationStatus.PENDING.value,
        )
        self._session.add(payment)
        self._session.flush()
        logger.info(
            "producer_payment_created",
            extra={
                "production_order_id": str(production_order.id),
                "producer_id": str(production_order.producer_id),
                "amount": payment.amount,
            },
        )
        return payment

    def settle_producer_payment_from_bank(self, payment: ProducerPaymentModel, transaction_id: UUID) -> None:
        apply_transition(PRODUCER_PAYMENT_WORKFLOW, payment, ProducerPaymentStatus.PAID)
        payment.reconciliation_status = ReconciliationStatus.OFX_MATCHED.value
        payment.bank_transaction_id = transaction_id
        payment.paid_at = self._clock.now()
        self._session.flush()

    def revert_producer_payment_match(self, payment: ProducerPaymentModel) -> None:
        apply_transition(PRODUCER_PAYMENT_WORKFLOW, payment, ProducerPaymentStatus.PENDING)
        payment.reconciliation_status = ReconciliationStatus.PENDING.value
        payment.bank_transaction_id = None
        payment.paid_at = None
        self._session.flush()

    # ------------------------------------------------------------------
    # Manual payables (flush only)
    # ------------------------------------------------------------------

    def create_refund_payable(self, order: Any, amount: str) -> ManualPayableModel:
        """Refund owed to the client of a cancelled order."""
        amount = to_money_string(amount)
        if not is_positive(amount):
            raise InvalidValueError("amount", amount, "refund amount must be positive")
        payable = ManualPayableModel(
            description=f"Refund owed to client - order {order.order_number}",
            amount=amount,
            category=PayableCategory.REFUND.value,
            status=PayableStatus.PENDING.value,
            order_id=order.id,
            client_id=order.client_id,
            due_date=self._clock.now(),
            reconciliation_status=ReconciliationStatus.PENDING.value,
        )
        self._session.add(payable)
        self._session.flush()
        logger.info(
            "refund_payable_created",
            extra={"order_id": str(order.id), "amount": amount, "payable_id": str(payable.id)},
        )
        return payable

    def refunds_for_order(self, order_id: UUID) -> list[ManualPayableModel]:
        return list(self._session.scalars(
            select(ManualPayableModel).where(
                ManualPayableModel.order_id == order_id,
                ManualPayableModel.category == PayableCategory.REFUND.value,
            )
        ))

    def settle_payable_from_bank(self, payable: ManualPayableModel, transaction_id: UUID) -> None:
        apply_transition(PAYABLE_WORKFLOW, payable, PayableStatus.PAID)
        payable.reconciliation_status = ReconciliationStatus.OFX_MATCHED.value
        payable.bank_transaction_id = transaction_id
        payable.paid_at = self._clock.now()
        self._session.flush()

    def revert_payable_match(self, payable: ManualPayableModel) -> None:
        apply_transition(PAYABLE_WORKFLOW, payable, PayableStatus.PENDING)
        payable.reconciliation_status = ReconciliationStatus.PENDING.value
        payable.bank_transaction_id = None
        payable.paid_at = None
        self._session.flush()

    # ------------------------------------------------------------------
    # User actions (commit)
    # ------------------------------------------------------------------

    def approve_producer_payment(self, payment_id: UUID, actor_id: UUID | None = None) -> ProducerPaymentModel:
        try:
            payment = lock_or_raise(self._session, ProducerPaymentModel, payment_id, "producer_payment")
            apply_transition(PRODUCER_PAYMENT_WORKFLOW, payment, ProducerPaymentStatus.APPROVED)
            payment.approved_by_id = actor_id
            payment.approved_at = self._clock.now()
            self._audit.record(
                self._session,
                "producer_payment_approved",
                entity="producer_payment",
                entity_id=payment.id,
                actor_id=actor_id,
                description=f"Producer payment of {payment.amount} approved",
            )
            self._session.commit()
            return payment
        except Exception:
            self._session.rollback()
            raise

    def reject_producer_payment(
        self,
        payment_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProducerPaymentModel:
        try:
            payment = lock_or_raise(self._session, ProducerPaymentModel, payment_id, "producer_payment")
            apply_transition(PRODUCER_PAYMENT_WORKFLOW, payment, ProducerPaymentStatus.REJECTED)
            if reason:
                payment.notes = reason
            self._audit.record(
                self._session,
                "producer_payment_rejected",
                entity="producer_payment",
                entity_id=payment.id,
                actor_id=actor_id,
                description=reason or "Producer payment rejected",
            )
            self._session.commit()
            return payment
        except Exception:
            self._session.rollback()
            raise

    def mark_producer_payment_paid_manually(
        self,
        payment_id: UUID,
        actor_id: UUID | None = None,
    ) -> ProducerPaymentModel:
        """Paid outside the bank statement flow; any bank link is cleared."""
        try:
            payment = lock_or_raise(self._session, ProducerPaymentModel, payment_id, "producer_payment")
            apply_transition(PRODUCER_PAYMENT_WORKFLOW, payment, ProducerPaymentStatus.PAID)
            payment.reconciliation_status = ReconciliationStatus.MANUAL.value
            payment.bank_transaction_id = None
            payment.paid_at = self._clock.now()
            self._audit.record(
                self._session,
                "producer_payment_paid_manually",
                entity="producer_payment",
                entity_id=payment.id,
                actor_id=actor_id,
                description=f"Producer payment of {payment.amount} marked paid",
            )
            self._session.commit()
            return payment
        except Exception:
            self._session.rollback()
            raise

    def mark_payable_paid_manually(self, payable_id: UUID, actor_id: UUID | None = None) -> ManualPayableModel:
        try:
            payable = lock_or_raise(self._session, ManualPayableModel, payable_id, "manual_payable")
            apply_transition(PAYABLE_WORKFLOW, payable, PayableStatus.PAID)
            payable.reconciliation_status = ReconciliationStatus.MANUAL.value
            payable.bank_transaction_id = None
            payable.paid_at = self._clock.now()
            self._audit.record(
                self._session,
                "payable_paid_manually",
                entity="manual_payable",
                entity_id=payable.id,
                actor_id=actor_id,
                description=f"{payable.description}: {payable.amount} marked paid",
            )
            self._session.commit()
            return payable
        except Exception:
            self._session.rollback()
            raise
