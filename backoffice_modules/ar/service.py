"""
Accounts Receivable Service (``backoffice_modules.ar.service``).

Responsibility
--------------
Keeps the one-per-order receivable in step with the order and records
client payments.  The order's paid value is always the sum of its
confirmed payments; the receivable mirrors it.

Architecture position
---------------------
**Modules layer** -- helper service.  Every method flushes only; the
sales and cash orchestrators own the transaction.  Orders are read by
attribute (``id``, ``client_id``, ``vendor_id``, ``total_value``,
``paid_value``, ``down_payment``, ``shipping_cost``, ``deadline``,
``status``) so this module does not import sales.

Invariants enforced
-------------------
* Receivable status is derived only from ``received_amount`` vs
  ``amount`` (``backoffice_engines.reconciliation``), except
  ``cancelled`` which is terminal.
* Minimum payment is down payment + shipping when the down payment is
  positive, else zero.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_engines.reconciliation import derive_receivable_status, minimum_payment
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.money import compare_money, is_positive, sum_money, to_money_string
from backoffice_kernel.exceptions import InvalidValueError
from backoffice_kernel.logging_config import get_logger
from backoffice_modules._service_helpers import apply_transition, get_or_raise
from backoffice_modules.ar.models import (
    PaymentMethod,
    PaymentStatus,
    ReceivableStatus,
    ReconciliationStatus,
)
from backoffice_modules.ar.orm import AccountsReceivableModel, PaymentModel
from backoffice_modules.ar.workflows import PAYMENT_WORKFLOW

logger = get_logger("modules.ar.service")

_CANCELLED_ORDER = "cancelled"


class ReceivableService:
    """Receivable sync and client payments for orders."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def get_receivable(self, order_id: UUID) -> AccountsReceivableModel | None:
        return self._session.scalar(
            select(AccountsReceivableModel).where(AccountsReceivableModel.order_id == order_id)
        )

    def sync_receivable(self, order: Any) -> AccountsReceivableModel:
        """
        Create or refresh the receivable of ``order``.

        Amount, received amount, minimum payment and status are rewritten
        from the order.  A cancelled receivable stays cancelled.
        """
        receivable = self.get_receivable(order.id)
        if receivable is None:
            receivable = AccountsReceivableModel(
                order_id=order.id,
                client_id=order.client_id,
                vendor_id=order.vendor_id,
                due_date=order.deadline or self._clock.now(),
            )
            self._session.add(receivable)
            created = True
        else:
            created = False

        if receivable.status == ReceivableStatus.CANCELLED.value:
            return receivable

        receivable.amount = order.total_value
        receivable.received_amount = order.paid_value or "0.00"
        receivable.minimum_payment = minimum_payment(order.down_payment, order.shipping_cost)
        receivable.status = derive_receivable_status(receivable.amount, receivable.received_amount)
        self._session.flush()
        logger.info(
            "receivable_created" if created else "receivable_synced",
            extra={
                "order_id": str(order.id),
                "amount": receivable.amount,
                "received": receivable.received_amount,
                "receivable_status": receivable.status,
            },
        )
        return receivable

    def cancel_receivable(self, order_id: UUID) -> AccountsReceivableModel | None:
        receivable = self.get_receivable(order_id)
        if receivable is None:
            return None
        receivable.status = ReceivableStatus.CANCELLED.value
        receivable.received_amount = "0.00"
        self._session.flush()
        logger.info("receivable_cancelled", extra={"order_id": str(order_id)})
        return receivable

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def create_payment(
        self,
        order_id: UUID,
        amount: str,
        *,
        method: PaymentMethod | str = PaymentMethod.OTHER,
        status: PaymentStatus = PaymentStatus.CONFIRMED,
        paid_at: datetime | None = None,
        reconciliation_status: ReconciliationStatus = ReconciliationStatus.MANUAL,
        bank_transaction_id: UUID | None = None,
        transaction_reference: str | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> PaymentModel:
        """Record a payment.  Does NOT refresh the paid value; see ``refresh_paid_value``."""
        amount = to_money_string(amount)
        if not is_positive(amount):
            raise InvalidValueError("amount", amount, "payment amount must be positive")
        try:
            method_value = PaymentMethod(method).value
        except ValueError:
            raise InvalidValueError("method", method, "unknown payment method") from None

        payment = PaymentModel(
            order_id=order_id,
            amount=amount,
            method=method_value,
            status=status.value,
            paid_at=paid_at or self._clock.now(),
            reconciliation_status=reconciliation_status.value,
            bank_transaction_id=bank_transaction_id,
            transaction_reference=transaction_reference,
            notes=notes,
            created_by_id=actor_id,
        )
        self._session.add(payment)
        self._session.flush()
        logger.info(
            "payment_recorded",
            extra={
                "order_id": str(order_id),
                "payment_id": str(payment.id),
                "amount": amount,
                "reconciliation_status": payment.reconciliation_status,
            },
        )
        return payment

    def payments_for_order(self, order_id: UUID) -> list[PaymentModel]:
        return list(self._session.scalars(
            select(PaymentModel).where(PaymentModel.order_id == order_id).order_by(PaymentModel.paid_at)
        ))

    def confirmed_total(self, order_id: UUID) -> str:
        return sum_money(
            p.amount for p in self.payments_for_order(order_id)
            if p.status == PaymentStatus.CONFIRMED.value
        )

    def cancel_payment(self, payment_id: UUID) -> PaymentModel:
        payment = get_or_raise(self._session, PaymentModel, payment_id, "payment")
        apply_transition(PAYMENT_WORKFLOW, payment, PaymentStatus.CANCELLED)
        self._session.flush()
        logger.info("payment_cancelled", extra={"payment_id": str(payment_id), "order_id": str(payment.order_id)})
        return payment

    def refresh_paid_value(self, order: Any) -> str:
        """
        Recompute ``order.paid_value`` from confirmed payments and resync the receivable.

        Cancelled orders are left alone: their paid value was moved to the
        refund payable.
        """
        if order.status == _CANCELLED_ORDER:
            return order.paid_value
        total = self.confirmed_total(order.id)
        order.paid_value = total
        if compare_money(total, order.total_value) > 0:
            logger.warning(
                "order_overpaid",
                extra={"order_id": str(order.id), "paid": total, "order_total": order.total_value},
            )
        self.sync_receivable(order)
        return total
