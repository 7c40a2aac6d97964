"""
Commission Module Service (``backoffice_modules.commissions.service``).

Responsibility
--------------
Creates, recomputes, cancels and confirms the commission rows of an
order.  The split arithmetic lives in ``backoffice_engines.commission``.

Policy
------
* Vendor: one commission at the vendor's own rate (profile rate, else the
  settings rate), created ``pending`` and confirmed on delivery.  Vendors
  flagged as not commissioned get none.
* Partners: the partner pool rate is split evenly across ALL active
  partner users, one ``confirmed`` row each.  No partners -> no rows.

Architecture position
---------------------
**Modules layer** -- helper service driven by the sales module.  All
methods flush only, except ``transition_commission`` which owns its
transaction.  Orders are accessed by attribute (``id``, ``vendor_id``,
``total_value``, ``order_number``), so this module does not import sales.

Failure modes
-------------
* ``recalculate_all_commissions`` never raises for a single order: each
  order runs in its own savepoint and failures are logged and reported.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_engines.commission import (
    partner_percentage,
    plan_commissions,
)
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.money import percentage_of
from backoffice_kernel.exceptions import InvalidValueError
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.services.audit_service import AuditTrail
from backoffice_modules._service_helpers import apply_transition, lock_or_raise
from backoffice_modules.commissions.config import CommissionDefaults
from backoffice_modules.commissions.models import (
    FROZEN_STATUSES,
    CommissionStatus,
    CommissionType,
    RecalculationFailure,
    RecalculationReport,
)
from backoffice_modules.commissions.orm import CommissionModel, CommissionSettingsModel
from backoffice_modules.commissions.workflows import COMMISSION_WORKFLOW
from backoffice_modules.parties.service import PartyService

logger = get_logger("modules.commissions.service")


class CommissionService:
    """Commission rows of an order, kept in step with the order total."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        parties: PartyService | None = None,
        defaults: CommissionDefaults | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)
        self._parties = parties or PartyService(session)
        self._defaults = defaults or CommissionDefaults()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_or_initialize_settings(self) -> CommissionSettingsModel:
        settings = self._session.scalar(select(CommissionSettingsModel).limit(1))
        if settings is None:
            settings = CommissionSettingsModel(
                vendor_commission_rate=self._defaults.vendor_rate,
                partner_commission_rate=self._defaults.partner_rate,
            )
            self._session.add(settings)
            self._session.flush()
            logger.info("commission_settings_initialized", extra={"settings_id": str(settings.id)})
        return settings

    def update_settings(
        self,
        *,
        vendor_rate: Decimal | None = None,
        partner_rate: Decimal | None = None,
    ) -> CommissionSettingsModel:
        settings = self.get_or_initialize_settings()
        for name, value in (("vendor_commission_rate", vendor_rate), ("partner_commission_rate", partner_rate)):
            if value is None:
                continue
            if not Decimal(0) <= Decimal(value) <= Decimal(100):
                raise InvalidValueError(name, value, "must be between 0 and 100")
            setattr(settings, name, Decimal(value))
        self._session.flush()
        return settings

    # ------------------------------------------------------------------
    # Per-order operations
    # ------------------------------------------------------------------

    def commissions_for_order(self, order_id: UUID) -> list[CommissionModel]:
        return list(self._session.scalars(
            select(CommissionModel)
            .where(CommissionModel.order_id == order_id)
            .order_by(CommissionModel.type.desc(), CommissionModel.partner_id)
        ))

    def _plan(self, order: Any):
        settings = self.get_or_initialize_settings()
        terms = self._parties.vendor_terms(order.vendor_id)
        vendor_rate = terms.rate if terms.rate is not None else settings.vendor_commission_rate
        partners = self._parties.active_partner_ids()
        plan = plan_commissions(
            order.total_value,
            vendor_id=order.vendor_id,
            vendor_rate=vendor_rate,
            vendor_is_commissioned=terms.is_commissioned,
            partner_ids=partners,
            partner_rate=settings.partner_commission_rate,
        )
        return plan, settings, len(partners)

    def calculate_commissions(self, order: Any) -> list[CommissionModel]:
        """
        Create the commission rows of a new order.

        Idempotent: an order that already has commissions keeps them.
        """
        existing = self.commissions_for_order(order.id)
        if existing:
            logger.info("commissions_already_calculated", extra={"order_id": str(order.id)})
            return existing

        plan, _, _ = self._plan(order)
        now = self._clock.now()
        created: list[CommissionModel] = []
        if plan.vendor is not None:
            created.append(CommissionModel(
                order_id=order.id,
                type=CommissionType.VENDOR.value,
                vendor_id=plan.vendor.beneficiary_id,
                percentage=plan.vendor.percentage,
                amount=plan.vendor.amount,
                status=CommissionStatus.PENDING.value,
                order_value=order.total_value,
                order_number=order.order_number,
            ))
        for share in plan.partners:
            created.append(CommissionModel(
                order_id=order.id,
                type=CommissionType.PARTNER.value,
                partner_id=share.beneficiary_id,
                percentage=share.percentage,
                amount=share.amount,
                status=CommissionStatus.CONFIRMED.value,
                confirmed_at=now,
                order_value=order.total_value,
                order_number=order.order_number,
            ))
        self._session.add_all(created)
        self._session.flush()
        logger.info(
            "commissions_calculated",
            extra={
                "order_id": str(order.id),
                "vendor_commission": plan.vendor.amount if plan.vendor else None,
                "partner_count": len(plan.partners),
            },
        )
        return created

    def recalculate_commissions_for_order(self, order: Any) -> list[CommissionModel]:
        """
        Update the order's commission rows in place for its current total.

        Ids and statuses are preserved; cancelled and paid rows are left
        untouched.  The vendor rate is re-read from the vendor record and
        the partner split uses the current number of active partners.
        Returns the rows that changed.
        """
        plan, settings, partner_count = self._plan(order)
        partner_amounts = {s.beneficiary_id: s for s in plan.partners}
        pct = partner_percentage(settings.partner_commission_rate, partner_count)

        changed: list[CommissionModel] = []
        for commission in self.commissions_for_order(order.id):
            if commission.status in FROZEN_STATUSES:
                continue
            if commission.type == CommissionType.VENDOR.value:
                if plan.vendor is None:
                    continue
                new_pct, new_amount = plan.vendor.percentage, plan.vendor.amount
            else:
                share = partner_amounts.get(commission.partner_id)
                if share is not None:
                    new_pct, new_amount = share.percentage, share.amount
                else:
                    # Partner since deactivated: same share size as the active ones
                    new_pct, new_amount = pct, percentage_of(order.total_value, pct)
            if commission.amount != new_amount or Decimal(commission.percentage) != new_pct:
                commission.percentage = new_pct
                commission.amount = new_amount
                changed.append(commission)
            commission.order_value = order.total_value
        self._session.flush()
        logger.info(
            "commissions_recalculated",
            extra={"order_id": str(order.id), "changed": len(changed), "order_total": order.total_value},
        )
        return changed

    def update_commissions_by_order_status(self, order_id: UUID, order_status: str) -> int:
        """
        Apply an order status to its commissions; returns rows touched.

        ``cancelled`` cancels every commission and zeroes its amount (paid
        timestamps are kept); ``delivered`` confirms pending vendor
        commissions.  Other statuses do nothing.
        """
        if order_status == "cancelled":
            count = 0
            for commission in self.commissions_for_order(order_id):
                if commission.status == CommissionStatus.CANCELLED.value:
                    continue
                apply_transition(COMMISSION_WORKFLOW, commission, CommissionStatus.CANCELLED)
                commission.amount = "0.00"
                count += 1
            self._session.flush()
            logger.info("commissions_cancelled", extra={"order_id": str(order_id), "count": count})
            return count
        if order_status == "delivered":
            return self.confirm_vendor_commissions(order_id)
        return 0

    def confirm_vendor_commissions(self, order_id: UUID) -> int:
        """Pending vendor commissions -> confirmed; partners are unaffected."""
        now = self._clock.now()
        count = 0
        for commission in self.commissions_for_order(order_id):
            if commission.type != CommissionType.VENDOR.value:
                continue
            if commission.status != CommissionStatus.PENDING.value:
                continue
            apply_transition(COMMISSION_WORKFLOW, commission, CommissionStatus.CONFIRMED)
            commission.confirmed_at = now
            count += 1
        self._session.flush()
        if count:
            logger.info("vendor_commissions_confirmed", extra={"order_id": str(order_id), "count": count})
        return count

    def transition_commission(
        self,
        commission_id: UUID,
        status: CommissionStatus | str,
        actor_id: UUID | None = None,
    ) -> CommissionModel:
        """Move one commission through its workflow (pay, deduct, ...) and commit."""
        try:
            commission = lock_or_raise(self._session, CommissionModel, commission_id, "commission")
            previous = apply_transition(COMMISSION_WORKFLOW, commission, status)
            if commission.status == CommissionStatus.PAID.value:
                commission.paid_at = self._clock.now()
            commission.updated_by_id = actor_id
            self._audit.record(
                self._session,
                "commission_status_changed",
                entity="commission",
                entity_id=commission.id,
                actor_id=actor_id,
                description=f"Commission {previous} -> {commission.status}",
                details={"order_id": str(commission.order_id)},
            )
            self._session.commit()
            return commission
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Historical sweep
    # ------------------------------------------------------------------

    def recalculate_all_commissions(self, orders: Iterable[Any]) -> RecalculationReport:
        """
        Best-effort recomputation over historical orders.

        Orders without commissions get them created; others are updated
        in place.  A failing order is rolled back to its savepoint,
        logged and counted; the sweep continues.
        """
        processed = updated = 0
        failures: list[RecalculationFailure] = []
        for order in orders:
            processed += 1
            savepoint = self._session.begin_nested()
            try:
                if self.commissions_for_order(order.id):
                    updated += len(self.recalculate_commissions_for_order(order))
                else:
                    updated += len(self.calculate_commissions(order))
                savepoint.commit()
            except Exception as exc:
                savepoint.rollback()
                failures.append(RecalculationFailure(order_id=str(order.id), error=str(exc)))
                logger.warning(
                    "commission_recalculation_failed",
                    extra={"order_id": str(order.id), "error": str(exc)},
                    exc_info=True,
                )
        report = RecalculationReport(processed=processed, updated=updated, failures=tuple(failures))
        logger.info(
            "commission_sweep_completed",
            extra={"processed": processed, "updated": updated, "failed": report.failed},
        )
        return report
