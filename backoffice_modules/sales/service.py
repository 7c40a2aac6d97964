"""
Sales Module Service (``backoffice_modules.sales.service``).

Responsibility
--------------
``BudgetService`` -- budget create / update / send, client and admin
approval, photos, and the budget -> order conversion.

``OrderService`` -- order updates and status changes, cancellation,
manual payments, dispatch to production, production progress with its
roll-up into the order, producer values, dropshipping purchase status and
the commission sweep.

Architecture position
---------------------
**Modules layer** -- orchestrators.  Every public method owns its
transaction: commit on success, rollback and re-raise on failure.  The
aggregate row (budget or order) is locked with ``SELECT ... FOR UPDATE``
before any check-then-set.  Order mutations end with the hook list in
``hooks.py``.

Invariants enforced
-------------------
* Items: quantity > 0, unit price >= 0, known discount types, selected
  customization option exists and its minimum quantity is reached.
* A budget with an item below the minimum price cannot be sent; it is
  routed to ``awaiting_approval`` until an admin approves it.  Any edit
  clears a previous admin approval and re-runs the check.
* Conversion requires ``approved`` / ``admin_approved`` and produces one
  order, its receivable, its commissions and one production order per
  external producer.
* Cancellation refuses delivered orders, zeroes the paid value into
  ``refund_amount`` and opens a refund payable iff money was collected.
  Cancelling a cancelled order is a no-op.

Failure modes
-------------
* ``BudgetNotApprovedError``, ``BudgetRequiresApprovalError``,
  ``BudgetLockedError``, ``OrderNotCancellableError``,
  ``OrderCancelledError``, ``ProductionAlreadyDispatchedError``,
  ``ProducerValueLockedError``, ``IllegalTransitionError`` -- state.
* ``MissingFieldError``, ``InvalidValueError``,
  ``QuantityBelowMinimumError`` -- validation, raised before any write.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_engines.fulfillment import (
    CANCELLED_STATES,
    DELIVERED_STATES,
    READY_OR_LATER,
    SHIPPED_OR_LATER,
    aggregate_order_status,
    derive_product_status,
)
from backoffice_engines.pricing import FloorViolation
from backoffice_engines.totals import Discount, document_total, line_total
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.money import is_negative, is_positive, to_money_string
from backoffice_kernel.exceptions import (
    BudgetLockedError,
    BudgetNotApprovedError,
    BudgetRequiresApprovalError,
    IllegalTransitionError,
    InvalidValueError,
    MissingFieldError,
    OrderCancelledError,
    OrderNotCancellableError,
    ProducerValueLockedError,
    ProductionAlreadyDispatchedError,
    QuantityBelowMinimumError,
)
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.services.audit_service import AuditTrail
from backoffice_kernel.services.sequence_service import SequenceService
from backoffice_modules._service_helpers import apply_transition, get_or_raise, lock_or_raise
from backoffice_modules.ap.models import ProducerPaymentStatus
from backoffice_modules.ap.service import PayablesService
from backoffice_modules.ar.models import PaymentMethod, ReconciliationStatus
from backoffice_modules.ar.orm import PaymentModel
from backoffice_modules.ar.service import ReceivableService
from backoffice_modules.catalog.orm import ProductModel
from backoffice_modules.catalog.service import CatalogService
from backoffice_modules.commissions.models import RecalculationReport
from backoffice_modules.commissions.service import CommissionService
from backoffice_modules.parties.service import PartyService
from backoffice_modules.pricing.service import PricingService
from backoffice_modules.sales.hooks import (
    DEFAULT_ORDER_HOOKS,
    HookContext,
    OrderChange,
    OrderHook,
    run_order_hooks,
)
from backoffice_modules.sales.models import (
    CONVERTIBLE_BUDGET_STATUSES,
    BudgetDraft,
    BudgetItemInput,
    BudgetPhotoInput,
    BudgetStatus,
    ConversionResult,
    DispatchResult,
    OrderStatus,
    OrderUpdate,
    PaymentTerms,
    ProductionStatus,
    PurchaseStatus,
)
from backoffice_modules.sales.orm import (
    BudgetItemModel,
    BudgetModel,
    BudgetPaymentInfoModel,
    BudgetPhotoModel,
    OrderModel,
    ProductionOrderModel,
)
from backoffice_modules.sales.production import ProductionService
from backoffice_modules.sales.workflows import (
    BUDGET_WORKFLOW,
    ORDER_WORKFLOW,
    PRODUCTION_WORKFLOW,
    PURCHASE_WORKFLOW,
)

logger = get_logger("modules.sales.service")

# Budgets in these states go back to draft once their prices are fine again.
_REOPENED_ON_EDIT = frozenset({
    BudgetStatus.AWAITING_APPROVAL.value,
    BudgetStatus.NOT_APPROVED.value,
    BudgetStatus.REJECTED.value,
})

# Order statuses a production order in progress pulls the order into ``production`` from.
_PRE_PRODUCTION = frozenset({OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value})
_IN_PRODUCTION = frozenset({
    ProductionStatus.ACCEPTED.value,
    ProductionStatus.PRODUCTION.value,
    ProductionStatus.QUALITY_CHECK.value,
})


class _ItemBuilder:
    """Validates item inputs and builds priced ``BudgetItemModel`` rows."""

    def __init__(self, session: Session, catalog: CatalogService):
        self._session = session
        self._catalog = catalog

    def build(self, data: BudgetItemInput, position: int) -> BudgetItemModel:
        try:
            quantity = Decimal(data.quantity)
        except (InvalidOperation, TypeError):
            raise InvalidValueError("quantity", data.quantity, "not a number") from None
        if quantity <= 0:
            raise InvalidValueError("quantity", data.quantity, "must be greater than zero")
        unit_price = to_money_string(data.unit_price)
        if is_negative(unit_price):
            raise InvalidValueError("unit_price", data.unit_price, "cannot be negative")

        product = get_or_raise(self._session, ProductModel, data.product_id, "product")

        customization_value = data.item_customization_value
        if data.customization_option_id is not None:
            option = self._catalog.get_customization_option(data.customization_option_id)
            if quantity < Decimal(option.min_quantity):
                raise QuantityBelowMinimumError(option.name, str(quantity), str(option.min_quantity))
            if customization_value is None:
                customization_value = option.value
        customization_value = to_money_string(customization_value)
        general_value = to_money_string(data.general_customization_value)
        for name, value in (("item_customization_value", customization_value),
                            ("general_customization_value", general_value)):
            if is_negative(value):
                raise InvalidValueError(name, value, "cannot be negative")

        item = BudgetItemModel(
            position=position,
            product_id=product.id,
            producer_id=None if data.internal else (data.producer_id or product.producer_id),
            quantity=quantity,
            unit_price=unit_price,
            notes=data.notes,
            has_item_customization=(
                data.customization_option_id is not None or is_positive(customization_value)
            ),
            customization_option_id=data.customization_option_id,
            item_customization_value=customization_value,
            item_customization_description=data.item_customization_description,
            has_general_customization=is_positive(general_value),
            general_customization_name=data.general_customization_name,
            general_customization_value=general_value,
            product_width=data.product_width,
            product_height=data.product_height,
            product_depth=data.product_depth,
        )
        item.set_discount(data.discount)
        item.total_price = line_total(unit_price, quantity, customization_value, general_value, data.discount)
        return item

    def build_all(self, items: Sequence[BudgetItemInput]) -> list[BudgetItemModel]:
        return [self.build(data, position) for position, data in enumerate(items)]

    @staticmethod
    def copy(item: BudgetItemModel) -> BudgetItemModel:
        """Copy of a budget line, to be owned by an order."""
        clone = BudgetItemModel(
            position=item.position,
            product_id=item.product_id,
            producer_id=item.producer_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            notes=item.notes,
            has_item_customization=item.has_item_customization,
            customization_option_id=item.customization_option_id,
            item_customization_value=item.item_customization_value,
            item_customization_description=item.item_customization_description,
            has_general_customization=item.has_general_customization,
            general_customization_name=item.general_customization_name,
            general_customization_value=item.general_customization_value,
            product_width=item.product_width,
            product_height=item.product_height,
            product_depth=item.product_depth,
            purchase_status=item.purchase_status,
        )
        clone.set_discount(item.to_discount())
        return clone


def _items_total(items: Sequence[BudgetItemModel], discount: Discount) -> str:
    return document_total((item.total_price for item in items), discount)


def _validated_terms(terms: PaymentTerms) -> PaymentTerms:
    if terms.installments < 1:
        raise InvalidValueError("installments", terms.installments, "must be at least 1")
    for name in ("down_payment", "remaining_amount", "shipping_cost"):
        if is_negative(getattr(terms, name)):
            raise InvalidValueError(name, getattr(terms, name), "cannot be negative")
    return terms


class BudgetService:
    """Budget lifecycle and the budget -> order conversion."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        pricing: PricingService | None = None,
        commissions: CommissionService | None = None,
        receivables: ReceivableService | None = None,
        production: ProductionService | None = None,
        parties: PartyService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)
        self._catalog = CatalogService(session)
        self._items = _ItemBuilder(session, self._catalog)
        self._parties = parties or PartyService(session)
        self._pricing = pricing or PricingService(session, clock=self._clock, audit=self._audit)
        self._commissions = commissions or CommissionService(
            session, clock=self._clock, audit=self._audit, parties=self._parties,
        )
        self._receivables = receivables or ReceivableService(session, clock=self._clock)
        self._production = production or ProductionService(session, clock=self._clock)
        self._sequences = SequenceService(session, clock=self._clock)

    def get_budget(self, budget_id: UUID) -> BudgetModel:
        return get_or_raise(self._session, BudgetModel, budget_id, "budget")

    # ------------------------------------------------------------------
    # Pricing gate
    # ------------------------------------------------------------------

    def price_violations(self, budget: BudgetModel) -> list[FloorViolation]:
        """Items of ``budget`` below the minimum price for its current total."""
        priced = []
        for item in budget.items:
            product = self._session.get(ProductModel, item.product_id)
            priced.append(item.to_priced_item(product.cost_price if product is not None else None))
        return self._pricing.check_budget_needs_approval(budget.total_value, priced)

    def _route_by_price(self, budget: BudgetModel) -> list[FloorViolation]:
        """Move the budget to or out of ``awaiting_approval`` after an edit."""
        violations = self.price_violations(budget)
        if violations:
            if budget.status != BudgetStatus.AWAITING_APPROVAL.value:
                apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.AWAITING_APPROVAL)
        elif budget.status in _REOPENED_ON_EDIT:
            apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.DRAFT)
        return violations

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def _apply_draft(self, budget: BudgetModel, draft: BudgetDraft) -> None:
        if not draft.title or not draft.title.strip():
            raise MissingFieldError("title", "budget")
        if not draft.contact_name or not draft.contact_name.strip():
            raise MissingFieldError("contact_name", "budget")
        terms = _validated_terms(draft.payment)
        items = self._items.build_all(draft.items)

        budget.vendor_id = draft.vendor_id
        budget.client_id = draft.client_id
        budget.branch_id = draft.branch_id
        budget.title = draft.title.strip()
        budget.description = draft.description
        budget.contact_name = draft.contact_name.strip()
        budget.contact_phone = draft.contact_phone
        budget.contact_email = draft.contact_email
        budget.valid_until = draft.valid_until
        budget.delivery_deadline = draft.delivery_deadline
        budget.delivery_type = draft.delivery_type.value
        budget.set_discount(draft.discount)
        budget.items = items
        budget.total_value = _items_total(items, draft.discount)

        info = budget.payment_info
        if info is None:
            info = BudgetPaymentInfoModel()
            budget.payment_info = info
        info.payment_method_id = terms.payment_method_id
        info.shipping_method_id = terms.shipping_method_id
        info.installments = terms.installments
        info.down_payment = to_money_string(terms.down_payment)
        info.remaining_amount = to_money_string(terms.remaining_amount)
        info.shipping_cost = to_money_string(terms.shipping_cost)

    def create_budget(self, draft: BudgetDraft, actor_id: UUID | None = None) -> BudgetModel:
        """
        Create a budget with its items, terms and photos.

        The budget starts in ``draft``, or in ``awaiting_approval`` when an
        item is priced below the minimum.
        """
        logger.info("budget_create_started", extra={"vendor_id": str(draft.vendor_id), "item_count": len(draft.items)})
        try:
            budget = BudgetModel(
                budget_number=self._sequences.next_budget_number(),
                status=BudgetStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            self._apply_draft(budget, draft)
            for photo in draft.photos:
                budget.photos.append(self._photo(photo))
            self._session.add(budget)
            self._session.flush()
            violations = self._route_by_price(budget)
            self._audit.record(
                self._session,
                "budget_created",
                entity="budget",
                entity_id=budget.id,
                actor_id=actor_id,
                description=f"Budget {budget.budget_number} created ({budget.total_value})",
                details={"status": budget.status, "items_below_minimum": len(violations)},
            )
            self._session.commit()
            return budget
        except Exception:
            self._session.rollback()
            raise

    def update_budget(self, budget_id: UUID, draft: BudgetDraft, actor_id: UUID | None = None) -> BudgetModel:
        """
        Rewrite a budget's fields, items and terms.

        Photos are managed separately.  Any earlier admin approval is
        cleared and the minimum-price check runs again.
        """
        with LogContext.bind(budget_id=budget_id, actor_id=actor_id):
            logger.info("budget_update_started")
            try:
                budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
                if budget.status == BudgetStatus.CONVERTED.value:
                    raise BudgetLockedError(budget_id, budget.status)
                self._apply_draft(budget, draft)
                budget.admin_approved_at = None
                budget.admin_approved_by_id = None
                budget.updated_by_id = actor_id
                self._session.flush()
                violations = self._route_by_price(budget)
                self._audit.record(
                    self._session,
                    "budget_updated",
                    entity="budget",
                    entity_id=budget.id,
                    actor_id=actor_id,
                    description=f"Budget {budget.budget_number} updated ({budget.total_value})",
                    details={"status": budget.status, "items_below_minimum": len(violations)},
                )
                self._session.commit()
                return budget
            except Exception:
                self._session.rollback()
                raise

    # ------------------------------------------------------------------
    # Status actions
    # ------------------------------------------------------------------

    def send_budget(self, budget_id: UUID, actor_id: UUID | None = None) -> BudgetModel:
        """
        Send a budget to the client.

        Without an admin approval the minimum-price check runs first; a
        failing budget is moved to ``awaiting_approval`` (committed) and
        ``BudgetRequiresApprovalError`` is raised.
        """
        try:
            budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
            if budget.admin_approved_at is None:
                violations = self.price_violations(budget)
                if violations:
                    if budget.status != BudgetStatus.AWAITING_APPROVAL.value:
                        apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.AWAITING_APPROVAL)
                    self._session.commit()
                    raise BudgetRequiresApprovalError(budget_id, [str(v.item_id) for v in violations])
            apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.SENT)
            self._record_status(budget, "budget_sent", actor_id)
            self._session.commit()
            return budget
        except BudgetRequiresApprovalError:
            raise
        except Exception:
            self._session.rollback()
            raise

    def approve_budget(self, budget_id: UUID, actor_id: UUID | None = None) -> BudgetModel:
        """Client accepted a sent budget."""
        return self._simple_transition(budget_id, BudgetStatus.APPROVED, "budget_approved", actor_id)

    def reject_budget(self, budget_id: UUID, actor_id: UUID | None = None) -> BudgetModel:
        """Client declined a sent budget."""
        return self._simple_transition(budget_id, BudgetStatus.REJECTED, "budget_rejected", actor_id)

    def admin_approve_budget(
        self,
        budget_id: UUID,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> BudgetModel:
        """Admin accepts below-minimum prices; the budget can then be sent or converted."""
        try:
            budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
            apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.ADMIN_APPROVED)
            budget.admin_approved_at = self._clock.now()
            budget.admin_approved_by_id = actor_id
            budget.approval_notes = notes
            self._record_status(budget, "budget_admin_approved", actor_id)
            self._session.commit()
            return budget
        except Exception:
            self._session.rollback()
            raise

    def admin_reject_budget(
        self,
        budget_id: UUID,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> BudgetModel:
        try:
            budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
            apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.NOT_APPROVED)
            budget.approval_notes = notes
            self._record_status(budget, "budget_admin_rejected", actor_id)
            self._session.commit()
            return budget
        except Exception:
            self._session.rollback()
            raise

    def _simple_transition(
        self,
        budget_id: UUID,
        status: BudgetStatus,
        action: str,
        actor_id: UUID | None,
    ) -> BudgetModel:
        try:
            budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
            apply_transition(BUDGET_WORKFLOW, budget, status)
            self._record_status(budget, action, actor_id)
            self._session.commit()
            return budget
        except Exception:
            self._session.rollback()
            raise

    def _record_status(self, budget: BudgetModel, action: str, actor_id: UUID | None) -> None:
        budget.updated_by_id = actor_id
        self._audit.record(
            self._session,
            action,
            entity="budget",
            entity_id=budget.id,
            actor_id=actor_id,
            description=f"Budget {budget.budget_number} is now {budget.status}",
        )

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    def _photo(self, photo: BudgetPhotoInput) -> BudgetPhotoModel:
        if not photo.photo_url:
            raise MissingFieldError("photo_url", "budget_photo")
        return BudgetPhotoModel(
            photo_url=photo.photo_url,
            description=photo.description,
            uploaded_at=self._clock.now(),
        )

    def add_budget_photo(self, budget_id: UUID, photo: BudgetPhotoInput) -> BudgetPhotoModel:
        try:
            budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
            if budget.status == BudgetStatus.CONVERTED.value:
                raise BudgetLockedError(budget_id, budget.status)
            model = self._photo(photo)
            budget.photos.append(model)
            self._session.commit()
            return model
        except Exception:
            self._session.rollback()
            raise

    def remove_budget_photo(self, photo_id: UUID) -> None:
        try:
            photo = get_or_raise(self._session, BudgetPhotoModel, photo_id, "budget_photo")
            budget = photo.budget
            if budget.status == BudgetStatus.CONVERTED.value:
                raise BudgetLockedError(budget.id, budget.status)
            budget.photos.remove(photo)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert_budget_to_order(
        self,
        budget_id: UUID,
        client_id: UUID | None = None,
        delivery_date: datetime | None = None,
        actor_id: UUID | None = None,
    ) -> ConversionResult:
        """
        Turn an approved budget into an order.

        The order copies the budget's items and payment terms and takes its
        contact data from the client record (or the client's user record).
        Commissions, the receivable and one pending production order per
        external producer are created in the same transaction, and the
        budget ends ``converted``.
        """
        with LogContext.bind(budget_id=budget_id, actor_id=actor_id):
            logger.info("budget_conversion_started")
            try:
                budget = lock_or_raise(self._session, BudgetModel, budget_id, "budget")
                if budget.status not in CONVERTIBLE_BUDGET_STATUSES:
                    raise BudgetNotApprovedError(budget_id, budget.status)
                client_id = client_id or budget.client_id
                if client_id is None:
                    raise MissingFieldError("client_id", "order")
                contact = self._parties.resolve_client_contact(client_id)
                terms = budget.payment_info or BudgetPaymentInfoModel()

                order = OrderModel(
                    order_number=self._sequences.next_order_number(),
                    budget_id=budget.id,
                    client_id=client_id,
                    vendor_id=budget.vendor_id,
                    branch_id=budget.branch_id,
                    title=budget.title,
                    description=budget.description,
                    contact_name=contact.name,
                    contact_phone=contact.phone or budget.contact_phone,
                    contact_email=contact.email or budget.contact_email,
                    shipping_address=contact.address,
                    delivery_type=budget.delivery_type,
                    total_value=budget.total_value,
                    paid_value="0.00",
                    refund_amount="0.00",
                    status=OrderStatus.PENDING.value,
                    deadline=delivery_date or budget.delivery_deadline,
                    payment_method_id=terms.payment_method_id,
                    shipping_method_id=terms.shipping_method_id,
                    installments=terms.installments or 1,
                    down_payment=terms.down_payment or "0.00",
                    remaining_amount=terms.remaining_amount or "0.00",
                    shipping_cost=terms.shipping_cost or "0.00",
                    created_by_id=actor_id,
                )
                order.set_discount(budget.to_discount())
                order.items = [_ItemBuilder.copy(item) for item in budget.items]
                self._session.add(order)
                self._session.flush()

                commissions = self._commissions.calculate_commissions(order)
                receivable = self._receivables.sync_receivable(order)
                self._production.sync_production_orders(order)
                production_orders = self._production.production_orders_for(order.id)

                apply_transition(BUDGET_WORKFLOW, budget, BudgetStatus.CONVERTED)
                budget.client_id = client_id
                budget.updated_by_id = actor_id
                self._audit.record(
                    self._session,
                    "budget_converted",
                    entity="order",
                    entity_id=order.id,
                    actor_id=actor_id,
                    description=f"Budget {budget.budget_number} converted into order {order.order_number}",
                    details={
                        "budget_id": str(budget.id),
                        "total_value": order.total_value,
                        "production_orders": len(production_orders),
                    },
                )
                self._session.commit()
                logger.info(
                    "budget_converted",
                    extra={
                        "order_id": str(order.id),
                        "order_number": order.order_number,
                        "production_orders": len(production_orders),
                        "commissions": len(commissions),
                    },
                )
                return ConversionResult(
                    order=order,
                    production_orders=tuple(production_orders),
                    commissions=tuple(commissions),
                    receivable=receivable,
                )
            except Exception:
                self._session.rollback()
                raise


class OrderService:
    """Order mutations and their cascades."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        commissions: CommissionService | None = None,
        receivables: ReceivableService | None = None,
        payables: PayablesService | None = None,
        production: ProductionService | None = None,
        hooks: Sequence[OrderHook] = DEFAULT_ORDER_HOOKS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)
        self._items = _ItemBuilder(session, CatalogService(session))
        self._commissions = commissions or CommissionService(session, clock=self._clock, audit=self._audit)
        self._receivables = receivables or ReceivableService(session, clock=self._clock)
        self._payables = payables or PayablesService(session, clock=self._clock, audit=self._audit)
        self._production = production or ProductionService(session, clock=self._clock)
        self._hooks = tuple(hooks)
        self._hook_context = HookContext(
            commissions=self._commissions,
            receivables=self._receivables,
            production=self._production,
        )

    def get_order(self, order_id: UUID) -> OrderModel:
        return get_or_raise(self._session, OrderModel, order_id, "order")

    def _lock_live_order(self, order_id: UUID) -> OrderModel:
        order = lock_or_raise(self._session, OrderModel, order_id, "order")
        if order.status == OrderStatus.CANCELLED.value:
            raise OrderCancelledError(order_id)
        return order

    def _run_hooks(self, change: OrderChange) -> None:
        run_order_hooks(self._hooks, self._hook_context, change)

    # ------------------------------------------------------------------
    # Update / status
    # ------------------------------------------------------------------

    def update_order(self, order_id: UUID, update: OrderUpdate, actor_id: UUID | None = None) -> OrderModel:
        """
        Apply a partial update and run the cascade.

        A total change recomputes commissions, the receivable is always
        resynchronized, and replaced items re-derive production orders.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            logger.info("order_update_started")
            try:
                order = self._lock_live_order(order_id)
                previous_total, previous_status = order.total_value, order.status

                items_changed = update.items is not None
                if items_changed:
                    order.items = self._items.build_all(update.items)
                if update.discount is not None:
                    order.set_discount(update.discount)
                if items_changed or update.discount is not None:
                    order.total_value = _items_total(order.items, order.to_discount())
                elif update.total_value is not None:
                    total = to_money_string(update.total_value)
                    if is_negative(total):
                        raise InvalidValueError("total_value", update.total_value, "cannot be negative")
                    order.total_value = total

                for name in ("description", "deadline", "shipping_address", "installments"):
                    value = getattr(update, name)
                    if value is not None:
                        setattr(order, name, value)
                for name in ("down_payment", "shipping_cost", "remaining_amount"):
                    value = getattr(update, name)
                    if value is not None:
                        if is_negative(value):
                            raise InvalidValueError(name, value, "cannot be negative")
                        setattr(order, name, to_money_string(value))
                order.updated_by_id = actor_id
                self._session.flush()

                self._run_hooks(OrderChange(order, previous_total, previous_status, items_changed, actor_id))
                self._audit.record(
                    self._session,
                    "order_updated",
                    entity="order",
                    entity_id=order.id,
                    actor_id=actor_id,
                    description=f"Order {order.order_number} updated",
                    details={"previous_total": previous_total, "total_value": order.total_value},
                )
                self._session.commit()
                return order
            except Exception:
                self._session.rollback()
                raise

    def update_order_status(
        self,
        order_id: UUID,
        status: OrderStatus | str,
        actor_id: UUID | None = None,
    ) -> OrderModel:
        """
        Explicit order status change through the transition table.

        ``cancelled`` delegates to ``cancel_order``.  ``shipped`` and
        ``delivered`` require every live production order to have reached
        that stage.
        """
        target = OrderStatus(status)
        if target == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, actor_id=actor_id)
        try:
            order = self._lock_live_order(order_id)
            previous_total, previous_status = order.total_value, order.status
            self._check_production_stage(order, target)
            apply_transition(ORDER_WORKFLOW, order, target)
            order.updated_by_id = actor_id
            self._session.flush()
            self._run_hooks(OrderChange(order, previous_total, previous_status, actor_id=actor_id))
            self._audit.record(
                self._session,
                "order_status_changed",
                entity="order",
                entity_id=order.id,
                actor_id=actor_id,
                description=f"Order {order.order_number}: {previous_status} -> {order.status}",
            )
            self._session.commit()
            return order
        except Exception:
            self._session.rollback()
            raise

    def _check_production_stage(self, order: OrderModel, target: OrderStatus) -> None:
        required = {OrderStatus.SHIPPED: SHIPPED_OR_LATER, OrderStatus.DELIVERED: DELIVERED_STATES}.get(target)
        if required is None:
            return
        live = [
            po.status for po in self._production.production_orders_for(order.id)
            if po.status not in CANCELLED_STATES
        ]
        if any(s not in required for s in live):
            raise IllegalTransitionError(ORDER_WORKFLOW.name, order.status, target.value)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_order(
        self,
        order_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> OrderModel:
        """
        Cancel an order and unwind everything hanging off it.

        Paid value moves to ``refund_amount``; commissions are cancelled and
        zeroed; production orders and the receivable are cancelled; a
        refund payable is opened when money had been collected.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            logger.info("order_cancellation_started")
            try:
                order = lock_or_raise(self._session, OrderModel, order_id, "order")
                if order.status == OrderStatus.CANCELLED.value:
                    logger.info("order_already_cancelled")
                    self._session.commit()
                    return order
                if not ORDER_WORKFLOW.can_transition(order.status, OrderStatus.CANCELLED):
                    raise OrderNotCancellableError(order_id, order.status)

                previous_status = order.status
                refund = order.paid_value or "0.00"
                apply_transition(ORDER_WORKFLOW, order, OrderStatus.CANCELLED)
                order.refund_amount = refund
                order.paid_value = "0.00"
                order.cancelled_at = self._clock.now()
                order.cancelled_by_id = actor_id
                order.cancellation_reason = reason
                order.updated_by_id = actor_id
                self._session.flush()

                self._commissions.update_commissions_by_order_status(order.id, OrderStatus.CANCELLED.value)
                cancelled_production = self._production.cancel_all(order.id)
                self._receivables.cancel_receivable(order.id)
                payable = None
                if is_positive(refund):
                    payable = self._payables.create_refund_payable(order, refund)

                self._audit.record(
                    self._session,
                    "order_cancelled",
                    entity="order",
                    entity_id=order.id,
                    actor_id=actor_id,
                    description=f"Order {order.order_number} cancelled (was {previous_status})",
                    details={
                        "refund_amount": refund,
                        "refund_payable_id": str(payable.id) if payable else None,
                        "production_orders_cancelled": cancelled_production,
                        "reason": reason,
                    },
                )
                self._session.commit()
                return order
            except Exception:
                self._session.rollback()
                raise

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        order_id: UUID,
        amount: str,
        method: PaymentMethod | str = PaymentMethod.OTHER,
        paid_at: datetime | None = None,
        transaction_reference: str | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> PaymentModel:
        """Manual client payment; the order's paid value and receivable follow."""
        try:
            order = self._lock_live_order(order_id)
            payment = self._receivables.create_payment(
                order.id,
                amount,
                method=method,
                paid_at=paid_at,
                reconciliation_status=ReconciliationStatus.MANUAL,
                transaction_reference=transaction_reference,
                notes=notes,
                actor_id=actor_id,
            )
            self._receivables.refresh_paid_value(order)
            self._audit.record(
                self._session,
                "payment_recorded",
                entity="order",
                entity_id=order.id,
                actor_id=actor_id,
                description=f"Payment of {payment.amount} on order {order.order_number}",
                details={"paid_value": order.paid_value},
            )
            self._session.commit()
            return payment
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Production
    # ------------------------------------------------------------------

    def send_to_production(self, order_id: UUID, actor_id: UUID | None = None) -> DispatchResult:
        """
        Dispatch every external producer group.

        Promotions, new production orders and backfilled items are
        committed even when a producer had already been dispatched; that
        case is then reported with ``ProductionAlreadyDispatchedError``.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                order = self._lock_live_order(order_id)
                result = self._production.dispatch(order)
                if ORDER_WORKFLOW.can_transition(order.status, OrderStatus.PRODUCTION) and (
                    result.created or result.promoted
                ):
                    apply_transition(ORDER_WORKFLOW, order, OrderStatus.PRODUCTION)
                self._audit.record(
                    self._session,
                    "order_sent_to_production",
                    entity="order",
                    entity_id=order.id,
                    actor_id=actor_id,
                    description=f"Order {order.order_number} sent to production",
                    details={
                        "created_count": len(result.created),
                        "promoted": len(result.promoted),
                        "backfilled_items": result.backfilled_items,
                    },
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
        if result.conflicts:
            conflict = result.conflicts[0]
            raise ProductionAlreadyDispatchedError(
                order_id, conflict.producer_id, conflict.status, backfilled_items=result.backfilled_items,
            )
        return result

    def update_production_status(
        self,
        production_order_id: UUID,
        status: ProductionStatus | str,
        tracking_code: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProductionOrderModel:
        """
        Move a production order forward and roll the change up into its order.

        ``shipped`` stamps ``shipped_at``; ``ready`` opens the producer
        payment.  The order follows its production orders: partial_shipped
        while some have shipped, shipped / delivered once all have, ready
        once all are ready.
        """
        target = ProductionStatus(status)
        try:
            production_order = lock_or_raise(
                self._session, ProductionOrderModel, production_order_id, "production_order",
            )
            order = lock_or_raise(self._session, OrderModel, production_order.order_id, "order")
            previous_total, previous_status = order.total_value, order.status

            apply_transition(PRODUCTION_WORKFLOW, production_order, target)
            now = self._clock.now()
            if target == ProductionStatus.ACCEPTED:
                production_order.accepted_at = now
            elif target == ProductionStatus.SHIPPED:
                production_order.shipped_at = now
                if tracking_code:
                    production_order.tracking_code = tracking_code
            elif target == ProductionStatus.DELIVERED:
                production_order.delivered_at = now
            elif target == ProductionStatus.COMPLETED:
                production_order.completed_at = now
            elif target == ProductionStatus.READY:
                self._payables.ensure_producer_payment(production_order)
            production_order.updated_by_id = actor_id
            self._session.flush()

            if order.status != OrderStatus.CANCELLED.value:
                self._roll_up(order, production_order)
                self._run_hooks(OrderChange(order, previous_total, previous_status, actor_id=actor_id))
            self._audit.record(
                self._session,
                "production_status_changed",
                entity="production_order",
                entity_id=production_order.id,
                actor_id=actor_id,
                description=f"Production order is now {production_order.status}",
                details={"order_id": str(order.id), "order_status": order.status},
            )
            self._session.commit()
            return production_order
        except Exception:
            self._session.rollback()
            raise

    def _roll_up(self, order: OrderModel, changed: ProductionOrderModel) -> None:
        if changed.status in _IN_PRODUCTION and order.status in _PRE_PRODUCTION:
            apply_transition(ORDER_WORKFLOW, order, OrderStatus.PRODUCTION)
        statuses = [po.status for po in self._production.production_orders_for(order.id)]
        target = aggregate_order_status(order.status, statuses)
        if target is None:
            return
        if ORDER_WORKFLOW.can_transition(order.status, target):
            previous = apply_transition(ORDER_WORKFLOW, order, target)
            logger.info(
                "order_status_rolled_up",
                extra={"order_id": str(order.id), "from_status": previous, "to_status": target},
            )
        else:
            logger.debug(
                "order_roll_up_skipped",
                extra={"order_id": str(order.id), "from_status": order.status, "to_status": target},
            )

    def set_producer_value(
        self,
        production_order_id: UUID,
        value: str,
        lock: bool = False,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProductionOrderModel:
        """
        Producer-quoted value; once locked it cannot change.

        A production order already ready or beyond gets its producer
        payment here; a pending payment follows the new value.
        """
        try:
            production_order = lock_or_raise(
                self._session, ProductionOrderModel, production_order_id, "production_order",
            )
            if production_order.producer_value_locked:
                raise ProducerValueLockedError(production_order_id)
            value = to_money_string(value)
            if is_negative(value):
                raise InvalidValueError("producer_value", value, "cannot be negative")
            production_order.producer_value = value
            production_order.producer_value_locked = lock
            if notes is not None:
                production_order.producer_notes = notes
            payment = self._payables.producer_payment_for(production_order.id)
            if payment is None:
                if production_order.status in READY_OR_LATER:
                    self._payables.ensure_producer_payment(production_order)
            elif payment.status == ProducerPaymentStatus.PENDING.value:
                payment.amount = value
            production_order.updated_by_id = actor_id
            self._audit.record(
                self._session,
                "producer_value_set",
                entity="production_order",
                entity_id=production_order.id,
                actor_id=actor_id,
                description=f"Producer value {value}{' (locked)' if lock else ''}",
            )
            self._session.commit()
            return production_order
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Dropshipping
    # ------------------------------------------------------------------

    def update_item_purchase_status(
        self,
        item_id: UUID,
        status: PurchaseStatus | str,
        actor_id: UUID | None = None,
    ) -> BudgetItemModel:
        """Advance one order item's purchase stage; the order's product status follows."""
        try:
            item = lock_or_raise(self._session, BudgetItemModel, item_id, "order_item")
            if item.order_id is None:
                raise InvalidValueError("item_id", item_id, "not an order item")
            order = self._lock_live_order(item.order_id)
            apply_transition(PURCHASE_WORKFLOW, item, PurchaseStatus(status), attr="purchase_status")
            self._session.flush()
            order.product_status = derive_product_status([i.purchase_status for i in order.items])
            order.updated_by_id = actor_id
            self._session.commit()
            return item
        except Exception:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Commission sweep
    # ------------------------------------------------------------------

    def recalculate_all_commissions(self) -> RecalculationReport:
        """Best-effort commission recomputation over every live order."""
        try:
            orders = list(self._session.scalars(
                select(OrderModel)
                .where(OrderModel.status != OrderStatus.CANCELLED.value)
                .order_by(OrderModel.created_at)
            ))
            report = self._commissions.recalculate_all_commissions(orders)
            self._session.commit()
            return report
        except Exception:
            self._session.rollback()
            raise
