"""
Typed exception hierarchy for the back-office core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP boundary, batch jobs, tests) must react to failures by
type, not by parsing message strings.  Every exception here carries:

  1. A ``code`` class attribute (machine-readable, API-safe).
  2. A ``kind`` class attribute naming its category, so the boundary layer
     can map a whole category to one transport response.
  3. Structured attributes for the data that caused the failure.

Example::

    try:
        orders.cancel_order(order_id, actor_id=actor)
    except OrderNotCancellableError as e:
        return {"error": e.code, "status": e.status}
    except BackofficeError as e:
        return e.to_dict()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BackofficeError (base)
    |
    +-- ValidationError                       kind=validation
    |   +-- MissingFieldError
    |   +-- InvalidValueError
    |   +-- QuantityBelowMinimumError
    |   +-- FileTooLargeError
    |
    +-- NotFoundError                         kind=not_found
    |   +-- EntityNotFoundError
    |
    +-- StateConflictError                    kind=state_conflict
    |   +-- IllegalTransitionError
    |   +-- BudgetNotApprovedError
    |   +-- BudgetRequiresApprovalError
    |   +-- BudgetLockedError
    |   +-- OrderNotCancellableError
    |   +-- OrderCancelledError
    |   +-- ProductionAlreadyDispatchedError
    |   +-- TransactionAlreadyMatchedError
    |   +-- ProducerValueLockedError
    |
    +-- ConfigurationError                    kind=configuration
    |   +-- InvalidPricingDivisorError
    |
    +-- ParseError                            kind=parse
        +-- OFXParseError

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError: domain errors are catchable as a
   group without mixing in programming errors.
2. ``code`` and ``kind`` are class attributes: they are static per type and
   available without instantiation.
3. Validation and state-conflict errors are raised before any write, so the
   owning service's rollback leaves no partial mutation behind.
"""

from typing import Any


class BackofficeError(Exception):
    """
    Base exception for all back-office errors.

    All subclasses define ``code``; categories define ``kind``.
    """

    code: str = "BACKOFFICE_ERROR"
    kind: str = "internal"

    def to_dict(self) -> dict[str, Any]:
        """Structured payload for the boundary layer (kind + code + message + fields)."""
        payload: dict[str, Any] = {
            "kind": self.kind,
            "code": self.code,
            "message": str(self),
        }
        for key, value in vars(self).items():
            if not key.startswith("_"):
                payload[key] = value
        return payload


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(BackofficeError):
    """Input rejected before any write."""

    code: str = "VALIDATION_ERROR"
    kind: str = "validation"


class MissingFieldError(ValidationError):
    """A required field was absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str, entity: str | None = None):
        self.field_name = field_name
        self.entity = entity
        where = f" on {entity}" if entity else ""
        super().__init__(f"Missing required field '{field_name}'{where}")


class InvalidValueError(ValidationError):
    """A field holds a value outside its allowed set or range."""

    code: str = "INVALID_VALUE"

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field_name = field_name
        self.value = None if value is None else str(value)
        self.reason = reason
        super().__init__(f"Invalid value for '{field_name}': {value!r} ({reason})")


class QuantityBelowMinimumError(ValidationError):
    """Item quantity does not reach the customization's minimum quantity."""

    code: str = "QUANTITY_BELOW_MINIMUM"

    def __init__(self, customization_name: str, quantity: str, minimum: str):
        self.customization_name = customization_name
        self.quantity = quantity
        self.minimum = minimum
        super().__init__(
            f"Customization '{customization_name}' requires a minimum quantity "
            f"of {minimum} (got {quantity})"
        )


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds the accepted size."""

    code: str = "FILE_TOO_LARGE"

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"File of {size} bytes exceeds the {max_size} byte limit")


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(BackofficeError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"


class EntityNotFoundError(NotFoundError):
    """Entity with given ID was not found."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(f"{entity} not found: {entity_id}")


# ---------------------------------------------------------------------------
# State conflicts
# ---------------------------------------------------------------------------


class StateConflictError(BackofficeError):
    """The operation is not allowed in the entity's current state."""

    code: str = "STATE_CONFLICT"
    kind: str = "state_conflict"


class IllegalTransitionError(StateConflictError):
    """Requested status change is not in the entity's transition table."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, workflow: str, from_state: str, to_state: str):
        self.workflow = workflow
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal {workflow} transition: {from_state} -> {to_state}"
        )


class BudgetNotApprovedError(StateConflictError):
    """Budget conversion attempted outside approved / admin_approved."""

    code: str = "BUDGET_NOT_APPROVED"

    def __init__(self, budget_id: Any, status: str):
        self.budget_id = str(budget_id)
        self.status = status
        super().__init__(
            f"Budget {budget_id} must be approved before conversion (status={status})"
        )


class BudgetRequiresApprovalError(StateConflictError):
    """Budget has items below the minimum price and was routed to admin approval."""

    code: str = "BUDGET_REQUIRES_APPROVAL"

    def __init__(self, budget_id: Any, item_ids: list[str]):
        self.budget_id = str(budget_id)
        self.item_ids = item_ids
        super().__init__(
            f"Budget {budget_id} has {len(item_ids)} item(s) below the minimum "
            f"price and requires admin approval"
        )


class BudgetLockedError(StateConflictError):
    """A converted budget can no longer be edited."""

    code: str = "BUDGET_LOCKED"

    def __init__(self, budget_id: Any, status: str):
        self.budget_id = str(budget_id)
        self.status = status
        super().__init__(f"Budget {budget_id} cannot be modified in status {status}")


class OrderNotCancellableError(StateConflictError):
    """Delivered or completed orders cannot be cancelled."""

    code: str = "ORDER_NOT_CANCELLABLE"

    def __init__(self, order_id: Any, status: str):
        self.order_id = str(order_id)
        self.status = status
        super().__init__(f"Order {order_id} cannot be cancelled in status {status}")


class OrderCancelledError(StateConflictError):
    """Payments and matches are refused once an order is cancelled."""

    code: str = "ORDER_CANCELLED"

    def __init__(self, order_id: Any):
        self.order_id = str(order_id)
        super().__init__(f"Order {order_id} is cancelled")


class ProductionAlreadyDispatchedError(StateConflictError):
    """A producer's production order already left pending."""

    code: str = "PRODUCTION_ALREADY_DISPATCHED"

    def __init__(self, order_id: Any, producer_id: Any, status: str, backfilled_items: int = 0):
        self.order_id = str(order_id)
        self.producer_id = str(producer_id)
        self.status = status
        self.backfilled_items = backfilled_items
        super().__init__(
            f"Order {order_id} was already sent to producer {producer_id} "
            f"(production status={status})"
        )


class TransactionAlreadyMatchedError(StateConflictError):
    """Bank transaction is already associated with an obligation."""

    code: str = "TRANSACTION_ALREADY_MATCHED"

    def __init__(self, transaction_id: Any, matched_entity_type: str | None, matched_entity_id: Any):
        self.transaction_id = str(transaction_id)
        self.matched_entity_type = matched_entity_type
        self.matched_entity_id = str(matched_entity_id) if matched_entity_id else None
        super().__init__(
            f"Bank transaction {transaction_id} is already matched to "
            f"{matched_entity_type} {matched_entity_id}"
        )


class ProducerValueLockedError(StateConflictError):
    """Producer value of a production order is locked."""

    code: str = "PRODUCER_VALUE_LOCKED"

    def __init__(self, production_order_id: Any):
        self.production_order_id = str(production_order_id)
        super().__init__(f"Producer value is locked for production order {production_order_id}")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(BackofficeError):
    """Settings produce an undefined computation."""

    code: str = "CONFIGURATION_ERROR"
    kind: str = "configuration"


class InvalidPricingDivisorError(ConfigurationError):
    """1 - (tax + commission + margin) is zero or negative."""

    code: str = "INVALID_PRICING_DIVISOR"

    def __init__(self, tax_rate: str, commission_rate: str, margin_rate: str):
        self.tax_rate = tax_rate
        self.commission_rate = commission_rate
        self.margin_rate = margin_rate
        super().__init__(
            f"Pricing divisor is not positive: tax={tax_rate}% + "
            f"commission={commission_rate}% + margin={margin_rate}% >= 100%"
        )


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------


class ParseError(BackofficeError):
    """External file could not be parsed."""

    code: str = "PARSE_ERROR"
    kind: str = "parse"


class OFXParseError(ParseError):
    """OFX statement is structurally unparseable."""

    code: str = "OFX_PARSE_ERROR"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to parse OFX file: {detail}")
