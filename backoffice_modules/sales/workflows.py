"""
Sales Workflows (``backoffice_modules.sales.workflows``).

Budget::

    draft --send--> sent --client approve--> approved --convert--> converted
                      +--client reject--> rejected
    draft / sent / approved / rejected / not_approved / admin_approved
          --below minimum price--> awaiting_approval
    awaiting_approval --admin approve--> admin_approved --send/convert-->
    awaiting_approval --admin reject--> not_approved --edit--> draft

Order::

    pending -> confirmed -> production -> ready -> partial_shipped -> shipped -> delivered
    any open status -> cancelled

Production order::

    pending -> accepted -> production -> quality_check -> ready
            -> preparing_shipment -> shipped -> delivered -> completed
    pending -> rejected;  every status but completed / rejected -> cancelled

Item purchase (dropshipping)::

    pending -> to_buy -> purchased -> in_store
"""

from backoffice_kernel.domain.workflow import Guard, Transition, Workflow
from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.sales.workflows")

PRICES_ABOVE_MINIMUM = Guard(
    name="prices_above_minimum",
    description="Every item is at or above its minimum price, or an admin approved the budget",
)

ALL_PRODUCTION_SHIPPED = Guard(
    name="all_production_shipped",
    description="Every live production order of the order has shipped",
)

ALL_PRODUCTION_DELIVERED = Guard(
    name="all_production_delivered",
    description="Every live production order of the order has been delivered",
)

_BELOW_MINIMUM_SOURCES = ("draft", "sent", "approved", "admin_approved", "not_approved", "rejected")

BUDGET_WORKFLOW = Workflow(
    name="budget",
    description="Quote lifecycle with the minimum-price approval gate",
    initial_state="draft",
    states=(
        "draft", "sent", "awaiting_approval", "approved", "admin_approved",
        "not_approved", "rejected", "converted",
    ),
    terminal_states=("converted",),
    transitions=(
        Transition("draft", "sent", action="send", guard=PRICES_ABOVE_MINIMUM),
        Transition("admin_approved", "sent", action="send"),
        Transition("sent", "approved", action="client_approve"),
        Transition("sent", "rejected", action="client_reject"),
        Transition("awaiting_approval", "admin_approved", action="admin_approve"),
        Transition("awaiting_approval", "not_approved", action="admin_reject"),
        Transition("approved", "converted", action="convert"),
        Transition("admin_approved", "converted", action="convert"),
        Transition("awaiting_approval", "draft", action="edit"),
        Transition("not_approved", "draft", action="edit"),
        Transition("rejected", "draft", action="edit"),
    ) + tuple(
        Transition(source, "awaiting_approval", action="require_approval")
        for source in _BELOW_MINIMUM_SOURCES
    ),
)

ORDER_WORKFLOW = Workflow(
    name="order",
    description="Order lifecycle driven by production progress",
    initial_state="pending",
    states=(
        "pending", "confirmed", "production", "ready", "partial_shipped",
        "shipped", "delivered", "cancelled",
    ),
    terminal_states=("delivered", "cancelled"),
    transitions=(
        Transition("pending", "confirmed", action="confirm"),
        Transition("pending", "production", action="start_production"),
        Transition("confirmed", "production", action="start_production"),
        Transition("production", "ready", action="ready"),
        Transition("shipped", "delivered", action="deliver", guard=ALL_PRODUCTION_DELIVERED),
    ) + tuple(
        Transition(source, target, action=action, guard=guard)
        for source in ("pending", "confirmed", "production", "ready", "partial_shipped")
        for target, action, guard in (
            ("partial_shipped", "ship_partially", None),
            ("shipped", "ship", ALL_PRODUCTION_SHIPPED),
            ("delivered", "deliver", ALL_PRODUCTION_DELIVERED),
        )
        if source != target
    ) + tuple(
        Transition(source, "cancelled", action="cancel")
        for source in ("pending", "confirmed", "production", "ready", "partial_shipped", "shipped")
    ),
)

PRODUCTION_WORKFLOW = Workflow(
    name="production_order",
    description="Producer-side work on one order",
    initial_state="pending",
    states=(
        "pending", "accepted", "production", "quality_check", "ready",
        "preparing_shipment", "shipped", "delivered", "completed", "rejected", "cancelled",
    ),
    terminal_states=("completed", "rejected", "cancelled"),
    transitions=(
        Transition("pending", "accepted", action="accept"),
        Transition("pending", "rejected", action="reject"),
        Transition("accepted", "production", action="start"),
        Transition("production", "quality_check", action="inspect"),
        Transition("production", "ready", action="finish"),
        Transition("quality_check", "ready", action="pass_inspection"),
        Transition("quality_check", "production", action="fail_inspection"),
        Transition("ready", "preparing_shipment", action="prepare_shipment"),
        Transition("ready", "shipped", action="ship"),
        Transition("preparing_shipment", "shipped", action="ship"),
        Transition("shipped", "delivered", action="deliver"),
        Transition("delivered", "completed", action="complete"),
    ) + tuple(
        Transition(source, "cancelled", action="cancel")
        for source in (
            "pending", "accepted", "production", "quality_check", "ready",
            "preparing_shipment", "shipped", "delivered",
        )
    ),
)

PURCHASE_WORKFLOW = Workflow(
    name="item_purchase",
    description="Dropshipping purchase stage of an order item",
    initial_state="pending",
    states=("pending", "to_buy", "purchased", "in_store"),
    terminal_states=("in_store",),
    transitions=(
        Transition("pending", "to_buy", action="mark_to_buy"),
        Transition("to_buy", "purchased", action="purchase"),
        Transition("purchased", "in_store", action="receive"),
    ),
)

for _workflow in (BUDGET_WORKFLOW, ORDER_WORKFLOW, PRODUCTION_WORKFLOW, PURCHASE_WORKFLOW):
    logger.info(
        "sales_workflow_registered",
        extra={
            "workflow_name": _workflow.name,
            "state_count": len(_workflow.states),
            "transition_count": len(_workflow.transitions),
        },
    )
