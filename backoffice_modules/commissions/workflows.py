"""
Commission Workflow (``backoffice_modules.commissions.workflows``).

    pending --confirm--> confirmed --pay--> paid
    confirmed --deduct--> deducted
    any non-cancelled --cancel--> cancelled   (order cancelled)

Vendors are confirmed on delivery; partners are created already
confirmed.  Cancellation applies even to paid commissions: a cancelled
order pays no one.
"""

from backoffice_kernel.domain.workflow import Guard, Transition, Workflow
from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.commissions.workflows")

ORDER_DELIVERED = Guard(
    name="order_delivered",
    description="Vendor commissions are confirmed only once the order is delivered",
)

COMMISSION_WORKFLOW = Workflow(
    name="commission",
    description="Vendor / partner commission lifecycle",
    initial_state="pending",
    states=("pending", "confirmed", "paid", "deducted", "cancelled"),
    terminal_states=("cancelled",),
    transitions=(
        Transition("pending", "confirmed", action="confirm", guard=ORDER_DELIVERED),
        Transition("confirmed", "paid", action="pay"),
        Transition("confirmed", "deducted", action="deduct"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("confirmed", "cancelled", action="cancel"),
        Transition("paid", "cancelled", action="cancel"),
        Transition("deducted", "cancelled", action="cancel"),
    ),
)

logger.info(
    "commission_workflow_registered",
    extra={
        "workflow_name": COMMISSION_WORKFLOW.name,
        "state_count": len(COMMISSION_WORKFLOW.states),
        "transition_count": len(COMMISSION_WORKFLOW.transitions),
    },
)
