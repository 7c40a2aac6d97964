"""
Accounts Payable Workflows (``backoffice_modules.ap.workflows``).

Producer payment:

    pending --approve--> approved --pay--> paid
    pending --reject--> rejected
    pending --pay--> paid                   (direct bank match)
    paid --revert--> pending                (bank match undone)

Manual payable:

    pending --pay--> paid --revert--> pending
    pending --cancel--> cancelled
"""

from backoffice_kernel.domain.workflow import Guard, Transition, Workflow
from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.ap.workflows")

BANK_MATCH_REVERTED = Guard(
    name="bank_match_reverted",
    description="Only a payment settled by a bank match can go back to pending",
)

PRODUCER_PAYMENT_WORKFLOW = Workflow(
    name="producer_payment",
    description="Producer payment lifecycle",
    initial_state="pending",
    states=("pending", "approved", "rejected", "paid"),
    terminal_states=("rejected",),
    transitions=(
        Transition("pending", "approved", action="approve"),
        Transition("pending", "rejected", action="reject"),
        Transition("pending", "paid", action="pay"),
        Transition("approved", "paid", action="pay"),
        Transition("paid", "pending", action="revert", guard=BANK_MATCH_REVERTED),
    ),
)

PAYABLE_WORKFLOW = Workflow(
    name="manual_payable",
    description="Manual payable lifecycle",
    initial_state="pending",
    states=("pending", "paid", "cancelled"),
    terminal_states=("cancelled",),
    transitions=(
        Transition("pending", "paid", action="pay"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("paid", "pending", action="revert", guard=BANK_MATCH_REVERTED),
    ),
)

for _workflow in (PRODUCER_PAYMENT_WORKFLOW, PAYABLE_WORKFLOW):
    logger.info(
        "ap_workflow_registered",
        extra={
            "workflow_name": _workflow.name,
            "state_count": len(_workflow.states),
            "transition_count": len(_workflow.transitions),
        },
    )
