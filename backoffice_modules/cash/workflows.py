"""
Bank Transaction Workflow (``backoffice_modules.cash.workflows``).

::

    unmatched --match--> matched --unmatch--> unmatched

A matched transaction cannot be matched again; the service locks the row
before checking, so two concurrent matches cannot both succeed.
"""

from backoffice_kernel.domain.workflow import Guard, Transition, Workflow
from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.cash.workflows")

NOT_YET_MATCHED = Guard(
    name="not_yet_matched",
    description="The transaction row, read under lock, is still unmatched",
)

TRANSACTION_MATCH_WORKFLOW = Workflow(
    name="bank_transaction",
    description="Association of an imported bank transaction with an obligation",
    initial_state="unmatched",
    states=("unmatched", "matched"),
    transitions=(
        Transition("unmatched", "matched", action="match", guard=NOT_YET_MATCHED),
        Transition("matched", "unmatched", action="unmatch"),
    ),
)

logger.info(
    "cash_workflow_registered",
    extra={
        "workflow_name": TRANSACTION_MATCH_WORKFLOW.name,
        "state_count": len(TRANSACTION_MATCH_WORKFLOW.states),
        "transition_count": len(TRANSACTION_MATCH_WORKFLOW.transitions),
    },
)
