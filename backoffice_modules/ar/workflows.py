"""
Client Payment Workflow (``backoffice_modules.ar.workflows``).

    pending --confirm--> confirmed --cancel--> cancelled
    pending --cancel--> cancelled

Only confirmed payments count towards an order's paid value.
"""

from backoffice_kernel.domain.workflow import Transition, Workflow

PAYMENT_WORKFLOW = Workflow(
    name="client_payment",
    description="Client payment lifecycle",
    initial_state="pending",
    states=("pending", "confirmed", "cancelled"),
    terminal_states=("cancelled",),
    transitions=(
        Transition("pending", "confirmed", action="confirm"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("confirmed", "cancelled", action="cancel"),
    ),
)
