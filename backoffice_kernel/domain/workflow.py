"""
Canonical workflow types (``backoffice_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for entity state machines (budget, order, production
order, commission, producer payment).  Every status change in the core is
checked against a declared ``Workflow`` before it is written, so an
illegal move is rejected at the service boundary instead of being stored
as an arbitrary string.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``require_transition`` raises ``IllegalTransitionError`` for any move
  not in the table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from backoffice_kernel.exceptions import IllegalTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def can_transition(self, from_state: str | Enum, to_state: str | Enum) -> bool:
        return self.find_transition(_state(from_state), _state(to_state)) is not None

    def require_transition(self, from_state: str | Enum, to_state: str | Enum) -> Transition:
        """Return the matching transition or raise ``IllegalTransitionError``."""
        src, dst = _state(from_state), _state(to_state)
        transition = self.find_transition(src, dst)
        if transition is None:
            raise IllegalTransitionError(self.name, src, dst)
        return transition

    def targets_from(self, from_state: str | Enum) -> tuple[str, ...]:
        src = _state(from_state)
        return tuple(t.to_state for t in self.transitions if t.from_state == src)


def _state(value: str | Enum) -> str:
    return value.value if isinstance(value, Enum) else value
