"""
Shared helpers for module services.

Used by backoffice_modules/*/service.py to load rows by id (optionally
under a row lock) and to apply workflow-checked status changes.

Architecture: Modules layer. Imports only from backoffice_kernel.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.workflow import Workflow
from backoffice_kernel.exceptions import EntityNotFoundError

T = TypeVar("T")


def get_or_raise(session: Session, model: type[T], entity_id: Any, entity: str) -> T:
    """Row by primary key, or ``EntityNotFoundError``."""
    row = session.get(model, entity_id) if entity_id is not None else None
    if row is None:
        raise EntityNotFoundError(entity, entity_id)
    return row


def lock_or_raise(session: Session, model: type[T], entity_id: Any, entity: str) -> T:
    """
    Row by primary key under ``SELECT ... FOR UPDATE``.

    ``populate_existing`` refreshes an instance already in the identity
    map, so the caller's check-then-set reads the locked values.
    """
    row = None
    if entity_id is not None:
        row = session.execute(
            select(model)
            .where(model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
    if row is None:
        raise EntityNotFoundError(entity, entity_id)
    return row


def apply_transition(workflow: Workflow, row: Any, to_state: str | Enum, attr: str = "status") -> str:
    """Check the move against ``workflow`` and write it; returns the previous state."""
    previous = getattr(row, attr)
    target = to_state.value if isinstance(to_state, Enum) else to_state
    workflow.require_transition(previous, target)
    setattr(row, attr, target)
    return previous
