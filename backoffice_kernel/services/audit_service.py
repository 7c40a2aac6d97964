"""
AuditTrail -- post-commit, best-effort business audit channel.

Responsibility:
    Records business events ("order_cancelled", "transaction_matched",
    "pricing_settings_updated", ...) for the system log.  Events are
    buffered on the SQLAlchemy session while the triggering operation runs
    and handed to an ``AuditSink`` only after that session commits.

Architecture position:
    Kernel > Services -- side channel.  Services call ``record()`` inside
    their transaction; nothing in the transactional path waits on the sink.

Invariants enforced:
    - Events of a rolled-back transaction are discarded, never emitted.
    - A failing sink never fails the caller: errors are logged at WARNING
      and swallowed.
    - Savepoint commits do not release buffered events; only the outermost
      commit does.

Failure modes:
    - Sink raises -> ``audit_sink_failed`` warning, event dropped.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import DateTime, String, Text, event
from sqlalchemy.orm import Mapped, Session, mapped_column

from backoffice_kernel.db.base import Base
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.utils.hashing import canonicalize_json

logger = get_logger("services.audit")

_PENDING_KEY = "backoffice_audit_pending"
_HOOKED_KEY = "backoffice_audit_hooked"


class SystemLogModel(Base):
    """
    Persisted audit-log row.

    Table: ``system_logs``
    """

    __tablename__ = "system_logs"

    user_id: Mapped[UUID | None]
    action: Mapped[str] = mapped_column(String(100))
    entity: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str] = mapped_column(Text, default="")
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[str] = mapped_column(String(20), default="info")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<SystemLogModel(action={self.action!r}, entity={self.entity!r}, entity_id={self.entity_id!r})>"


@dataclass(frozen=True)
class AuditEvent:
    """One business event destined for the system log."""
    action: str
    entity: str | None
    entity_id: str | None
    description: str
    occurred_at: datetime
    actor_id: UUID | None = None
    level: str = "info"
    details: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class AuditSink(Protocol):
    """Consumer of committed audit events."""

    def emit(self, audit_event: AuditEvent) -> None:
        ...


class StructuredLogSink:
    """Writes audit events to the structured JSON log."""

    def emit(self, audit_event: AuditEvent) -> None:
        payload = asdict(audit_event)
        payload["audit_action"] = payload.pop("action")
        payload["audit_level"] = payload.pop("level")
        logger.info("audit_event", extra=payload)


class DatabaseAuditSink:
    """
    Persists audit events as ``SystemLogModel`` rows.

    Uses its own session from ``session_factory`` because it runs after
    the caller's transaction has already committed.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def emit(self, audit_event: AuditEvent) -> None:
        session = self._session_factory()
        try:
            session.add(SystemLogModel(
                user_id=audit_event.actor_id,
                action=audit_event.action,
                entity=audit_event.entity,
                entity_id=audit_event.entity_id,
                description=audit_event.description,
                details=canonicalize_json(audit_event.details) if audit_event.details else None,
                level=audit_event.level,
                created_at=audit_event.occurred_at,
            ))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class RecordingAuditSink:
    """In-memory sink; keeps every emitted event in ``events``."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, audit_event: AuditEvent) -> None:
        self.events.append(audit_event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]


class AuditTrail:
    """
    Buffers audit events per session and releases them after commit.

    Contract:
        ``record()`` never raises for sink problems and never touches the
        database in the caller's transaction.

    Non-goals:
        - Not a durable outbox: an event whose sink fails is lost (logged).
    """

    def __init__(self, sink: AuditSink | None = None, clock: Clock | None = None):
        self._sink = sink or StructuredLogSink()
        self._clock = clock or SystemClock()

    @property
    def sink(self) -> AuditSink:
        return self._sink

    def record(
        self,
        session: Session,
        action: str,
        *,
        entity: str | None = None,
        entity_id: Any = None,
        description: str = "",
        actor_id: UUID | None = None,
        level: str = "info",
        details: dict[str, Any] | None = None,
    ) -> AuditEvent:
        audit_event = AuditEvent(
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            description=description,
            occurred_at=self._clock.now(),
            actor_id=actor_id,
            level=level,
            details=details or {},
        )
        self._hook(session)
        session.info.setdefault(_PENDING_KEY, []).append((self, audit_event))
        return audit_event

    def _deliver(self, audit_event: AuditEvent) -> None:
        try:
            self._sink.emit(audit_event)
        except Exception:
            logger.warning(
                "audit_sink_failed",
                extra={"audit_action": audit_event.action, "entity_id": audit_event.entity_id},
                exc_info=True,
            )

    @staticmethod
    def _hook(session: Session) -> None:
        if session.info.get(_HOOKED_KEY):
            return
        session.info[_HOOKED_KEY] = True
        event.listen(session, "after_commit", _release_pending)
        event.listen(session, "after_soft_rollback", _discard_pending)


def _release_pending(session: Session) -> None:
    if session.in_nested_transaction():
        return
    pending = session.info.pop(_PENDING_KEY, [])
    for trail, audit_event in pending:
        trail._deliver(audit_event)


def _discard_pending(session: Session, previous_transaction) -> None:
    if previous_transaction.parent is not None:
        return
    pending = session.info.pop(_PENDING_KEY, [])
    if pending:
        logger.debug("audit_events_discarded", extra={"count": len(pending)})

