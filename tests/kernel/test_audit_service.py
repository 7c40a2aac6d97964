"""
Tests for AuditTrail.

Verifies:
- Events are released to the sink only after the session commits
- Events of a rolled-back transaction are discarded
- A failing sink never fails the caller
"""

import json

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from backoffice_kernel.services.audit_service import (
    AuditTrail,
    DatabaseAuditSink,
    RecordingAuditSink,
    StructuredLogSink,
    SystemLogModel,
)


class ExplodingSink:
    def emit(self, audit_event):
        raise RuntimeError("sink down")


class TestAuditRelease:

    def test_not_emitted_before_commit(self, session, audit, audit_sink):
        audit.record(session, "order_cancelled", entity="order", entity_id="abc")
        assert audit_sink.events == []

    def test_emitted_after_commit(self, session, audit, audit_sink):
        audit.record(session, "order_cancelled", entity="order", entity_id="abc", details={"reason": "x"})
        session.commit()
        assert audit_sink.actions() == ["order_cancelled"]
        emitted = audit_sink.events[0]
        assert emitted.entity_id == "abc"
        assert emitted.details == {"reason": "x"}

    def test_discarded_on_rollback(self, session, audit, audit_sink):
        session.execute(text("SELECT 1"))
        audit.record(session, "order_cancelled")
        session.rollback()
        session.commit()
        assert audit_sink.events == []

    def test_occurred_at_comes_from_clock(self, session, audit, audit_sink, deterministic_clock):
        audit.record(session, "budget_sent")
        session.commit()
        assert audit_sink.events[0].occurred_at == deterministic_clock.now()

    def test_two_trails_share_one_session(self, session, deterministic_clock):
        first, second = RecordingAuditSink(), RecordingAuditSink()
        AuditTrail(first, deterministic_clock).record(session, "a")
        AuditTrail(second, deterministic_clock).record(session, "b")
        session.commit()
        assert first.actions() == ["a"]
        assert second.actions() == ["b"]


class TestSinkFailure:

    def test_sink_error_is_logged_not_raised(self, session, deterministic_clock, captured_logs):
        trail = AuditTrail(ExplodingSink(), deterministic_clock)
        trail.record(session, "order_cancelled")
        session.commit()
        logs = captured_logs()
        assert any(r["message"] == "audit_sink_failed" for r in logs)


class TestSinks:

    def test_database_sink_writes_system_log(self, session, deterministic_clock):
        connection = session.bind
        sink = DatabaseAuditSink(lambda: Session(bind=connection, join_transaction_mode="create_savepoint"))
        trail = AuditTrail(sink, deterministic_clock)
        trail.record(session, "budget_created", entity="budget", entity_id="b-1", details={"items": 2})
        session.commit()
        row = session.scalars(select(SystemLogModel)).one()
        assert (row.action, row.entity, row.entity_id, row.level) == ("budget_created", "budget", "b-1", "info")
        assert json.loads(row.details) == {"items": 2}

    def test_structured_log_sink(self, session, deterministic_clock, captured_logs):
        AuditTrail(StructuredLogSink(), deterministic_clock).record(session, "order_updated", entity="order")
        session.commit()
        (record,) = [r for r in captured_logs() if r["message"] == "audit_event"]
        assert (record["audit_action"], record["entity"]) == ("order_updated", "order")
