"""
Tests for SequenceService.

Verifies:
- Values are strictly increasing per sequence name
- Document numbers carry the clock's YYMM prefix
- Order and budget counters are independent
"""

from datetime import datetime, timezone

from backoffice_kernel.services.sequence_service import SequenceService, format_document_number


class TestNextValue:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test_seq") == 1

    def test_strictly_increasing(self, session):
        service = SequenceService(session)
        values = [service.next_value("test_seq") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_current_value_does_not_increment(self, session):
        service = SequenceService(session)
        assert service.current_value("test_seq") is None
        service.next_value("test_seq")
        service.next_value("test_seq")
        assert service.current_value("test_seq") == 2
        assert service.current_value("test_seq") == 2


class TestDocumentNumbers:

    def test_order_number_format(self, session, deterministic_clock):
        service = SequenceService(session, deterministic_clock)
        assert service.next_order_number() == "PED-2503-000001"
        assert service.next_order_number() == "PED-2503-000002"

    def test_budget_counter_is_separate(self, session, deterministic_clock):
        service = SequenceService(session, deterministic_clock)
        service.next_order_number()
        assert service.next_budget_number() == "BUD-2503-000001"

    def test_counter_continues_across_months(self, session, deterministic_clock):
        service = SequenceService(session, deterministic_clock)
        service.next_order_number()
        deterministic_clock.set_time(datetime(2025, 4, 1, 9, 0, tzinfo=timezone.utc))
        assert service.next_order_number() == "PED-2504-000002"

    def test_format_pads_to_six_digits(self):
        assert format_document_number("PED", "2401", 7) == "PED-2401-000007"
