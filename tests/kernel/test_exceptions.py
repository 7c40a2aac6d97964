"""
Tests for the exception hierarchy.

Verifies:
- to_dict() carries kind, code, message and structured fields
- Categories are catchable as groups
"""

import pytest

from backoffice_kernel.exceptions import (
    BackofficeError,
    EntityNotFoundError,
    IllegalTransitionError,
    InvalidValueError,
    NotFoundError,
    QuantityBelowMinimumError,
    StateConflictError,
    ValidationError,
)


class TestToDict:

    def test_invalid_value_payload(self):
        payload = InvalidValueError("quantity", 0, "must be positive").to_dict()
        assert payload["kind"] == "validation"
        assert payload["code"] == "INVALID_VALUE"
        assert payload["field_name"] == "quantity"
        assert payload["value"] == "0"
        assert "quantity" in payload["message"]

    def test_illegal_transition_payload(self):
        payload = IllegalTransitionError("order", "delivered", "cancelled").to_dict()
        assert payload["kind"] == "state_conflict"
        assert payload["from_state"] == "delivered"
        assert payload["to_state"] == "cancelled"

    def test_entity_id_is_stringified(self):
        error = EntityNotFoundError("order", 42)
        assert error.entity_id == "42"


class TestCategories:

    @pytest.mark.parametrize("error,category", [
        (InvalidValueError("x", 1, "bad"), ValidationError),
        (QuantityBelowMinimumError("Engraving", 5, 10), ValidationError),
        (EntityNotFoundError("budget", "b1"), NotFoundError),
        (IllegalTransitionError("budget", "converted", "draft"), StateConflictError),
    ])
    def test_category_membership(self, error, category):
        assert isinstance(error, category)
        assert isinstance(error, BackofficeError)

    def test_domain_errors_are_not_value_errors(self):
        assert not isinstance(InvalidValueError("x", 1, "bad"), ValueError)
