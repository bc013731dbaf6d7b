"""
Unit tests for the nested request/expenses update filter.
"""

from decimal import Decimal

import pytest

from reimbursement.core.exceptions import NestedUpdateRejected
from reimbursement.models import Expense, Request
from reimbursement.services.nested_update_filter import (
    disallowed_request_paths,
    indexed_entries,
    reject_request_attributes,
    resolve_expense_updates,
)


@pytest.fixture
def request_with_expenses():
    """Transient request 5 with expenses 1 and 2."""
    return Request(
        id=5,
        user_id=42,
        expenses=[
            Expense(id=1, subject="Flight", total_amount=Decimal("120.00")),
            Expense(id=2, subject="Hotel"),
        ],
    )


@pytest.mark.unit
class TestIndexedEntries:
    """Tests for collection normalization."""

    def test_index_keyed_mapping(self):
        assert indexed_entries({"0": {"id": 1}, 1: {"id": 2}}) == [
            ("0", {"id": 1}),
            ("1", {"id": 2}),
        ]

    def test_list(self):
        assert indexed_entries([{"id": 1}, {"id": 2}]) == [("0", {"id": 1}), ("1", {"id": 2})]

    @pytest.mark.parametrize("value", ["0", 3, None])
    def test_other_values(self, value):
        assert indexed_entries(value) is None


@pytest.mark.unit
class TestDisallowedRequestPaths:
    """Tests for the fail-closed allow-list."""

    def test_amount_update_is_accepted(self):
        attrs = {
            "id": 5,
            "expenses_attributes": {"0": {"id": 1, "total_amount": 100, "authorized_amount": 90}},
        }
        assert disallowed_request_paths(attrs) == []
        assert not reject_request_attributes(attrs)

    def test_request_field_is_rejected(self):
        attrs = {"id": 5, "description": "x"}
        assert disallowed_request_paths(attrs) == ["request_attributes.description"]
        assert reject_request_attributes(attrs)

    def test_destroy_marker_is_rejected(self):
        """Test a deletion marker rejects the subtree even with an allowed id."""
        attrs = {"id": 5, "expenses_attributes": {"0": {"id": 1, "_destroy": True}}}
        assert disallowed_request_paths(attrs) == [
            "request_attributes.expenses_attributes.0._destroy"
        ]

    def test_list_form_is_checked(self):
        attrs = {"expenses_attributes": [{"id": 1}, {"id": 2, "subject": "Taxi"}]}
        assert disallowed_request_paths(attrs) == [
            "request_attributes.expenses_attributes.1.subject"
        ]

    def test_collects_every_offending_path(self):
        attrs = {
            "user_id": 7,
            "expenses_attributes": {
                "0": {"id": 1, "estimated_amount": 10},
                "1": {"id": 2, "request_id": 9},
            },
        }
        assert disallowed_request_paths(attrs) == [
            "request_attributes.user_id",
            "request_attributes.expenses_attributes.0.estimated_amount",
            "request_attributes.expenses_attributes.1.request_id",
        ]

    def test_non_mapping_subtree(self):
        assert disallowed_request_paths("5") == ["request_attributes"]

    def test_non_collection_expenses(self):
        assert disallowed_request_paths({"expenses_attributes": "all"}) == [
            "request_attributes.expenses_attributes"
        ]

    def test_non_mapping_expense_entry(self):
        assert disallowed_request_paths({"expenses_attributes": {"0": 1}}) == [
            "request_attributes.expenses_attributes.0"
        ]

    def test_empty_subtree_is_accepted(self):
        assert disallowed_request_paths({}) == []


@pytest.mark.unit
class TestResolveExpenseUpdates:
    """Tests for pairing accepted entries with expenses."""

    def test_pairs_entries_with_expenses(self, request_with_expenses):
        attrs = {
            "id": 5,
            "expenses_attributes": {
                "0": {"id": 1, "total_amount": 100, "authorized_amount": 90},
                "1": {"id": "2", "authorized_amount": "12.50"},
            },
        }

        updates = resolve_expense_updates(request_with_expenses, attrs)

        assert [expense.id for expense, _ in updates] == [1, 2]
        first, second = (data for _, data in updates)
        assert first.total_amount == Decimal("100")
        assert first.authorized_amount == Decimal("90")
        assert second.total_amount is None
        assert second.authorized_amount == Decimal("12.50")

    def test_does_not_modify_expenses(self, request_with_expenses):
        attrs = {"expenses_attributes": {"0": {"id": 1, "total_amount": 1}}}
        resolve_expense_updates(request_with_expenses, attrs)
        assert request_with_expenses.expenses[0].total_amount == Decimal("120.00")

    def test_disallowed_key(self, request_with_expenses):
        with pytest.raises(NestedUpdateRejected) as exc_info:
            resolve_expense_updates(request_with_expenses, {"id": 5, "description": "x"})

        assert exc_info.value.rejected_paths == ["request_attributes.description"]
        assert exc_info.value.reason == "disallowed attributes"

    def test_other_request_id(self, request_with_expenses):
        with pytest.raises(NestedUpdateRejected) as exc_info:
            resolve_expense_updates(request_with_expenses, {"id": 6})

        assert exc_info.value.rejected_paths == ["request_attributes.id"]
        assert exc_info.value.reason == "request does not belong to reimbursement"

    def test_request_id_as_string(self, request_with_expenses):
        assert resolve_expense_updates(request_with_expenses, {"id": "5"}) == []

    def test_expense_of_other_request(self, request_with_expenses):
        attrs = {"expenses_attributes": {"0": {"id": 99, "total_amount": 1}}}
        with pytest.raises(NestedUpdateRejected) as exc_info:
            resolve_expense_updates(request_with_expenses, attrs)

        assert exc_info.value.rejected_paths == ["request_attributes.expenses_attributes.0.id"]
        assert exc_info.value.reason == "expense does not belong to request"

    def test_entry_without_id(self, request_with_expenses):
        attrs = {"expenses_attributes": {"0": {"total_amount": 1}}}
        with pytest.raises(NestedUpdateRejected) as exc_info:
            resolve_expense_updates(request_with_expenses, attrs)

        assert exc_info.value.reason == "invalid expense values"

    @pytest.mark.parametrize("amount", [-1, "lots", "90.129", "12345678901.00"])
    def test_invalid_amount(self, request_with_expenses, amount):
        attrs = {"expenses_attributes": [{"id": 1, "authorized_amount": amount}]}
        with pytest.raises(NestedUpdateRejected) as exc_info:
            resolve_expense_updates(request_with_expenses, attrs)

        assert exc_info.value.rejected_paths == ["request_attributes.expenses_attributes.0"]
        assert exc_info.value.reason == "invalid expense values"
