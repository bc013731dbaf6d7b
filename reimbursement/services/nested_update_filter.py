"""
Nested Update Filter.

Guards the request/expenses subtree of a reimbursement update. Through a
reimbursement only ``total_amount`` and ``authorized_amount`` of existing
expenses may change; any other key anywhere in the subtree (including a
``_destroy`` marker) discards the whole subtree.
"""

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from reimbursement.core.attributes import (
    EXPENSE_NESTED_KEYS,
    EXPENSES_ATTRIBUTES_KEY,
    REQUEST_ATTRIBUTES_KEY,
    REQUEST_NESTED_KEYS,
)
from reimbursement.core.exceptions import NestedUpdateRejected
from reimbursement.models.request import Expense, Request
from reimbursement.schemas.reimbursement import ExpenseAmountsUpdate

EXPENSES_PATH = f"{REQUEST_ATTRIBUTES_KEY}.{EXPENSES_ATTRIBUTES_KEY}"


def indexed_entries(collection: Any) -> Optional[list[tuple[str, Any]]]:
    """
    Normalize a nested collection to (label, entry) pairs.

    Collections arrive either keyed by index ({"0": {...}}) or as a list.
    Returns None for anything else.
    """
    if isinstance(collection, Mapping):
        return [(str(label), entry) for label, entry in collection.items()]
    if isinstance(collection, (list, tuple)):
        return [(str(index), entry) for index, entry in enumerate(collection)]
    return None


def disallowed_request_paths(attrs: Any) -> list[str]:
    """
    Collect every key of the request subtree outside the allow-list.

    Args:
        attrs: Value of request_attributes

    Returns:
        Dotted paths of the offending keys, empty when acceptable
    """
    if not isinstance(attrs, Mapping):
        return [REQUEST_ATTRIBUTES_KEY]

    paths = [f"{REQUEST_ATTRIBUTES_KEY}.{key}" for key in attrs if key not in REQUEST_NESTED_KEYS]

    if EXPENSES_ATTRIBUTES_KEY in attrs:
        entries = indexed_entries(attrs[EXPENSES_ATTRIBUTES_KEY])
        if entries is None:
            paths.append(EXPENSES_PATH)
            return paths
        for label, entry in entries:
            if not isinstance(entry, Mapping):
                paths.append(f"{EXPENSES_PATH}.{label}")
                continue
            paths.extend(
                f"{EXPENSES_PATH}.{label}.{key}" for key in entry if key not in EXPENSE_NESTED_KEYS
            )

    return paths


def reject_request_attributes(attrs: Any) -> bool:
    """True if the request subtree must be discarded."""
    return bool(disallowed_request_paths(attrs))


def _same_id(value: Any, expected: int) -> bool:
    try:
        return int(value) == expected
    except (TypeError, ValueError):
        return False


def resolve_expense_updates(
    request: Request, attrs: Any
) -> list[tuple[Expense, ExpenseAmountsUpdate]]:
    """
    Check the request subtree and pair each entry with its expense.

    Nothing is modified here; the caller applies the returned updates.

    Raises:
        NestedUpdateRejected: On a disallowed key, a request id other than
            the reimbursed one, an entry without a known expense id, or an
            amount that is not a non-negative number.
    """
    paths = disallowed_request_paths(attrs)
    if paths:
        raise NestedUpdateRejected(paths)

    if "id" in attrs and not _same_id(attrs["id"], request.id):
        raise NestedUpdateRejected(
            [f"{REQUEST_ATTRIBUTES_KEY}.id"], reason="request does not belong to reimbursement"
        )

    updates: list[tuple[Expense, ExpenseAmountsUpdate]] = []
    for label, entry in indexed_entries(attrs.get(EXPENSES_ATTRIBUTES_KEY, {})) or []:
        path = f"{EXPENSES_PATH}.{label}"
        try:
            data = ExpenseAmountsUpdate.model_validate(dict(entry))
        except ValidationError as e:
            raise NestedUpdateRejected([path], reason="invalid expense values") from e

        expense = request.find_expense(data.id)
        if expense is None:
            raise NestedUpdateRejected(
                [f"{path}.id"], reason="expense does not belong to request"
            )
        updates.append((expense, data))

    return updates
