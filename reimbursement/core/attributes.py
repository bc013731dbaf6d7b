"""
Accessible Attribute Configuration.

Statically declared write surface of the update payload. Anything not
listed here is never assigned from user input.
"""

# Marker used by nested collections to request removal of an entry
DESTROY_KEY = "_destroy"

REQUEST_ATTRIBUTES_KEY = "request_attributes"
EXPENSES_ATTRIBUTES_KEY = "expenses_attributes"
ATTACHMENTS_ATTRIBUTES_KEY = "attachments_attributes"

# Writable top-level keys per entity
ACCESSIBLE_ATTRIBUTES: dict[str, frozenset[str]] = {
    "reimbursement": frozenset(
        {
            "description",
            "requester_notes",
            "tsp_notes",
            "administrative_notes",
            REQUEST_ATTRIBUTES_KEY,
            ATTACHMENTS_ATTRIBUTES_KEY,
        }
    ),
    "attachment": frozenset({"id", "title", "file_name", DESTROY_KEY}),
}

# Plain columns of the reimbursement reachable through an update
REIMBURSEMENT_TEXT_FIELDS: tuple[str, ...] = (
    "description",
    "requester_notes",
    "tsp_notes",
    "administrative_notes",
)

# Nested subtree allow-lists. Only these keys may appear under
# request_attributes and under each expense entry.
REQUEST_NESTED_KEYS: frozenset[str] = frozenset({"id", EXPENSES_ATTRIBUTES_KEY})
EXPENSE_NESTED_KEYS: frozenset[str] = frozenset(
    {"id", "total_amount", "authorized_amount"}
)
