"""
Editability Rules.

Which role category may change a reimbursement in which state. Pure
lookups; the caller resolves the acting role.
"""

from typing import Union

from reimbursement.core.enums import ActorRole, ReimbursementEvent, ReimbursementState

# The single state in which each role may edit
EDITABLE_STATES: dict[ActorRole, ReimbursementState] = {
    ActorRole.REQUESTER: ReimbursementState.INCOMPLETE,
    ActorRole.TSP: ReimbursementState.TSP_PENDING,
    ActorRole.ADMINISTRATIVE: ReimbursementState.TSP_APPROVED,
}

# Review events still treated as edits by older clients.
# TODO: remove once controllers stop sending state events with attribute updates.
EDITABLE_EVENTS: frozenset[ReimbursementEvent] = frozenset(
    {ReimbursementEvent.REJECT, ReimbursementEvent.APPROVE}
)


def editable_by(role: Union[ActorRole, str], state: Union[ReimbursementState, str]) -> bool:
    """
    Check whether a role may edit a reimbursement in the given state.

    Args:
        role: Acting role
        state: Current reimbursement state

    Returns:
        True if allowed
    """
    try:
        role = ActorRole(role)
        state = ReimbursementState(state)
    except ValueError:
        return False
    return EDITABLE_STATES[role] == state


def event_editable(event: Union[ReimbursementEvent, str]) -> bool:
    """Check whether an event counts as an edit operation."""
    try:
        return ReimbursementEvent(event) in EDITABLE_EVENTS
    except ValueError:
        return False
