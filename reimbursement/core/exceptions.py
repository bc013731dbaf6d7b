"""
Workflow Exceptions.

Every failure raised by the workflow core is a ``WorkflowError``; none of
them leave a half-applied change behind except ``NestedUpdateRejected``,
which is raised after the sibling fields were committed.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base exception for reimbursement workflow errors."""

    pass


class ReimbursementNotFound(WorkflowError):
    """Raised when a reimbursement id does not exist."""

    def __init__(self, reimbursement_id: int):
        super().__init__(f"Reimbursement {reimbursement_id} not found")
        self.reimbursement_id = reimbursement_id


class TransitionNotAllowed(WorkflowError):
    """Raised when an event has no edge from the current state."""

    def __init__(self, state: str, event: str):
        super().__init__(f"Cannot {event} a reimbursement in state {state}")
        self.state = state
        self.event = event


class NestedUpdateRejected(WorkflowError):
    """
    Raised when the request/expenses subtree of an update was discarded.

    The remaining fields of the same update have already been committed;
    ``committed_fields`` lists them.
    """

    def __init__(
        self,
        rejected_paths: list[str],
        committed_fields: Optional[list[str]] = None,
        reason: str = "disallowed attributes",
    ):
        super().__init__(
            f"Nested request update rejected ({reason}): {', '.join(rejected_paths)}"
        )
        self.rejected_paths = rejected_paths
        self.committed_fields = committed_fields or []
        self.reason = reason


class InvariantViolation(WorkflowError):
    """Raised when user_id cannot be synchronized from the request."""

    pass


class EditNotAllowed(WorkflowError):
    """Raised when the acting role may not edit in the current state."""

    def __init__(self, role: str, state: str):
        super().__init__(f"Role {role} cannot edit a reimbursement in state {state}")
        self.role = role
        self.state = state


class InvalidUpdatePayload(WorkflowError):
    """Raised when an update payload is malformed outside the nested subtree."""

    pass


class ConcurrentModification(WorkflowError):
    """Raised when the stored row changed since it was loaded."""

    pass
