"""
Core Enumerations for the Reimbursement Workflow.

States, events and actor roles shared by the state machine, the
editability evaluator and the API layer.
"""

from enum import Enum


# =============================================================================
# Lifecycle Enums
# =============================================================================


class ReimbursementState(str, Enum):
    """Reimbursement lifecycle state.

    State Machine Transitions:
    INCOMPLETE -> TSP_PENDING | CANCELED
    TSP_PENDING -> TSP_APPROVED | INCOMPLETE | CANCELED
    TSP_APPROVED -> PAYMENT_PENDING | TSP_PENDING
    PAYMENT_PENDING -> PAYED | COMPLETED
    PAYED -> COMPLETED
    """

    INCOMPLETE = "incomplete"  # Initial: requester is filling it in
    TSP_PENDING = "tsp_pending"  # Waiting for technical-support review
    TSP_APPROVED = "tsp_approved"  # Reviewed, waiting for administrative authorization
    PAYMENT_PENDING = "payment_pending"
    PAYED = "payed"
    COMPLETED = "completed"  # Terminal
    CANCELED = "canceled"  # Terminal

    @property
    def timestamp_field(self) -> str:
        """Name of the column recording the last entry into this state."""
        return f"{self.value}_since"


class ReimbursementEvent(str, Enum):
    """Events that trigger state transitions."""

    SUBMIT = "submit"
    APPROVE = "approve"
    AUTHORIZE = "authorize"
    CONFIRM = "confirm"
    COMPLETE = "complete"
    REJECT = "reject"
    CANCEL = "cancel"


# =============================================================================
# Actor Enums
# =============================================================================


class ActorRole(str, Enum):
    """Role categories allowed to edit a reimbursement at some stage."""

    REQUESTER = "requester"  # Owner of the underlying request
    TSP = "tsp"  # Travel support program reviewer
    ADMINISTRATIVE = "administrative"  # Payment authorization staff
