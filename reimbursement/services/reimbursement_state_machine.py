"""
Reimbursement State Machine.

Provides:
- Valid state transitions per event
- Transition validation
- Entry timestamp recording on every transition
- Post-transition callbacks

State Diagram:
    incomplete      -> tsp_pending (submit) | canceled (cancel)
    tsp_pending     -> tsp_approved (approve) | incomplete (reject) | canceled (cancel)
    tsp_approved    -> payment_pending (authorize) | tsp_pending (reject)
    payment_pending -> payed (confirm) | completed (complete)
    payed           -> completed (complete)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Union

from reimbursement.core.enums import ReimbursementEvent, ReimbursementState
from reimbursement.core.exceptions import TransitionNotAllowed
from reimbursement.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """Represents a valid state transition."""

    event: ReimbursementEvent
    from_state: ReimbursementState
    to_state: ReimbursementState


@dataclass(frozen=True)
class TransitionResult:
    """Result of a fired event."""

    event: ReimbursementEvent
    from_state: ReimbursementState
    to_state: ReimbursementState
    occurred_at: datetime


TransitionCallback = Callable[[Any, TransitionResult], None]


# =============================================================================
# Valid Transitions Definition
# =============================================================================


VALID_TRANSITIONS: list[Transition] = [
    Transition(ReimbursementEvent.SUBMIT, ReimbursementState.INCOMPLETE, ReimbursementState.TSP_PENDING),
    Transition(ReimbursementEvent.APPROVE, ReimbursementState.TSP_PENDING, ReimbursementState.TSP_APPROVED),
    Transition(ReimbursementEvent.AUTHORIZE, ReimbursementState.TSP_APPROVED, ReimbursementState.PAYMENT_PENDING),
    Transition(ReimbursementEvent.CONFIRM, ReimbursementState.PAYMENT_PENDING, ReimbursementState.PAYED),
    Transition(ReimbursementEvent.COMPLETE, ReimbursementState.PAYMENT_PENDING, ReimbursementState.COMPLETED),
    Transition(ReimbursementEvent.COMPLETE, ReimbursementState.PAYED, ReimbursementState.COMPLETED),
    Transition(ReimbursementEvent.REJECT, ReimbursementState.TSP_PENDING, ReimbursementState.INCOMPLETE),
    Transition(ReimbursementEvent.REJECT, ReimbursementState.TSP_APPROVED, ReimbursementState.TSP_PENDING),
    Transition(ReimbursementEvent.CANCEL, ReimbursementState.INCOMPLETE, ReimbursementState.CANCELED),
    Transition(ReimbursementEvent.CANCEL, ReimbursementState.TSP_PENDING, ReimbursementState.CANCELED),
]

INITIAL_STATE = ReimbursementState.INCOMPLETE

TERMINAL_STATES: frozenset[ReimbursementState] = frozenset(
    {ReimbursementState.COMPLETED, ReimbursementState.CANCELED}
)

_TRANSITIONS: dict[tuple[ReimbursementState, ReimbursementEvent], Transition] = {
    (t.from_state, t.event): t for t in VALID_TRANSITIONS
}


def _coerce(
    state: Union[ReimbursementState, str], event: Union[ReimbursementEvent, str]
) -> Optional[tuple[ReimbursementState, ReimbursementEvent]]:
    try:
        return ReimbursementState(state), ReimbursementEvent(event)
    except ValueError:
        return None


def next_state(
    state: Union[ReimbursementState, str], event: Union[ReimbursementEvent, str]
) -> Optional[ReimbursementState]:
    """Destination of firing event in state, or None when there is no edge."""
    key = _coerce(state, event)
    if key is None:
        return None
    transition = _TRANSITIONS.get(key)
    return transition.to_state if transition else None


def can_fire(state: Union[ReimbursementState, str], event: Union[ReimbursementEvent, str]) -> bool:
    return next_state(state, event) is not None


def available_events(state: ReimbursementState) -> list[ReimbursementEvent]:
    """Get all events that can be fired from a given state."""
    return [t.event for t in VALID_TRANSITIONS if t.from_state == state]


def next_states(state: ReimbursementState) -> list[ReimbursementState]:
    """Get all possible next states from a given state."""
    return [t.to_state for t in VALID_TRANSITIONS if t.from_state == state]


def is_terminal_state(state: ReimbursementState) -> bool:
    """Check if state is terminal (no further transitions)."""
    return state in TERMINAL_STATES


def get_state_display_name(state: ReimbursementState) -> str:
    """Get human-readable state name."""
    display_names = {
        ReimbursementState.INCOMPLETE: "Incomplete",
        ReimbursementState.TSP_PENDING: "Pending TSP review",
        ReimbursementState.TSP_APPROVED: "Approved by TSP",
        ReimbursementState.PAYMENT_PENDING: "Payment pending",
        ReimbursementState.PAYED: "Payed",
        ReimbursementState.COMPLETED: "Completed",
        ReimbursementState.CANCELED: "Canceled",
    }
    return display_names.get(state, state.value)


# =============================================================================
# State Machine
# =============================================================================


class ReimbursementStateMachine:
    """
    Applies events to reimbursements.

    Works on any object exposing ``state`` and one ``<state>_since``
    attribute per state.
    """

    def __init__(self) -> None:
        self._callbacks: list[TransitionCallback] = []

    def fire(
        self,
        reimbursement: Any,
        event: Union[ReimbursementEvent, str],
        now: datetime,
    ) -> TransitionResult:
        """
        Fire an event on a reimbursement.

        Sets the destination state and records ``now`` as its entry time,
        overwriting any earlier entry.

        Raises:
            TransitionNotAllowed: If no edge leaves the current state for
                this event. The reimbursement is left untouched.
        """
        current = reimbursement.state
        key = _coerce(current, event)
        transition = _TRANSITIONS.get(key) if key else None
        if transition is None:
            state_name = getattr(current, "value", current)
            event_name = getattr(event, "value", event)
            logger.warning(
                f"Refused {event_name} for reimbursement {getattr(reimbursement, 'id', None)} "
                f"in state {state_name}"
            )
            raise TransitionNotAllowed(state_name, event_name)

        reimbursement.state = transition.to_state
        setattr(reimbursement, transition.to_state.timestamp_field, now)

        result = TransitionResult(
            event=transition.event,
            from_state=transition.from_state,
            to_state=transition.to_state,
            occurred_at=now,
        )

        for callback in self._callbacks:
            try:
                callback(reimbursement, result)
            except Exception as e:
                logger.error(f"Transition callback error: {e}")

        logger.info(
            f"Reimbursement {getattr(reimbursement, 'id', None)} transitioned: "
            f"{result.from_state.value} -> {result.to_state.value} (event: {result.event.value})"
        )
        return result

    def register_callback(self, callback: TransitionCallback) -> None:
        """Register a callback run after every successful transition."""
        self._callbacks.append(callback)

    def unregister_callback(self, callback: TransitionCallback) -> None:
        """Unregister a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)


# =============================================================================
# Singleton Instance
# =============================================================================


_state_machine: Optional[ReimbursementStateMachine] = None


def get_state_machine() -> ReimbursementStateMachine:
    """Get singleton state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = ReimbursementStateMachine()
    return _state_machine
