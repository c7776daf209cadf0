"""Enum-based workflow state machine pattern.

Defines the rental lifecycle as a Python enum with explicit transition
validation. Services never assign a rental status directly; they ask the
state machine, which refuses anything not in the transition table.

Lifecycle: ACTIVE -> COMPLETED (returned) | CANCELLED. Both are terminal.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# State definitions
# ---------------------------------------------------------------------------

class RentalState(str, Enum):
    """Rental workflow states."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookStatus(str, Enum):
    """Book availability. RENTED exactly while one ACTIVE rental exists."""

    AVAILABLE = "AVAILABLE"
    RENTED = "RENTED"


class InvalidTransition(ValueError):
    """Raised when a rental is asked to move along an edge that does not exist."""

    def __init__(self, from_state: RentalState, to_state: RentalState):
        self.from_state = from_state
        self.to_state = to_state
        allowed = [s.value for s in _RENTAL_TRANSITIONS.get(from_state, [])]
        super().__init__(
            f"Cannot transition from {from_state.value} to {to_state.value}. "
            f"Allowed: {allowed}"
        )


# ---------------------------------------------------------------------------
# Transition rules
# ---------------------------------------------------------------------------

# Allowed transitions: {current_state: [allowed_next_states]}
_RENTAL_TRANSITIONS: dict[RentalState, list[RentalState]] = {
    RentalState.ACTIVE: [RentalState.COMPLETED, RentalState.CANCELLED],
    RentalState.COMPLETED: [],  # terminal
    RentalState.CANCELLED: [],  # terminal
}


def can_transition(from_state: RentalState, to_state: RentalState) -> bool:
    """Check if a transition is allowed."""
    return to_state in _RENTAL_TRANSITIONS.get(from_state, [])


def allowed_transitions(from_state: RentalState) -> list[RentalState]:
    return list(_RENTAL_TRANSITIONS.get(from_state, []))


def is_terminal(state: RentalState) -> bool:
    return len(_RENTAL_TRANSITIONS.get(state, [])) == 0


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

@dataclass
class RentalTransition:
    """Record of a single state transition."""

    from_state: str
    to_state: str
    timestamp: datetime
    actor: str = "system"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RentalWorkflow:
    """Transition tracker for one rental.

    Usage::

        wf = RentalWorkflow(rental_id=rental.id, current_state=RentalState(rental.status))
        wf.transition(RentalState.COMPLETED, actor=user.id)
        rental.status = wf.current_state
    """

    rental_id: str
    current_state: RentalState
    history: list[RentalTransition] = field(default_factory=list)

    def can_transition(self, to_state: RentalState) -> bool:
        return can_transition(self.current_state, to_state)

    def transition(
        self,
        to_state: RentalState,
        actor: str = "system",
        metadata: dict[str, Any] | None = None,
    ) -> RentalTransition:
        """Execute a state transition.

        Raises InvalidTransition if the transition is not allowed.
        """
        if not self.can_transition(to_state):
            raise InvalidTransition(self.current_state, to_state)

        record = RentalTransition(
            from_state=self.current_state.value,
            to_state=to_state.value,
            timestamp=datetime.now(timezone.utc),
            actor=actor,
            metadata=metadata or {},
        )
        self.history.append(record)
        self.current_state = to_state
        return record

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.current_state)
