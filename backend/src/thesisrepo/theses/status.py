"""Thesis status state machine.

State Flow:
    DRAFT → UNDER_REVIEW → APPROVED → PUBLISHED
                         ↘ REJECTED

Terminal States: PUBLISHED. REJECTED only leaves through an explicit
author reopen (REJECTED → DRAFT), which is not a review transition.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class ThesisStatus(str, Enum):
    """Thesis status enumeration."""
    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"


class ActorCapacity(str, Enum):
    """The capacity in which a principal acts on one particular thesis."""
    AUTHOR = "AUTHOR"
    ADVISER = "ADVISER"
    ADMINISTRATOR = "ADMINISTRATOR"


# The only permitted (from, to) pairs and who may perform each
TRANSITION_TABLE: Dict[Tuple[ThesisStatus, ThesisStatus], ActorCapacity] = {
    (ThesisStatus.DRAFT, ThesisStatus.UNDER_REVIEW): ActorCapacity.AUTHOR,
    (ThesisStatus.UNDER_REVIEW, ThesisStatus.APPROVED): ActorCapacity.ADVISER,
    (ThesisStatus.UNDER_REVIEW, ThesisStatus.REJECTED): ActorCapacity.ADVISER,
    (ThesisStatus.APPROVED, ThesisStatus.PUBLISHED): ActorCapacity.ADMINISTRATOR,
}

REVIEW_OUTCOMES: FrozenSet[ThesisStatus] = frozenset({ThesisStatus.APPROVED, ThesisStatus.REJECTED})


class InvalidTransition(Exception):
    """Raised when a (from, to, capacity) triple is not in the transition table."""

    code = "invalid_transition"

    def __init__(self, from_status: ThesisStatus, to_status: ThesisStatus, reason: str):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(f"Invalid transition: {from_status.value} -> {to_status.value}: {reason}")

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "detail": str(self),
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "reason": self.reason,
        }


def required_capacity(
    current_status: ThesisStatus,
    new_status: ThesisStatus,
) -> Optional[ActorCapacity]:
    """Capacity required for a transition, or None if the pair is not allowed."""
    return TRANSITION_TABLE.get((current_status, new_status))


def can_transition(
    current_status: ThesisStatus,
    new_status: ThesisStatus,
    capacity: Optional[ActorCapacity],
) -> bool:
    """Check if a transition is allowed without raising exception.

    Example:
        >>> can_transition(ThesisStatus.DRAFT, ThesisStatus.UNDER_REVIEW, ActorCapacity.AUTHOR)
        True
        >>> can_transition(ThesisStatus.DRAFT, ThesisStatus.PUBLISHED, ActorCapacity.ADMINISTRATOR)
        False
    """
    return capacity is not None and required_capacity(current_status, new_status) == capacity


def get_allowed_transitions(status: ThesisStatus, capacity: Optional[ActorCapacity]) -> list:
    """List target statuses reachable from ``status`` in ``capacity``."""
    return [
        to_status
        for (from_status, to_status), needed in TRANSITION_TABLE.items()
        if from_status == status and needed == capacity
    ]
