"""Thesis workflow - role- and state-gated status transitions.

Authorization for status changes lives only in the transition table
(theses.status.TRANSITION_TABLE). A transition is first computed as a complete
TransitionPlan, then applied to the thesis in one step, so a rejected request
never leaves a half-updated thesis behind.

Two-key control: approval is adviser-exclusive, publication is
admin-exclusive, and the publisher must not be the reviewer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from ..auth.roles import Principal
from .status import (
    REVIEW_OUTCOMES,
    ActorCapacity,
    InvalidTransition,
    ThesisStatus,
    required_capacity,
)

logger = logging.getLogger(__name__)

MIN_REVIEW_SCORE = 0
MAX_REVIEW_SCORE = 100

MISSING_DOCUMENT_WARNING = "Thesis submitted without a main document"


class ConcurrentTransitionError(Exception):
    """Another request changed the thesis between read and write."""

    code = "concurrent_transition"

    def __init__(self, thesis_id: Any):
        self.thesis_id = thesis_id
        super().__init__(f"Thesis {thesis_id} was modified concurrently; reload and retry")

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": str(self), "thesis_id": str(self.thesis_id)}


@dataclass(frozen=True)
class TransitionPlan:
    """Everything a transition will change, computed before anything changes.

    Attributes:
        from_status: Status the plan was computed against
        to_status: Target status
        capacity: Capacity the principal acts in
        actor_id: Principal performing the transition
        changes: Attribute name -> new value, applied together
        warnings: Non-blocking notes for the caller
    """
    from_status: ThesisStatus
    to_status: ThesisStatus
    capacity: ActorCapacity
    actor_id: str
    changes: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()


def resolve_capacity(principal: Principal, thesis) -> Optional[ActorCapacity]:
    """Decide in which capacity ``principal`` acts on ``thesis``.

    A listed author always acts as AUTHOR, even if they also hold an adviser
    or admin role, so nobody can review or publish their own thesis.
    """
    if thesis.has_author(principal.user_id):
        return ActorCapacity.AUTHOR
    if principal.is_admin:
        return ActorCapacity.ADMINISTRATOR
    if principal.advises(thesis.department):
        return ActorCapacity.ADVISER
    return None


class ThesisWorkflow:
    """Plans and applies thesis status transitions.

    Example:
        workflow = ThesisWorkflow()
        plan = workflow.transition(thesis, adviser, ThesisStatus.APPROVED, review_score=88)
        thesis.reviewer_id   # adviser.user_id
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def plan(
        self,
        thesis,
        principal: Principal,
        to_status: ThesisStatus,
        review_comments: Optional[str] = None,
        review_score: Optional[int] = None,
    ) -> TransitionPlan:
        """Compute a transition without touching the thesis.

        Raises:
            InvalidTransition: If the (from, to, capacity) triple is not allowed
        """
        from_status = ThesisStatus(thesis.status)
        to_status = ThesisStatus(to_status)
        capacity = resolve_capacity(principal, thesis)

        needed = required_capacity(from_status, to_status)
        if needed is None:
            raise InvalidTransition(from_status, to_status, "transition is not part of the workflow")
        if capacity is None:
            raise InvalidTransition(
                from_status, to_status, f"principal has no capacity on this thesis; requires {needed.value}"
            )
        if capacity != needed:
            raise InvalidTransition(
                from_status, to_status, f"requires {needed.value}, principal acts as {capacity.value}"
            )

        now = self.clock()
        changes: Dict[str, Any] = {"status": to_status}
        warnings = []

        if to_status == ThesisStatus.UNDER_REVIEW:
            changes["submitted_at"] = now
            if not thesis.main_document:
                warnings.append(MISSING_DOCUMENT_WARNING)

        elif to_status in REVIEW_OUTCOMES:
            if review_score is not None and not MIN_REVIEW_SCORE <= review_score <= MAX_REVIEW_SCORE:
                raise InvalidTransition(
                    from_status,
                    to_status,
                    f"review_score must be between {MIN_REVIEW_SCORE} and {MAX_REVIEW_SCORE}",
                )
            changes.update(
                reviewer_id=principal.user_id,
                reviewed_at=now,
                review_comments=review_comments,
                review_score=review_score,
            )

        elif to_status == ThesisStatus.PUBLISHED:
            if thesis.reviewer_id and thesis.reviewer_id == principal.user_id:
                raise InvalidTransition(from_status, to_status, "publisher must differ from the reviewer")
            changes["published_at"] = now

        return TransitionPlan(
            from_status=from_status,
            to_status=to_status,
            capacity=capacity,
            actor_id=principal.user_id,
            changes=changes,
            warnings=tuple(warnings),
        )

    def apply(self, thesis, plan: TransitionPlan) -> None:
        """Apply a plan computed against the thesis' current status.

        Raises:
            InvalidTransition: If the thesis moved on since the plan was made
        """
        current = ThesisStatus(thesis.status)
        if current != plan.from_status:
            raise InvalidTransition(
                current, plan.to_status, f"plan was computed for {plan.from_status.value}"
            )
        for name, value in plan.changes.items():
            setattr(thesis, name, value)

        logger.info(
            f"Thesis transition applied: {plan.from_status.value} -> {plan.to_status.value}",
            extra={
                "thesis_id": str(getattr(thesis, "id", None)),
                "user_id": plan.actor_id,
                "from_status": plan.from_status.value,
                "to_status": plan.to_status.value,
            },
        )

    def transition(
        self,
        thesis,
        principal: Principal,
        to_status: ThesisStatus,
        review_comments: Optional[str] = None,
        review_score: Optional[int] = None,
    ) -> TransitionPlan:
        """Plan and apply a transition. Returns the applied plan."""
        plan = self.plan(thesis, principal, to_status, review_comments, review_score)
        self.apply(thesis, plan)
        return plan

    def plan_reopen(self, thesis, principal: Principal) -> TransitionPlan:
        """Plan the author's return of a rejected thesis to DRAFT.

        Review fields are cleared; the rejected review is kept only in the
        audit trail.

        Raises:
            InvalidTransition: If the thesis is not REJECTED or the principal is not an author
        """
        from_status = ThesisStatus(thesis.status)
        if from_status != ThesisStatus.REJECTED:
            raise InvalidTransition(from_status, ThesisStatus.DRAFT, "only rejected theses can be reopened")
        if resolve_capacity(principal, thesis) != ActorCapacity.AUTHOR:
            raise InvalidTransition(from_status, ThesisStatus.DRAFT, "only an author can reopen a thesis")

        return TransitionPlan(
            from_status=from_status,
            to_status=ThesisStatus.DRAFT,
            capacity=ActorCapacity.AUTHOR,
            actor_id=principal.user_id,
            changes={
                "status": ThesisStatus.DRAFT,
                "reviewer_id": None,
                "reviewed_at": None,
                "review_comments": None,
                "review_score": None,
                "submitted_at": None,
            },
        )

    def reopen(self, thesis, principal: Principal) -> TransitionPlan:
        plan = self.plan_reopen(thesis, principal)
        self.apply(thesis, plan)
        return plan
