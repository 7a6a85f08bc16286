"""Thesis service - persistence, locking and audit around ThesisWorkflow.

Transitions are serialised per thesis: the row is read with
SELECT ... FOR UPDATE where the database supports it, and the ``version``
column makes a concurrent writer fail with ConcurrentTransitionError instead
of silently overwriting the first decision.
"""

import logging
from typing import Iterable, Optional, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..audit.service import record_audit_event
from ..auth.roles import PermissionDeniedError, Principal
from ..domain.documents.errors import StorageError
from ..infrastructure.storage.router import StorageRouter
from ..models.thesis import Thesis
from ..observability.metrics import thesis_transitions_total
from .status import InvalidTransition, ThesisStatus
from .workflow import ConcurrentTransitionError, ThesisWorkflow, TransitionPlan

logger = logging.getLogger(__name__)


def get_thesis(db: Session, thesis_id: UUID, for_update: bool = False) -> Thesis:
    """Load a thesis or raise 404.

    Raises:
        HTTPException: If the thesis does not exist
    """
    stmt = select(Thesis).where(Thesis.id == thesis_id)
    if for_update:
        stmt = stmt.with_for_update()
    thesis = db.execute(stmt).scalar_one_or_none()
    if thesis is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Thesis {thesis_id} not found")
    return thesis


def can_read(thesis: Thesis, principal: Optional[Principal]) -> bool:
    """Published theses are public; others only for authors, department advisers and admins."""
    if thesis.is_public:
        return True
    if principal is None:
        return False
    return principal.is_admin or thesis.has_author(principal.user_id) or principal.advises(thesis.department)


def ensure_can_read(thesis: Thesis, principal: Optional[Principal]) -> None:
    if not can_read(thesis, principal):
        raise PermissionDeniedError(
            "Thesis is not public", principal_id=principal.user_id if principal else None
        )


def create_thesis(
    db: Session,
    principal: Principal,
    title: str,
    department: Optional[str] = None,
    abstract: Optional[str] = None,
    adviser_id: Optional[str] = None,
    co_author_ids: Iterable[str] = (),
) -> Thesis:
    """Create a DRAFT thesis; the creator becomes an author.

    Raises:
        HTTPException 400: If no department is given and the principal has none
    """
    department = department or principal.department
    if not department:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Department is required")

    thesis = Thesis(
        title=title,
        abstract=abstract,
        department=department,
        adviser_id=adviser_id,
        status=ThesisStatus.DRAFT,
        supplementary_files=[],
    )
    thesis.add_author(principal.user_id)
    for user_id in co_author_ids:
        thesis.add_author(user_id)

    db.add(thesis)
    db.flush()

    record_audit_event(
        action="THESIS_CREATED",
        resource_type="thesis",
        actor_id=principal.user_id,
        resource_id=thesis.id,
        metadata={"department": department, "authors": sorted(thesis.author_ids)},
    )
    return thesis


def transition_thesis(
    db: Session,
    thesis_id: UUID,
    principal: Principal,
    to_status: ThesisStatus,
    review_comments: Optional[str] = None,
    review_score: Optional[int] = None,
    workflow: Optional[ThesisWorkflow] = None,
) -> Tuple[Thesis, TransitionPlan]:
    """Move a thesis to ``to_status`` on behalf of ``principal``.

    Raises:
        InvalidTransition: If the workflow does not allow it
        ConcurrentTransitionError: If another request changed the thesis first
    """
    workflow = workflow or ThesisWorkflow()
    thesis = get_thesis(db, thesis_id, for_update=True)
    to_status = ThesisStatus(to_status)

    try:
        plan = workflow.plan(thesis, principal, to_status, review_comments, review_score)
    except InvalidTransition as e:
        thesis_transitions_total.labels(to_status=to_status.value, outcome="rejected").inc()
        record_audit_event(
            action="THESIS_TRANSITION",
            resource_type="thesis",
            actor_id=principal.user_id,
            resource_id=thesis_id,
            status="failure",
            error_message=e.reason,
            metadata={"from_status": e.from_status.value, "to_status": e.to_status.value},
        )
        raise

    workflow.apply(thesis, plan)
    _flush_versioned(db, thesis_id, to_status)

    thesis_transitions_total.labels(to_status=to_status.value, outcome="applied").inc()
    record_audit_event(
        action="THESIS_TRANSITION",
        resource_type="thesis",
        actor_id=principal.user_id,
        resource_id=thesis_id,
        metadata={
            "from_status": plan.from_status.value,
            "to_status": plan.to_status.value,
            "capacity": plan.capacity.value,
            "warnings": list(plan.warnings),
        },
    )
    return thesis, plan


def reopen_thesis(
    db: Session,
    thesis_id: UUID,
    principal: Principal,
    workflow: Optional[ThesisWorkflow] = None,
) -> Thesis:
    """Return a rejected thesis to DRAFT (author only)."""
    workflow = workflow or ThesisWorkflow()
    thesis = get_thesis(db, thesis_id, for_update=True)

    previous_review = {
        "reviewer_id": thesis.reviewer_id,
        "review_score": thesis.review_score,
        "review_comments": thesis.review_comments,
    }
    workflow.reopen(thesis, principal)
    _flush_versioned(db, thesis_id, ThesisStatus.DRAFT)

    record_audit_event(
        action="THESIS_REOPENED",
        resource_type="thesis",
        actor_id=principal.user_id,
        resource_id=thesis_id,
        metadata={"previous_review": previous_review},
    )
    return thesis


async def delete_thesis(db: Session, thesis_id: UUID, principal: Principal, storage: StorageRouter) -> None:
    """Delete a thesis and, best effort, its stored documents.

    Authors may delete while DRAFT; admins at any time.

    Raises:
        PermissionDeniedError: If the principal may not delete this thesis
    """
    thesis = get_thesis(db, thesis_id, for_update=True)

    is_draft_author = thesis.has_author(principal.user_id) and thesis.status == ThesisStatus.DRAFT
    if not (principal.is_admin or is_draft_author):
        raise PermissionDeniedError("Only admins, or authors of a draft, can delete a thesis", principal.user_id)

    records = thesis.get_supplementary_records()
    main_document = thesis.get_main_document()
    if main_document is not None:
        records.insert(0, main_document)

    db.delete(thesis)
    db.flush()

    for record in records:
        try:
            await storage.delete_record(record)
        except StorageError as e:
            logger.warning(
                f"Could not delete document of removed thesis: {e.message}",
                extra={"thesis_id": str(thesis_id), "backend": e.backend, "storage_key": record.storage_key},
            )

    record_audit_event(
        action="THESIS_DELETED",
        resource_type="thesis",
        actor_id=principal.user_id,
        resource_id=thesis_id,
        metadata={"documents": len(records)},
    )


def _flush_versioned(db: Session, thesis_id: UUID, to_status: ThesisStatus) -> None:
    try:
        db.flush()
    except StaleDataError:
        db.rollback()
        thesis_transitions_total.labels(to_status=to_status.value, outcome="conflict").inc()
        logger.warning(f"Concurrent modification of thesis {thesis_id}", extra={"thesis_id": str(thesis_id)})
        raise ConcurrentTransitionError(thesis_id)
