"""Thesis API endpoints: create, delete and move through the review workflow."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_principal, get_optional_principal
from ..auth.roles import Principal
from ..database import get_db
from ..dependencies import get_storage_router
from ..infrastructure.storage.router import StorageRouter
from .schemas import ThesisCreate, ThesisSchema, TransitionRequest, TransitionResult
from .service import create_thesis, delete_thesis, ensure_can_read, get_thesis, reopen_thesis, transition_thesis

router = APIRouter(prefix="/theses", tags=["theses"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ThesisSchema)
def create(
    data: ThesisCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Create a DRAFT thesis; the caller becomes its first author."""
    thesis = create_thesis(
        db,
        principal,
        title=data.title,
        department=data.department,
        abstract=data.abstract,
        adviser_id=data.adviser_id,
        co_author_ids=data.co_author_ids,
    )
    db.commit()
    return thesis.to_dict()


@router.get("/{thesis_id}", response_model=ThesisSchema)
def read(
    thesis_id: UUID,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    """Thesis metadata and workflow state.

    Published theses are public; otherwise the same rule as document
    retrieval applies. Reading metadata does not count as a view.
    """
    thesis = get_thesis(db, thesis_id)
    ensure_can_read(thesis, principal)
    return thesis.to_dict()


@router.delete("/{thesis_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(
    thesis_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    storage: StorageRouter = Depends(get_storage_router),
):
    await delete_thesis(db, thesis_id, principal, storage)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{thesis_id}/transition", response_model=TransitionResult)
def transition(
    thesis_id: UUID,
    data: TransitionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Apply a workflow transition.

    Rejected transitions return 409 with the from/to status and the reason;
    a concurrent change to the same thesis also returns 409.
    """
    thesis, plan = transition_thesis(
        db,
        thesis_id,
        principal,
        data.status,
        review_comments=data.review_comments,
        review_score=data.review_score,
    )
    db.commit()
    return {"thesis": thesis.to_dict(), "warnings": list(plan.warnings)}


@router.post("/{thesis_id}/reopen", response_model=ThesisSchema)
def reopen(
    thesis_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    thesis = reopen_thesis(db, thesis_id, principal)
    db.commit()
    return thesis.to_dict()
