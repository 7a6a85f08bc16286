"""Pydantic schemas for the thesis API"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .status import ThesisStatus


class ThesisCreate(BaseModel):
    """Schema for creating a thesis"""
    title: str = Field(..., min_length=1, max_length=500, description="Thesis title")
    abstract: Optional[str] = Field(None, description="Abstract")
    department: Optional[str] = Field(None, description="Department code; defaults to the caller's department")
    adviser_id: Optional[str] = Field(None, description="Assigned adviser")
    co_author_ids: list[str] = Field(default_factory=list, description="Additional authors")


class TransitionRequest(BaseModel):
    """Schema for a status transition request"""
    status: ThesisStatus = Field(..., description="Target status")
    review_comments: Optional[str] = Field(None, description="Adviser comments (review decisions only)")
    review_score: Optional[int] = Field(None, description="Adviser score, 0..100 (review decisions only)")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "APPROVED",
                "review_comments": "Well argued, minor typos.",
                "review_score": 88,
            }
        }


class ThesisSchema(BaseModel):
    """Schema for a stored thesis"""
    id: str
    title: str
    abstract: Optional[str] = None
    department: str
    adviser_id: Optional[str] = None
    authors: list[str] = Field(default_factory=list)
    status: ThesisStatus
    is_public: bool
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[str] = None
    review_comments: Optional[str] = None
    review_score: Optional[int] = None
    submitted_at: Optional[str] = None
    published_at: Optional[str] = None
    main_document: Optional[dict[str, Any]] = None
    supplementary_files: list[dict[str, Any]] = Field(default_factory=list)
    view_count: int = 0
    download_count: int = 0
    version: int


class TransitionResult(BaseModel):
    """A thesis after a transition, with non-blocking warnings"""
    thesis: ThesisSchema
    warnings: list[str] = Field(default_factory=list)
