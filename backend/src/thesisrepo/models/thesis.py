"""Thesis SQLAlchemy model

A Thesis owns its main document and supplementary files as DocumentRecord
JSON. Status changes go through theses.workflow; ``version`` is the optimistic
lock counter that serialises concurrent transitions.
"""

import uuid

from sqlalchemy import Column, ForeignKey, Index, Integer, Text, Uuid, Enum as SQLEnum
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from ..domain.documents.document_record import DocumentRecord
from ..theses.status import ThesisStatus
from .base import Base, PortableJSONB, UTCDateTime, utcnow


class ThesisAuthor(Base):
    """Association row: one author of one thesis."""
    __tablename__ = "thesis_author"

    thesis_id = Column(Uuid, ForeignKey("thesis.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Text, primary_key=True)

    thesis = relationship("Thesis", back_populates="author_links")


class Thesis(Base):
    """Thesis model.

    ``is_public`` is derived from ``status`` and has no setter.
    """
    __tablename__ = "thesis"
    __table_args__ = (
        Index("ix_thesis_department_status", "department", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    abstract = Column(Text, nullable=True)
    department = Column(Text, nullable=False)
    adviser_id = Column(Text, nullable=True)
    status = Column(
        SQLEnum(ThesisStatus, name="thesisstatus", native_enum=False, length=32),
        nullable=False,
        default=ThesisStatus.DRAFT,
    )

    # Review metadata (set only by an adviser decision)
    reviewer_id = Column(Text, nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)
    review_comments = Column(Text, nullable=True)
    review_score = Column(Integer, nullable=True)  # 0..100

    submitted_at = Column(UTCDateTime, nullable=True)
    published_at = Column(UTCDateTime, nullable=True)

    main_document = Column(PortableJSONB, nullable=True)  # DocumentRecord.to_dict()
    supplementary_files = Column(PortableJSONB, nullable=False, default=list)

    view_count = Column(Integer, nullable=False, default=0)
    download_count = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    author_links = relationship(
        "ThesisAuthor",
        back_populates="thesis",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @hybrid_property
    def is_public(self):
        return self.status == ThesisStatus.PUBLISHED

    @property
    def author_ids(self) -> set:
        return {link.user_id for link in self.author_links}

    def add_author(self, user_id: str) -> None:
        if user_id not in self.author_ids:
            self.author_links.append(ThesisAuthor(user_id=user_id))

    def has_author(self, user_id: str) -> bool:
        return user_id in self.author_ids

    def get_main_document(self):
        """Main document as a DocumentRecord, or None."""
        return DocumentRecord.from_dict(self.main_document) if self.main_document else None

    def set_main_document(self, record) -> None:
        self.main_document = record.to_dict() if record is not None else None

    def get_supplementary_records(self) -> list:
        return [DocumentRecord.from_dict(item) for item in (self.supplementary_files or [])]

    def append_supplementary(self, record: DocumentRecord) -> None:
        # Reassign so the JSON column is marked dirty
        self.supplementary_files = [*(self.supplementary_files or []), record.to_dict()]

    def to_dict(self):
        """Convert thesis to dictionary representation"""
        return {
            "id": str(self.id),
            "title": self.title,
            "abstract": self.abstract,
            "department": self.department,
            "adviser_id": self.adviser_id,
            "authors": sorted(self.author_ids),
            "status": self.status.value if self.status else None,
            "is_public": self.is_public,
            "reviewer_id": self.reviewer_id,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_comments": self.review_comments,
            "review_score": self.review_score,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "main_document": self.main_document,
            "supplementary_files": self.supplementary_files or [],
            "view_count": self.view_count,
            "download_count": self.download_count,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
