"""CalendarEvent SQLAlchemy model

Defenses, deadlines and meetings on the department calendar. An event without
an end time is a point in time. Attachments are stored DocumentRecords.
"""

import enum
import uuid

from sqlalchemy import Column, ForeignKey, Index, Text, Uuid, Enum as SQLEnum

from ..domain.documents.document_record import DocumentRecord
from .base import Base, PortableJSONB, UTCDateTime, utcnow


class EventStatus(str, enum.Enum):
    """Status values for calendar events

    Only SCHEDULED events take part in conflict detection.
    """
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    POSTPONED = "POSTPONED"


class EventType(str, enum.Enum):
    DEFENSE = "defense"
    DEADLINE = "deadline"
    MEETING = "meeting"
    PRESENTATION = "presentation"
    OTHER = "other"


class CalendarEvent(Base):
    """Calendar event model."""
    __tablename__ = "calendar_event"
    __table_args__ = (
        Index("ix_calendar_event_department_status", "department", "status"),
        Index("ix_calendar_event_start_time", "start_time"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(
        SQLEnum(EventType, name="eventtype", native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=EventType.OTHER,
    )
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=True)
    location = Column(Text, nullable=True)
    department = Column(Text, nullable=False)
    status = Column(
        SQLEnum(EventStatus, name="eventstatus", native_enum=False, length=32),
        nullable=False,
        default=EventStatus.SCHEDULED,
    )
    thesis_id = Column(Uuid, ForeignKey("thesis.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Text, nullable=False)
    attachments = Column(PortableJSONB, nullable=False, default=list)  # DocumentRecord.to_dict() items
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def get_attachment_records(self) -> list:
        return [DocumentRecord.from_dict(item) for item in (self.attachments or [])]

    def append_attachment(self, record: DocumentRecord) -> None:
        # Reassign so the JSON column is marked dirty
        self.attachments = [*(self.attachments or []), record.to_dict()]

    def to_dict(self):
        """Convert event to dictionary representation"""
        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "event_type": self.event_type.value if self.event_type else None,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "location": self.location,
            "department": self.department,
            "status": self.status.value if self.status else None,
            "thesis_id": str(self.thesis_id) if self.thesis_id else None,
            "created_by_id": self.created_by_id,
            "attachments": self.attachments or [],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
