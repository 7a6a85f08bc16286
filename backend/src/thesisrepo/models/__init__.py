"""SQLAlchemy models for the thesis repository."""

from .base import Base, PortableJSONB, UTCDateTime
from .calendar_event import CalendarEvent, EventStatus, EventType
from .thesis import Thesis, ThesisAuthor

__all__ = [
    "Base",
    "PortableJSONB",
    "UTCDateTime",
    "CalendarEvent",
    "EventStatus",
    "EventType",
    "Thesis",
    "ThesisAuthor",
]
