"""Pydantic schemas for the calendar API"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from ..documents.schemas import DocumentRecordSchema
from ..models.calendar_event import EventStatus, EventType


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CalendarEventCreate(BaseModel):
    """Schema for creating a calendar event"""
    title: str = Field(..., min_length=1, max_length=200, description="Event title")
    description: Optional[str] = Field(None, description="Free-text description")
    event_type: EventType = Field(EventType.OTHER, description="defense, deadline, meeting, presentation, other")
    start_time: datetime = Field(..., description="Start time (ISO 8601, timezone-aware)")
    end_time: Optional[datetime] = Field(None, description="End time; omit for a point-in-time event")
    location: Optional[str] = Field(None, description="Room or URL")
    department: Optional[str] = Field(None, description="Department code; defaults to the caller's department")
    thesis_id: Optional[UUID] = Field(None, description="Related thesis")

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Thesis defense: Distributed caching",
                "event_type": "defense",
                "start_time": "2026-06-01T10:00:00Z",
                "end_time": "2026-06-01T12:00:00Z",
                "department": "CS",
            }
        }


class CalendarEventUpdate(BaseModel):
    """Schema for updating a calendar event (all fields optional)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[EventType] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    status: Optional[EventStatus] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return as_utc(value)


class CalendarEventSchema(BaseModel):
    """Schema for a stored calendar event"""
    id: str
    title: str
    description: Optional[str] = None
    event_type: str
    start_time: str
    end_time: Optional[str] = None
    location: Optional[str] = None
    department: str
    status: str
    thesis_id: Optional[str] = None
    created_by_id: str
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[str] = None


class CalendarEventResult(BaseModel):
    """An event together with the scheduled events it overlaps"""
    event: CalendarEventSchema
    conflicts: list[CalendarEventSchema] = Field(default_factory=list)


class CalendarAttachmentResult(BaseModel):
    """Attachments stored by one upload request"""
    files: list[DocumentRecordSchema] = Field(default_factory=list)
    total: int = Field(..., description="Attachments now on the event")
