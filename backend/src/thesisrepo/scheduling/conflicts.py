"""Conflict detection for calendar events.

Intervals are half-open, ``[start, end)``: an event ending at 10:00 does not
conflict with one starting at 10:00. An event without an end time, or ending
when it starts, is a point that conflicts with any interval containing it and
with an identical point.

Only SCHEDULED events of the same department are compared. Detection is
advisory: callers save the event regardless and report the conflicts.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional

from ..models.calendar_event import EventStatus


@dataclass(frozen=True)
class TimeSpan:
    """A half-open interval, or a point when ``end`` is None or equals ``start``."""
    start: datetime
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.end is not None and self.end < self.start:
            raise ValueError("end must not be before start")
        if self.end == self.start:
            object.__setattr__(self, "end", None)

    @property
    def is_point(self) -> bool:
        return self.end is None

    def overlaps(self, other: "TimeSpan") -> bool:
        if self.is_point and other.is_point:
            return self.start == other.start
        if self.is_point:
            return other.contains(self.start)
        if other.is_point:
            return self.contains(other.start)
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        if self.is_point:
            return instant == self.start
        return self.start <= instant < self.end


def span_of(event: Any) -> TimeSpan:
    return TimeSpan(start=event.start_time, end=event.end_time)


def _is_scheduled(event: Any) -> bool:
    status = event.status or EventStatus.SCHEDULED
    return EventStatus(status) == EventStatus.SCHEDULED


def find_overlaps(candidate: Any, events: Iterable[Any], exclude_id: Optional[Any] = None) -> List[Any]:
    """Return the events that conflict with ``candidate``.

    Args:
        candidate: Event being created or updated (start_time, end_time,
            department, status)
        events: Events to compare against
        exclude_id: Id to skip, normally the candidate's own id on update

    Returns:
        Conflicting events in the order given

    Example:
        CS defense 10:00-12:00 vs CS defense 11:00-13:00 -> conflict
        CS defense 10:00-12:00 vs IT defense 11:00-13:00 -> no conflict
    """
    if not _is_scheduled(candidate):
        return []

    candidate_span = span_of(candidate)
    conflicts = []
    for event in events:
        if exclude_id is not None and event.id == exclude_id:
            continue
        if event is candidate:
            continue
        if event.department != candidate.department or not _is_scheduled(event):
            continue
        if candidate_span.overlaps(span_of(event)):
            conflicts.append(event)
    return conflicts
