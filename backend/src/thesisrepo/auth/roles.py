"""User roles and the request principal.

Roles arrive from the upstream authorization layer and are trusted verbatim.
What a role may do to a particular thesis is decided by the thesis workflow
(ActorCapacity), not by the role alone:

┌──────────────────────┬─────────┬─────────┬─────────┬───────┐
│ Action               │ student │ adviser │ faculty │ admin │
│                      │         │ / prof  │         │       │
├──────────────────────┼─────────┼─────────┼─────────┼───────┤
│ Create thesis        │    ✓    │    ✓    │    ✓    │   ✓   │
│ Review (department)  │         │    ✓    │    ✓    │       │
│ Publish              │         │         │         │   ✓   │
│ Manage calendar      │         │    ✓    │    ✓    │   ✓   │
└──────────────────────┴─────────┴─────────┴─────────┴───────┘
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    """User roles. Values match the X-User-Role header exactly."""
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"
    ADVISER = "adviser"
    PROF = "prof"


# Roles that review theses of their own department
ADVISER_ROLES = frozenset({UserRole.ADVISER, UserRole.FACULTY, UserRole.PROF})

# Roles allowed to create and move calendar events
CALENDAR_ROLES = frozenset({UserRole.FACULTY, UserRole.ADMIN, UserRole.ADVISER, UserRole.PROF})


class PermissionDeniedError(Exception):
    """Principal is not allowed to perform the requested action."""

    code = "permission_denied"

    def __init__(self, message: str, principal_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.principal_id = principal_id


@dataclass(frozen=True)
class Principal:
    """Resolved caller identity.

    Attributes:
        user_id: Stable user id from the identity provider
        role: Caller role
        department: Department code (e.g., 'CS'), None if unassigned
    """
    user_id: str
    role: UserRole
    department: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_adviser(self) -> bool:
        return self.role in ADVISER_ROLES

    def advises(self, department: Optional[str]) -> bool:
        """True if this principal reviews theses of ``department``."""
        return self.is_adviser and department is not None and self.department == department
