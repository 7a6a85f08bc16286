"""Request principal and role definitions."""

from .dependencies import get_current_principal, get_optional_principal, require_role
from .roles import ADVISER_ROLES, CALENDAR_ROLES, PermissionDeniedError, Principal, UserRole

__all__ = [
    "get_current_principal",
    "get_optional_principal",
    "require_role",
    "ADVISER_ROLES",
    "CALENDAR_ROLES",
    "PermissionDeniedError",
    "Principal",
    "UserRole",
]
