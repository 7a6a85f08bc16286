"""FastAPI dependencies for the request principal.

The upstream gateway authenticates the caller and forwards the resolved
identity as headers. They are trusted verbatim.

Usage:
    @router.post("/theses")
    def create_thesis(principal: Principal = Depends(get_current_principal)):
        ...
"""

from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status

from .roles import Principal, UserRole


def get_current_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_department: Optional[str] = Header(default=None),
) -> Principal:
    """Build the Principal from gateway headers.

    Raises:
        HTTPException 401: If X-User-Id or X-User-Role is missing
        HTTPException 403: If X-User-Role is not a known role
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id or X-User-Role header",
        )

    try:
        role = UserRole(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {x_user_role}",
        )

    return Principal(
        user_id=x_user_id.strip(),
        role=role,
        department=(x_user_department or "").strip() or None,
    )


def get_optional_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_department: Optional[str] = Header(default=None),
) -> Optional[Principal]:
    """Like get_current_principal, but anonymous callers get None.

    Used by retrieval endpoints, where published theses are public.
    """
    if not x_user_id or not x_user_role:
        return None
    return get_current_principal(x_user_id, x_user_role, x_user_department)


def require_role(*allowed_roles: UserRole) -> Callable:
    """Dependency factory restricting an endpoint to the given roles.

    Example:
        @router.post("/events")
        def create_event(principal: Principal = Depends(require_role(*CALENDAR_ROLES))):
            ...
    """
    def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {principal.role.value} may not perform this action",
            )
        return principal

    return role_checker
