"""Authorization guard.

Every domain operation calls one of these with the resolved session before
it reads or writes tenant data. Failures raise before any data access.
"""

from collections.abc import Iterable

from app.core.exceptions import ForbiddenError, UnauthenticatedError
from app.db.enums import Role
from app.schemas.auth import UserSession


def require_authenticated(session: UserSession | None) -> UserSession:
    if session is None:
        raise UnauthenticatedError()
    return session


def require_role(session: UserSession | None, allowed_roles: Iterable[Role]) -> UserSession:
    session = require_authenticated(session)
    if session.role not in set(allowed_roles):
        raise ForbiddenError(f"Role '{session.role.value}' not authorized for this action")
    return session


def require_permission(session: UserSession | None, permission: str) -> UserSession:
    session = require_authenticated(session)
    permission = getattr(permission, "value", permission)
    if not session.has_permission(permission):
        raise ForbiddenError(f"Missing permission: {permission}")
    return session


def forbid_self_target(session: UserSession, target_user_id, action: str) -> None:
    """Users can never change their own role, permissions or activation."""
    if session.user_id == target_user_id:
        raise ForbiddenError(f"Cannot {action} your own account")
