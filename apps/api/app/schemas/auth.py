"""Authentication-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import Role


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    Built by the session resolver from a verified Stytch session. The
    permissions are copied from the stored user, never recomputed from role.
    """
    user_id: UUID
    org_id: UUID
    stytch_organization_id: str
    stytch_member_id: str
    stytch_session_id: str | None = None
    role: Role  # Validated enum
    permissions: list[str] = Field(default_factory=list)
    email: str = ""
    display_name: str
    expires_at: datetime | None = None

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


class AuthCallbackRequest(BaseModel):
    """Session credential produced by the Stytch frontend SDK."""
    session_jwt: str | None = None
    session_token: str | None = None


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    org_id: UUID
    org_name: str
    email: str
    display_name: str
    role: Role
    permissions: list[str]
    expires_at: datetime | None = None
