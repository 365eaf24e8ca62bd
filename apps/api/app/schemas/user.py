"""User management schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.db.enums import Role


class UserRead(BaseModel):
    id: UUID
    name: str
    email: str
    role: Role
    permissions: list[str]
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserAdd(BaseModel):
    """Add an existing Stytch member to this organization's users."""
    stytch_member_id: str = Field(..., min_length=1, max_length=255)
    role: Role | None = None


class UserRoleUpdate(BaseModel):
    """Role and permissions are independent; omit a field to keep it."""
    role: Role | None = None
    permissions: list[str] | None = None


class PermissionInfo(BaseModel):
    key: str
    label: str
    description: str
    category: str


class UserInvite(BaseModel):
    """
    Invite someone to the organization by email.

    The local user is created now with ``role``; Stytch emails the login link.
    """
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    role: Role

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class OrganizationMemberRead(BaseModel):
    """A Stytch member listed next to its local user record, if any."""
    member_id: str
    email: str
    name: str | None
    status: str
    in_database: bool
    user_id: UUID | None = None
    role: Role | None = None
    is_active: bool | None = None
