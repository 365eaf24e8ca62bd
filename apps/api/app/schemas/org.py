"""Organization schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import Role


class OrgSettingsRead(BaseModel):
    id: UUID
    name: str
    domain: str | None
    stytch_organization_id: str
    allow_self_registration: bool
    default_user_role: Role
    require_approval: bool
    branding: dict[str, Any]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class OrgSettingsUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    allow_self_registration: bool | None = None
    default_user_role: Role | None = None
    require_approval: bool | None = None
    branding: dict[str, Any] | None = None
