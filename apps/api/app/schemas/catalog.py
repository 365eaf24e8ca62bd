"""Pydantic schemas for applications and categories."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
JIRA_PROJECT_KEY = r"^[A-Z][A-Z0-9]*$"


class ApplicationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    is_active: bool = True
    jira_project_key: str | None = Field(None, max_length=50, pattern=JIRA_PROJECT_KEY)


class ApplicationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    is_active: bool | None = None
    jira_project_key: str | None = Field(None, max_length=50, pattern=JIRA_PROJECT_KEY)


class ApplicationRead(BaseModel):
    id: UUID
    name: str
    description: str
    is_active: bool
    jira_project_key: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=500)
    color: str = Field("#6B7280", pattern=HEX_COLOR)
    is_active: bool = True
    application_id: UUID


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    color: str | None = Field(None, pattern=HEX_COLOR)
    is_active: bool | None = None
    application_id: UUID | None = None


class CategoryRead(BaseModel):
    id: UUID
    name: str
    description: str
    color: str
    is_active: bool
    application_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
