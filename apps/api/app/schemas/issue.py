"""Pydantic schemas for issues, comments, activity, and escalation."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from app.db.enums import IssuePriority, IssueStatus


class IssueCreate(BaseModel):
    """Request to create an issue. Status always starts at new."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    priority: IssuePriority = IssuePriority.MEDIUM
    customer_id: UUID
    category: str | None = Field(None, max_length=100)
    application_id: UUID | None = None
    assigned_to_id: UUID | None = None


class IssueUpdate(BaseModel):
    """Partial update. Only fields present in the request are applied."""
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=5000)
    status: IssueStatus | None = None
    priority: IssuePriority | None = None
    category: str | None = Field(None, max_length=100)
    application_id: UUID | None = None
    customer_id: UUID | None = None
    assigned_to_id: UUID | None = None
    resolution_notes: str | None = Field(None, max_length=2000)


class IssueStatusUpdate(BaseModel):
    status: IssueStatus
    resolution_notes: str | None = Field(None, max_length=2000)


class IssueAssign(BaseModel):
    """assigned_to_id=None unassigns."""
    assigned_to_id: UUID | None = None


class IssueBulkUpdate(BaseModel):
    issue_ids: list[UUID] = Field(..., min_length=1, max_length=200)
    updates: IssueUpdate


class IssueBulkUpdateResponse(BaseModel):
    updated: list[UUID]
    failed: list[UUID]


class IssueRead(BaseModel):
    """Full issue response."""
    id: UUID
    organization_id: UUID
    title: str
    description: str
    status: IssueStatus
    priority: IssuePriority
    category: str | None
    application_id: UUID | None
    customer_id: UUID
    assigned_to_id: UUID | None
    created_by: UUID
    resolved_at: datetime | None
    resolution_notes: str | None
    jira_issue_key: str | None
    jira_url: str | None
    escalated_at: datetime | None
    escalated_by: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class IssueListResponse(BaseModel):
    items: list[IssueRead]
    total: int
    page: int
    per_page: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentRead(BaseModel):
    id: UUID
    issue_id: UUID
    user_id: UUID
    user_name: str
    content: str
    created_at: datetime
    orphaned: bool = False

    model_config = {"from_attributes": True}


class ActivityRead(BaseModel):
    id: UUID
    type: str
    title: str
    description: str
    user_id: UUID
    user_name: str
    issue_id: UUID | None
    timestamp: datetime

    model_config = {"from_attributes": True}


class EscalationRequest(BaseModel):
    """Optional Jira issue type id; auto-detected when omitted."""
    issue_type_id: str | None = None


class EscalationResult(BaseModel):
    jira_issue_key: str
    jira_url: str


class BugReport(BaseModel):
    """Structured bug report. Accepts camelCase keys from model output."""
    summary: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    steps_to_reproduce: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("steps_to_reproduce", "stepsToReproduce"),
    )
    expected_behavior: str = Field(
        "", validation_alias=AliasChoices("expected_behavior", "expectedBehavior")
    )
    actual_behavior: str = Field(
        "", validation_alias=AliasChoices("actual_behavior", "actualBehavior")
    )
    impact: Literal["low", "medium", "high", "critical"]
    technical_notes: str | None = Field(
        None, validation_alias=AliasChoices("technical_notes", "technicalNotes")
    )
    generated: bool = False  # False when built by the fallback
