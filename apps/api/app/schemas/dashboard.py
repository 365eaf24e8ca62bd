"""Dashboard and report schemas."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel

from app.schemas.issue import ActivityRead


class TrendPointRead(BaseModel):
    day: date
    created: int
    resolved: int

    model_config = {"from_attributes": True}


class DashboardStatsRead(BaseModel):
    total_issues: int
    open_issues: int
    resolved_issues: int
    critical_issues: int
    average_resolution_time: float
    issues_by_status: dict[str, int]
    issues_by_priority: dict[str, int]
    trends: list[TrendPointRead]
    recent_activity: list[ActivityRead]

    model_config = {"from_attributes": True}


class BreakdownRowRead(BaseModel):
    key: UUID | None
    label: str
    total: int
    open: int

    model_config = {"from_attributes": True}
