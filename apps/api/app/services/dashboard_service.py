"""Dashboard statistics and issue breakdowns."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from app.core.authorization import require_authenticated
from app.core.exceptions import ValidationError
from app.db.enums import IssuePriority, IssueStatus
from app.db.models import ActivityItem, Application, Customer, Issue, User
from app.schemas.auth import UserSession
from app.services import activity_service
from app.services.repository import as_utc

RECENT_ACTIVITY_LIMIT = 10


@dataclass
class TrendPoint:
    day: date
    created: int = 0
    resolved: int = 0


@dataclass
class DashboardStats:
    total_issues: int
    open_issues: int
    resolved_issues: int
    critical_issues: int
    average_resolution_time: float  # hours
    issues_by_status: dict[str, int]
    issues_by_priority: dict[str, int]
    trends: list[TrendPoint] = field(default_factory=list)
    recent_activity: list[ActivityItem] = field(default_factory=list)


@dataclass
class BreakdownRow:
    key: UUID | None
    label: str
    total: int
    open: int


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _scoped_issue_query(
    org_id: UUID,
    columns: list,
    date_start: date | datetime | None,
    date_end: date | datetime | None,
) -> Select:
    query = select(*columns).where(Issue.organization_id == org_id)
    if date_start is not None:
        query = query.where(Issue.created_at >= as_utc(date_start))
    if date_end is not None:
        query = query.where(Issue.created_at <= as_utc(date_end, end_of_day=True))
    return query


def get_dashboard_stats(
    db: Session,
    session: UserSession,
    *,
    date_start: date | datetime | None = None,
    date_end: date | datetime | None = None,
) -> DashboardStats:
    """
    Aggregate issue counts for the caller's org.

    The date range (inclusive, on created_at) filters issues only; recent
    activity is always the newest entries.
    """
    require_authenticated(session)
    org_id = session.org_id

    status_counts = dict(db.execute(
        _scoped_issue_query(org_id, [Issue.status, func.count()], date_start, date_end)
        .group_by(Issue.status)
    ).all())
    priority_counts = dict(db.execute(
        _scoped_issue_query(org_id, [Issue.priority, func.count()], date_start, date_end)
        .group_by(Issue.priority)
    ).all())

    issues_by_status = {s.value: status_counts.get(s.value, 0) for s in IssueStatus}
    issues_by_priority = {p.value: priority_counts.get(p.value, 0) for p in IssuePriority}
    total = sum(status_counts.values())

    timings = db.execute(
        _scoped_issue_query(org_id, [Issue.created_at, Issue.resolved_at], date_start, date_end)
    ).all()

    durations = [
        (_as_aware(resolved) - _as_aware(created)).total_seconds() / 3600
        for created, resolved in timings
        if resolved is not None and created is not None
    ]
    average_hours = sum(durations) / len(durations) if durations else 0.0

    created_per_day = Counter(_as_aware(c).date() for c, _ in timings if c is not None)
    resolved_per_day = Counter(_as_aware(r).date() for _, r in timings if r is not None)
    trends = [
        TrendPoint(day=day, created=created_per_day[day], resolved=resolved_per_day[day])
        for day in sorted(set(created_per_day) | set(resolved_per_day))
    ]

    return DashboardStats(
        total_issues=total,
        open_issues=sum(issues_by_status[s] for s in IssueStatus.open_statuses()),
        resolved_issues=issues_by_status[IssueStatus.RESOLVED.value],
        critical_issues=issues_by_priority[IssuePriority.CRITICAL.value],
        average_resolution_time=round(average_hours, 2),
        issues_by_status=issues_by_status,
        issues_by_priority=issues_by_priority,
        trends=trends,
        recent_activity=activity_service.list_recent_activity(
            db, session, limit=RECENT_ACTIVITY_LIMIT
        ),
    )


BREAKDOWNS = {
    "customer": (Issue.customer_id, Customer, "company_name"),
    "application": (Issue.application_id, Application, "name"),
    "assignee": (Issue.assigned_to_id, User, "name"),
}


def get_issue_breakdown(
    db: Session,
    session: UserSession,
    group_by: str,
    *,
    date_start: date | datetime | None = None,
    date_end: date | datetime | None = None,
) -> list[BreakdownRow]:
    """Issue totals per customer, application or assignee, largest first."""
    require_authenticated(session)
    if group_by not in BREAKDOWNS:
        raise ValidationError(f"Cannot group issues by '{group_by}'")
    column, model, label_attr = BREAKDOWNS[group_by]

    rows = db.execute(
        _scoped_issue_query(session.org_id, [column, Issue.status], date_start, date_end)
    ).all()
    totals: Counter = Counter()
    open_totals: Counter = Counter()
    open_statuses = set(IssueStatus.open_statuses())
    for key, status in rows:
        totals[key] += 1
        if status in open_statuses:
            open_totals[key] += 1

    ids = [key for key in totals if key is not None]
    labels = {}
    if ids:
        labels = dict(db.execute(
            select(model.id, getattr(model, label_attr)).where(
                model.organization_id == session.org_id, model.id.in_(ids)
            )
        ).all())

    result = [
        BreakdownRow(
            key=key,
            label=labels.get(key, "Unknown") if key is not None else "Unassigned",
            total=count,
            open=open_totals[key],
        )
        for key, count in totals.items()
    ]
    result.sort(key=lambda row: (-row.total, row.label))
    return result
