"""Activity logging service - append-only issue activity feed."""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authorization import require_authenticated, require_permission
from app.core.permissions import PermissionKey as P
from app.db.enums import ActivityType
from app.db.models import ActivityItem, Issue
from app.schemas.auth import UserSession
from app.services.repository import QueryFilter, TenantRepository


def log_activity(
    db: Session,
    session: UserSession,
    activity_type: ActivityType,
    title: str,
    description: str = "",
    issue_id: UUID | None = None,
) -> ActivityItem:
    """
    Append an activity entry attributed to the session user.

    Flushes only; the caller owns the transaction.
    """
    activity = ActivityItem(
        organization_id=session.org_id,
        type=activity_type.value,
        title=title[:255],
        description=description,
        user_id=session.user_id,
        user_name=session.display_name,
        issue_id=issue_id,
    )
    db.add(activity)
    db.flush()
    return activity


def log_issue_created(db: Session, session: UserSession, issue: Issue) -> ActivityItem:
    return log_activity(
        db, session, ActivityType.ISSUE_CREATED,
        title=f"New issue: {issue.title}",
        description=f"Issue #{issue.id} was created",
        issue_id=issue.id,
    )


def log_issue_updated(
    db: Session, session: UserSession, issue: Issue, changed: list[str]
) -> ActivityItem:
    fields = ", ".join(changed) if changed else "no fields"
    return log_activity(
        db, session, ActivityType.ISSUE_UPDATED,
        title=f"Issue updated: {issue.title}",
        description=f"Issue #{issue.id} was updated ({fields})",
        issue_id=issue.id,
    )


def log_issue_resolved(db: Session, session: UserSession, issue: Issue) -> ActivityItem:
    return log_activity(
        db, session, ActivityType.ISSUE_RESOLVED,
        title=f"Issue resolved: {issue.title}",
        description=f"Issue #{issue.id} was resolved",
        issue_id=issue.id,
    )


def log_comment_added(db: Session, session: UserSession, issue: Issue) -> ActivityItem:
    return log_activity(
        db, session, ActivityType.COMMENT_ADDED,
        title=f"Comment added to: {issue.title}",
        description=f"New comment added to issue #{issue.id}",
        issue_id=issue.id,
    )


def list_recent_activity(
    db: Session,
    session: UserSession,
    *,
    limit: int = 10,
    date_start: date | datetime | None = None,
    date_end: date | datetime | None = None,
) -> list[ActivityItem]:
    """Newest first."""
    require_authenticated(session)
    return TenantRepository(db).query(
        "activities",
        session.org_id,
        QueryFilter(date_start=date_start, date_end=date_end, limit=limit),
    )


def list_issue_activity(db: Session, session: UserSession, issue_id: UUID) -> list[ActivityItem]:
    require_permission(session, P.ISSUES_READ)
    return (
        db.query(ActivityItem)
        .filter(
            ActivityItem.organization_id == session.org_id,
            ActivityItem.issue_id == issue_id,
        )
        .order_by(ActivityItem.timestamp.desc())
        .all()
    )
