"""Issue service - lifecycle operations, assignment, and list queries.

Each operation writes the issue, the customer counter and the activity
entries in one database transaction (single commit at the end).
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authorization import require_permission
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.permissions import PermissionKey as P
from app.db.enums import IssuePriority, IssueStatus
from app.db.models import Issue
from app.schemas.auth import UserSession
from app.services import activity_service, customer_service
from app.services.repository import QueryFilter, TenantRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "category",
    "application_id",
    "customer_id",
    "assigned_to_id",
    "resolution_notes",
)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _validate_status(value: str) -> str:
    if value not in {s.value for s in IssueStatus}:
        raise ValidationError(f"Invalid status '{value}'")
    return value


def _validate_priority(value: str) -> str:
    if value not in {p.value for p in IssuePriority}:
        raise ValidationError(f"Invalid priority '{value}'")
    return value


def _require_in_tenant(
    repo: TenantRepository, collection: str, item_id: UUID, org_id: UUID, label: str
) -> None:
    if repo.get(collection, item_id, org_id) is None:
        raise NotFoundError(f"{label} not found")


# =============================================================================
# Queries
# =============================================================================

def list_issues(
    db: Session, session: UserSession, flt: QueryFilter | None = None
) -> list[Issue]:
    require_permission(session, P.ISSUES_READ)
    return TenantRepository(db).query("issues", session.org_id, flt)


def count_issues(db: Session, session: UserSession, flt: QueryFilter | None = None) -> int:
    require_permission(session, P.ISSUES_READ)
    return TenantRepository(db).count("issues", session.org_id, flt)


def get_issue(db: Session, session: UserSession, issue_id: UUID) -> Issue:
    require_permission(session, P.ISSUES_READ)
    return TenantRepository(db).get_or_404(
        "issues", issue_id, session.org_id, "Issue not found"
    )


# =============================================================================
# Lifecycle
# =============================================================================

def create_issue(
    db: Session,
    session: UserSession,
    *,
    title: str,
    description: str,
    customer_id: UUID,
    priority: str | IssuePriority = IssuePriority.MEDIUM,
    category: str | None = None,
    application_id: UUID | None = None,
    assigned_to_id: UUID | None = None,
) -> Issue:
    """
    Create an issue in status new.

    Increments the customer's total_issues and logs issue_created.
    """
    require_permission(session, P.ISSUES_WRITE)
    repo = TenantRepository(db)

    _require_in_tenant(repo, "customers", customer_id, session.org_id, "Customer")
    if application_id is not None:
        _require_in_tenant(repo, "applications", application_id, session.org_id, "Application")
    if assigned_to_id is not None:
        _require_in_tenant(repo, "users", assigned_to_id, session.org_id, "User")

    issue = repo.create("issues", session.org_id, {
        "title": title.strip(),
        "description": description,
        "status": IssueStatus.NEW.value,
        "priority": _validate_priority(_enum_value(priority)),
        "category": category,
        "application_id": application_id,
        "customer_id": customer_id,
        "assigned_to_id": assigned_to_id,
        "created_by": session.user_id,
    })
    customer_service.adjust_issue_count(db, session.org_id, customer_id, +1)
    activity_service.log_issue_created(db, session, issue)

    db.commit()
    db.refresh(issue)
    logger.info("Issue %s created in org %s", issue.id, session.org_id)
    return issue


def update_issue(
    db: Session,
    session: UserSession,
    issue_id: UUID,
    updates: dict[str, Any],
) -> Issue:
    """
    Merge the provided fields into an issue.

    resolved_at is stamped on the first move into resolved and never
    overwritten. Logs issue_updated, plus issue_resolved when the status
    moves into resolved from another status. Leaving closed is a conflict.
    """
    require_permission(session, P.ISSUES_WRITE)
    repo = TenantRepository(db)
    issue = repo.get_or_404("issues", issue_id, session.org_id, "Issue not found")

    unknown = set(updates) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    values = {key: _enum_value(value) for key, value in updates.items()}
    previous_status = issue.status

    if "title" in values:
        title = (values["title"] or "").strip()
        if not title:
            raise ValidationError("Title is required")
        values["title"] = title
    if "description" in values and not values["description"]:
        raise ValidationError("Description is required")
    if "priority" in values:
        _validate_priority(values["priority"])

    if "status" in values:
        new_status = _validate_status(values["status"])
        if previous_status == IssueStatus.CLOSED.value and new_status != previous_status:
            raise ConflictError("Closed issues cannot be reopened")
        if new_status == IssueStatus.RESOLVED.value and issue.resolved_at is None:
            values["resolved_at"] = datetime.now(timezone.utc)

    if values.get("application_id") is not None:
        _require_in_tenant(repo, "applications", values["application_id"], session.org_id, "Application")
    if values.get("assigned_to_id") is not None:
        _require_in_tenant(repo, "users", values["assigned_to_id"], session.org_id, "User")

    old_customer_id = issue.customer_id
    new_customer_id = values.get("customer_id", old_customer_id)
    if new_customer_id is None:
        raise ValidationError("Customer is required")
    if new_customer_id != old_customer_id:
        _require_in_tenant(repo, "customers", new_customer_id, session.org_id, "Customer")

    issue = repo.update("issues", issue_id, session.org_id, values)

    if new_customer_id != old_customer_id:
        customer_service.adjust_issue_count(db, session.org_id, old_customer_id, -1)
        customer_service.adjust_issue_count(db, session.org_id, new_customer_id, +1)

    changed = sorted(key for key in values if key != "resolved_at")
    activity_service.log_issue_updated(db, session, issue, changed)
    if (
        values.get("status") == IssueStatus.RESOLVED.value
        and previous_status != IssueStatus.RESOLVED.value
    ):
        activity_service.log_issue_resolved(db, session, issue)

    db.commit()
    db.refresh(issue)
    return issue


def change_issue_status(
    db: Session,
    session: UserSession,
    issue_id: UUID,
    status: str | IssueStatus,
    resolution_notes: str | None = None,
) -> Issue:
    updates: dict[str, Any] = {"status": status}
    if resolution_notes is not None:
        updates["resolution_notes"] = resolution_notes
    return update_issue(db, session, issue_id, updates)


def assign_issue(
    db: Session, session: UserSession, issue_id: UUID, assigned_to_id: UUID | None
) -> Issue:
    """Assign to a user in the same org, or unassign with None."""
    return update_issue(db, session, issue_id, {"assigned_to_id": assigned_to_id})


def bulk_update_issues(
    db: Session,
    session: UserSession,
    issue_ids: list[UUID],
    updates: dict[str, Any],
) -> tuple[list[Issue], list[UUID]]:
    """
    Apply the same update to several issues.

    Each issue is its own transaction. Returns (updated, failed ids);
    issues that are missing or rejected are reported, not raised.
    """
    require_permission(session, P.ISSUES_WRITE)
    updated: list[Issue] = []
    failed: list[UUID] = []
    for issue_id in issue_ids:
        try:
            updated.append(update_issue(db, session, issue_id, updates))
        except (NotFoundError, ConflictError, ValidationError) as exc:
            db.rollback()
            logger.info("Bulk update skipped issue %s: %s", issue_id, exc.message)
            failed.append(issue_id)
    return updated, failed


def delete_issue(db: Session, session: UserSession, issue_id: UUID) -> None:
    """
    Delete an issue and decrement its customer's counter (floor zero).

    Comments are left in place and become orphaned.
    """
    require_permission(session, P.ISSUES_DELETE)
    repo = TenantRepository(db)
    issue = repo.get_or_404("issues", issue_id, session.org_id, "Issue not found")
    customer_id = issue.customer_id

    repo.delete("issues", issue_id, session.org_id)
    customer_service.adjust_issue_count(db, session.org_id, customer_id, -1)
    db.commit()
    logger.info("Issue %s deleted from org %s", issue_id, session.org_id)
