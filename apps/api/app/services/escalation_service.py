"""Escalation of support issues to Jira.

An issue is escalated at most once. The issue row is claimed with a
conditional UPDATE before the remote call so concurrent requests cannot
both create a Jira issue; a failed remote call releases the claim.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.authorization import require_permission, require_role
from app.core.exceptions import ConflictError, ExternalServiceError, ValidationError
from app.core.permissions import PermissionKey as P
from app.db.enums import ROLES_CAN_ESCALATE, IssuePriority
from app.db.models import Issue
from app.schemas.auth import UserSession
from app.services import activity_service
from app.services.jira_service import (
    IssueTracker,
    JiraDiagnosis,
    JiraError,
    JiraIssueType,
    JiraProject,
    RemoteIssue,
)
from app.services.repository import TenantRepository

logger = logging.getLogger(__name__)

# A claim older than this is treated as abandoned (process died mid-call)
CLAIM_TTL = timedelta(minutes=5)

JIRA_PRIORITY_IDS = {
    IssuePriority.CRITICAL.value: "1",  # Highest
    IssuePriority.HIGH.value: "2",
    IssuePriority.MEDIUM.value: "3",
    IssuePriority.LOW.value: "4",
}
DEFAULT_JIRA_PRIORITY_ID = "3"

ALREADY_ESCALATED = "Issue has already been escalated to Jira"


def _text(text: str, strong: bool = False) -> dict[str, Any]:
    node: dict[str, Any] = {"type": "text", "text": text}
    if strong:
        node["marks"] = [{"type": "strong"}]
    return node


def _heading(text: str) -> dict[str, Any]:
    return {"type": "heading", "attrs": {"level": 2}, "content": [_text(text)]}


def _labelled(label: str, value: str) -> dict[str, Any]:
    return {"type": "paragraph", "content": [_text(f"{label}: ", strong=True), _text(value)]}


def build_description(issue: Issue, customer_name: str) -> dict[str, Any]:
    """Atlassian Document Format body for the remote issue."""
    created = issue.created_at.date().isoformat() if issue.created_at else ""
    return {
        "type": "doc",
        "version": 1,
        "content": [
            _heading("Issue Description"),
            {"type": "paragraph", "content": [_text(issue.description)]},
            _heading("Customer Information"),
            _labelled("Customer", customer_name),
            _labelled("Priority", issue.priority),
            _labelled("Created", created),
        ],
    }


def select_issue_type(issue_types: list[JiraIssueType]) -> str | None:
    """Prefer a Bug type, then Task, then whatever comes first."""
    for wanted in ("bug", "task"):
        for issue_type in issue_types:
            if wanted in issue_type.name.lower():
                return issue_type.id
    return issue_types[0].id if issue_types else None


@dataclass(frozen=True)
class _Claim:
    """What the remote call needs, captured while the issue row is claimed."""
    project_key: str
    summary: str
    description: dict[str, Any]
    priority_id: str
    claimed_at: datetime


def _claim_for_escalation(
    db: Session, session: UserSession, tracker: IssueTracker | None, issue_id: UUID
) -> _Claim:
    repo = TenantRepository(db)
    issue = repo.get_or_404("issues", issue_id, session.org_id, "Issue not found")
    if issue.jira_issue_key:
        raise ConflictError(ALREADY_ESCALATED)

    application = None
    if issue.application_id is not None:
        application = repo.get("applications", issue.application_id, session.org_id)
    if application is None or not application.jira_project_key:
        raise ValidationError("Application does not have a Jira project configured")

    if tracker is None:
        raise ExternalServiceError("Jira integration is not configured")

    customer = repo.get("customers", issue.customer_id, session.org_id)
    customer_name = customer.company_name if customer else "Unknown Customer"
    claim = _Claim(
        project_key=application.jira_project_key,
        summary=f"[SUPPORT] {issue.title}",
        description=build_description(issue, customer_name),
        priority_id=JIRA_PRIORITY_IDS.get(issue.priority, DEFAULT_JIRA_PRIORITY_ID),
        claimed_at=datetime.now(timezone.utc),
    )

    claimed = repo.update_where(
        "issues", issue_id, session.org_id,
        {"escalated_at": claim.claimed_at, "escalated_by": session.user_id},
        Issue.jira_issue_key.is_(None),
        or_(Issue.escalated_at.is_(None), Issue.escalated_at < claim.claimed_at - CLAIM_TTL),
    )
    if not claimed:
        db.rollback()
        raise ConflictError(ALREADY_ESCALATED)
    db.commit()
    return claim


def _release_claim(db: Session, issue_id: UUID, org_id: UUID, claimed_at: datetime) -> None:
    TenantRepository(db).update_where(
        "issues", issue_id, org_id,
        {"escalated_at": None, "escalated_by": None},
        Issue.jira_issue_key.is_(None),
        Issue.escalated_at == claimed_at,
    )
    db.commit()


def _record_escalation(
    db: Session, session: UserSession, issue_id: UUID, claim: _Claim, remote: RemoteIssue
) -> Issue:
    repo = TenantRepository(db)
    issue = repo.update("issues", issue_id, session.org_id, {
        "jira_issue_key": remote.key,
        "jira_url": remote.url,
        "escalated_at": claim.claimed_at,
        "escalated_by": session.user_id,
    })
    activity_service.log_issue_updated(db, session, issue, ["jira_issue_key"])
    db.commit()
    db.refresh(issue)
    return issue


async def escalate_issue(
    db: Session,
    session: UserSession,
    tracker: IssueTracker | None,
    issue_id: UUID,
    issue_type_id: str | None = None,
) -> Issue:
    """
    Create a Jira issue for a support issue and record its key and URL.

    Database steps run in the threadpool; the Jira calls are awaited.
    Any failure after the claim releases it so the issue can be retried.

    Raises:
        ConflictError: already escalated, or another escalation is in flight
        ValidationError: the issue's application has no Jira project key
        ExternalServiceError: Jira not configured or the remote call failed
    """
    require_permission(session, P.ISSUES_WRITE)
    require_role(session, ROLES_CAN_ESCALATE)

    claim = await run_in_threadpool(_claim_for_escalation, db, session, tracker, issue_id)

    try:
        if not issue_type_id:
            issue_type_id = select_issue_type(await tracker.list_issue_types(claim.project_key))
            if not issue_type_id:
                raise JiraError(f"No available issue types found for project {claim.project_key}")
        remote = await tracker.create_issue(
            project_key=claim.project_key,
            summary=claim.summary,
            description=claim.description,
            issue_type_id=issue_type_id,
            priority_id=claim.priority_id,
        )
    except JiraError as exc:
        logger.warning("Jira escalation of issue %s failed: %s", issue_id, exc)
        await run_in_threadpool(_release_claim, db, issue_id, session.org_id, claim.claimed_at)
        raise ExternalServiceError("Failed to escalate issue to Jira", detail=str(exc)) from exc
    except Exception:
        logger.exception("Unexpected error escalating issue %s", issue_id)
        await run_in_threadpool(_release_claim, db, issue_id, session.org_id, claim.claimed_at)
        raise

    issue = await run_in_threadpool(_record_escalation, db, session, issue_id, claim, remote)
    logger.info("Issue %s escalated to Jira as %s", issue_id, remote.key)
    return issue


# =============================================================================
# Diagnostics
# =============================================================================

def _require_tracker(tracker: IssueTracker | None) -> IssueTracker:
    if tracker is None:
        raise ExternalServiceError("Jira integration is not configured")
    return tracker


async def list_projects(session: UserSession, tracker: IssueTracker | None) -> list[JiraProject]:
    require_permission(session, P.SETTINGS_READ)
    try:
        return await _require_tracker(tracker).list_projects()
    except JiraError as exc:
        raise ExternalServiceError("Failed to list Jira projects", detail=str(exc)) from exc


async def list_issue_types(
    session: UserSession, tracker: IssueTracker | None, project_key: str
) -> list[JiraIssueType]:
    require_permission(session, P.SETTINGS_READ)
    try:
        return await _require_tracker(tracker).list_issue_types(project_key)
    except JiraError as exc:
        raise ExternalServiceError(
            f"Failed to get issue types for project {project_key}", detail=str(exc)
        ) from exc


async def diagnose(
    session: UserSession, tracker: IssueTracker | None, project_key: str
) -> JiraDiagnosis:
    """Connectivity report. Failures are reported in the result, not raised."""
    require_permission(session, P.SETTINGS_READ)
    return await _require_tracker(tracker).diagnose(project_key)
