"""Issues router - lifecycle, comments, activity, escalation and bug reports."""

from datetime import date
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import (
    get_ai_provider,
    get_current_session,
    get_db,
    get_issue_tracker,
    require_csrf_header,
    require_permission,
)
from app.core.policies import POLICIES
from app.db.enums import IssuePriority, IssueStatus
from app.schemas.auth import UserSession
from app.schemas.issue import (
    ActivityRead,
    BugReport,
    CommentCreate,
    CommentRead,
    EscalationRequest,
    EscalationResult,
    IssueAssign,
    IssueBulkUpdate,
    IssueBulkUpdateResponse,
    IssueCreate,
    IssueListResponse,
    IssueRead,
    IssueStatusUpdate,
    IssueUpdate,
)
from app.services import (
    activity_service,
    bug_report_service,
    comment_service,
    escalation_service,
    issue_service,
)
from app.services.ai_provider import AIProvider
from app.services.jira_service import IssueTracker
from app.services.repository import QueryFilter
from app.utils.pagination import PaginationParams, get_pagination

router = APIRouter(
    dependencies=[Depends(require_permission(POLICIES["issues"].default))]
)


@router.get("", response_model=IssueListResponse)
def list_issues(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    pagination: PaginationParams = Depends(get_pagination),
    status: list[IssueStatus] | None = Query(None),
    priority: list[IssuePriority] | None = Query(None),
    assigned_to_id: UUID | None = None,
    customer_id: UUID | None = None,
    category: str | None = None,
    application_id: UUID | None = None,
    q: str | None = Query(None, description="Search in title and description"),
    date_start: date | None = Query(None, description="Created on or after (YYYY-MM-DD)"),
    date_end: date | None = Query(None, description="Created on or before (YYYY-MM-DD)"),
    sort_by: Literal["created_at", "updated_at", "priority", "status", "title"] = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
):
    """List issues with filters, search, date range and sorting."""
    flt = QueryFilter(
        status=[s.value for s in status or []],
        priority=[p.value for p in priority or []],
        assigned_to_id=assigned_to_id,
        customer_id=customer_id,
        category=category,
        application_id=application_id,
        search=q,
        date_start=date_start,
        date_end=date_end,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=pagination.per_page,
        offset=pagination.offset,
    )
    items = issue_service.list_issues(db, session, flt)
    total = issue_service.count_issues(db, session, flt)
    return IssueListResponse(
        items=[IssueRead.model_validate(i) for i in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )


@router.post(
    "",
    response_model=IssueRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_issue(
    data: IssueCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return issue_service.create_issue(db, session, **data.model_dump())


@router.post(
    "/bulk",
    response_model=IssueBulkUpdateResponse,
    dependencies=[Depends(require_csrf_header)],
)
def bulk_update_issues(
    data: IssueBulkUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Apply one update to many issues; failures are reported per id."""
    updated, failed = issue_service.bulk_update_issues(
        db, session, data.issue_ids, data.updates.model_dump(exclude_unset=True)
    )
    return IssueBulkUpdateResponse(updated=[i.id for i in updated], failed=failed)


@router.get("/{issue_id}", response_model=IssueRead)
def get_issue(
    issue_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return issue_service.get_issue(db, session, issue_id)


@router.patch(
    "/{issue_id}",
    response_model=IssueRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_issue(
    issue_id: UUID,
    data: IssueUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Partial update; only fields present in the body are written."""
    return issue_service.update_issue(db, session, issue_id, data.model_dump(exclude_unset=True))


@router.post(
    "/{issue_id}/status",
    response_model=IssueRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_status(
    issue_id: UUID,
    data: IssueStatusUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return issue_service.change_issue_status(
        db, session, issue_id, data.status, data.resolution_notes
    )


@router.post(
    "/{issue_id}/assign",
    response_model=IssueRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign_issue(
    issue_id: UUID,
    data: IssueAssign,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return issue_service.assign_issue(db, session, issue_id, data.assigned_to_id)


@router.delete("/{issue_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_issue(
    issue_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    issue_service.delete_issue(db, session, issue_id)


# =============================================================================
# Comments and activity
# =============================================================================

@router.get("/{issue_id}/comments", response_model=list[CommentRead])
def list_comments(
    issue_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return comment_service.list_comments(db, session, issue_id)


@router.post(
    "/{issue_id}/comments",
    response_model=CommentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_comment(
    issue_id: UUID,
    data: CommentCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return comment_service.add_comment(db, session, issue_id, data.content)


@router.get("/{issue_id}/activity", response_model=list[ActivityRead])
def list_activity(
    issue_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return activity_service.list_issue_activity(db, session, issue_id)


# =============================================================================
# Integrations
# =============================================================================

@router.post(
    "/{issue_id}/escalate",
    response_model=EscalationResult,
    dependencies=[Depends(require_csrf_header)],
)
async def escalate_issue(
    issue_id: UUID,
    data: EscalationRequest | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    tracker: IssueTracker | None = Depends(get_issue_tracker),
):
    """Create a Jira issue for this issue. Allowed once per issue."""
    issue = await escalation_service.escalate_issue(
        db, session, tracker, issue_id, data.issue_type_id if data else None
    )
    return EscalationResult(jira_issue_key=issue.jira_issue_key, jira_url=issue.jira_url)


@router.post(
    "/{issue_id}/bug-report",
    response_model=BugReport,
    dependencies=[Depends(require_csrf_header)],
)
async def generate_bug_report(
    issue_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    provider: AIProvider | None = Depends(get_ai_provider),
):
    """AI-drafted developer bug report; falls back to a template on failure."""
    return await bug_report_service.generate_bug_report(db, session, provider, issue_id)
