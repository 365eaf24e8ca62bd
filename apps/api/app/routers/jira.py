"""Jira router - project listing and connection diagnostics."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from app.core.deps import get_current_session, get_issue_tracker, require_permission
from app.core.policies import POLICIES
from app.schemas.auth import UserSession
from app.services import escalation_service
from app.services.jira_service import IssueTracker

router = APIRouter(
    dependencies=[Depends(require_permission(POLICIES["integrations"].default))]
)


@router.get("/projects")
async def list_projects(
    session: UserSession = Depends(get_current_session),
    tracker: IssueTracker | None = Depends(get_issue_tracker),
):
    projects = await escalation_service.list_projects(session, tracker)
    return [asdict(p) for p in projects]


@router.get("/projects/{project_key}/issue-types")
async def list_issue_types(
    project_key: str,
    session: UserSession = Depends(get_current_session),
    tracker: IssueTracker | None = Depends(get_issue_tracker),
):
    issue_types = await escalation_service.list_issue_types(session, tracker, project_key)
    return [asdict(t) for t in issue_types]


@router.get("/projects/{project_key}/diagnose")
async def diagnose(
    project_key: str,
    session: UserSession = Depends(get_current_session),
    tracker: IssueTracker | None = Depends(get_issue_tracker),
):
    """Step-by-step connectivity report; failures are in the body, not the status."""
    return asdict(await escalation_service.diagnose(session, tracker, project_key))
