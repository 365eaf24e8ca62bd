"""AI-generated bug reports for support issues.

The model is asked for a JSON object; anything it returns that cannot be
parsed into a BugReport is replaced by a report built from the issue itself.
"""

import json
import logging
import re
from uuid import UUID

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.authorization import require_permission
from app.core.permissions import PermissionKey as P
from app.db.models import Customer, Issue
from app.schemas.auth import UserSession
from app.schemas.issue import BugReport
from app.services.ai_provider import AIProvider, ChatMessage
from app.services.repository import TenantRepository

logger = logging.getLogger(__name__)

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

PROMPT_TEMPLATE = """You are a technical support expert analyzing a support issue to create a structured bug report for developers.

Based on the following support issue information, generate a detailed bug report:

Issue Title: {title}
Issue Description: {description}
Priority: {priority}
{customer_info}
Created: {created}

Format your response as a JSON object with the following structure:
{{
  "summary": "Brief technical summary (1-2 sentences)",
  "description": "Detailed technical description",
  "stepsToReproduce": ["Step 1", "Step 2", "Step 3"],
  "expectedBehavior": "What should happen",
  "actualBehavior": "What actually happens",
  "impact": "low|medium|high|critical",
  "technicalNotes": "Additional technical context (optional)"
}}

Focus on being precise, technical, and actionable for developers. If information is missing, make reasonable assumptions based on the context provided."""


def _customer_info(customer: Customer | None) -> str:
    return f"Customer: {customer.company_name}" if customer else "Customer: Unknown"


def _created(issue: Issue) -> str:
    return issue.created_at.date().isoformat() if issue.created_at else ""


def build_prompt(issue: Issue, customer: Customer | None) -> str:
    return PROMPT_TEMPLATE.format(
        title=issue.title,
        description=issue.description,
        priority=issue.priority,
        customer_info=_customer_info(customer),
        created=_created(issue),
    )


def map_priority_to_impact(priority: str) -> str:
    priority = (priority or "").lower()
    return priority if priority in ("critical", "high", "medium") else "low"


def fallback_report(issue: Issue, customer: Customer | None) -> BugReport:
    return BugReport(
        summary=f"[SUPPORT] {issue.title}",
        description=issue.description,
        steps_to_reproduce=["Steps to reproduce are not available from the support issue"],
        expected_behavior="Application should function as expected",
        actual_behavior="User is experiencing issues as described in the support ticket",
        impact=map_priority_to_impact(issue.priority),
        technical_notes=(
            f"Original support issue from {_customer_info(customer)}. "
            f"Priority: {issue.priority}. Created: {_created(issue)}"
        ),
        generated=False,
    )


def parse_report(text: str) -> BugReport:
    """Extract the first-to-last brace span and validate it. Raises ValueError."""
    match = JSON_OBJECT.search(text or "")
    if not match:
        raise ValueError("No JSON object in model response")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")
    if isinstance(data.get("impact"), str):
        data["impact"] = data["impact"].lower()
    try:
        report = BugReport.model_validate(data)
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid bug report structure: {exc.error_count()} error(s)") from exc
    report.generated = True
    return report


async def generate_bug_report(
    db: Session,
    session: UserSession,
    provider: AIProvider | None,
    issue_id: UUID,
) -> BugReport:
    """Generate a bug report; never fails because of the AI provider."""
    require_permission(session, P.ISSUES_READ)
    repo = TenantRepository(db)
    issue = repo.get_or_404("issues", issue_id, session.org_id, "Issue not found")
    customer = repo.get("customers", issue.customer_id, session.org_id)

    if provider is None:
        return fallback_report(issue, customer)

    try:
        response = await provider.chat(
            [ChatMessage(role="user", content=build_prompt(issue, customer))],
            max_tokens=1500,
        )
        return parse_report(response.content)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Bug report generation for issue %s fell back: %s", issue_id, exc)
        return fallback_report(issue, customer)
