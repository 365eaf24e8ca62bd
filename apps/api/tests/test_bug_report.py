"""
Bug report generation tests.

Tests cover:
- Parsing camelCase JSON, including JSON wrapped in prose or markdown
- Fallback on unparseable replies, provider errors and missing provider
- Priority to impact mapping
"""

import httpx
import pytest

from app.services import bug_report_service, issue_service
from app.services.bug_report_service import map_priority_to_impact, parse_report
from factories import make_customer
from fakes import FakeAIProvider

GOOD_REPLY = """Here is the report:
```json
{
  "summary": "Checkout rejects valid cards",
  "description": "Payment step returns a decline for every card.",
  "stepsToReproduce": ["Add item", "Go to checkout", "Pay with a valid card"],
  "expectedBehavior": "Payment succeeds",
  "actualBehavior": "Card is declined",
  "impact": "HIGH",
  "technicalNotes": "Started after the gateway upgrade"
}
```
"""


def _issue(db, tenant, priority="critical"):
    customer = make_customer(db, tenant.org)
    return issue_service.create_issue(
        db, tenant.agent_session,
        title="Checkout fails",
        description="Card payments are declined",
        priority=priority,
        customer_id=customer.id,
    )


def test_parse_report_accepts_camel_case_inside_markdown():
    report = parse_report(GOOD_REPLY)

    assert report.generated is True
    assert report.impact == "high"
    assert report.steps_to_reproduce[-1] == "Pay with a valid card"
    assert report.expected_behavior == "Payment succeeds"
    assert report.technical_notes == "Started after the gateway upgrade"


@pytest.mark.parametrize("reply", [
    "I could not produce a report.",
    "{not json}",
    '{"summary": "x", "description": "y", "impact": "catastrophic"}',
    '{"description": "no summary", "impact": "low"}',
])
def test_parse_report_rejects_bad_replies(reply):
    with pytest.raises(ValueError):
        parse_report(reply)


@pytest.mark.parametrize("priority,impact", [
    ("critical", "critical"),
    ("high", "high"),
    ("MEDIUM", "medium"),
    ("low", "low"),
    ("urgent", "low"),
    ("", "low"),
])
def test_map_priority_to_impact(priority, impact):
    assert map_priority_to_impact(priority) == impact


async def test_generate_uses_model_reply(db, tenant):
    issue = _issue(db, tenant)
    provider = FakeAIProvider(reply=GOOD_REPLY)

    report = await bug_report_service.generate_bug_report(
        db, tenant.viewer_session, provider, issue.id
    )

    assert report.generated is True
    assert report.summary == "Checkout rejects valid cards"
    [messages] = provider.prompts
    prompt = messages[0].content
    assert "Issue Title: Checkout fails" in prompt
    assert "Customer: Acme Corp" in prompt


async def test_generate_falls_back_on_unparseable_reply(db, tenant):
    issue = _issue(db, tenant, priority="high")

    report = await bug_report_service.generate_bug_report(
        db, tenant.agent_session, FakeAIProvider(reply="Sorry, no."), issue.id
    )

    assert report.generated is False
    assert report.summary == "[SUPPORT] Checkout fails"
    assert report.description == "Card payments are declined"
    assert report.impact == "high"


async def test_generate_falls_back_on_provider_error(db, tenant):
    issue = _issue(db, tenant)
    provider = FakeAIProvider(error=httpx.ConnectError("connection refused"))

    report = await bug_report_service.generate_bug_report(
        db, tenant.agent_session, provider, issue.id
    )

    assert report.generated is False
    assert report.impact == "critical"


async def test_generate_without_provider_uses_fallback(db, tenant):
    issue = _issue(db, tenant, priority="low")

    report = await bug_report_service.generate_bug_report(db, tenant.agent_session, None, issue.id)

    assert report.generated is False
    assert "Acme Corp" in report.technical_notes
