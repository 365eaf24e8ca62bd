"""
Tenant repository tests.

Tests cover:
- Partition isolation on get/update/delete/query/count
- Structured filters, search, date range and sorting
- Conditional updates
"""

from datetime import date, datetime, timezone

import pytest

from app.core.exceptions import NotFoundError
from app.db.models import Issue
from app.services.repository import QueryFilter, TenantRepository
from factories import make_customer


def _issue(db, tenant, customer, title, **values) -> Issue:
    issue = Issue(
        organization_id=tenant.org.id,
        title=title,
        description=values.pop("description", f"{title} description"),
        status=values.pop("status", "new"),
        priority=values.pop("priority", "medium"),
        customer_id=customer.id,
        created_by=tenant.admin.id,
        **values,
    )
    db.add(issue)
    db.commit()
    return issue


@pytest.fixture
def repo(db):
    return TenantRepository(db)


def test_get_never_crosses_partition(db, repo, tenant, other_tenant):
    customer = make_customer(db, tenant.org)
    issue = _issue(db, tenant, customer, "Login broken")

    assert repo.get("issues", issue.id, tenant.org.id).id == issue.id
    assert repo.get("issues", issue.id, other_tenant.org.id) is None
    with pytest.raises(NotFoundError):
        repo.get_or_404("issues", issue.id, other_tenant.org.id)


def test_update_and_delete_scoped_to_partition(db, repo, tenant, other_tenant):
    customer = make_customer(db, tenant.org)
    issue = _issue(db, tenant, customer, "Login broken")

    with pytest.raises(NotFoundError):
        repo.update("issues", issue.id, other_tenant.org.id, {"title": "hijacked"})
    assert repo.delete("issues", issue.id, other_tenant.org.id) is False

    db.rollback()
    assert repo.get("issues", issue.id, tenant.org.id).title == "Login broken"


def test_update_ignores_partition_and_id_fields(db, repo, tenant, other_tenant):
    customer = make_customer(db, tenant.org)
    issue = _issue(db, tenant, customer, "Login broken")

    repo.update("issues", issue.id, tenant.org.id, {
        "organization_id": other_tenant.org.id,
        "title": "Login still broken",
    })
    db.commit()

    stored = repo.get("issues", issue.id, tenant.org.id)
    assert stored.organization_id == tenant.org.id
    assert stored.title == "Login still broken"


def test_create_rejects_mismatched_partition(repo, tenant, other_tenant):
    with pytest.raises(ValueError):
        repo.create("customers", tenant.org.id, {
            "company_name": "Mallory Inc",
            "organization_id": other_tenant.org.id,
        })


def test_query_and_count_only_see_own_partition(db, repo, tenant, other_tenant):
    mine = make_customer(db, tenant.org)
    theirs = make_customer(db, other_tenant.org)
    _issue(db, tenant, mine, "One")
    _issue(db, tenant, mine, "Two")
    _issue(db, other_tenant, theirs, "Three")

    assert {i.title for i in repo.query("issues", tenant.org.id)} == {"One", "Two"}
    assert repo.count("issues", other_tenant.org.id) == 1


def test_status_priority_and_exact_filters(db, repo, tenant):
    customer = make_customer(db, tenant.org)
    other_customer = make_customer(db, tenant.org, "Globex")
    _issue(db, tenant, customer, "A", status="new", priority="high")
    _issue(db, tenant, customer, "B", status="in_progress", priority="low")
    _issue(db, tenant, other_customer, "C", status="resolved", priority="high", category="billing")

    flt = QueryFilter(status=["new", "resolved"], priority=["high"])
    assert {i.title for i in repo.query("issues", tenant.org.id, flt)} == {"A", "C"}

    flt = QueryFilter(customer_id=customer.id)
    assert {i.title for i in repo.query("issues", tenant.org.id, flt)} == {"A", "B"}

    flt = QueryFilter(category="billing")
    assert [i.title for i in repo.query("issues", tenant.org.id, flt)] == ["C"]
    assert repo.count("issues", tenant.org.id, flt) == 1


def test_search_is_case_insensitive_across_title_and_description(db, repo, tenant):
    customer = make_customer(db, tenant.org)
    _issue(db, tenant, customer, "Checkout Fails", description="Card declined")
    _issue(db, tenant, customer, "Slow dashboard", description="Takes a while to LOAD")
    _issue(db, tenant, customer, "Typo", description="100% wrong")

    assert [i.title for i in repo.query("issues", tenant.org.id, QueryFilter(search="checkout"))] == ["Checkout Fails"]
    assert [i.title for i in repo.query("issues", tenant.org.id, QueryFilter(search="load"))] == ["Slow dashboard"]
    # LIKE wildcards are matched literally
    assert [i.title for i in repo.query("issues", tenant.org.id, QueryFilter(search="100%"))] == ["Typo"]
    assert repo.query("issues", tenant.org.id, QueryFilter(search="%")) != []
    assert repo.query("issues", tenant.org.id, QueryFilter(search="_x_")) == []


def test_date_range_is_inclusive_and_end_covers_whole_day(db, repo, tenant):
    customer = make_customer(db, tenant.org)
    _issue(db, tenant, customer, "Early", created_at=datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc))
    _issue(db, tenant, customer, "Late", created_at=datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc))
    _issue(db, tenant, customer, "After", created_at=datetime(2026, 3, 3, 0, 0, 1, tzinfo=timezone.utc))

    flt = QueryFilter(date_start=date(2026, 3, 1), date_end=date(2026, 3, 2))
    assert {i.title for i in repo.query("issues", tenant.org.id, flt)} == {"Early", "Late"}


def test_priority_sort_orders_by_urgency(db, repo, tenant):
    customer = make_customer(db, tenant.org)
    for title, priority in [("m", "medium"), ("c", "critical"), ("l", "low"), ("h", "high")]:
        _issue(db, tenant, customer, title, priority=priority)

    flt = QueryFilter(sort_by="priority", sort_order="desc")
    assert [i.priority for i in repo.query("issues", tenant.org.id, flt)] == [
        "critical", "high", "medium", "low",
    ]
    flt = QueryFilter(sort_by="priority", sort_order="asc")
    assert repo.query("issues", tenant.org.id, flt)[0].priority == "low"


def test_default_sort_is_newest_first_with_pagination(db, repo, tenant):
    customer = make_customer(db, tenant.org)
    for day in range(1, 6):
        _issue(db, tenant, customer, f"day {day}", created_at=datetime(2026, 1, day, tzinfo=timezone.utc))

    page = repo.query("issues", tenant.org.id, QueryFilter(limit=2, offset=1))
    assert [i.title for i in page] == ["day 4", "day 3"]


def test_unknown_sort_field_rejected(repo, tenant):
    with pytest.raises(ValueError):
        repo.query("issues", tenant.org.id, QueryFilter(sort_by="description"))


def test_update_where_applies_only_when_conditions_hold(db, repo, tenant, other_tenant):
    customer = make_customer(db, tenant.org)
    issue = _issue(db, tenant, customer, "Escalate me")

    changed = repo.update_where(
        "issues", issue.id, tenant.org.id, {"jira_issue_key": "SUP-1"},
        Issue.jira_issue_key.is_(None),
    )
    assert changed == 1
    again = repo.update_where(
        "issues", issue.id, tenant.org.id, {"jira_issue_key": "SUP-2"},
        Issue.jira_issue_key.is_(None),
    )
    assert again == 0
    foreign = repo.update_where(
        "issues", issue.id, other_tenant.org.id, {"title": "nope"},
    )
    assert foreign == 0
    db.commit()

    db.refresh(issue)
    assert issue.jira_issue_key == "SUP-1"
