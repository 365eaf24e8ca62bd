"""
Customer tests.

Tests cover:
- CRUD validation and permission gating
- Delete guard counts live issues, not the stored counter
- Counter drift detection and repair
"""

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.db.models import Customer
from app.services import customer_service, issue_service
from factories import make_customer


def _issue(db, session, customer, title="Printer on fire"):
    return issue_service.create_issue(
        db, session, title=title, description="Smoke everywhere", customer_id=customer.id
    )


def test_create_trims_and_requires_name(db, tenant):
    customer = customer_service.create_customer(db, tenant.agent_session, "  Acme Corp  ")
    assert customer.company_name == "Acme Corp"
    assert customer.total_issues == 0

    with pytest.raises(ValidationError) as exc:
        customer_service.create_customer(db, tenant.agent_session, "   ")
    assert exc.value.message == "Company name is required"


def test_read_only_cannot_create_or_update(db, tenant):
    customer = make_customer(db, tenant.org)
    with pytest.raises(ForbiddenError):
        customer_service.create_customer(db, tenant.viewer_session, "Globex")
    with pytest.raises(ForbiddenError):
        customer_service.update_customer(db, tenant.viewer_session, customer.id, "Renamed")

    db.expire_all()
    assert db.get(Customer, customer.id).company_name == "Acme Corp"


def test_list_customers_search_and_sort(db, tenant, other_tenant):
    for name in ("Initech", "acme", "Globex"):
        make_customer(db, tenant.org, name)
    make_customer(db, other_tenant.org, "Acme Elsewhere")

    names = [c.company_name for c in customer_service.list_customers(db, tenant.viewer_session)]
    assert names == ["Globex", "Initech", "acme"]
    found = customer_service.list_customers(db, tenant.viewer_session, search="ACME")
    assert [c.company_name for c in found] == ["acme"]


def test_delete_refused_while_issues_exist(db, tenant):
    customer = make_customer(db, tenant.org)
    _issue(db, tenant.agent_session, customer, "One")
    _issue(db, tenant.agent_session, customer, "Two")
    # Counter drift must not let the delete through
    customer.total_issues = 0
    db.commit()

    with pytest.raises(ConflictError) as exc:
        customer_service.delete_customer(db, tenant.admin_session, customer.id)
    assert exc.value.message == (
        "Cannot delete customer with 2 existing issue(s). "
        "Please resolve or reassign all issues first."
    )
    assert customer_service.get_customer(db, tenant.admin_session, customer.id)


def test_delete_counts_resolved_and_closed_issues(db, tenant):
    customer = make_customer(db, tenant.org)
    issue = _issue(db, tenant.agent_session, customer)
    issue_service.change_issue_status(db, tenant.agent_session, issue.id, "closed")

    with pytest.raises(ConflictError):
        customer_service.delete_customer(db, tenant.admin_session, customer.id)


def test_delete_customer_without_issues(db, tenant, other_tenant):
    customer = make_customer(db, tenant.org)

    with pytest.raises(NotFoundError):
        customer_service.delete_customer(db, other_tenant.admin_session, customer.id)

    customer_service.delete_customer(db, tenant.agent_session, customer.id)
    with pytest.raises(NotFoundError):
        customer_service.get_customer(db, tenant.agent_session, customer.id)


def test_reconcile_repairs_drift(db, tenant, other_tenant):
    acme = make_customer(db, tenant.org, "Acme")
    globex = make_customer(db, tenant.org, "Globex")
    foreign = make_customer(db, other_tenant.org, "Foreign")
    _issue(db, tenant.agent_session, acme)
    _issue(db, tenant.agent_session, acme)
    acme.total_issues = 5
    globex.total_issues = 3
    foreign.total_issues = 9
    db.commit()

    drift = customer_service.reconcile_customer_issue_counts(db, tenant.agent_session)

    assert {(d.company_name, d.stored, d.actual) for d in drift} == {
        ("Acme", 5, 2),
        ("Globex", 3, 0),
    }
    db.refresh(acme)
    db.refresh(globex)
    db.refresh(foreign)
    assert (acme.total_issues, globex.total_issues) == (2, 0)
    # Other tenants are untouched
    assert foreign.total_issues == 9
    assert customer_service.find_counter_drift(db, tenant.org.id) == []


def test_reconcile_requires_customers_write(db, tenant):
    with pytest.raises(ForbiddenError):
        customer_service.reconcile_customer_issue_counts(db, tenant.viewer_session)
