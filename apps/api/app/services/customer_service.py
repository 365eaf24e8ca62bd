"""Customer service - CRUD, delete guard, and issue-counter reconciliation."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.authorization import require_permission
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.permissions import PermissionKey as P
from app.db.models import Customer, Issue
from app.schemas.auth import UserSession
from app.services.repository import QueryFilter, TenantRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterDrift:
    """A customer whose stored total_issues disagreed with live issues."""
    customer_id: UUID
    company_name: str
    stored: int
    actual: int


def _clean_company_name(company_name: str | None) -> str:
    name = (company_name or "").strip()
    if not name:
        raise ValidationError("Company name is required")
    return name


def list_customers(
    db: Session,
    session: UserSession,
    *,
    search: str | None = None,
    sort_by: str = "company_name",
    sort_order: str = "asc",
) -> list[Customer]:
    require_permission(session, P.CUSTOMERS_READ)
    return TenantRepository(db).query(
        "customers",
        session.org_id,
        QueryFilter(search=search, sort_by=sort_by, sort_order=sort_order),
    )


def get_customer(db: Session, session: UserSession, customer_id: UUID) -> Customer:
    require_permission(session, P.CUSTOMERS_READ)
    return TenantRepository(db).get_or_404(
        "customers", customer_id, session.org_id, "Customer not found"
    )


def create_customer(db: Session, session: UserSession, company_name: str) -> Customer:
    require_permission(session, P.CUSTOMERS_WRITE)
    customer = TenantRepository(db).create(
        "customers",
        session.org_id,
        {"company_name": _clean_company_name(company_name), "total_issues": 0},
    )
    db.commit()
    db.refresh(customer)
    return customer


def update_customer(
    db: Session, session: UserSession, customer_id: UUID, company_name: str
) -> Customer:
    require_permission(session, P.CUSTOMERS_WRITE)
    customer = TenantRepository(db).update(
        "customers",
        customer_id,
        session.org_id,
        {"company_name": _clean_company_name(company_name)},
    )
    db.commit()
    db.refresh(customer)
    return customer


def count_live_issues(db: Session, org_id: UUID, customer_id: UUID) -> int:
    return TenantRepository(db).count(
        "issues", org_id, QueryFilter(customer_id=customer_id)
    )


def delete_customer(db: Session, session: UserSession, customer_id: UUID) -> None:
    """
    Delete a customer with no issues.

    The guard counts live issues in every status rather than trusting the
    total_issues counter.
    """
    require_permission(session, P.CUSTOMERS_WRITE)
    repo = TenantRepository(db)
    repo.get_or_404("customers", customer_id, session.org_id, "Customer not found")

    issue_count = count_live_issues(db, session.org_id, customer_id)
    if issue_count > 0:
        raise ConflictError(
            f"Cannot delete customer with {issue_count} existing issue(s). "
            "Please resolve or reassign all issues first."
        )

    repo.delete("customers", customer_id, session.org_id)
    db.commit()


# =============================================================================
# Counter maintenance
# =============================================================================

def adjust_issue_count(db: Session, org_id: UUID, customer_id: UUID, delta: int) -> None:
    """Apply delta to total_issues, flooring at zero. Flushes only."""
    customer = TenantRepository(db).get("customers", customer_id, org_id)
    if customer is None:
        logger.warning(
            "Issue counter drift: customer %s missing in org %s (delta %s)",
            customer_id, org_id, delta,
        )
        return
    customer.total_issues = max(0, (customer.total_issues or 0) + delta)
    db.flush()


def find_counter_drift(db: Session, org_id: UUID) -> list[CounterDrift]:
    actual_counts = dict(
        db.execute(
            select(Issue.customer_id, func.count())
            .where(Issue.organization_id == org_id)
            .group_by(Issue.customer_id)
        ).all()
    )
    customers = db.execute(
        select(Customer).where(Customer.organization_id == org_id)
    ).scalars().all()

    drift = []
    for customer in customers:
        actual = actual_counts.get(customer.id, 0)
        if customer.total_issues != actual:
            drift.append(CounterDrift(
                customer_id=customer.id,
                company_name=customer.company_name,
                stored=customer.total_issues,
                actual=actual,
            ))
    return drift


def repair_counter_drift(db: Session, org_id: UUID) -> list[CounterDrift]:
    """Recompute total_issues from live issues. Used by the API and the CLI."""
    drift = find_counter_drift(db, org_id)
    for item in drift:
        logger.warning(
            "Issue counter drift for customer %s in org %s: stored=%s actual=%s",
            item.customer_id, org_id, item.stored, item.actual,
        )
        customer = db.get(Customer, item.customer_id)
        customer.total_issues = item.actual
    db.commit()
    return drift


def reconcile_customer_issue_counts(db: Session, session: UserSession) -> list[CounterDrift]:
    require_permission(session, P.CUSTOMERS_WRITE)
    return repair_counter_drift(db, session.org_id)
