"""Customers router - CRUD and issue-counter reconciliation."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header, require_permission
from app.core.policies import POLICIES
from app.schemas.auth import UserSession
from app.schemas.customer import (
    CounterDriftRead,
    CustomerCreate,
    CustomerRead,
    CustomerUpdate,
    ReconcileResponse,
)
from app.services import customer_service

router = APIRouter(
    dependencies=[Depends(require_permission(POLICIES["customers"].default))]
)


@router.get("", response_model=list[CustomerRead])
def list_customers(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    q: str | None = Query(None, description="Search in company name"),
    sort_by: Literal["company_name", "created_at", "updated_at", "total_issues"] = "company_name",
    sort_order: Literal["asc", "desc"] = "asc",
):
    return customer_service.list_customers(
        db, session, search=q, sort_by=sort_by, sort_order=sort_order
    )


@router.post(
    "",
    response_model=CustomerRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_customer(
    data: CustomerCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return customer_service.create_customer(db, session, data.company_name)


@router.post(
    "/reconcile-counts",
    response_model=ReconcileResponse,
    dependencies=[Depends(require_csrf_header)],
)
def reconcile_counts(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Recompute every customer's total_issues from live issues."""
    drift = customer_service.reconcile_customer_issue_counts(db, session)
    return ReconcileResponse(corrected=[CounterDriftRead.model_validate(d) for d in drift])


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(
    customer_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return customer_service.get_customer(db, session, customer_id)


@router.patch(
    "/{customer_id}",
    response_model=CustomerRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_customer(
    customer_id: UUID,
    data: CustomerUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return customer_service.update_customer(db, session, customer_id, data.company_name)


@router.delete("/{customer_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_customer(
    customer_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Refused with 409 while the customer has any issues."""
    customer_service.delete_customer(db, session, customer_id)
