"""Dashboard router - aggregate statistics and report breakdowns."""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.schemas.auth import UserSession
from app.schemas.dashboard import BreakdownRowRead, DashboardStatsRead
from app.services import dashboard_service

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStatsRead)
def get_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    date_start: date | None = Query(None, description="Created on or after (YYYY-MM-DD)"),
    date_end: date | None = Query(None, description="Created on or before (YYYY-MM-DD)"),
):
    """Totals, status and priority distribution, daily trend and recent activity."""
    return dashboard_service.get_dashboard_stats(
        db, session, date_start=date_start, date_end=date_end
    )


@router.get("/breakdown", response_model=list[BreakdownRowRead])
def get_breakdown(
    group_by: Literal["customer", "application", "assignee"] = "customer",
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    date_start: date | None = None,
    date_end: date | None = None,
):
    return dashboard_service.get_issue_breakdown(
        db, session, group_by, date_start=date_start, date_end=date_end
    )
