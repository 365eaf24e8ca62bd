"""Tenant-scoped repository.

Generic CRUD and filtered queries over the tenant collections. Every call
takes the organization id from an already-authorized caller and adds it to
the WHERE clause; nothing here reads a tenant id from the entity payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import Select, case, func, or_, select, update
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.base import Base
from app.db.enums import IssuePriority, IssueStatus
from app.db.models import (
    ActivityItem, Application, Category, Comment, Customer, Issue,
    Organization, User,
)

logger = logging.getLogger(__name__)


COLLECTIONS: dict[str, type[Base]] = {
    "organizations": Organization,
    "users": User,
    "customers": Customer,
    "issues": Issue,
    "comments": Comment,
    "categories": Category,
    "applications": Application,
    "activities": ActivityItem,
}

# Free-text search columns per collection
SEARCH_FIELDS: dict[str, tuple[str, ...]] = {
    "issues": ("title", "description"),
    "customers": ("company_name",),
    "users": ("name", "email"),
    "applications": ("name", "description"),
    "categories": ("name", "description"),
    "comments": ("content",),
    "activities": ("title", "description"),
}

# Date-range column per collection (default created_at)
DATE_FIELDS: dict[str, str] = {"activities": "timestamp"}

SORTABLE_FIELDS: dict[str, tuple[str, ...]] = {
    "issues": ("created_at", "updated_at", "priority", "status", "title"),
    "customers": ("created_at", "updated_at", "company_name", "total_issues"),
    "users": ("created_at", "name", "email", "role", "last_login_at"),
    "applications": ("created_at", "name"),
    "categories": ("created_at", "name"),
    "comments": ("created_at",),
    "activities": ("timestamp",),
}

# Rank orderings so "priority desc" means most urgent first
PRIORITY_RANK = {
    IssuePriority.LOW.value: 1,
    IssuePriority.MEDIUM.value: 2,
    IssuePriority.HIGH.value: 3,
    IssuePriority.CRITICAL.value: 4,
}
STATUS_RANK = {status.value: index for index, status in enumerate(IssueStatus)}

EXACT_MATCH_FIELDS = ("assigned_to_id", "customer_id", "category", "application_id")


@dataclass
class QueryFilter:
    """
    Structured filter for list queries.

    Empty sets and None mean "no constraint". The date range is inclusive
    on both ends; a bare ``date`` end covers the whole day.
    """
    status: list[str] = field(default_factory=list)
    priority: list[str] = field(default_factory=list)
    assigned_to_id: UUID | None = None
    customer_id: UUID | None = None
    category: str | None = None
    application_id: UUID | None = None
    search: str | None = None
    date_start: date | datetime | None = None
    date_end: date | datetime | None = None
    sort_by: str | None = None
    sort_order: str = "desc"
    limit: int | None = None
    offset: int = 0


def as_utc(value: date | datetime, *, end_of_day: bool = False) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end_of_day else time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TenantRepository:
    """CRUD and query access to tenant collections through one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def model_for(collection: str) -> type[Base]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _partition_column(model: type[Base]):
        # Organizations partition on their own id
        if model is Organization:
            return Organization.id
        return model.organization_id

    def _scoped(self, collection: str, org_id: UUID) -> tuple[type[Base], Select]:
        model = self.model_for(collection)
        return model, select(model).where(self._partition_column(model) == org_id)

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create(self, collection: str, org_id: UUID, values: dict[str, Any]) -> Any:
        model = self.model_for(collection)
        values = dict(values)
        supplied = values.pop("organization_id", None)
        if supplied is not None and supplied != org_id:
            raise ValueError("organization_id in payload does not match partition")
        if model is Organization:
            item = model(id=org_id, **values)
        else:
            item = model(organization_id=org_id, **values)
        self.db.add(item)
        self.db.flush()
        return item

    def get(self, collection: str, item_id: UUID, org_id: UUID) -> Any | None:
        model, query = self._scoped(collection, org_id)
        return self.db.execute(query.where(model.id == item_id)).scalar_one_or_none()

    def get_or_404(
        self, collection: str, item_id: UUID, org_id: UUID, message: str | None = None
    ) -> Any:
        item = self.get(collection, item_id, org_id)
        if item is None:
            raise NotFoundError(message)
        return item

    def update(
        self, collection: str, item_id: UUID, org_id: UUID, values: dict[str, Any]
    ) -> Any:
        """Write ``values`` onto the item. Raises NotFoundError if id+org does not match."""
        item = self.get_or_404(collection, item_id, org_id)
        for key, value in values.items():
            if key in ("id", "organization_id"):
                continue
            setattr(item, key, value)
        self.db.flush()
        return item

    def update_where(
        self,
        collection: str,
        item_id: UUID,
        org_id: UUID,
        values: dict[str, Any],
        *conditions,
    ) -> int:
        """
        Conditional write. Applies ``values`` only when every condition holds
        and returns the number of rows changed (0 or 1).
        """
        model = self.model_for(collection)
        stmt = (
            update(model)
            .where(model.id == item_id, self._partition_column(model) == org_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount

    def delete(self, collection: str, item_id: UUID, org_id: UUID) -> bool:
        item = self.get(collection, item_id, org_id)
        if item is None:
            return False
        self.db.delete(item)
        self.db.flush()
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _apply_filter(
        self, collection: str, model: type[Base], query: Select, flt: QueryFilter
    ) -> Select:
        if flt.status:
            query = query.where(model.status.in_(flt.status))
        if flt.priority:
            query = query.where(model.priority.in_(flt.priority))

        for name in EXACT_MATCH_FIELDS:
            value = getattr(flt, name)
            if value is None:
                continue
            column = getattr(model, name, None)
            if column is None:
                raise ValueError(f"{collection} cannot be filtered by {name}")
            query = query.where(column == value)

        term = (flt.search or "").strip().lower()
        if term:
            columns = [getattr(model, name) for name in SEARCH_FIELDS.get(collection, ())]
            if columns:
                query = query.where(
                    or_(*(func.lower(c).contains(term, autoescape=True) for c in columns))
                )

        date_column = getattr(model, DATE_FIELDS.get(collection, "created_at"))
        if flt.date_start is not None:
            query = query.where(date_column >= as_utc(flt.date_start))
        if flt.date_end is not None:
            query = query.where(date_column <= as_utc(flt.date_end, end_of_day=True))
        return query

    def _order_by(self, collection: str, model: type[Base], flt: QueryFilter):
        default = DATE_FIELDS.get(collection, "created_at")
        sort_by = flt.sort_by or default
        if sort_by not in SORTABLE_FIELDS.get(collection, (default,)):
            raise ValueError(f"Cannot sort {collection} by {sort_by}")

        column = getattr(model, sort_by)
        if collection == "issues" and sort_by == "priority":
            column = case(PRIORITY_RANK, value=model.priority, else_=0)
        elif collection == "issues" and sort_by == "status":
            column = case(STATUS_RANK, value=model.status, else_=0)

        ascending = flt.sort_order.lower() == "asc"
        # Secondary key keeps pagination stable
        return [column.asc() if ascending else column.desc(), model.id.asc()]

    def query(
        self, collection: str, org_id: UUID, flt: QueryFilter | None = None
    ) -> list[Any]:
        flt = flt or QueryFilter()
        model, query = self._scoped(collection, org_id)
        query = self._apply_filter(collection, model, query, flt)
        query = query.order_by(*self._order_by(collection, model, flt))
        if flt.offset:
            query = query.offset(flt.offset)
        if flt.limit is not None:
            query = query.limit(flt.limit)
        return list(self.db.execute(query).scalars().all())

    def count(self, collection: str, org_id: UUID, flt: QueryFilter | None = None) -> int:
        model = self.model_for(collection)
        query = select(func.count()).select_from(model).where(
            self._partition_column(model) == org_id
        )
        if flt is not None:
            query = self._apply_filter(collection, model, query, flt)
        return self.db.execute(query).scalar_one()
