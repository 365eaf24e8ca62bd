"""Applications and categories."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.authorization import require_authenticated, require_permission
from app.core.exceptions import NotFoundError
from app.core.permissions import PermissionKey as P
from app.db.models import Application, Category
from app.schemas.auth import UserSession
from app.services.repository import QueryFilter, TenantRepository


# =============================================================================
# Applications
# =============================================================================

def list_applications(
    db: Session, session: UserSession, include_inactive: bool = True
) -> list[Application]:
    require_authenticated(session)
    apps = TenantRepository(db).query(
        "applications", session.org_id, QueryFilter(sort_by="name", sort_order="asc")
    )
    return apps if include_inactive else [a for a in apps if a.is_active]


def get_application(db: Session, session: UserSession, application_id: UUID) -> Application:
    require_authenticated(session)
    return TenantRepository(db).get_or_404(
        "applications", application_id, session.org_id, "Application not found"
    )


def create_application(db: Session, session: UserSession, values: dict[str, Any]) -> Application:
    require_permission(session, P.SETTINGS_WRITE)
    application = TenantRepository(db).create("applications", session.org_id, values)
    db.commit()
    db.refresh(application)
    return application


def update_application(
    db: Session, session: UserSession, application_id: UUID, values: dict[str, Any]
) -> Application:
    require_permission(session, P.SETTINGS_WRITE)
    application = TenantRepository(db).update(
        "applications", application_id, session.org_id, values
    )
    db.commit()
    db.refresh(application)
    return application


def delete_application(db: Session, session: UserSession, application_id: UUID) -> None:
    """Delete an application. Its categories and issue references are kept."""
    require_permission(session, P.SETTINGS_WRITE)
    if not TenantRepository(db).delete("applications", application_id, session.org_id):
        raise NotFoundError("Application not found")
    db.commit()


# =============================================================================
# Categories
# =============================================================================

def list_categories(
    db: Session,
    session: UserSession,
    application_id: UUID | None = None,
    include_inactive: bool = True,
) -> list[Category]:
    require_authenticated(session)
    query = select(Category).where(Category.organization_id == session.org_id)
    if application_id is not None:
        query = query.where(Category.application_id == application_id)
    if not include_inactive:
        query = query.where(Category.is_active.is_(True))
    return list(db.execute(query.order_by(Category.name)).scalars().all())


def _require_application(repo: TenantRepository, application_id: UUID, org_id: UUID) -> None:
    if repo.get("applications", application_id, org_id) is None:
        raise NotFoundError("Application not found")


def create_category(db: Session, session: UserSession, values: dict[str, Any]) -> Category:
    require_permission(session, P.SETTINGS_WRITE)
    repo = TenantRepository(db)
    _require_application(repo, values["application_id"], session.org_id)
    category = repo.create("categories", session.org_id, values)
    db.commit()
    db.refresh(category)
    return category


def update_category(
    db: Session, session: UserSession, category_id: UUID, values: dict[str, Any]
) -> Category:
    require_permission(session, P.SETTINGS_WRITE)
    repo = TenantRepository(db)
    if values.get("application_id") is not None:
        _require_application(repo, values["application_id"], session.org_id)
    category = repo.update("categories", category_id, session.org_id, values)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, session: UserSession, category_id: UUID) -> None:
    require_permission(session, P.SETTINGS_WRITE)
    if not TenantRepository(db).delete("categories", category_id, session.org_id):
        raise NotFoundError("Category not found")
    db.commit()
