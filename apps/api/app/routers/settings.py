"""Settings router - organization settings, applications and categories."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.catalog import (
    ApplicationCreate,
    ApplicationRead,
    ApplicationUpdate,
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
)
from app.schemas.org import OrgSettingsRead, OrgSettingsUpdate
from app.services import catalog_service, org_service

router = APIRouter()


# =============================================================================
# Organization
# =============================================================================

@router.get("/organization", response_model=OrgSettingsRead)
def get_org_settings(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return org_service.get_org_settings(db, session)


@router.patch(
    "/organization",
    response_model=OrgSettingsRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_org_settings(
    data: OrgSettingsUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return org_service.update_org_settings(db, session, data.model_dump(exclude_unset=True))


# =============================================================================
# Applications
# =============================================================================

@router.get("/applications", response_model=list[ApplicationRead])
def list_applications(
    include_inactive: bool = True,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.list_applications(db, session, include_inactive)


@router.post(
    "/applications",
    response_model=ApplicationRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_application(
    data: ApplicationCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.create_application(db, session, data.model_dump())


@router.get("/applications/{application_id}", response_model=ApplicationRead)
def get_application(
    application_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.get_application(db, session, application_id)


@router.patch(
    "/applications/{application_id}",
    response_model=ApplicationRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_application(
    application_id: UUID,
    data: ApplicationUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.update_application(
        db, session, application_id, data.model_dump(exclude_unset=True)
    )


@router.delete(
    "/applications/{application_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_application(
    application_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    catalog_service.delete_application(db, session, application_id)


# =============================================================================
# Categories
# =============================================================================

@router.get("/categories", response_model=list[CategoryRead])
def list_categories(
    application_id: UUID | None = None,
    include_inactive: bool = True,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.list_categories(db, session, application_id, include_inactive)


@router.post(
    "/categories",
    response_model=CategoryRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_category(
    data: CategoryCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.create_category(db, session, data.model_dump())


@router.patch(
    "/categories/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return catalog_service.update_category(
        db, session, category_id, data.model_dump(exclude_unset=True)
    )


@router.delete(
    "/categories/{category_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_category(
    category_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    catalog_service.delete_category(db, session, category_id)
