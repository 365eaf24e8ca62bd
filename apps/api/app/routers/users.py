"""Users router - organization user management (admin surface)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import (
    get_current_session,
    get_db,
    get_identity_provider,
    require_csrf_header,
    require_permission,
)
from app.core.permissions import get_all_permissions
from app.core.policies import POLICIES
from app.schemas.auth import UserSession
from app.schemas.user import (
    OrganizationMemberRead,
    PermissionInfo,
    UserAdd,
    UserInvite,
    UserRead,
    UserRoleUpdate,
)
from app.services import user_service
from app.services.stytch_service import IdentityProvider

router = APIRouter(
    dependencies=[Depends(require_permission(POLICIES["users"].default))]
)


@router.get("", response_model=list[UserRead])
def list_users(
    q: str | None = Query(None, description="Search in name and email"),
    include_inactive: bool = True,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, session, search=q, include_inactive=include_inactive)


@router.get("/permissions", response_model=list[PermissionInfo])
def list_permissions():
    """Permission registry for the admin UI."""
    return [
        PermissionInfo(
            key=p.key, label=p.label, description=p.description, category=p.category.value
        )
        for p in get_all_permissions()
    ]


@router.post(
    "",
    response_model=UserRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
async def add_user(
    data: UserAdd,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Add an existing Stytch member of this organization."""
    return await user_service.add_user_from_member(
        db, session, identity, data.stytch_member_id, data.role
    )


@router.get("/members", response_model=list[OrganizationMemberRead])
async def list_members(
    email: str | None = Query(None, description="Search Stytch members by email"),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Stytch members of the organization and whether each has a local user."""
    statuses = await user_service.list_organization_members(db, session, identity, email)
    return [
        OrganizationMemberRead(
            member_id=s.member.member_id,
            email=s.member.email,
            name=s.member.name,
            status=s.member.status,
            in_database=s.user is not None,
            user_id=s.user.id if s.user else None,
            role=s.user.role if s.user else None,
            is_active=s.user.is_active if s.user else None,
        )
        for s in statuses
    ]


@router.post(
    "/invite",
    response_model=UserRead,
    status_code=201,
    dependencies=[
        Depends(require_permission(POLICIES["users"].actions["manage"])),
        Depends(require_csrf_header),
    ],
)
async def invite_user(
    data: UserInvite,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    return await user_service.invite_user(
        db, session, identity, data.email, data.name, data.role
    )


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, session, user_id)


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Role and permissions are stored independently."""
    return user_service.update_user_role(db, session, user_id, data.role, data.permissions)


@router.post(
    "/{user_id}/reset-permissions",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def reset_permissions(
    user_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.reset_user_permissions(db, session, user_id)


@router.post(
    "/{user_id}/toggle-active",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def toggle_active(
    user_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.toggle_user_activation(db, session, user_id)


@router.delete("/{user_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def remove_user(
    user_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    user_service.remove_user(db, session, user_id)
