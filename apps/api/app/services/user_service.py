"""User service - provisioning on login and admin user management.

Role and permissions are separate fields. The role seeds permissions when a
user is created; after that the stored list is authoritative and only
changes through update_user_role or reset_user_permissions.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.authorization import forbid_self_target, require_permission
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from app.core.permissions import (
    PermissionKey as P,
    get_role_default_permissions,
    is_valid_permission,
)
from app.db.enums import Role
from app.db.models import Organization, User
from app.schemas.auth import UserSession
from app.services.repository import QueryFilter, TenantRepository
from app.services.stytch_service import (
    IdentityError,
    IdentityProvider,
    MemberDetails,
    OrganizationMember,
)

logger = logging.getLogger(__name__)

# Shorter email queries return nothing instead of the whole directory
MEMBER_SEARCH_MIN_LENGTH = 2


# =============================================================================
# Lookups
# =============================================================================

def get_user_by_member(db: Session, org_id: UUID, stytch_member_id: str) -> User | None:
    return db.execute(
        select(User).where(
            User.organization_id == org_id,
            User.stytch_member_id == stytch_member_id,
        )
    ).scalar_one_or_none()


def count_users(db: Session, org_id: UUID) -> int:
    return db.execute(
        select(func.count()).select_from(User).where(User.organization_id == org_id)
    ).scalar_one()


def _validate_role(role: str | Role) -> str:
    value = getattr(role, "value", role)
    if not Role.has_value(value):
        raise ValidationError(f"Unknown role '{value}'")
    return value


def _validate_permissions(permissions: list[str]) -> list[str]:
    invalid = [p for p in permissions if not is_valid_permission(p)]
    if invalid:
        raise ValidationError(f"Unknown permissions: {', '.join(sorted(invalid))}")
    # Preserve order, drop duplicates
    return list(dict.fromkeys(permissions))


# =============================================================================
# Provisioning (called by the session resolver, no session yet)
# =============================================================================

def _mark_bootstrapped(org: Organization) -> None:
    if org.admin_bootstrapped_at is None:
        org.admin_bootstrapped_at = datetime.now(timezone.utc)


def provision_user(
    db: Session,
    org: Organization,
    stytch_member_id: str,
    *,
    name: str,
    email: str = "",
) -> User:
    """
    Create the local user for a member seen for the first time.

    Only the first user ever created in an org becomes admin. The org
    records that moment in admin_bootstrapped_at, so an org whose users
    were all removed does not hand admin to the next login. Everyone else
    gets the org's default role; permissions come from the role table.
    """
    first_user = org.admin_bootstrapped_at is None and count_users(db, org.id) == 0
    role = Role.ADMIN.value if first_user else org.default_user_role
    if not Role.has_value(role):
        logger.warning("Org %s has unknown default role %r; using read_only", org.id, role)
        role = Role.READ_ONLY.value

    user = User(
        organization_id=org.id,
        stytch_member_id=stytch_member_id,
        name=name,
        email=email or "",
        role=role,
        permissions=get_role_default_permissions(role),
        is_active=True,
    )
    db.add(user)
    _mark_bootstrapped(org)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first login for the same member
        db.rollback()
        existing = get_user_by_member(db, org.id, stytch_member_id)
        if existing is None:
            raise
        return existing
    db.refresh(user)
    logger.info("Provisioned user %s in org %s with role %s", user.id, org.id, role)
    return user


def record_login(db: Session, user: User) -> User:
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


# =============================================================================
# Admin operations
# =============================================================================

def list_users(
    db: Session,
    session: UserSession,
    *,
    search: str | None = None,
    include_inactive: bool = True,
) -> list[User]:
    require_permission(session, P.SETTINGS_READ)
    users = TenantRepository(db).query(
        "users", session.org_id, QueryFilter(search=search, sort_by="name", sort_order="asc")
    )
    if not include_inactive:
        users = [u for u in users if u.is_active]
    return users


def get_user(db: Session, session: UserSession, user_id: UUID) -> User:
    require_permission(session, P.SETTINGS_READ)
    return TenantRepository(db).get_or_404("users", user_id, session.org_id, "User not found")


def _ensure_new_member(db: Session, org_id: UUID, stytch_member_id: str) -> None:
    if get_user_by_member(db, org_id, stytch_member_id):
        raise ConflictError("User already exists in the database")


def _create_member_user(
    db: Session,
    session: UserSession,
    stytch_member_id: str,
    details: MemberDetails,
    role: str | Role | None,
) -> User:
    org = db.get(Organization, session.org_id)
    role_value = _validate_role(role) if role else org.default_user_role
    user = User(
        organization_id=session.org_id,
        stytch_member_id=stytch_member_id,
        name=details.name or details.email or stytch_member_id,
        email=details.email or "",
        role=role_value,
        permissions=get_role_default_permissions(role_value),
        is_active=True,
    )
    db.add(user)
    _mark_bootstrapped(org)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("User already exists in the database") from exc
    db.refresh(user)
    return user


async def add_user_from_member(
    db: Session,
    session: UserSession,
    identity: IdentityProvider,
    stytch_member_id: str,
    role: str | Role | None = None,
) -> User:
    """
    Add an existing Stytch member to the local user table.

    Raises ConflictError when the member already has a user record.
    """
    require_permission(session, P.SETTINGS_WRITE)
    await run_in_threadpool(_ensure_new_member, db, session.org_id, stytch_member_id)

    try:
        details = await identity.lookup_member_details(
            session.stytch_organization_id, stytch_member_id
        )
    except IdentityError as exc:
        logger.info("Member lookup failed for %s: %s", stytch_member_id, exc)
        raise NotFoundError("Member not found") from exc

    return await run_in_threadpool(
        _create_member_user, db, session, stytch_member_id, details, role
    )


# =============================================================================
# Stytch member directory
# =============================================================================

@dataclass(frozen=True)
class MemberStatus:
    """A Stytch member and its local user record, when there is one."""
    member: OrganizationMember
    user: User | None


def _users_by_member(db: Session, org_id: UUID) -> dict[str, User]:
    users = db.execute(select(User).where(User.organization_id == org_id)).scalars().all()
    return {user.stytch_member_id: user for user in users}


async def list_organization_members(
    db: Session,
    session: UserSession,
    identity: IdentityProvider,
    email: str | None = None,
) -> list[MemberStatus]:
    """
    Stytch members of the caller's organization next to their local users.

    With ``email`` the directory is searched by email instead of listed;
    a query shorter than two characters matches nothing.
    """
    require_permission(session, P.SETTINGS_READ)
    query = (email or "").strip()
    if email is not None and len(query) < MEMBER_SEARCH_MIN_LENGTH:
        return []

    try:
        if query:
            members = await identity.search_members(session.stytch_organization_id, query)
        else:
            members = await identity.list_members(session.stytch_organization_id)
    except IdentityError as exc:
        logger.warning("Stytch member directory unavailable: %s", exc)
        raise ExternalServiceError("Failed to get organization members", detail=str(exc)) from exc

    users = await run_in_threadpool(_users_by_member, db, session.org_id)
    return [MemberStatus(member=m, user=users.get(m.member_id)) for m in members]


def _ensure_email_free(db: Session, org_id: UUID, email: str) -> None:
    existing = db.execute(
        select(User.id).where(
            User.organization_id == org_id,
            func.lower(User.email) == email.lower(),
        )
    ).first()
    if existing:
        raise ConflictError("A user with this email already exists")


async def invite_user(
    db: Session,
    session: UserSession,
    identity: IdentityProvider,
    email: str,
    name: str,
    role: str | Role,
) -> User:
    """
    Invite someone by email and create their user with ``role`` right away.

    Stytch creates the member and emails a login link to {APP_URL}/login.
    Because the local user already exists, the invitee's first login keeps
    the role chosen here rather than the org default.
    """
    require_permission(session, P.SETTINGS_WRITE)
    role_value = _validate_role(role)
    await run_in_threadpool(_ensure_email_free, db, session.org_id, email)

    try:
        member = await identity.invite_member(
            session.stytch_organization_id,
            email,
            name=name,
            redirect_url=f"{settings.APP_URL.rstrip('/')}/login",
        )
    except IdentityError as exc:
        logger.warning("Stytch invite for %s failed: %s", email, exc)
        raise ExternalServiceError("Failed to invite user", detail=str(exc)) from exc

    details = MemberDetails(name=member.name or name, email=member.email or email)
    user = await run_in_threadpool(
        _create_member_user, db, session, member.member_id, details, role_value
    )
    logger.info("User %s invited %s as %s", session.user_id, user.id, role_value)
    return user


def update_user_role(
    db: Session,
    session: UserSession,
    user_id: UUID,
    role: str | Role | None = None,
    permissions: list[str] | None = None,
) -> User:
    """
    Change a user's role and/or stored permissions.

    Changing the role alone leaves permissions untouched; use
    reset_user_permissions to re-apply role defaults.
    """
    require_permission(session, P.SETTINGS_WRITE)
    forbid_self_target(session, user_id, "change the role or permissions of")

    repo = TenantRepository(db)
    values: dict = {}
    if role is not None:
        values["role"] = _validate_role(role)
    if permissions is not None:
        values["permissions"] = _validate_permissions(permissions)

    user = repo.update("users", user_id, session.org_id, values)
    db.commit()
    db.refresh(user)
    logger.info(
        "User %s updated role/permissions for %s: %s",
        session.user_id, user_id, sorted(values),
    )
    return user


def reset_user_permissions(db: Session, session: UserSession, user_id: UUID) -> User:
    """Replace stored permissions with the defaults for the user's current role."""
    require_permission(session, P.SETTINGS_WRITE)
    forbid_self_target(session, user_id, "reset permissions of")

    repo = TenantRepository(db)
    user = repo.get_or_404("users", user_id, session.org_id, "User not found")
    user = repo.update(
        "users", user_id, session.org_id,
        {"permissions": get_role_default_permissions(user.role)},
    )
    db.commit()
    db.refresh(user)
    return user


def toggle_user_activation(db: Session, session: UserSession, user_id: UUID) -> User:
    require_permission(session, P.SETTINGS_WRITE)
    forbid_self_target(session, user_id, "change activation of")

    repo = TenantRepository(db)
    user = repo.get_or_404("users", user_id, session.org_id, "User not found")
    user = repo.update("users", user_id, session.org_id, {"is_active": not user.is_active})
    db.commit()
    db.refresh(user)
    return user


def remove_user(db: Session, session: UserSession, user_id: UUID) -> None:
    """Delete the local user record. The Stytch member is untouched."""
    require_permission(session, P.SETTINGS_WRITE)
    forbid_self_target(session, user_id, "remove")

    if not TenantRepository(db).delete("users", user_id, session.org_id):
        raise NotFoundError("User not found")
    db.commit()
