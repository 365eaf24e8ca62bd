"""
User management tests.

Tests cover:
- Self-protection on role, permissions, reset, activation and removal
- Role change does not recompute permissions; reset does
- Adding a Stytch member
- Member directory listing and email invites
- Admin bootstrap happens once per organization
- settings:write gating
"""

import pytest

from app.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.core.permissions import get_role_default_permissions
from app.db.enums import Role
from app.db.models import User
from app.services import user_service
from app.services.stytch_service import IdentityServiceError, MemberDetails, OrganizationMember
from factories import make_org
from fakes import FakeIdentityProvider


def test_admin_cannot_target_themselves(db, tenant):
    session = tenant.admin_session
    admin_id = tenant.admin.id

    with pytest.raises(ForbiddenError):
        user_service.update_user_role(db, session, admin_id, role=Role.READ_ONLY)
    with pytest.raises(ForbiddenError):
        user_service.reset_user_permissions(db, session, admin_id)
    with pytest.raises(ForbiddenError):
        user_service.toggle_user_activation(db, session, admin_id)
    with pytest.raises(ForbiddenError) as exc:
        user_service.remove_user(db, session, admin_id)
    assert exc.value.message == "Cannot remove your own account"

    db.expire_all()
    admin = db.get(User, admin_id)
    assert admin.role == Role.ADMIN.value
    assert admin.is_active is True


def test_role_change_keeps_permissions_until_reset(db, tenant):
    session = tenant.admin_session
    viewer_id = tenant.viewer.id

    user = user_service.update_user_role(db, session, viewer_id, role=Role.SUPPORT_AGENT)
    assert user.role == Role.SUPPORT_AGENT.value
    assert set(user.permissions) == set(get_role_default_permissions("read_only"))

    user = user_service.reset_user_permissions(db, session, viewer_id)
    assert set(user.permissions) == set(get_role_default_permissions("support_agent"))


def test_explicit_permissions_are_validated_and_deduplicated(db, tenant):
    session = tenant.admin_session

    user = user_service.update_user_role(
        db, session, tenant.viewer.id,
        permissions=["issues:read", "issues:write", "issues:read"],
    )
    assert user.permissions == ["issues:read", "issues:write"]

    with pytest.raises(ValidationError):
        user_service.update_user_role(db, session, tenant.viewer.id, permissions=["issues:fly"])
    with pytest.raises(ValidationError):
        user_service.update_user_role(db, session, tenant.viewer.id, role="owner")


def test_toggle_activation_and_remove(db, tenant, other_tenant):
    session = tenant.admin_session

    user = user_service.toggle_user_activation(db, session, tenant.agent.id)
    assert user.is_active is False
    user = user_service.toggle_user_activation(db, session, tenant.agent.id)
    assert user.is_active is True

    with pytest.raises(NotFoundError):
        user_service.remove_user(db, session, other_tenant.agent.id)
    user_service.remove_user(db, session, tenant.agent.id)
    assert user_service.count_users(db, tenant.org.id) == 2


def test_agent_cannot_manage_users(db, tenant):
    with pytest.raises(ForbiddenError):
        user_service.list_users(db, tenant.agent_session)
    with pytest.raises(ForbiddenError):
        user_service.update_user_role(db, tenant.agent_session, tenant.viewer.id, role=Role.ADMIN)

    db.expire_all()
    assert db.get(User, tenant.viewer.id).role == Role.READ_ONLY.value


def test_list_users_search_and_inactive_filter(db, tenant):
    user_service.toggle_user_activation(db, tenant.admin_session, tenant.viewer.id)

    all_users = user_service.list_users(db, tenant.admin_session)
    assert len(all_users) == 3
    active = user_service.list_users(db, tenant.admin_session, include_inactive=False)
    assert tenant.viewer.id not in {u.id for u in active}
    found = user_service.list_users(db, tenant.admin_session, search="agent")
    assert [u.id for u in found] == [tenant.agent.id]


async def test_add_user_from_member(db, tenant):
    identity = FakeIdentityProvider()
    identity.members["member-new"] = MemberDetails(name="Dana", email="dana@example.com")

    user = await user_service.add_user_from_member(
        db, tenant.admin_session, identity, "member-new", Role.SUPPORT_AGENT
    )

    assert user.organization_id == tenant.org.id
    assert user.name == "Dana"
    assert user.role == Role.SUPPORT_AGENT.value
    assert set(user.permissions) == set(get_role_default_permissions("support_agent"))

    with pytest.raises(ConflictError) as exc:
        await user_service.add_user_from_member(db, tenant.admin_session, identity, "member-new")
    assert exc.value.message == "User already exists in the database"


async def test_add_unknown_member_is_not_found(db, tenant):
    with pytest.raises(NotFoundError):
        await user_service.add_user_from_member(
            db, tenant.admin_session, FakeIdentityProvider(), "member-ghost"
        )


def test_admin_bootstrap_happens_once_per_org(db):
    org = make_org(db, "Fresh")

    first = user_service.provision_user(db, org, "member-founder", name="Founder")
    assert first.role == Role.ADMIN.value
    assert org.admin_bootstrapped_at is not None

    db.delete(first)
    db.commit()
    assert user_service.count_users(db, org.id) == 0

    second = user_service.provision_user(db, org, "member-late", name="Late")
    assert second.role == Role.READ_ONLY.value
    assert Role.ADMIN.value not in {u.role for u in db.query(User).filter_by(organization_id=org.id)}


async def test_list_members_marks_local_users(db, tenant):
    identity = FakeIdentityProvider()
    identity.directory = {
        tenant.agent.stytch_member_id: OrganizationMember(
            member_id=tenant.agent.stytch_member_id,
            email=tenant.agent.email,
            name="Agent",
            status="active",
        ),
        "member-outside": OrganizationMember(
            member_id="member-outside", email="pat@example.com", name=None, status="invited"
        ),
    }

    statuses = await user_service.list_organization_members(db, tenant.admin_session, identity)
    by_member = {s.member.member_id: s for s in statuses}
    assert by_member[tenant.agent.stytch_member_id].user.id == tenant.agent.id
    assert by_member["member-outside"].user is None

    found = await user_service.list_organization_members(
        db, tenant.admin_session, identity, email="PAT@"
    )
    assert [s.member.member_id for s in found] == ["member-outside"]

    assert await user_service.list_organization_members(
        db, tenant.admin_session, identity, email=" p "
    ) == []


async def test_list_members_directory_outage(db, tenant):
    identity = FakeIdentityProvider()
    identity.directory_error = IdentityServiceError("Stytch unreachable")

    with pytest.raises(ExternalServiceError) as exc:
        await user_service.list_organization_members(db, tenant.admin_session, identity)
    assert exc.value.message == "Failed to get organization members"


async def test_invite_user_creates_user_with_role(db, tenant):
    identity = FakeIdentityProvider()

    user = await user_service.invite_user(
        db, tenant.admin_session, identity, "new.agent@example.com", "New Agent", Role.SUPPORT_AGENT
    )

    assert user.organization_id == tenant.org.id
    assert user.stytch_member_id == "member-invited-1"
    assert user.role == Role.SUPPORT_AGENT.value
    assert set(user.permissions) == set(get_role_default_permissions("support_agent"))
    assert identity.invited[0]["organization_id"] == tenant.org.stytch_organization_id
    assert identity.invited[0]["redirect_url"].endswith("/login")


async def test_invite_existing_email_is_conflict(db, tenant):
    identity = FakeIdentityProvider()

    with pytest.raises(ConflictError) as exc:
        await user_service.invite_user(
            db, tenant.admin_session, identity, tenant.viewer.email.upper(), "Again", Role.ADMIN
        )
    assert exc.value.message == "A user with this email already exists"
    assert identity.invited == []


async def test_agent_cannot_list_or_invite_members(db, tenant):
    identity = FakeIdentityProvider()

    with pytest.raises(ForbiddenError):
        await user_service.list_organization_members(db, tenant.agent_session, identity)
    with pytest.raises(ForbiddenError):
        await user_service.invite_user(
            db, tenant.agent_session, identity, "x@example.com", "X", Role.ADMIN
        )
    assert identity.invited == []
