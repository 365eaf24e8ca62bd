"""
Session resolver tests.

Tests cover:
- First member of a new org is provisioned as admin
- Later members get the org default role
- Stored permissions flow into the session unchanged
- Invalid, expired, orgless and deactivated sessions resolve to None
- An unreachable identity provider resolves to None
- Database steps run on a worker thread, not the event loop
"""

import threading
from datetime import timedelta

import httpx
import jwt

from app.core.permissions import get_role_default_permissions
from app.db.enums import Role
from app.services import org_service, session_service, user_service
from app.services.stytch_service import (
    MemberDetails,
    OrganizationDetails,
    StytchIdentityProvider,
)
from factories import make_org, make_user
from fakes import FakeIdentityProvider


async def test_first_user_of_new_org_becomes_admin(db):
    identity = FakeIdentityProvider()
    identity.organizations["organization-new"] = OrganizationDetails(name="Newco", domain="newco.io")
    identity.add_session("t1", "member-1", "organization-new", name="Ada", email="ada@newco.io")
    identity.add_session("t2", "member-2", "organization-new", name="Bob", email="bob@newco.io")

    first = await session_service.resolve_session(db, identity, "t1")
    second = await session_service.resolve_session(db, identity, "t2")

    assert first.role == Role.ADMIN
    assert set(first.permissions) == set(get_role_default_permissions("admin"))
    assert first.display_name == "Ada"
    assert second.role == Role.READ_ONLY
    assert second.org_id == first.org_id

    org = org_service.get_org_by_stytch_id(db, "organization-new")
    assert org.name == "Newco"
    assert org.domain == "newco.io"
    assert org.allow_self_registration is True
    assert org.require_approval is False


async def test_existing_user_keeps_stored_permissions(db):
    org = make_org(db)
    user = make_user(db, org, Role.ADMIN, permissions=["issues:read"])
    identity = FakeIdentityProvider()
    identity.add_session("t", user.stytch_member_id, org.stytch_organization_id)

    session = await session_service.resolve_session(db, identity, "t")

    assert session.user_id == user.id
    assert session.role == Role.ADMIN
    assert session.permissions == ["issues:read"]
    db.refresh(user)
    assert user.last_login_at is not None


async def test_display_name_falls_back_to_member_lookup(db):
    org = make_org(db)
    identity = FakeIdentityProvider()
    identity.members["member-x"] = MemberDetails(name=None, email="x@example.com")
    identity.add_session("t", "member-x", org.stytch_organization_id)

    session = await session_service.resolve_session(db, identity, "t")

    assert session.display_name == "x@example.com"
    assert session.email == "x@example.com"


async def test_member_lookup_failure_is_not_fatal(db):
    org = make_org(db)
    identity = FakeIdentityProvider()
    identity.add_session("t", "member-unknown", org.stytch_organization_id)

    session = await session_service.resolve_session(db, identity, "t")

    assert session.display_name == "member-unknown"


async def test_unusable_sessions_resolve_to_none(db):
    org = make_org(db)
    identity = FakeIdentityProvider()
    identity.add_session("expired", "member-1", org.stytch_organization_id, expires_in=timedelta(seconds=-5))
    identity.add_session("orgless", "member-2", None)

    assert await session_service.resolve_session(db, identity, None) is None
    assert await session_service.resolve_session(db, identity, "bogus") is None
    assert await session_service.resolve_session(db, identity, "expired") is None
    assert await session_service.resolve_session(db, identity, "orgless") is None
    assert user_service.count_users(db, org.id) == 0


async def test_fallback_org_id_used_when_session_has_none(db):
    org = make_org(db)
    identity = FakeIdentityProvider()
    identity.add_session("orgless", "member-2", None, name="Cy")

    session = await session_service.resolve_session(
        db, identity, "orgless", fallback_org_id=org.stytch_organization_id
    )

    assert session.org_id == org.id


async def test_deactivated_user_has_no_session(db):
    org = make_org(db)
    user = make_user(db, org, Role.SUPPORT_AGENT, is_active=False)
    identity = FakeIdentityProvider()
    identity.add_session("t", user.stytch_member_id, org.stytch_organization_id)

    assert await session_service.resolve_session(db, identity, "t") is None


async def test_inactive_org_has_no_session(db):
    org = make_org(db, is_active=False)
    user = make_user(db, org)
    identity = FakeIdentityProvider()
    identity.add_session("t", user.stytch_member_id, org.stytch_organization_id)

    assert await session_service.resolve_session(db, identity, "t") is None


async def test_identity_provider_outage_resolves_to_none(db, monkeypatch):
    monkeypatch.setattr("app.services.http_service._backoff_delay", lambda *args: 0)

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("stytch down", request=request)

    identity = StytchIdentityProvider(
        "project-test", "secret-test", "https://test.stytch.com",
        transport=httpx.MockTransport(handler),
    )
    token = jwt.encode(
        {"sub": "member-1"}, "unrelated-signing-key-0123456789abcdef",
        algorithm="HS256", headers={"kid": "k1"},
    )

    session = await session_service.resolve_session(
        db, identity, token, fallback_org_id="organization-x"
    )
    await identity.aclose()

    assert session is None


async def test_database_steps_run_off_the_event_loop(db, monkeypatch):
    org = make_org(db)
    user = make_user(db, org, Role.SUPPORT_AGENT)
    identity = FakeIdentityProvider()
    identity.add_session("t", user.stytch_member_id, org.stytch_organization_id)

    loop_thread = threading.get_ident()
    seen: list[int] = []
    lookup = org_service.get_org_by_stytch_id

    def recording_lookup(*args, **kwargs):
        seen.append(threading.get_ident())
        return lookup(*args, **kwargs)

    monkeypatch.setattr(org_service, "get_org_by_stytch_id", recording_lookup)

    session = await session_service.resolve_session(db, identity, "t")

    assert session.user_id == user.id
    assert seen and loop_thread not in seen
