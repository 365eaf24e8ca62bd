"""
Authentication endpoint tests.

Tests cover:
- /auth/callback provisions and sets the session cookie
- /auth/me with bearer token or cookie
- /auth/logout revokes and clears the cookie
- CSRF header required on mutations
"""

import pytest
from httpx import AsyncClient

from app.core.config import settings
from factories import auth_headers


@pytest.mark.asyncio
async def test_me_requires_authentication(client: AsyncClient):
    response = await client.get("/auth/me")
    assert response.status_code == 401

    response = await client.get("/auth/me", headers={"Authorization": "Bearer bogus"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_returns_session_details(client: AsyncClient, identity, tenant):
    response = await client.get(
        "/auth/me", headers=auth_headers(identity, tenant.agent, tenant.org)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == str(tenant.agent.id)
    assert data["org_name"] == "Alpha"
    assert data["role"] == "support_agent"
    assert "issues:write" in data["permissions"]


@pytest.mark.asyncio
async def test_callback_provisions_and_sets_cookie(client: AsyncClient, identity):
    identity.add_session(
        "stytch-token", "member-new", "organization-brand-new",
        name="Grace", email="grace@example.com",
    )

    response = await client.post("/auth/callback", json={"session_token": "stytch-token"})

    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "admin"
    assert data["display_name"] == "Grace"
    assert response.cookies.get(settings.SESSION_COOKIE_NAME) == "stytch-token"

    # The stored cookie alone authenticates
    me = await client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "grace@example.com"


@pytest.mark.asyncio
async def test_callback_rejects_bad_credentials(client: AsyncClient):
    response = await client.post("/auth/callback", json={"session_token": "bogus"})
    assert response.status_code == 401

    response = await client.post("/auth/callback", json={})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_callback_requires_csrf_header(client: AsyncClient, identity):
    identity.add_session("stytch-token", "member-new", "organization-brand-new")

    response = await client.post(
        "/auth/callback",
        json={"session_token": "stytch-token"},
        headers={"X-Requested-With": ""},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_logout_revokes_session(client: AsyncClient, identity, tenant):
    headers = auth_headers(identity, tenant.viewer, tenant.org)

    response = await client.post("/auth/logout", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "logged_out"}
    assert identity.revoked == [f"token-{tenant.viewer.stytch_member_id}"]
