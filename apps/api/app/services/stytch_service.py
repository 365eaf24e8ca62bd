"""Stytch B2B identity adapter.

Exchanges a session credential for a verified member identity. Session JWTs
are verified locally against the project JWKS with PyJWT; anything that
cannot be verified locally (opaque session tokens, expired or unknown-key
JWTs) goes to the remote sessions/authenticate endpoint.

Also covers the member directory used by user management: search, list
and invite.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
import jwt

from app.core.config import Settings
from app.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

SESSION_CLAIM = "https://stytch.com/session"
ORGANIZATION_CLAIM = "https://stytch.com/organization"
JWKS_CACHE_SECONDS = 300
MEMBER_PAGE_SIZE = 100
MEMBER_LIST_LIMIT = 500


class IdentityError(Exception):
    """Base error for identity provider calls."""


class InvalidTokenError(IdentityError):
    """The credential is malformed, expired, or revoked."""


class MemberNotFoundError(IdentityError):
    """The member or organization does not exist at the provider."""


class IdentityServiceError(IdentityError):
    """The provider could not be reached or returned an unexpected response."""


@dataclass(frozen=True)
class VerifiedIdentity:
    member_id: str
    organization_id: str | None
    session_id: str | None
    expires_at: datetime | None
    # Present when the provider returned member data with the session
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class MemberDetails:
    name: str | None
    email: str | None


@dataclass(frozen=True)
class OrganizationDetails:
    name: str
    domain: str | None


@dataclass(frozen=True)
class OrganizationMember:
    member_id: str
    email: str
    name: str | None
    status: str  # active | invited | pending


def parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IdentityProvider(ABC):
    """Identity provider interface consumed by the session resolver."""

    @abstractmethod
    async def verify(self, token: str) -> VerifiedIdentity:
        """Verify a session credential. Raises InvalidTokenError."""

    @abstractmethod
    async def lookup_member_details(
        self, organization_id: str, member_id: str
    ) -> MemberDetails:
        """Raises MemberNotFoundError."""

    @abstractmethod
    async def lookup_organization(self, organization_id: str) -> OrganizationDetails:
        """Raises MemberNotFoundError."""

    @abstractmethod
    async def revoke_session(self, token: str) -> None:
        """Revoke a session at the provider."""

    @abstractmethod
    async def search_members(
        self, organization_id: str, email_query: str
    ) -> list[OrganizationMember]:
        """Members whose email contains ``email_query``."""

    @abstractmethod
    async def list_members(
        self, organization_id: str, *, limit: int = MEMBER_LIST_LIMIT
    ) -> list[OrganizationMember]:
        """All members of the organization, up to ``limit``."""

    @abstractmethod
    async def invite_member(
        self,
        organization_id: str,
        email: str,
        *,
        name: str | None = None,
        redirect_url: str | None = None,
    ) -> OrganizationMember:
        """Create the member and send an invite email."""

    async def aclose(self) -> None:
        return None


class StytchIdentityProvider(IdentityProvider):
    """Stytch B2B REST client (basic auth with project id and secret)."""

    def __init__(
        self,
        project_id: str,
        secret: str,
        base_url: str,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(project_id, secret),
            timeout=timeout,
            transport=transport,
        )
        self._jwks: jwt.PyJWKSet | None = None
        self._jwks_fetched_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "StytchIdentityProvider":
        return cls(
            settings.STYTCH_PROJECT_ID,
            settings.STYTCH_SECRET,
            settings.stytch_base_url,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Session verification
    # -------------------------------------------------------------------------

    async def verify(self, token: str) -> VerifiedIdentity:
        if not token:
            raise InvalidTokenError("Empty session credential")

        if token.count(".") == 2:
            try:
                return await self._verify_jwt_locally(token)
            except (jwt.PyJWTError, IdentityServiceError) as exc:
                logger.debug("Local JWT verification failed, using remote: %s", exc)
            return await self._authenticate_remote({"session_jwt": token})

        return await self._authenticate_remote({"session_token": token})

    async def _get_jwks(self, *, force: bool = False) -> jwt.PyJWKSet:
        fresh = time.monotonic() - self._jwks_fetched_at < JWKS_CACHE_SECONDS
        if self._jwks is not None and fresh and not force:
            return self._jwks

        try:
            response = await request_with_retries(
                lambda: self._client.get(f"/v1/b2b/sessions/jwks/{self.project_id}")
            )
        except httpx.RequestError as exc:
            raise IdentityServiceError(f"Stytch unreachable: {exc}") from exc
        if response.status_code != 200:
            raise IdentityServiceError(f"JWKS fetch failed: {response.status_code}")
        try:
            self._jwks = jwt.PyJWKSet.from_dict(response.json())
        except ValueError as exc:
            raise IdentityServiceError(f"JWKS response is not JSON: {exc}") from exc
        self._jwks_fetched_at = time.monotonic()
        return self._jwks

    async def _signing_key(self, kid: str | None) -> jwt.PyJWK:
        jwks = await self._get_jwks()
        for key in jwks.keys:
            if kid is None or key.key_id == kid:
                return key
        # Key rotation: refetch once before giving up
        jwks = await self._get_jwks(force=True)
        for key in jwks.keys:
            if key.key_id == kid:
                return key
        raise jwt.InvalidKeyError(f"No JWKS key for kid {kid}")

    async def _verify_jwt_locally(self, token: str) -> VerifiedIdentity:
        header = jwt.get_unverified_header(token)
        signing_key = await self._signing_key(header.get("kid"))
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=self.project_id,
            options={"require": ["exp", "sub"]},
        )
        session_claim = claims.get(SESSION_CLAIM) or {}
        org_claim = claims.get(ORGANIZATION_CLAIM) or {}
        return VerifiedIdentity(
            member_id=claims["sub"],
            organization_id=org_claim.get("organization_id"),
            session_id=session_claim.get("id"),
            expires_at=parse_timestamp(session_claim.get("expires_at"))
            or parse_timestamp(claims.get("exp")),
        )

    async def _authenticate_remote(self, body: dict[str, str]) -> VerifiedIdentity:
        try:
            response = await request_with_retries(
                lambda: self._client.post("/v1/b2b/sessions/authenticate", json=body)
            )
        except httpx.RequestError as exc:
            raise IdentityServiceError(f"Stytch unreachable: {exc}") from exc

        if response.status_code in (400, 401, 404):
            raise InvalidTokenError(f"Stytch rejected session: {response.status_code}")
        if response.status_code != 200:
            raise IdentityServiceError(
                f"Stytch sessions/authenticate returned {response.status_code}: {response.text}"
            )

        data = response.json()
        member_session = data.get("member_session") or {}
        member = data.get("member") or {}
        member_id = member_session.get("member_id") or member.get("member_id")
        if not member_id:
            raise InvalidTokenError("Stytch session carried no member id")

        return VerifiedIdentity(
            member_id=member_id,
            organization_id=member_session.get("organization_id")
            or member.get("organization_id"),
            session_id=member_session.get("member_session_id"),
            expires_at=parse_timestamp(member_session.get("expires_at")),
            name=member.get("name") or None,
            email=member.get("email_address") or None,
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def _get(self, path: str) -> dict[str, Any]:
        try:
            response = await request_with_retries(lambda: self._client.get(path))
        except httpx.RequestError as exc:
            raise IdentityServiceError(f"Stytch unreachable: {exc}") from exc
        if response.status_code == 404:
            raise MemberNotFoundError(path)
        if response.status_code != 200:
            raise IdentityServiceError(
                f"Stytch GET {path} returned {response.status_code}: {response.text}"
            )
        return response.json()

    async def lookup_member_details(
        self, organization_id: str, member_id: str
    ) -> MemberDetails:
        data = await self._get(
            f"/v1/b2b/organizations/{organization_id}/members/{member_id}"
        )
        member = data.get("member") or {}
        return MemberDetails(
            name=member.get("name") or None,
            email=member.get("email_address") or None,
        )

    async def lookup_organization(self, organization_id: str) -> OrganizationDetails:
        data = await self._get(f"/v1/b2b/organizations/{organization_id}")
        org = data.get("organization") or {}
        domains = org.get("email_allowed_domains") or []
        return OrganizationDetails(
            name=org.get("organization_name") or organization_id,
            domain=domains[0] if domains else None,
        )

    async def revoke_session(self, token: str) -> None:
        key = "session_jwt" if token.count(".") == 2 else "session_token"
        try:
            response = await self._client.post(
                "/v1/b2b/sessions/revoke", json={key: token}
            )
        except httpx.RequestError as exc:
            raise IdentityServiceError(f"Stytch unreachable: {exc}") from exc
        if response.status_code not in (200, 404):
            raise IdentityServiceError(
                f"Stytch sessions/revoke returned {response.status_code}: {response.text}"
            )

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await request_with_retries(
                lambda: self._client.post(path, json=body)
            )
        except httpx.RequestError as exc:
            raise IdentityServiceError(f"Stytch unreachable: {exc}") from exc
        if response.status_code != 200:
            raise IdentityServiceError(
                f"Stytch POST {path} returned {response.status_code}: {response.text}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise IdentityServiceError(f"Stytch POST {path} returned invalid JSON") from exc

    @staticmethod
    def _member(data: dict[str, Any]) -> OrganizationMember:
        return OrganizationMember(
            member_id=data["member_id"],
            email=data.get("email_address") or "",
            name=data.get("name") or None,
            status=data.get("status") or "active",
        )

    async def _search(
        self, organization_id: str, query: dict[str, Any] | None, limit: int
    ) -> list[OrganizationMember]:
        members: list[OrganizationMember] = []
        cursor: str | None = None
        while len(members) < limit:
            body: dict[str, Any] = {
                "organization_ids": [organization_id],
                "limit": min(MEMBER_PAGE_SIZE, limit - len(members)),
            }
            if query:
                body["query"] = query
            if cursor:
                body["cursor"] = cursor
            data = await self._post("/v1/b2b/organizations/members/search", body)
            members.extend(self._member(m) for m in data.get("members") or [])
            cursor = (data.get("results_metadata") or {}).get("next_cursor")
            if not cursor:
                break
        return members

    async def search_members(
        self, organization_id: str, email_query: str
    ) -> list[OrganizationMember]:
        query = {
            "operator": "AND",
            "operands": [
                {"filter_name": "member_email_fuzzy", "filter_value": email_query},
            ],
        }
        return await self._search(organization_id, query, MEMBER_PAGE_SIZE)

    async def list_members(
        self, organization_id: str, *, limit: int = MEMBER_LIST_LIMIT
    ) -> list[OrganizationMember]:
        return await self._search(organization_id, None, limit)

    async def invite_member(
        self,
        organization_id: str,
        email: str,
        *,
        name: str | None = None,
        redirect_url: str | None = None,
    ) -> OrganizationMember:
        body: dict[str, Any] = {"organization_id": organization_id, "email_address": email}
        if name:
            body["name"] = name
        if redirect_url:
            body["invite_redirect_url"] = redirect_url
        # Sends an email: no retries
        try:
            response = await self._client.post("/v1/b2b/magic_links/email/invite", json=body)
        except httpx.RequestError as exc:
            raise IdentityServiceError(f"Stytch unreachable: {exc}") from exc
        if response.status_code != 200:
            raise IdentityServiceError(
                f"Stytch invite returned {response.status_code}: {response.text}"
            )
        try:
            return self._member(response.json()["member"])
        except (ValueError, KeyError, TypeError) as exc:
            raise IdentityServiceError(f"Unexpected Stytch invite response: {exc}") from exc


class UnconfiguredIdentityProvider(IdentityProvider):
    """Used when Stytch credentials are missing: nobody can authenticate."""

    async def verify(self, token: str) -> VerifiedIdentity:
        raise InvalidTokenError("Identity provider is not configured")

    async def lookup_member_details(
        self, organization_id: str, member_id: str
    ) -> MemberDetails:
        raise MemberNotFoundError(member_id)

    async def lookup_organization(self, organization_id: str) -> OrganizationDetails:
        raise MemberNotFoundError(organization_id)

    async def revoke_session(self, token: str) -> None:
        return None

    async def search_members(
        self, organization_id: str, email_query: str
    ) -> list[OrganizationMember]:
        raise IdentityServiceError("Identity provider is not configured")

    async def list_members(
        self, organization_id: str, *, limit: int = MEMBER_LIST_LIMIT
    ) -> list[OrganizationMember]:
        raise IdentityServiceError("Identity provider is not configured")

    async def invite_member(
        self,
        organization_id: str,
        email: str,
        *,
        name: str | None = None,
        redirect_url: str | None = None,
    ) -> OrganizationMember:
        raise IdentityServiceError("Identity provider is not configured")


def build_identity_provider(settings: Settings) -> IdentityProvider:
    if not settings.stytch_configured:
        logger.warning("STYTCH_PROJECT_ID/STYTCH_SECRET not set; all sessions will be rejected")
        return UnconfiguredIdentityProvider()
    return StytchIdentityProvider.from_settings(settings)
