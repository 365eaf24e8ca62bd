"""Session resolver: Stytch credential → UserSession.

Returns None for anything that is not a usable session (bad credential,
unreachable provider, missing org id, deactivated user). Callers treat
None as unauthenticated.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.db.enums import Role
from app.db.models import Organization, User
from app.schemas.auth import UserSession
from app.services import org_service, user_service
from app.services.stytch_service import IdentityError, IdentityProvider, VerifiedIdentity

logger = logging.getLogger(__name__)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _member_display(
    identity: IdentityProvider, stytch_org_id: str, verified: VerifiedIdentity
) -> tuple[str, str]:
    """(display name, email) from member details; lookup failure is non-fatal."""
    name, email = verified.name, verified.email
    if not name and not email:
        try:
            details = await identity.lookup_member_details(stytch_org_id, verified.member_id)
            name, email = details.name, details.email
        except IdentityError as exc:
            logger.info("Member details unavailable for %s: %s", verified.member_id, exc)
    return name or email or verified.member_id, email or ""


def _load_user(
    db: Session,
    org: Organization,
    member_id: str,
    display_name: str,
    email: str,
) -> User | None:
    """Find or provision the member's user and stamp the login; None if unusable."""
    user = user_service.get_user_by_member(db, org.id, member_id)
    if user is None:
        user = user_service.provision_user(db, org, member_id, name=display_name, email=email)

    if not user.is_active:
        logger.info("User %s is deactivated", user.id)
        return None
    if not Role.has_value(user.role):
        logger.warning("User %s has unknown role %r", user.id, user.role)
        return None
    return user_service.record_login(db, user)


async def resolve_session(
    db: Session,
    identity: IdentityProvider,
    token: str | None,
    *,
    fallback_org_id: str | None = None,
) -> UserSession | None:
    """
    Verify ``token`` and return the matching session.

    Provisions the organization and user on first login (first user of an
    org is admin) and stamps last_login_at. Database steps run in the
    threadpool; only the identity provider calls are awaited on the loop.
    """
    if not token:
        return None

    try:
        verified = await identity.verify(token)
    except IdentityError as exc:
        logger.info("Session verification failed: %s", exc)
        return None

    if verified.expires_at and _as_aware(verified.expires_at) <= datetime.now(timezone.utc):
        logger.info("Session for member %s has expired", verified.member_id)
        return None

    if fallback_org_id is None:
        fallback_org_id = settings.STYTCH_ORGANIZATION_ID
    stytch_org_id = verified.organization_id or fallback_org_id
    if not stytch_org_id:
        logger.warning("No Stytch organization id for member %s", verified.member_id)
        return None

    org = await run_in_threadpool(org_service.get_org_by_stytch_id, db, stytch_org_id)
    if org is None:
        org_name, org_domain = None, None
        try:
            details = await identity.lookup_organization(stytch_org_id)
            org_name, org_domain = details.name, details.domain
        except IdentityError as exc:
            logger.info("Organization details unavailable for %s: %s", stytch_org_id, exc)
        org, _ = await run_in_threadpool(
            org_service.get_or_create_org, db, stytch_org_id, name=org_name, domain=org_domain
        )

    if not org.is_active:
        logger.info("Organization %s is inactive", org.id)
        return None

    display_name, email = await _member_display(identity, stytch_org_id, verified)

    user = await run_in_threadpool(
        _load_user, db, org, verified.member_id, display_name, email
    )
    if user is None:
        return None

    return UserSession(
        user_id=user.id,
        org_id=user.organization_id,
        stytch_organization_id=stytch_org_id,
        stytch_member_id=verified.member_id,
        stytch_session_id=verified.session_id,
        role=Role(user.role),
        permissions=list(user.permissions or []),
        email=email or user.email,
        display_name=display_name,
        expires_at=verified.expires_at,
    )
