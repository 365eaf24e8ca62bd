"""Authentication router: Stytch session exchange and session endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import (
    extract_session_token,
    get_current_session,
    get_db,
    get_identity_provider,
    require_csrf_header,
)
from app.core.rate_limit import AUTH_LIMIT, limiter
from app.schemas.auth import AuthCallbackRequest, MeResponse, UserSession
from app.services import org_service, session_service
from app.services.stytch_service import IdentityError, IdentityProvider

logger = logging.getLogger(__name__)

router = APIRouter()


def _me(db: Session, session: UserSession) -> MeResponse:
    org = org_service.get_org_by_id(db, session.org_id)
    return MeResponse(
        user_id=session.user_id,
        org_id=session.org_id,
        org_name=org.name if org else "",
        email=session.email,
        display_name=session.display_name,
        role=session.role,
        permissions=session.permissions,
        expires_at=session.expires_at,
    )


@router.post("/callback", response_model=MeResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(AUTH_LIMIT)
async def auth_callback(
    request: Request,
    response: Response,
    body: AuthCallbackRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> MeResponse:
    """
    Exchange a Stytch session credential for the API session cookie.

    Provisions the organization and user on first login.
    """
    token = body.session_jwt or body.session_token
    if not token:
        raise HTTPException(status_code=422, detail="session_jwt or session_token is required")

    session = await session_service.resolve_session(db, identity, token)
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return _me(db, session)


@router.get("/me", response_model=MeResponse)
def get_me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> MeResponse:
    """Current user, organization, role and permissions."""
    return _me(db, session)


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
async def logout(
    request: Request,
    response: Response,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """
    Revoke the Stytch session (best effort) and clear the cookie.

    Requires X-Requested-With header for CSRF protection.
    """
    token = extract_session_token(request)
    if token:
        try:
            await identity.revoke_session(token)
        except IdentityError as exc:
            logger.info("Session revoke failed: %s", exc)

    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"status": "logged_out"}
