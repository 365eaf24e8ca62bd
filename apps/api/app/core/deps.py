"""FastAPI dependencies for authentication, authorization, and database access."""

import logging
from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core import authorization
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.structured_logging import build_log_context
from app.db.enums import Role
from app.db.session import Database
from app.schemas.auth import UserSession
from app.services import session_service
from app.services.ai_provider import AIProvider
from app.services.jira_service import IssueTracker
from app.services.stytch_service import IdentityProvider

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


# =============================================================================
# Application-state clients
# =============================================================================

def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(database: Database = Depends(get_database)) -> Generator[Session, None, None]:
    """
    Database session dependency.

    Ensures the schema is initialized, yields a session and closes it after
    the request.
    """
    database.initialize()
    db = database.session()
    try:
        yield db
    finally:
        db.close()


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_issue_tracker(request: Request) -> IssueTracker | None:
    return getattr(request.app.state, "issue_tracker", None)


def get_ai_provider(request: Request) -> AIProvider | None:
    return getattr(request.app.state, "ai_provider", None)


# =============================================================================
# Session
# =============================================================================

def extract_session_token(request: Request) -> str | None:
    """Bearer header wins over the session cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_optional_session(
    request: Request,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> UserSession | None:
    """Resolve the session once per request and cache it on request.state."""
    if hasattr(request.state, "user_session"):
        return request.state.user_session

    session = await session_service.resolve_session(
        db, identity, extract_session_token(request)
    )
    request.state.user_session = session
    return session


async def get_current_session(
    request: Request,
    session: UserSession | None = Depends(get_optional_session),
) -> UserSession:
    """
    PRIMARY auth dependency for most endpoints.

    Raises:
        HTTPException 401: Not authenticated
    """
    if session is None:
        logger.info(
            "Unauthenticated request",
            extra=build_log_context(
                request_id=request.headers.get("X-Request-ID"),
                route=request.url.path,
                method=request.method,
            ),
        )
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


def _forbidden(request: Request, session: UserSession, exc: ServiceError) -> HTTPException:
    logger.info(
        "Authorization denied: %s",
        exc.message,
        extra=build_log_context(
            user_id=str(session.user_id),
            org_id=str(session.org_id),
            request_id=request.headers.get("X-Request-ID"),
            route=request.url.path,
            method=request.method,
        ),
    )
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def require_roles(allowed_roles: list[Role]):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/x", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    async def dependency(
        request: Request, session: UserSession = Depends(get_current_session)
    ) -> UserSession:
        try:
            return authorization.require_role(session, allowed_roles)
        except ServiceError as exc:
            raise _forbidden(request, session, exc)
    return dependency


def require_permission(permission: str):
    """
    Dependency factory for permission-based authorization.

    Usage:
        session: UserSession = Depends(require_permission(P.ISSUES_WRITE))
    """
    async def dependency(
        request: Request, session: UserSession = Depends(get_current_session)
    ) -> UserSession:
        try:
            return authorization.require_permission(session, permission)
        except ServiceError as exc:
            raise _forbidden(request, session, exc)
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
