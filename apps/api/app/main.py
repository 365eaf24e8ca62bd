"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.exceptions import ExternalServiceError, ServiceError
from app.core.structured_logging import build_log_context, configure_logging
from app.db.session import Database
from app.services.ai_provider import build_ai_provider
from app.services.jira_service import build_issue_tracker
from app.services.stytch_service import build_identity_provider

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.core.rate_limit import limiter


# ============================================================================
# Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the database and external clients once per process."""
    database = Database(settings.DATABASE_URL, auto_migrate=settings.DB_AUTO_MIGRATE)
    database.initialize()
    app.state.database = database
    app.state.identity_provider = build_identity_provider(settings)
    app.state.issue_tracker = build_issue_tracker(settings)
    app.state.ai_provider = build_ai_provider(settings)
    try:
        yield
    finally:
        await app.state.identity_provider.aclose()
        if app.state.issue_tracker is not None:
            await app.state.issue_tracker.aclose()
        database.dispose()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Support Desk API",
    description="Multi-tenant support issue tracker API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map service-layer errors to HTTP. Vendor detail is logged, never returned."""
    context = build_log_context(
        request_id=request.headers.get("X-Request-ID"),
        route=request.url.path,
        method=request.method,
    )
    if isinstance(exc, ExternalServiceError):
        logger.warning("%s: %s", exc.message, exc.detail, extra=context)
    elif exc.status_code >= 500:
        logger.error("Service error: %s", exc.message, extra=context)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ============================================================================
# Routers
# ============================================================================

from app.routers import auth, comments, customers, dashboard, issues, jira, users
from app.routers import settings as settings_router

# Auth router (always mounted)
app.include_router(auth.router, prefix="/auth", tags=["auth"])

app.include_router(issues.router, prefix="/issues", tags=["issues"])
app.include_router(comments.router, prefix="/comments", tags=["comments"])
app.include_router(customers.router, prefix="/customers", tags=["customers"])
app.include_router(dashboard.router)  # Router already has prefix="/dashboard"
app.include_router(settings_router.router, prefix="/settings", tags=["settings"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(jira.router, prefix="/integrations/jira", tags=["integrations"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    db.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
