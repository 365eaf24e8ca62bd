"""API routers."""

from app.routers.auth import router as auth_router
from app.routers.comments import router as comments_router
from app.routers.customers import router as customers_router
from app.routers.dashboard import router as dashboard_router
from app.routers.issues import router as issues_router
from app.routers.jira import router as jira_router
from app.routers.settings import router as settings_router
from app.routers.users import router as users_router

__all__ = [
    "auth_router",
    "comments_router",
    "customers_router",
    "dashboard_router",
    "issues_router",
    "jira_router",
    "settings_router",
    "users_router",
]
