"""Service layer modules."""

from app.services.org_service import (
    get_or_create_org,
    get_org_by_id,
    get_org_by_stytch_id,
)
from app.services.session_service import resolve_session
from app.services.user_service import (
    count_users,
    get_user_by_member,
    provision_user,
)

# Import service modules (not individual functions) for cleaner access
from app.services import issue_service
from app.services import customer_service
from app.services import comment_service
from app.services import escalation_service

__all__ = [
    # Session resolution
    "resolve_session",
    # Org service
    "get_org_by_id",
    "get_org_by_stytch_id",
    "get_or_create_org",
    # User service
    "count_users",
    "get_user_by_member",
    "provision_user",
    # Service modules
    "issue_service",
    "customer_service",
    "comment_service",
    "escalation_service",
]
