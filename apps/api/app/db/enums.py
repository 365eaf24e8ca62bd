"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    User roles. The role is the source of a user's *default* permissions;
    the permissions stored on the user are authoritative.

    - ADMIN: Full access including organization settings and user management
    - SUPPORT_AGENT: Works issues and customers
    - READ_ONLY: View-only access
    """
    ADMIN = "admin"
    SUPPORT_AGENT = "support_agent"
    READ_ONLY = "read_only"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class IssueStatus(str, Enum):
    """
    Issue lifecycle.

        new → in_progress → awaiting_customer → resolved

    Transitions between the four working statuses are unrestricted.
    CLOSED is terminal.
    """
    NEW = "new"
    IN_PROGRESS = "in_progress"
    AWAITING_CUSTOMER = "awaiting_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @classmethod
    def open_statuses(cls) -> list[str]:
        """Statuses counted as open on the dashboard."""
        return [cls.NEW.value, cls.IN_PROGRESS.value, cls.AWAITING_CUSTOMER.value]


class IssuePriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActivityType(str, Enum):
    """Types of entries in the append-only activity log."""
    ISSUE_CREATED = "issue_created"
    ISSUE_UPDATED = "issue_updated"
    ISSUE_RESOLVED = "issue_resolved"
    COMMENT_ADDED = "comment_added"


# Role groups
ROLES_CAN_ESCALATE = {Role.ADMIN, Role.SUPPORT_AGENT}
ROLES_CAN_MANAGE_USERS = {Role.ADMIN}
