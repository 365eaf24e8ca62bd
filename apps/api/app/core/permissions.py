"""Permission registry and the role → default permission table.

This module is the single source of default permissions. A user's stored
permissions are authoritative once written; role defaults are applied only
when a user is created or when an admin explicitly resets them.
"""

from dataclasses import dataclass
from enum import Enum

from app.db.enums import Role


class PermissionKey(str, Enum):
    """Permission strings stored on users."""
    ISSUES_READ = "issues:read"
    ISSUES_WRITE = "issues:write"
    ISSUES_DELETE = "issues:delete"
    CUSTOMERS_READ = "customers:read"
    CUSTOMERS_WRITE = "customers:write"
    CUSTOMERS_DELETE = "customers:delete"
    SETTINGS_READ = "settings:read"
    SETTINGS_WRITE = "settings:write"


class PermissionCategory(str, Enum):
    """Permission categories for UI grouping."""
    ISSUES = "Issues"
    CUSTOMERS = "Customers"
    SETTINGS = "Settings"


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: str
    label: str
    description: str
    category: str


P = PermissionKey


# =============================================================================
# Permission Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    P.ISSUES_READ.value: PermissionDef(
        P.ISSUES_READ.value, "View Issues",
        "See issues, comments and the dashboard", PermissionCategory.ISSUES
    ),
    P.ISSUES_WRITE.value: PermissionDef(
        P.ISSUES_WRITE.value, "Edit Issues",
        "Create, update, assign and escalate issues", PermissionCategory.ISSUES
    ),
    P.ISSUES_DELETE.value: PermissionDef(
        P.ISSUES_DELETE.value, "Delete Issues",
        "Permanently delete issues", PermissionCategory.ISSUES
    ),
    P.CUSTOMERS_READ.value: PermissionDef(
        P.CUSTOMERS_READ.value, "View Customers",
        "See customer list and details", PermissionCategory.CUSTOMERS
    ),
    P.CUSTOMERS_WRITE.value: PermissionDef(
        P.CUSTOMERS_WRITE.value, "Edit Customers",
        "Create, update and delete customers", PermissionCategory.CUSTOMERS
    ),
    P.CUSTOMERS_DELETE.value: PermissionDef(
        P.CUSTOMERS_DELETE.value, "Delete Customers",
        "Reserved for bulk customer removal", PermissionCategory.CUSTOMERS
    ),
    P.SETTINGS_READ.value: PermissionDef(
        P.SETTINGS_READ.value, "View Settings",
        "See organization settings, users and integrations", PermissionCategory.SETTINGS
    ),
    P.SETTINGS_WRITE.value: PermissionDef(
        P.SETTINGS_WRITE.value, "Manage Settings",
        "Manage users, applications, categories and org settings",
        PermissionCategory.SETTINGS
    ),
}


# =============================================================================
# Default Role Permissions
# =============================================================================

ROLE_DEFAULTS: dict[str, tuple[str, ...]] = {
    Role.ADMIN.value: (
        P.ISSUES_READ.value,
        P.ISSUES_WRITE.value,
        P.ISSUES_DELETE.value,
        P.CUSTOMERS_READ.value,
        P.CUSTOMERS_WRITE.value,
        P.CUSTOMERS_DELETE.value,
        P.SETTINGS_READ.value,
        P.SETTINGS_WRITE.value,
    ),
    Role.SUPPORT_AGENT.value: (
        P.ISSUES_READ.value,
        P.ISSUES_WRITE.value,
        P.CUSTOMERS_READ.value,
        P.CUSTOMERS_WRITE.value,
    ),
    Role.READ_ONLY.value: (
        P.ISSUES_READ.value,
        P.CUSTOMERS_READ.value,
    ),
}


# =============================================================================
# Helper Functions
# =============================================================================

def get_all_permissions() -> list[PermissionDef]:
    """Get all permission definitions."""
    return list(PERMISSION_REGISTRY.values())


def get_permission(key: str) -> PermissionDef | None:
    """Get a permission definition by key."""
    return PERMISSION_REGISTRY.get(key)


def is_valid_permission(key: str) -> bool:
    """Check if a permission key is valid."""
    return key in PERMISSION_REGISTRY


def get_role_default_permissions(role: str) -> list[str]:
    """Default permissions for a role, in registry order. Unknown roles get none."""
    return list(ROLE_DEFAULTS.get(role, ()))


def get_permissions_by_category() -> dict[str, list[PermissionDef]]:
    """Get permissions grouped by category for UI."""
    result: dict[str, list[PermissionDef]] = {}
    for perm in PERMISSION_REGISTRY.values():
        cat = perm.category.value if isinstance(perm.category, Enum) else perm.category
        result.setdefault(cat, []).append(perm)
    return result
