"""Centralized RBAC policies for API resources."""

from dataclasses import dataclass

from app.core.permissions import PermissionKey as P


@dataclass(frozen=True)
class ResourcePolicy:
    """Default permission + per-action overrides for a resource."""

    default: P | None
    actions: dict[str, P]


POLICIES: dict[str, ResourcePolicy] = {
    "issues": ResourcePolicy(
        default=P.ISSUES_READ,
        actions={
            "write": P.ISSUES_WRITE,
            "delete": P.ISSUES_DELETE,
            "comment": P.ISSUES_READ,
            "escalate": P.ISSUES_WRITE,
        },
    ),
    "customers": ResourcePolicy(
        default=P.CUSTOMERS_READ,
        actions={
            "write": P.CUSTOMERS_WRITE,
            "delete": P.CUSTOMERS_WRITE,
            "reconcile": P.CUSTOMERS_WRITE,
        },
    ),
    "users": ResourcePolicy(
        default=P.SETTINGS_READ,
        actions={"manage": P.SETTINGS_WRITE},
    ),
    "settings": ResourcePolicy(
        default=P.SETTINGS_READ,
        actions={"manage": P.SETTINGS_WRITE},
    ),
    "integrations": ResourcePolicy(default=P.SETTINGS_READ, actions={}),
    # Any authenticated session
    "dashboard": ResourcePolicy(default=None, actions={}),
    "catalog": ResourcePolicy(
        default=None,
        actions={"manage": P.SETTINGS_WRITE},
    ),
}


def get_policy(resource: str) -> ResourcePolicy:
    return POLICIES[resource]
