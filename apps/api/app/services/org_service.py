"""Organization service - tenant lookup, lazy provisioning, and settings."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.authorization import require_permission
from app.core.exceptions import NotFoundError, ValidationError
from app.core.permissions import PermissionKey as P
from app.db.enums import Role
from app.db.models import Organization
from app.schemas.auth import UserSession

logger = logging.getLogger(__name__)


def get_org_by_id(db: Session, org_id: UUID) -> Organization | None:
    """Get organization by ID."""
    return db.get(Organization, org_id)


def get_org_by_stytch_id(db: Session, stytch_organization_id: str) -> Organization | None:
    return db.execute(
        select(Organization).where(
            Organization.stytch_organization_id == stytch_organization_id
        )
    ).scalar_one_or_none()


def get_or_create_org(
    db: Session,
    stytch_organization_id: str,
    *,
    name: str | None = None,
    domain: str | None = None,
) -> tuple[Organization, bool]:
    """
    Return the local org for a Stytch org, creating it on first sight.

    New orgs allow self-registration, default new members to read_only,
    and do not require approval. Returns (org, created).
    """
    org = get_org_by_stytch_id(db, stytch_organization_id)
    if org:
        return org, False

    org = Organization(
        name=name or stytch_organization_id,
        stytch_organization_id=stytch_organization_id,
        domain=domain,
        allow_self_registration=True,
        default_user_role=Role.READ_ONLY.value,
        require_approval=False,
        branding={},
    )
    db.add(org)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first login created it
        db.rollback()
        existing = get_org_by_stytch_id(db, stytch_organization_id)
        if existing is None:
            raise
        return existing, False
    db.refresh(org)
    logger.info("Provisioned organization %s for Stytch org %s", org.id, stytch_organization_id)
    return org, True


def get_org_settings(db: Session, session: UserSession) -> Organization:
    require_permission(session, P.SETTINGS_READ)
    org = get_org_by_id(db, session.org_id)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


def update_org_settings(
    db: Session,
    session: UserSession,
    updates: dict[str, Any],
) -> Organization:
    """Apply provided settings fields. Unknown roles are rejected."""
    require_permission(session, P.SETTINGS_WRITE)
    org = get_org_by_id(db, session.org_id)
    if org is None:
        raise NotFoundError("Organization not found")

    if "default_user_role" in updates:
        role = updates["default_user_role"]
        role = getattr(role, "value", role)
        if not Role.has_value(role):
            raise ValidationError(f"Unknown role '{role}'")
        updates["default_user_role"] = role

    for field in ("name", "allow_self_registration", "default_user_role",
                  "require_approval", "branding"):
        if field in updates and updates[field] is not None:
            setattr(org, field, updates[field])

    db.commit()
    db.refresh(org)
    return org
