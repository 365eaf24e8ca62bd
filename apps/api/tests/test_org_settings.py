"""Tests for organization settings."""

import pytest

from app.core.exceptions import ForbiddenError, ValidationError
from app.db.enums import Role
from app.services import org_service


def test_admin_reads_and_updates_settings(db, tenant):
    org = org_service.get_org_settings(db, tenant.admin_session)
    assert org.default_user_role == Role.READ_ONLY.value

    org = org_service.update_org_settings(db, tenant.admin_session, {
        "name": "Alpha Support",
        "default_user_role": Role.SUPPORT_AGENT,
        "require_approval": True,
        "branding": {"primary_color": "#112233"},
        "allow_self_registration": None,
    })

    assert org.name == "Alpha Support"
    assert org.default_user_role == "support_agent"
    assert org.require_approval is True
    assert org.branding == {"primary_color": "#112233"}
    # None leaves the field unchanged
    assert org.allow_self_registration is True


def test_unknown_default_role_rejected(db, tenant):
    with pytest.raises(ValidationError):
        org_service.update_org_settings(db, tenant.admin_session, {"default_user_role": "owner"})


def test_settings_require_permissions(db, tenant):
    with pytest.raises(ForbiddenError):
        org_service.get_org_settings(db, tenant.agent_session)
    with pytest.raises(ForbiddenError):
        org_service.update_org_settings(db, tenant.agent_session, {"name": "Hijacked"})

    assert org_service.get_org_settings(db, tenant.admin_session).name == "Alpha"
