"""Factories for orgs, users, sessions and catalog rows."""

import uuid
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.core.permissions import get_role_default_permissions
from app.db.enums import Role
from app.db.models import Application, Customer, Organization, User
from app.schemas.auth import UserSession
from fakes import FakeIdentityProvider


def make_org(db: Session, name: str = "Test Organization", **values) -> Organization:
    org = Organization(
        name=name,
        stytch_organization_id=values.pop(
            "stytch_organization_id", f"organization-test-{uuid.uuid4().hex[:12]}"
        ),
        default_user_role=values.pop("default_user_role", Role.READ_ONLY.value),
        **values,
    )
    db.add(org)
    db.commit()
    return org


def make_user(
    db: Session,
    org: Organization,
    role: Role = Role.ADMIN,
    *,
    name: str | None = None,
    permissions: list[str] | None = None,
    is_active: bool = True,
) -> User:
    member_id = f"member-test-{uuid.uuid4().hex[:12]}"
    user = User(
        organization_id=org.id,
        stytch_member_id=member_id,
        name=name or f"{role.value} user",
        email=f"{member_id}@example.com",
        role=role.value,
        permissions=(
            permissions if permissions is not None
            else get_role_default_permissions(role.value)
        ),
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


def make_session(user: User, org: Organization) -> UserSession:
    return UserSession(
        user_id=user.id,
        org_id=org.id,
        stytch_organization_id=org.stytch_organization_id,
        stytch_member_id=user.stytch_member_id,
        role=Role(user.role),
        permissions=list(user.permissions),
        email=user.email,
        display_name=user.name,
    )


def make_customer(db: Session, org: Organization, company_name: str = "Acme Corp") -> Customer:
    customer = Customer(organization_id=org.id, company_name=company_name, total_issues=0)
    db.add(customer)
    db.commit()
    return customer


def make_application(
    db: Session, org: Organization, name: str = "Portal", jira_project_key: str | None = "SUP"
) -> Application:
    application = Application(
        organization_id=org.id, name=name, jira_project_key=jira_project_key
    )
    db.add(application)
    db.commit()
    return application


@dataclass
class Tenant:
    """An org with one user per role and ready-made sessions."""
    org: Organization
    admin: User
    agent: User
    viewer: User
    sessions: dict[Role, UserSession] = field(default_factory=dict)

    @property
    def admin_session(self) -> UserSession:
        return self.sessions[Role.ADMIN]

    @property
    def agent_session(self) -> UserSession:
        return self.sessions[Role.SUPPORT_AGENT]

    @property
    def viewer_session(self) -> UserSession:
        return self.sessions[Role.READ_ONLY]


def make_tenant(db: Session, name: str) -> Tenant:
    org = make_org(db, name)
    admin = make_user(db, org, Role.ADMIN, name=f"{name} Admin")
    agent = make_user(db, org, Role.SUPPORT_AGENT, name=f"{name} Agent")
    viewer = make_user(db, org, Role.READ_ONLY, name=f"{name} Viewer")
    tenant = Tenant(org=org, admin=admin, agent=agent, viewer=viewer)
    for user in (admin, agent, viewer):
        tenant.sessions[Role(user.role)] = make_session(user, org)
    return tenant


def auth_headers(identity: FakeIdentityProvider, user: User, org: Organization) -> dict[str, str]:
    """Register a Stytch session for ``user`` and return a bearer header."""
    token = f"token-{user.stytch_member_id}"
    identity.add_session(token, user.stytch_member_id, org.stytch_organization_id)
    return {"Authorization": f"Bearer {token}"}
