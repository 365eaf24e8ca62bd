"""SQLAlchemy ORM models for tenants, users, customers, and issues."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.enums import IssuePriority, IssueStatus, Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Tenant & Identity Models
# =============================================================================

class Organization(Base):
    """
    A tenant in the multi-tenant system.

    Created lazily on the first successful Stytch login for an unseen
    Stytch organization. All domain rows carry organization_id and must be
    scoped by it in every query.
    """
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    stytch_organization_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False
    )
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Membership settings
    allow_self_registration: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False
    )
    default_user_role: Mapped[str] = mapped_column(
        String(50),
        default=Role.READ_ONLY.value,
        nullable=False
    )
    require_approval: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False
    )
    branding: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)
    # Set when the first user is provisioned; later logins never bootstrap an admin again
    admin_bootstrapped_at: Mapped[datetime | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class User(Base):
    """
    Local user record for a Stytch member.

    role is the classification used to seed permissions; the stored
    permissions list is what authorization checks read.
    """
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "stytch_member_id",
            name="uq_users_org_member"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    stytch_member_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), default="", nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    permissions: Mapped[list[str]] = mapped_column(default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# =============================================================================
# Catalog Models
# =============================================================================

class Customer(Base):
    """
    A customer company that raises issues.

    total_issues is a denormalized counter maintained by issue create/delete
    and repaired by the reconciliation job.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_issues: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class Application(Base):
    """A product line. A Jira project key enables escalation of its issues."""
    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    jira_project_key: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        index=True,
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    color: Mapped[str] = mapped_column(String(7), default="#6B7280", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# =============================================================================
# Issue Models
# =============================================================================

class Issue(Base):
    """
    A support issue raised for a customer.

    resolved_at is stamped on the first transition into resolved and never
    overwritten. The jira_* / escalated_* fields are written at most once,
    through a conditional update.
    """
    __tablename__ = "issues"
    __table_args__ = (
        Index("idx_issues_org_status", "organization_id", "status"),
        Index("idx_issues_org_created", "organization_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=IssueStatus.NEW.value,
        nullable=False
    )
    priority: Mapped[str] = mapped_column(
        String(20),
        default=IssuePriority.MEDIUM.value,
        nullable=False
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    application_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        index=True,
        nullable=True
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"),
        index=True,
        nullable=False
    )
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        index=True,
        nullable=True
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Jira escalation (written once)
    jira_issue_key: Mapped[str | None] = mapped_column(String(50), nullable=True)
    jira_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    escalated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    escalated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class Comment(Base):
    """
    A comment on an issue.

    issue_id is deliberately not a foreign key: comments outlive a deleted
    issue and stay queryable by issue_id. user_name is captured at write time.
    """
    __tablename__ = "comments"
    __table_args__ = (
        Index("idx_comments_org_issue", "organization_id", "issue_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    issue_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class ActivityItem(Base):
    """Append-only activity log. Rows are never updated or deleted."""
    __tablename__ = "activities"
    __table_args__ = (
        Index("idx_activities_org_timestamp", "organization_id", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    issue_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
