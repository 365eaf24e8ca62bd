"""Initial schema - tenants, users, customers, catalog, issues

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18

Portable DDL (no Postgres extensions) so the same revision runs on SQLite
for local development.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _org_fk() -> sa.Column:
    return sa.Column(
        'organization_id',
        sa.Uuid(),
        sa.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Organizations & Users
    # ==========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('stytch_organization_id', sa.String(255), nullable=False),
        sa.Column('domain', sa.String(255), nullable=True),
        sa.Column('allow_self_registration', sa.Boolean(), nullable=False),
        sa.Column('default_user_role', sa.String(50), nullable=False),
        sa.Column('require_approval', sa.Boolean(), nullable=False),
        sa.Column('branding', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            'stytch_organization_id',
            name='uq_organizations_stytch_organization_id',
        ),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('stytch_member_id', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            'organization_id', 'stytch_member_id', name='uq_users_org_member'
        ),
    )
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    # ==========================================================================
    # Customers & Catalog
    # ==========================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('total_issues', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_customers_organization_id', 'customers', ['organization_id'])

    op.create_table(
        'applications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('jira_project_key', sa.String(50), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        'ix_applications_organization_id', 'applications', ['organization_id']
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('application_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('color', sa.String(7), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_categories_organization_id', 'categories', ['organization_id'])
    op.create_index('ix_categories_application_id', 'categories', ['application_id'])

    # ==========================================================================
    # Issues, Comments, Activity
    # ==========================================================================
    op.create_table(
        'issues',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('priority', sa.String(20), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('application_id', sa.Uuid(), nullable=True),
        sa.Column(
            'customer_id',
            sa.Uuid(),
            sa.ForeignKey('customers.id'),
            nullable=False,
        ),
        sa.Column('assigned_to_id', sa.Uuid(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('jira_issue_key', sa.String(50), nullable=True),
        sa.Column('jira_url', sa.String(500), nullable=True),
        sa.Column('escalated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('escalated_by', sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_issues_organization_id', 'issues', ['organization_id'])
    op.create_index('ix_issues_application_id', 'issues', ['application_id'])
    op.create_index('ix_issues_customer_id', 'issues', ['customer_id'])
    op.create_index('ix_issues_assigned_to_id', 'issues', ['assigned_to_id'])
    op.create_index('idx_issues_org_status', 'issues', ['organization_id', 'status'])
    op.create_index(
        'idx_issues_org_created', 'issues', ['organization_id', 'created_at']
    )

    op.create_table(
        'comments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('issue_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_comments_organization_id', 'comments', ['organization_id'])
    op.create_index(
        'idx_comments_org_issue', 'comments', ['organization_id', 'issue_id']
    )

    op.create_table(
        'activities',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _org_fk(),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=False),
        sa.Column('issue_id', sa.Uuid(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_activities_organization_id', 'activities', ['organization_id'])
    op.create_index(
        'idx_activities_org_timestamp', 'activities', ['organization_id', 'timestamp']
    )


def downgrade() -> None:
    op.drop_table('activities')
    op.drop_table('comments')
    op.drop_table('issues')
    op.drop_table('categories')
    op.drop_table('applications')
    op.drop_table('customers')
    op.drop_table('users')
    op.drop_table('organizations')
