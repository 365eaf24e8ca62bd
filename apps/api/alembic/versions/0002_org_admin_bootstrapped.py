"""Record when an organization's first admin was provisioned

Revision ID: 0002_org_admin_bootstrapped
Revises: 0001_initial_schema
Create Date: 2026-10-18

Existing organizations that already have users are marked as bootstrapped
so emptying their user table cannot hand admin to the next login.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_org_admin_bootstrapped'
down_revision: Union[str, Sequence[str], None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('organizations') as batch_op:
        batch_op.add_column(
            sa.Column('admin_bootstrapped_at', sa.DateTime(timezone=True), nullable=True)
        )

    op.execute(
        "UPDATE organizations SET admin_bootstrapped_at = created_at "
        "WHERE id IN (SELECT DISTINCT organization_id FROM users)"
    )


def downgrade() -> None:
    with op.batch_alter_table('organizations') as batch_op:
        batch_op.drop_column('admin_bootstrapped_at')
