"""Tests for alembic auto-migration on database initialization."""

from sqlalchemy import inspect

from app.core.migrations import get_migration_status
from app.db.session import Database


def test_auto_migrate_reaches_head(tmp_path):
    database = Database(f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}", auto_migrate=True)

    assert get_migration_status(database.engine).is_up_to_date is False
    database.initialize()
    database.initialize()  # no-op once initialized

    status = get_migration_status(database.engine)
    assert status.is_up_to_date is True
    assert status.current_heads == ("0002_org_admin_bootstrapped",)
    tables = set(inspect(database.engine).get_table_names())
    assert {"organizations", "users", "customers", "issues", "comments", "activities"} <= tables
    database.dispose()
