"""CLI tools for support desk administration."""

from uuid import UUID

import click
from sqlalchemy import select

from app.core.config import settings
from app.db.models import Organization
from app.db.session import Database
from app.services import customer_service, org_service


@click.group()
@click.option(
    "--database-url",
    envvar="DATABASE_URL",
    default=settings.DATABASE_URL,
    show_default=False,
    help="SQLAlchemy URL (defaults to DATABASE_URL)",
)
@click.pass_context
def cli(ctx: click.Context, database_url: str):
    """Support desk CLI tools."""
    ctx.obj = Database(database_url, auto_migrate=settings.DB_AUTO_MIGRATE)
    ctx.call_on_close(ctx.obj.dispose)


@cli.command()
@click.pass_obj
def init_db(database: Database):
    """
    Create or migrate the schema.

    Example:
        support-desk init-db
    """
    try:
        database.initialize()
    except Exception as e:
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    click.echo(f"✓ Database ready ({database.engine.url.get_backend_name()})")


@cli.command()
@click.option("--stytch-org-id", required=True, help="Stytch organization ID")
@click.option("--name", default=None, help="Display name (defaults to the Stytch ID)")
@click.option("--domain", default=None, help="Primary email domain")
@click.pass_obj
def create_org(database: Database, stytch_org_id: str, name: str | None, domain: str | None):
    """
    Create the local organization for a Stytch organization.

    The first member to log in becomes its admin.

    Example:
        support-desk create-org --stytch-org-id "organization-test-..." --name "Acme"
    """
    database.initialize()
    db = database.session()
    try:
        org, created = org_service.get_or_create_org(db, stytch_org_id, name=name, domain=domain)
        if not created:
            click.echo(f"❌ Organization for {stytch_org_id} already exists ({org.id})")
            raise SystemExit(1)

        click.echo(f"✓ Created organization: {org.name}")
        click.echo(f"  ID: {org.id}")
        click.echo("→ The first member to log in will be made admin")
    finally:
        db.close()


@cli.command()
@click.option("--org-id", default=None, help="Only this organization (local UUID)")
@click.pass_obj
def reconcile_counts(database: Database, org_id: str | None):
    """
    Recompute every customer's total_issues from live issues.

    Example:
        support-desk reconcile-counts --org-id "..."
    """
    database.initialize()
    db = database.session()
    try:
        if org_id:
            org_ids = [UUID(org_id)]
        else:
            org_ids = list(db.execute(select(Organization.id)).scalars().all())

        corrected = 0
        for current in org_ids:
            for drift in customer_service.repair_counter_drift(db, current):
                corrected += 1
                click.echo(
                    f"  {drift.company_name}: {drift.stored} → {drift.actual}"
                )
        click.echo(f"✓ Checked {len(org_ids)} organization(s), corrected {corrected} customer(s)")
    except ValueError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
