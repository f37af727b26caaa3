# Overview: Flask CLI command groups for bootstrap and tenancy management.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` once migrations exist).
# - python -m flask system seed-demo [--slug demo]
#   Create a demo tenant with a category, two locations and stocked products.
#
# Tenancy (MULTI-TENANT):
# - python -m flask tenancy list
#   List all tenants.
# - python -m flask tenancy create-tenant --name "Acme Corp" --slug acme [--tier BASIC]
#   Create a new tenant.
# - python -m flask tenancy install-rls [--print]
#   Install row-level security policies (PostgreSQL only); --print shows the DDL.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import TENANT_TIERS, Category, Location, Product, Tenant
from .rls import install_rls, rls_statements
from .services import ledger_service
from .services.repositories import TenantRepository
from .services.tenant_service import tenant_scope


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo(f"PASS Created tables on {db.engine.dialect.name}")


@system_group.command('seed-demo')
@click.option('--slug', default='demo', help='Slug of the demo tenant')
@with_appcontext
def seed_demo(slug):
    """
    Create a demo tenant with reference data and opening stock.

    Tenant-owned rows are written through a tenant scope so the command
    also works once row-level security is installed. Opening stock is
    posted as ledger receipts, never written to quantity directly.
    """
    slug = slug.strip().lower()
    repo = TenantRepository(db.session)
    if repo.find_by_slug(slug):
        click.echo(f"FAIL Tenant with slug '{slug}' already exists")
        return

    tenant = Tenant(name="Demo Tenant", slug=slug, tier="BASIC", is_active=True)
    db.session.add(tenant)
    db.session.commit()

    with tenant_scope(tenant.id) as scope:
        with scope.atomic() as session:
            category = Category(name="Beverages")
            warehouse = Location(name="Main Warehouse", location_type="WAREHOUSE")
            store = Location(name="Front Store", location_type="STORE")
            session.add_all([category, warehouse, store])
            session.flush()

            products = [
                Product(sku="BEV-001", name="Sparkling Water", barcode="4006381333931",
                        barcode_type="EAN13", reorder_point=20, cost_cents=45, price_cents=120,
                        category_id=category.id),
                Product(sku="BEV-002", name="Cold Brew Coffee", barcode="4006381333948",
                        barcode_type="EAN13", reorder_point=10, cost_cents=180, price_cents=450,
                        category_id=category.id),
            ]
            session.add_all(products)

        for product, opening in zip(products, (48, 12)):
            ledger_service.receive_stock(
                scope,
                product_id=product.id,
                quantity=opening,
                location_id=warehouse.id,
                notes="Opening stock",
            )

    click.echo(f"PASS Seeded demo tenant '{slug}' (ID: {tenant.id})")


@click.group('tenancy')
def tenancy_group():
    """Tenant management and isolation commands."""


@tenancy_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.created_at.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<38} {'Name':<28} {'Slug':<16} {'Tier':<12} {'Active'}")
    click.echo("="*100)

    for tenant in tenants:
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(f"{str(tenant.id):<38} {tenant.name:<28} {tenant.slug:<16} {tenant.tier:<12} {active_str}")

    click.echo("="*100 + "\n")


@tenancy_group.command('create-tenant')
@click.option('--name', required=True, help='Tenant name')
@click.option('--slug', required=True, help='Short unique slug')
@click.option('--tier', type=click.Choice(TENANT_TIERS), default='FREE', show_default=True)
@click.option('--contact-email', default=None, help='Contact email')
@with_appcontext
def create_tenant_cli(name, slug, tier, contact_email):
    """Create a new tenant."""
    slug = slug.strip().lower()
    if TenantRepository(db.session).find_by_slug(slug):
        click.echo(f"FAIL Tenant with slug '{slug}' already exists")
        return

    tenant = Tenant(name=name, slug=slug, tier=tier, contact_email=contact_email, is_active=True)
    db.session.add(tenant)
    db.session.commit()

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Slug: {tenant.slug})")


@tenancy_group.command('install-rls')
@click.option('--print', 'print_only', is_flag=True, help='Print the DDL instead of executing it')
@with_appcontext
def install_rls_cli(print_only):
    """Install row-level security policies on tenant-owned tables (PostgreSQL)."""
    setting_name = current_app.config["TENANT_SESSION_SETTING"]

    if print_only:
        for statement in rls_statements(setting_name):
            click.echo(statement + ";")
        return

    if db.engine.dialect.name != "postgresql":
        click.echo(f"FAIL Row-level security requires PostgreSQL (configured: {db.engine.dialect.name})")
        return

    with db.engine.begin() as connection:
        count = install_rls(connection, setting_name)

    click.echo(f"PASS Applied {count} row-level security statements")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenancy_group)
