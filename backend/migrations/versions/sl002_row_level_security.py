"""Row-level security on tenant-owned tables (PostgreSQL only)

SECURITY MIGRATION:
1. Installs set_tenant_id(uuid) for callers that prefer a function over set_config
2. ENABLE + FORCE row-level security on every tenant-owned table
3. One policy per table comparing tenant_id to the session tenant setting

No-op on other dialects; isolation there relies on the scoped session alone.

Revision ID: sl002_row_level_security
Revises: sl001_initial_ledger
Create Date: 2026-10-19
"""
import os

from alembic import op

from stockledger.rls import TENANT_OWNED_TABLES, rls_statements


# revision identifiers, used by Alembic.
revision = 'sl002_row_level_security'
down_revision = 'sl001_initial_ledger'
branch_labels = None
depends_on = None

SETTING_NAME = os.environ.get("TENANT_SESSION_SETTING", "app.current_tenant_id")


def upgrade():
    if op.get_bind().dialect.name != "postgresql":
        return
    for statement in rls_statements(SETTING_NAME):
        op.execute(statement)


def downgrade():
    if op.get_bind().dialect.name != "postgresql":
        return
    for table in TENANT_OWNED_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {table}_tenant_isolation ON {table}")
        op.execute(f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")
    op.execute("DROP FUNCTION IF EXISTS set_tenant_id(uuid)")
