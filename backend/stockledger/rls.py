# Overview: PostgreSQL row-level security DDL for tenant-owned tables.

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import Connection

from .services.scoped_session import PostgresTenantMarker

"""
Row-level security (PostgreSQL only)

Every tenant-owned table gets ENABLE + FORCE ROW LEVEL SECURITY (FORCE so the
table owner the app connects as is restricted too) and one policy comparing
tenant_id to the session setting the scoped handle sets. An unset or empty
setting matches no rows.
"""

TENANT_OWNED_TABLES = (
    "categories",
    "products",
    "locations",
    "devices",
    "inventory_transactions",
    "audit_records",
)


def _tenant_expr(setting_name: str) -> str:
    return f"NULLIF(current_setting('{setting_name}', true), '')::uuid"


def rls_statements(setting_name: str) -> list[str]:
    # Validates the name; it is interpolated into DDL below
    PostgresTenantMarker(setting_name)

    statements = [
        f"""
CREATE OR REPLACE FUNCTION set_tenant_id(p_tenant_id uuid) RETURNS void AS $$
BEGIN
    PERFORM set_config('{setting_name}', p_tenant_id::text, false);
END;
$$ LANGUAGE plpgsql
""".strip()
    ]

    for table in TENANT_OWNED_TABLES:
        policy = f"{table}_tenant_isolation"
        statements.extend(
            [
                f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY",
                f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY",
                f"DROP POLICY IF EXISTS {policy} ON {table}",
                (
                    f"CREATE POLICY {policy} ON {table} "
                    f"USING (tenant_id = {_tenant_expr(setting_name)}) "
                    f"WITH CHECK (tenant_id = {_tenant_expr(setting_name)})"
                ),
            ]
        )
    return statements


def install_rls(connection: Connection, setting_name: str) -> int:
    """Apply the RLS DDL on a PostgreSQL connection. Idempotent; caller commits."""
    if connection.dialect.name != "postgresql":
        raise RuntimeError("Row-level security requires PostgreSQL")

    statements = rls_statements(setting_name)
    for statement in statements:
        connection.execute(text(statement))
    return len(statements)
