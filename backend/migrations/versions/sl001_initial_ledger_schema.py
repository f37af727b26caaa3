"""Initial ledger schema: tenants, devices, catalog, ledger and audit trail

MULTI-TENANT MIGRATION:
1. Creates 'tenants' as the isolation root (not tenant-owned)
2. Creates tenant-owned devices, categories, locations and products
3. Creates the append-only inventory_transactions ledger
4. Creates audit_records, paired 1:1 with ledger entries
5. Tenant-scoped uniqueness for SKU, barcode and names

Revision ID: sl001_initial_ledger
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _tenant_fk():
    return sa.Column(
        'tenant_id', sa.Uuid(),
        sa.ForeignKey('tenants.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade():
    # ==========================================================================
    # STEP 1: Tenant root
    # ==========================================================================
    op.create_table('tenants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('tier', sa.String(length=16), nullable=False),
        sa.Column('max_users', sa.Integer(), nullable=False),
        sa.Column('max_storage_mb', sa.Integer(), nullable=False),
        sa.Column('max_products', sa.Integer(), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)
    op.create_index('ix_tenants_is_active', 'tenants', ['is_active'])

    # ==========================================================================
    # STEP 2: Tenant-owned reference data
    # ==========================================================================
    op.create_table('devices',
        sa.Column('id', sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('registered_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_devices_tenant_id', 'devices', ['tenant_id'])
    op.create_index('ix_devices_status', 'devices', ['status'])

    op.create_table('categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_categories_tenant_name')
    )
    op.create_index('ix_categories_tenant_id', 'categories', ['tenant_id'])

    op.create_table('locations',
        sa.Column('id', sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location_type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_locations_tenant_name')
    )
    op.create_index('ix_locations_tenant_id', 'locations', ['tenant_id'])

    op.create_table('products',
        sa.Column('id', sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('barcode', sa.String(length=100), nullable=True),
        sa.Column('barcode_type', sa.String(length=32), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reorder_point', sa.Integer(), nullable=True),
        sa.Column('cost_cents', sa.Integer(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('category_id', sa.Uuid(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'sku', name='uq_products_tenant_sku'),
        sa.UniqueConstraint('tenant_id', 'barcode', name='uq_products_tenant_barcode'),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_nonnegative')
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_tenant_name', 'products', ['tenant_id', 'name'])

    # ==========================================================================
    # STEP 3: Ledger and audit trail (append-only)
    # ==========================================================================
    op.create_table('inventory_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_location_id', sa.Uuid(), sa.ForeignKey('locations.id'), nullable=True),
        sa.Column('destination_location_id', sa.Uuid(), sa.ForeignKey('locations.id'), nullable=True),
        sa.Column('performed_by', sa.Uuid(), nullable=True),
        sa.Column('device_id', sa.Uuid(), sa.ForeignKey('devices.id'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_inventory_transactions_tenant_id', 'inventory_transactions', ['tenant_id'])
    op.create_index('ix_inventory_transactions_transaction_type', 'inventory_transactions', ['transaction_type'])
    op.create_index('ix_inventory_transactions_product_id', 'inventory_transactions', ['product_id'])
    op.create_index('ix_inventory_transactions_created_at', 'inventory_transactions', ['created_at'])
    op.create_index('ix_invtx_tenant_created', 'inventory_transactions', ['tenant_id', 'created_at'])
    op.create_index(
        'ix_invtx_tenant_product_created', 'inventory_transactions',
        ['tenant_id', 'product_id', 'created_at'],
    )

    op.create_table('audit_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        _tenant_fk(),
        sa.Column(
            'transaction_id', sa.Uuid(),
            sa.ForeignKey('inventory_transactions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('device_id', sa.Uuid(), sa.ForeignKey('devices.id'), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('action_type', sa.String(length=32), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id')
    )
    op.create_index('ix_audit_records_tenant_id', 'audit_records', ['tenant_id'])
    op.create_index('ix_audit_tenant_created', 'audit_records', ['tenant_id', 'created_at'])


def downgrade():
    op.drop_table('audit_records')
    op.drop_table('inventory_transactions')
    op.drop_table('products')
    op.drop_table('locations')
    op.drop_table('categories')
    op.drop_table('devices')
    op.drop_table('tenants')
