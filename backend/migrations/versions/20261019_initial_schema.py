"""Initial schema: tenancy, catalog pricing, inventory ledger, audit log

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Businesses, outlets and warehouses (tenant hierarchy)
2. Products, price tiers and per-tier/per-outlet price overrides
3. Customers (optional price tier)
4. Inventories and the append-only stock_movements ledger
5. Audit logs written by the queue drain
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. TENANCY
    # ==========================================================================
    op.create_table('businesses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('businesses', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_businesses_code'), ['code'], unique=True)
        batch_op.create_index(batch_op.f('ix_businesses_is_active'), ['is_active'], unique=False)

    op.create_table('price_tiers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'code', name='uq_price_tiers_business_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('price_tiers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_price_tiers_business_id'), ['business_id'], unique=False)
        batch_op.create_index('ix_price_tiers_business_default', ['business_id', 'is_default'], unique=False)

    # outlets.default_warehouse_id is added after warehouses exists (cycle)
    op.create_table('outlets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('default_price_tier_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['default_price_tier_id'], ['price_tiers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'code', name='uq_outlets_business_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('outlets', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_outlets_business_id'), ['business_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_outlets_default_price_tier_id'), ['default_price_tier_id'], unique=False)
        batch_op.create_index('ix_outlets_business_name', ['business_id', 'name'], unique=False)

    op.create_table('warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', 'code', name='uq_warehouses_outlet_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('warehouses', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_warehouses_outlet_id'), ['outlet_id'], unique=False)

    with op.batch_alter_table('outlets', schema=None) as batch_op:
        batch_op.add_column(sa.Column('default_warehouse_id', sa.Integer(), nullable=True))
        batch_op.create_foreign_key('fk_outlets_default_warehouse', 'warehouses', ['default_warehouse_id'], ['id'])

    # ==========================================================================
    # 2. CATALOG AND PRICING
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('base_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_price_cents', sa.Integer(), nullable=True),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'sku', name='uq_products_business_sku'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_business_id'), ['business_id'], unique=False)
        batch_op.create_index('ix_products_business_name', ['business_id', 'name'], unique=False)
        batch_op.create_index('ix_products_business_active', ['business_id', 'is_active'], unique=False)

    op.create_table('product_price_tiers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('price_tier_id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['price_tier_id'], ['price_tiers.id'], ),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'price_tier_id', 'outlet_id', name='uq_product_price_tiers_product_tier_outlet'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_price_tiers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_price_tiers_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_product_price_tiers_price_tier_id'), ['price_tier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_product_price_tiers_outlet_id'), ['outlet_id'], unique=False)
    # Global overrides (outlet_id IS NULL) are unique per (product, tier)
    op.create_index(
        'uq_product_price_tiers_product_tier_global',
        'product_price_tiers',
        ['product_id', 'price_tier_id'],
        unique=True,
        sqlite_where=sa.text('outlet_id IS NULL'),
        postgresql_where=sa.text('outlet_id IS NULL'),
    )

    # ==========================================================================
    # 3. CUSTOMERS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('price_tier_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['price_tier_id'], ['price_tiers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'email', name='uq_customers_business_email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customers_business_id'), ['business_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_customers_price_tier_id'), ['price_tier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_customers_is_active'), ['is_active'], unique=False)
        batch_op.create_index('ix_customers_business_active', ['business_id', 'is_active'], unique=False)

    # ==========================================================================
    # 4. INVENTORY
    # ==========================================================================
    op.create_table('inventories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('quantity_on_hand', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('minimum_stock', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity_on_hand >= 0', name='ck_inventories_quantity_non_negative'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_inventories_product_warehouse'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventories', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventories_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventories_warehouse_id'), ['warehouse_id'], unique=False)

    op.create_table('stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('from_warehouse_id', sa.Integer(), nullable=True),
        sa.Column('to_warehouse_id', sa.Integer(), nullable=True),
        sa.Column('outlet_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['from_warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['to_warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_movements', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_movements_business_id'), ['business_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_movements_from_warehouse_id'), ['from_warehouse_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_movements_to_warehouse_id'), ['to_warehouse_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_movements_outlet_id'), ['outlet_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_movements_type'), ['type'], unique=False)
        batch_op.create_index('ix_stock_movements_business_created', ['business_id', 'created_at'], unique=False)
        batch_op.create_index('ix_stock_movements_product_created', ['product_id', 'created_at'], unique=False)

    # ==========================================================================
    # 5. AUDIT LOGS
    # ==========================================================================
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.String(length=36), nullable=True),
        sa.Column('business_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('outlet_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.String(length=128), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_logs_business_id'), ['business_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_audit_logs_event_type'), ['event_type'], unique=False)
        batch_op.create_index('ix_audit_logs_business_created', ['business_id', 'created_at'], unique=False)
        batch_op.create_index('ix_audit_logs_entity', ['entity_type', 'entity_id'], unique=False)


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('stock_movements')
    op.drop_table('inventories')
    op.drop_table('customers')
    op.drop_index('uq_product_price_tiers_product_tier_global', table_name='product_price_tiers')
    op.drop_table('product_price_tiers')
    op.drop_table('products')
    with op.batch_alter_table('outlets', schema=None) as batch_op:
        batch_op.drop_constraint('fk_outlets_default_warehouse', type_='foreignkey')
        batch_op.drop_column('default_warehouse_id')
    op.drop_table('warehouses')
    op.drop_table('outlets')
    op.drop_table('price_tiers')
    op.drop_table('businesses')
