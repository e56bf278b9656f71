"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-02-05 00:00:00.000000

Creates the textile ERP ledger schema:
- branches, warehouses, production_centers: reference data
- customers, products: master data read by the core
- inventory + stock_transactions: positions and their append-only movement log
- sales_invoices, invoice_details, credit_sales, credit_payments
- production_logs, production_orders
- document_sequences: race-free invoice / order numbering
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # Reference data
    # ============================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branches_code', 'branches', ['code'], unique=True)

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_warehouses_code', 'warehouses', ['code'], unique=True)
    op.create_index('ix_warehouses_branch_id', 'warehouses', ['branch_id'])

    op.create_table(
        'production_centers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_production_centers_code', 'production_centers', ['code'], unique=True)

    # ============================================================================
    # Master data
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('customer_type', sa.String(length=32), nullable=False, server_default='retail'),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('credit_limit', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_code', 'customers', ['code'], unique=True)
    op.create_index('ix_customers_status', 'customers', ['status'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('unit_of_measure', sa.String(length=16), nullable=False, server_default='pcs'),
        sa.Column('standard_cost', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('standard_price', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('reorder_level', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_code', 'products', ['code'], unique=True)
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_status_name', 'products', ['status', 'name'])

    # ============================================================================
    # Inventory: positions + append-only movement log
    # ============================================================================
    # SUM(stock_transactions.quantity) per (warehouse, product) == inventory.quantity_on_hand
    op.create_table(
        'inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_on_hand', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('warehouse_id', 'product_id', name='uq_inventory_warehouse_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_warehouse_id', 'inventory', ['warehouse_id'])
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])

    op.create_table(
        'stock_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('counterpart_warehouse_id', sa.Integer(), nullable=True),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['counterpart_warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_transactions_occurred_at', 'stock_transactions', ['occurred_at'])
    op.create_index('ix_stock_transactions_type', 'stock_transactions', ['type'])
    op.create_index('ix_stocktx_warehouse_product', 'stock_transactions', ['warehouse_id', 'product_id'])
    op.create_index('ix_stocktx_reference', 'stock_transactions', ['reference_type', 'reference_id'])

    # ============================================================================
    # Sales + credit
    # ============================================================================
    op.create_table(
        'sales_invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('invoice_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.Column('cancelled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_invoices_date', 'sales_invoices', ['invoice_date'])
    op.create_index('ix_sales_invoices_customer_status', 'sales_invoices', ['customer_id', 'status'])
    op.create_index('ix_sales_invoices_branch_id', 'sales_invoices', ['branch_id'])
    op.create_index('ix_sales_invoices_customer_id', 'sales_invoices', ['customer_id'])
    op.create_index('ix_sales_invoices_status', 'sales_invoices', ['status'])

    op.create_table(
        'invoice_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(14, 2), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['sales_invoices.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_details_invoice_id', 'invoice_details', ['invoice_id'])

    op.create_table(
        'credit_sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        _created_at(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['invoice_id'], ['sales_invoices.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_credit_sales_status_due', 'credit_sales', ['status', 'due_date'])
    op.create_index('ix_credit_sales_customer_id', 'credit_sales', ['customer_id'])

    op.create_table(
        'credit_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('credit_id', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('recorded_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['credit_id'], ['credit_sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_credit_payments_credit_id', 'credit_payments', ['credit_id'])

    # ============================================================================
    # Production
    # ============================================================================
    op.create_table(
        'production_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('production_date', sa.Date(), nullable=False),
        sa.Column('center_id', sa.Integer(), nullable=False),
        sa.Column('input_product_id', sa.Integer(), nullable=False),
        sa.Column('input_warehouse_id', sa.Integer(), nullable=False),
        sa.Column('input_qty', sa.Numeric(14, 3), nullable=False),
        sa.Column('output_product_id', sa.Integer(), nullable=False),
        sa.Column('output_warehouse_id', sa.Integer(), nullable=False),
        sa.Column('output_qty', sa.Numeric(14, 3), nullable=False),
        sa.Column('recorded_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['center_id'], ['production_centers.id'], ),
        sa.ForeignKeyConstraint(['input_product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['input_warehouse_id'], ['warehouses.id'], ),
        sa.ForeignKeyConstraint(['output_product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['output_warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_production_logs_production_date', 'production_logs', ['production_date'])
    op.create_index('ix_production_logs_center_id', 'production_logs', ['center_id'])

    op.create_table(
        'production_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('center_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('planned_quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('actual_quantity', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['center_id'], ['production_centers.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_production_orders_center_id', 'production_orders', ['center_id'])
    op.create_index('ix_production_orders_status', 'production_orders', ['status'])

    # ============================================================================
    # Document numbering
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('document_sequences')
    op.drop_table('production_orders')
    op.drop_table('production_logs')
    op.drop_table('credit_payments')
    op.drop_table('credit_sales')
    op.drop_table('invoice_details')
    op.drop_table('sales_invoices')
    op.drop_table('stock_transactions')
    op.drop_table('inventory')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('production_centers')
    op.drop_table('warehouses')
    op.drop_table('branches')
