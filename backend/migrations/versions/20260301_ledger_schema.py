"""ledger schema

Revision ID: 20260301_ledger
Revises:
Create Date: 2026-03-01 00:00:00.000000

Creates the back-office ledger schema:
- suppliers, inventory_items, stock_movements: stock ledger
- purchases, purchase_items, assets, expenses: enhanced purchases
- sales, sale_items, quotes, quote_items: sales and quotes
- invoices, invoice_items, invoice_payments: accounts receivable
- document_sequences: per-period document numbering
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260301_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(precision=12, scale=2), nullable=nullable)


def upgrade():
    # ============================================================================
    # Stock ledger
    # ============================================================================
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_suppliers_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_suppliers_active', 'suppliers', ['is_active'])

    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=50), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        _money('purchase_price'),
        _money('sale_price'),
        _money('initial_stock'),
        _money('current_stock'),
        _money('reorder_point'),
        sa.Column('preferred_supplier_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('current_stock >= 0', name='ck_inventory_items_stock_non_negative'),
        sa.ForeignKeyConstraint(['preferred_supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_items_product_name', 'inventory_items', ['product_name'])
    op.create_index('ix_inventory_items_preferred_supplier_id', 'inventory_items', ['preferred_supplier_id'])

    # Append-only: one row per current_stock change
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        _money('quantity'),
        _money('previous_stock'),
        _money('new_stock'),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_movements_quantity_magnitude'),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_movements_inventory_id', 'stock_movements', ['inventory_id'])
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'])
    op.create_index('ix_stock_movements_reference', 'stock_movements', ['reference'])
    op.create_index('ix_stock_movements_created_at', 'stock_movements', ['created_at'])
    op.create_index('ix_stock_movements_inventory_created', 'stock_movements', ['inventory_id', 'created_at'])

    # ============================================================================
    # Purchases
    # ============================================================================
    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _money('total_amount'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchases_date', 'purchases', ['purchase_date'])
    op.create_index('ix_purchases_supplier_id', 'purchases', ['supplier_id'])

    op.create_table(
        'assets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('asset_name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        _money('purchase_price'),
        _money('current_value'),
        sa.Column('depreciation_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('useful_life', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('serial_number', sa.String(length=128), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint(
            "status IN ('active', 'maintenance', 'depreciated', 'disposed')",
            name='ck_assets_status',
        ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_assets_supplier_id', 'assets', ['supplier_id'])
    op.create_index('ix_assets_status', 'assets', ['status'])

    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        _money('amount'),
        sa.Column('payment_method', sa.String(length=50), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_expenses_category_date', 'expenses', ['category', 'date'])
    op.create_index('ix_expenses_supplier_id', 'expenses', ['supplier_id'])
    op.create_index('ix_expenses_reference', 'expenses', ['reference'])

    # Each line points at exactly the record its product_type produced
    op.create_table(
        'purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=50), nullable=False),
        _money('quantity'),
        _money('unit_price'),
        _money('total_amount'),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('product_type', sa.String(length=16), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=True),
        sa.Column('asset_id', sa.Integer(), nullable=True),
        sa.Column('expense_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint(
            "product_type IN ('inventory', 'supply', 'asset')",
            name='ck_purchase_items_product_type',
        ),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id']),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['asset_id'], ['assets.id']),
        sa.ForeignKeyConstraint(['expense_id'], ['expenses.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchase_items_purchase_id', 'purchase_items', ['purchase_id'])
    op.create_index('ix_purchase_items_product_type', 'purchase_items', ['product_type'])
    op.create_index('ix_purchase_items_inventory_id', 'purchase_items', ['inventory_id'])
    op.create_index('ix_purchase_items_asset_id', 'purchase_items', ['asset_id'])
    op.create_index('ix_purchase_items_expense_id', 'purchase_items', ['expense_id'])

    # ============================================================================
    # Sales and quotes
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_number', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=False),
        _money('subtotal'),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        _money('tax_amount'),
        _money('discount_amount'),
        _money('total'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('quote_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_number', name='uq_sales_sale_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_sale_date', 'sales', ['sale_date'])
    op.create_index('ix_sales_quote_id', 'sales', ['quote_id'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        _money('quantity'),
        _money('unit_price'),
        _money('subtotal'),
        sa.CheckConstraint('quantity > 0', name='ck_sale_items_quantity_positive'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_inventory_id', 'sale_items', ['inventory_id'])

    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_number', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('customer_address', sa.Text(), nullable=True),
        sa.Column('quote_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=False),
        _money('subtotal'),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        _money('tax_amount'),
        _money('discount_amount'),
        _money('total'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('terms', sa.Text(), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint(
            "status IN ('draft', 'sent', 'accepted', 'rejected', 'expired', 'converted')",
            name='ck_quotes_status',
        ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quote_number', name='uq_quotes_quote_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_quotes_status', 'quotes', ['status'])
    op.create_index('ix_quotes_sale_id', 'quotes', ['sale_id'])
    op.create_index('ix_quotes_status_valid_until', 'quotes', ['status', 'valid_until'])

    op.create_table(
        'quote_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _money('quantity'),
        _money('unit_price'),
        _money('subtotal'),
        sa.CheckConstraint('quantity > 0', name='ck_quote_items_quantity_positive'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_quote_items_quote_id', 'quote_items', ['quote_id'])
    op.create_index('ix_quote_items_inventory_id', 'quote_items', ['inventory_id'])

    # ============================================================================
    # Accounts receivable
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=False),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('client_phone', sa.String(length=64), nullable=True),
        sa.Column('client_address', sa.Text(), nullable=True),
        sa.Column('issue_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        _money('subtotal'),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        _money('tax_amount'),
        _money('discount_amount'),
        _money('total'),
        _money('balance_due'),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('balance_due >= 0', name='ck_invoices_balance_non_negative'),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'partial', 'paid', 'overdue')",
            name='ck_invoices_payment_status',
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_invoice_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])
    op.create_index('ix_invoices_status_due', 'invoices', ['payment_status', 'due_date'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        _money('quantity'),
        _money('unit_price'),
        _money('total'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table(
        'invoice_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        _money('payment_amount'),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=False),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint('payment_amount > 0', name='ck_invoice_payments_amount_positive'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoice_payments_invoice_id', 'invoice_payments', ['invoice_id'])
    op.create_index('ix_invoice_payments_invoice_date', 'invoice_payments', ['invoice_id', 'payment_date'])

    # ============================================================================
    # Document numbering
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period', sa.String(length=6), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', 'period', name='uq_doc_sequences_type_period'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])


def downgrade():
    op.drop_table('document_sequences')
    op.drop_table('invoice_payments')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('quote_items')
    op.drop_table('quotes')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('purchase_items')
    op.drop_table('expenses')
    op.drop_table('assets')
    op.drop_table('purchases')
    op.drop_table('stock_movements')
    op.drop_table('inventory_items')
    op.drop_table('suppliers')
