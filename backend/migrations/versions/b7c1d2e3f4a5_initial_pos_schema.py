"""initial pos schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the catalog and sales ledger tables:
- item / item_barcode: catalog with one-to-many scannable codes
- pos_transaction: sale and reversal documents with derived totals
- refund: one per refunded sale, links sale -> first reversal
- transaction_line: line snapshots, refunded_by -> refund.id
- payment: append-only signed cash movements
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(6, 4), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('pack_size', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_item_is_active', 'item', ['is_active'])
    op.create_index('ix_item_active_created', 'item', ['is_active', 'created_at'])

    op.create_table(
        'item_barcode',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(['item_id'], ['item.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode', name='uq_item_barcode_barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_item_barcode_item_id', 'item_barcode', ['item_id'])

    op.create_table(
        'pos_transaction',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tax', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_pos_transaction_status_created', 'pos_transaction', ['status', 'created_at'])

    op.create_table(
        'refund',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_tx', sa.Integer(), nullable=False),
        sa.Column('refund_tx', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['original_tx'], ['pos_transaction.id'], ),
        sa.ForeignKeyConstraint(['refund_tx'], ['pos_transaction.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('original_tx', name='uq_refund_original_tx'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_refund_refund_tx', 'refund', ['refund_tx'])

    op.create_table(
        'transaction_line',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(6, 4), nullable=False),
        sa.Column('line_total', sa.Numeric(10, 2), nullable=False),
        sa.Column('refunded_by', sa.Integer(), nullable=True),
        sa.CheckConstraint('quantity >= 1', name='ck_transaction_line_quantity_positive'),
        sa.ForeignKeyConstraint(['transaction_id'], ['pos_transaction.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['item_id'], ['item.id'], ),
        sa.ForeignKeyConstraint(['refunded_by'], ['refund.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_line_transaction_id', 'transaction_line', ['transaction_id'])
    op.create_index('ix_transaction_line_item_id', 'transaction_line', ['item_id'])
    op.create_index('ix_transaction_line_refunded_by', 'transaction_line', ['refunded_by'])

    op.create_table(
        'payment',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['pos_transaction.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payment_transaction_id', 'payment', ['transaction_id'])


def downgrade():
    op.drop_index('ix_payment_transaction_id', table_name='payment')
    op.drop_table('payment')
    op.drop_index('ix_transaction_line_refunded_by', table_name='transaction_line')
    op.drop_index('ix_transaction_line_item_id', table_name='transaction_line')
    op.drop_index('ix_transaction_line_transaction_id', table_name='transaction_line')
    op.drop_table('transaction_line')
    op.drop_index('ix_refund_refund_tx', table_name='refund')
    op.drop_table('refund')
    op.drop_index('ix_pos_transaction_status_created', table_name='pos_transaction')
    op.drop_table('pos_transaction')
    op.drop_index('ix_item_barcode_item_id', table_name='item_barcode')
    op.drop_table('item_barcode')
    op.drop_index('ix_item_active_created', table_name='item')
    op.drop_index('ix_item_is_active', table_name='item')
    op.drop_table('item')
