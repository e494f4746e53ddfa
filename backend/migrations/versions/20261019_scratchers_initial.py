"""Scratcher ledger schema

Revision ID: 20261019_scratchers
Revises:
Create Date: 2026-10-19

This migration adds:
1. stores, shift_reports, store_messages (portal-owned entities the engine references)
2. scratcher_products (global catalog keyed by price)
3. scratcher_files (receipt photo metadata)
4. scratcher_slots and scratcher_packs (one active pack per slot)
5. scratcher_pack_events (append-only audit trail)
6. scratcher_snapshots, scratcher_snapshot_items (start/end readings)
7. scratcher_shift_calculations (cached reconciliation)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_scratchers'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. PORTAL ENTITIES
    # ==========================================================================
    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stores_code'), ['code'], unique=True)

    op.create_table('shift_reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('employee_user_id', sa.Integer(), nullable=False),
        sa.Column('shift_date', sa.String(length=64), nullable=False),
        sa.Column('is_baseline', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('reported_scratcher_cents', sa.Integer(), nullable=True),
        sa.Column('has_scratcher_discrepancy', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'employee_user_id', 'shift_date', name='uq_shift_reports_store_employee_date'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shift_reports', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shift_reports_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shift_reports_employee_user_id'), ['employee_user_id'], unique=False)
        batch_op.create_index('ix_shift_reports_store_baseline', ['store_id', 'is_baseline'], unique=False)

    op.create_table('store_messages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('sender_user_id', sa.Integer(), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_messages', schema=None) as batch_op:
        batch_op.create_index('ix_store_messages_store_created', ['store_id', 'created_at'], unique=False)

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('scratcher_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_products', schema=None) as batch_op:
        batch_op.create_index('ix_scratcher_products_price_active', ['price_cents', 'is_active'], unique=False)

    # ==========================================================================
    # 3. FILES
    # ==========================================================================
    op.create_table('scratcher_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(length=120), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=True),
        sa.Column('content_type', sa.String(length=120), nullable=True),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('sha256', sa.String(length=64), nullable=False),
        sa.Column('storage_path', sa.String(length=512), nullable=False),
        sa.Column('uploaded_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_files', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_scratcher_files_store_id'), ['store_id'], unique=False)

    # ==========================================================================
    # 4. SLOTS + PACKS (slot.active_pack_id FK added after packs exist)
    # ==========================================================================
    op.create_table('scratcher_slots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('slot_number', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('default_product_id', sa.Integer(), nullable=True),
        sa.Column('active_pack_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('slot_number >= 1', name='ck_scratcher_slots_number_positive'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['default_product_id'], ['scratcher_products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'slot_number', name='uq_scratcher_slots_store_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_slots', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_scratcher_slots_store_id'), ['store_id'], unique=False)

    op.create_table('scratcher_packs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('slot_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('pack_code', sa.String(length=64), nullable=False),
        sa.Column('start_ticket', sa.String(length=32), nullable=False),
        sa.Column('end_ticket', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('activated_by_user_id', sa.Integer(), nullable=False),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('activation_receipt_file_id', sa.Integer(), nullable=False),
        sa.Column('ended_by_user_id', sa.Integer(), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['slot_id'], ['scratcher_slots.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['scratcher_products.id'], ),
        sa.ForeignKeyConstraint(['activation_receipt_file_id'], ['scratcher_files.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_packs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_scratcher_packs_slot_id'), ['slot_id'], unique=False)
        batch_op.create_index('ix_scratcher_packs_store_status', ['store_id', 'status'], unique=False)

    # Partial unique index: at most one ACTIVE pack per slot
    op.create_index(
        'uq_scratcher_packs_one_active_per_slot',
        'scratcher_packs',
        ['slot_id'],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    with op.batch_alter_table('scratcher_slots', schema=None) as batch_op:
        batch_op.create_foreign_key(
            'fk_scratcher_slots_active_pack_id',
            'scratcher_packs',
            ['active_pack_id'],
            ['id'],
        )

    # ==========================================================================
    # 5. PACK EVENTS
    # ==========================================================================
    op.create_table('scratcher_pack_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('file_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['pack_id'], ['scratcher_packs.id'], ),
        sa.ForeignKeyConstraint(['file_id'], ['scratcher_files.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_pack_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_scratcher_pack_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index('ix_scratcher_pack_events_pack_created', ['pack_id', 'created_at'], unique=False)

    # ==========================================================================
    # 6. SNAPSHOTS
    # ==========================================================================
    op.create_table('scratcher_snapshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_report_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('employee_user_id', sa.Integer(), nullable=False),
        sa.Column('snapshot_type', sa.String(length=8), nullable=False),
        sa.Column('cloned_from_snapshot_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['shift_report_id'], ['shift_reports.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['cloned_from_snapshot_id'], ['scratcher_snapshots.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_report_id', 'snapshot_type', name='uq_scratcher_snapshots_shift_type'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_snapshots', schema=None) as batch_op:
        batch_op.create_index('ix_scratcher_snapshots_store_type_created', ['store_id', 'snapshot_type', 'created_at'], unique=False)

    op.create_table('scratcher_snapshot_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('snapshot_id', sa.Integer(), nullable=False),
        sa.Column('slot_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=True),
        sa.Column('ticket_value', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['snapshot_id'], ['scratcher_snapshots.id'], ),
        sa.ForeignKeyConstraint(['slot_id'], ['scratcher_slots.id'], ),
        sa.ForeignKeyConstraint(['pack_id'], ['scratcher_packs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('snapshot_id', 'slot_id', name='uq_scratcher_snapshot_items_snapshot_slot'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_snapshot_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_scratcher_snapshot_items_snapshot_id'), ['snapshot_id'], unique=False)

    # ==========================================================================
    # 7. CALCULATIONS
    # ==========================================================================
    op.create_table('scratcher_shift_calculations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_report_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('employee_user_id', sa.Integer(), nullable=True),
        sa.Column('expected_total_tickets', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expected_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reported_scratcher_cents', sa.Integer(), nullable=True),
        sa.Column('variance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('breakdown_json', sa.JSON(), nullable=False),
        sa.Column('flags_json', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shift_report_id'], ['shift_reports.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_report_id', name='uq_scratcher_calculations_shift'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('scratcher_shift_calculations', schema=None) as batch_op:
        batch_op.create_index('ix_scratcher_calculations_store', ['store_id'], unique=False)


def downgrade():
    op.drop_table('scratcher_shift_calculations')
    op.drop_table('scratcher_snapshot_items')
    op.drop_table('scratcher_snapshots')
    op.drop_table('scratcher_pack_events')
    with op.batch_alter_table('scratcher_slots', schema=None) as batch_op:
        batch_op.drop_constraint('fk_scratcher_slots_active_pack_id', type_='foreignkey')
    op.drop_index('uq_scratcher_packs_one_active_per_slot', table_name='scratcher_packs')
    op.drop_table('scratcher_packs')
    op.drop_table('scratcher_slots')
    op.drop_table('scratcher_files')
    op.drop_table('scratcher_products')
    op.drop_table('store_messages')
    op.drop_table('shift_reports')
    op.drop_table('stores')
