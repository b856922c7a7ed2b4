"""Initial warehouse schema: identity, catalog, sales history, deliveries, notifications

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17

Creates:
1. users, session_tokens, rate_limit_records
2. categories, products, product_history
3. to_ship, shipment_notifications, archived_deliveries, drivers
4. notifications (per-user inbox)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. IDENTITY
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('banned', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('ban_reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)
        batch_op.create_index('ix_users_role', ['role'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index('ix_session_tokens_user_revoked', ['user_id', 'is_revoked'], unique=False)

    op.create_table('rate_limit_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_request_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('rate_limit_records', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_rate_limit_records_key'), ['key'], unique=True)

    # ==========================================================================
    # 2. CATALOG AND SALES HISTORY
    # ==========================================================================
    op.create_table('categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_by_name', sa.String(length=255), nullable=False),
        sa.Column('created_by_role', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image', sa.String(length=512), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_by_name', sa.String(length=255), nullable=False),
        sa.Column('created_by_role', sa.String(length=16), nullable=False),
        sa.Column('updated_by_name', sa.String(length=255), nullable=True),
        sa.Column('updated_by_role', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_non_negative'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_sku'), ['sku'], unique=True)
        batch_op.create_index('ix_products_category', ['category'], unique=False)
        batch_op.create_index('ix_products_status', ['status'], unique=False)

    op.create_table('product_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('quantity_sold', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sold_by_name', sa.String(length=255), nullable=True),
        sa.Column('sold_by_role', sa.String(length=16), nullable=True),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('sale_type', sa.String(length=32), nullable=False, server_default='manual_deduction'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity_sold >= 1', name='ck_product_history_quantity'),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_product_history_unit_price'),
        sa.CheckConstraint('total_amount_cents >= 0', name='ck_product_history_total'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_history', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_history_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_product_history_product_sku'), ['product_sku'], unique=False)
        batch_op.create_index('ix_product_history_product_date', ['product_id', 'sale_date'], unique=False)
        batch_op.create_index('ix_product_history_sale_date', ['sale_date'], unique=False)

    # ==========================================================================
    # 3. DELIVERIES
    # ==========================================================================
    op.create_table('to_ship',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('product_image', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('delivery_personnel_id', sa.Integer(), nullable=False),
        sa.Column('delivery_personnel_full_name', sa.String(length=255), nullable=False),
        sa.Column('delivery_personnel_email', sa.String(length=255), nullable=False),
        sa.Column('delivery_personnel_fcm_token', sa.String(length=512), nullable=True),
        sa.Column('destination', sa.String(length=512), nullable=False),
        sa.Column('destination_lat', sa.Float(), nullable=True),
        sa.Column('destination_lng', sa.Float(), nullable=True),
        sa.Column('note', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('marked_by_user_id', sa.Integer(), nullable=True),
        sa.Column('marked_by_name', sa.String(length=255), nullable=False),
        sa.Column('marked_by_email', sa.String(length=255), nullable=False),
        sa.Column('marked_by_role', sa.String(length=16), nullable=False),
        sa.Column('marked_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_to_ship_quantity'),
        sa.ForeignKeyConstraint(['delivery_personnel_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['marked_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('to_ship', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_to_ship_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_to_ship_delivery_personnel_id'), ['delivery_personnel_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_to_ship_status'), ['status'], unique=False)
        batch_op.create_index('ix_to_ship_driver_status', ['delivery_personnel_email', 'status'], unique=False)
        batch_op.create_index('ix_to_ship_completed_at', ['completed_at'], unique=False)

    op.create_table('shipment_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('to_ship_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['to_ship_id'], ['to_ship.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shipment_notifications', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shipment_notifications_to_ship_id'), ['to_ship_id'], unique=False)

    op.create_table('archived_deliveries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('product_image', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('delivery_personnel_id', sa.Integer(), nullable=False),
        sa.Column('delivery_personnel_full_name', sa.String(length=255), nullable=False),
        sa.Column('delivery_personnel_email', sa.String(length=255), nullable=False),
        sa.Column('destination', sa.String(length=512), nullable=False),
        sa.Column('destination_lat', sa.Float(), nullable=True),
        sa.Column('destination_lng', sa.Float(), nullable=True),
        sa.Column('note', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('assigned_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('marked_by_name', sa.String(length=255), nullable=False),
        sa.Column('marked_by_email', sa.String(length=255), nullable=False),
        sa.Column('marked_by_role', sa.String(length=16), nullable=False),
        sa.Column('closed_by_name', sa.String(length=255), nullable=True),
        sa.Column('closed_by_email', sa.String(length=255), nullable=True),
        sa.Column('closed_by_role', sa.String(length=16), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('original_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('archived_deliveries', schema=None) as batch_op:
        batch_op.create_index('ix_archived_deliveries_driver_archived', ['delivery_personnel_email', 'archived_at'], unique=False)

    op.create_table('drivers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('fcm_token', sa.String(length=512), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 4. USER INBOX
    # ==========================================================================
    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data_json', sa.Text(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('notifications', schema=None) as batch_op:
        batch_op.create_index('ix_notifications_user_read', ['user_id', 'read'], unique=False)
        batch_op.create_index('ix_notifications_user_created', ['user_id', 'created_at'], unique=False)


def downgrade():
    # Drop tables in reverse order of creation (respect foreign keys)
    op.drop_table('notifications')
    op.drop_table('drivers')
    op.drop_table('archived_deliveries')
    op.drop_table('shipment_notifications')
    op.drop_table('to_ship')
    op.drop_table('product_history')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('rate_limit_records')
    op.drop_table('session_tokens')
    op.drop_table('users')
