"""Initial dealer portal schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. admins (back-office accounts, super_admin bootstrap via CLI)
2. dealers (registration, OTP verification flags, review, reset tokens)
3. otp_codes (one live code per owner + purpose)
4. products (catalog, prices in paise)
5. enquiries (dealer/product snapshots, disposition status)
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
    # 1. ADMINS
    # ==========================================================================
    op.create_table('admins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by_admin_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'super_admin')", name='ck_admins_role'),
        sa.ForeignKeyConstraint(['created_by_admin_id'], ['admins.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_admins_username'),
        sa.UniqueConstraint('email', name='uq_admins_email'),
        sqlite_autoincrement=True,
    )

    # ==========================================================================
    # 2. DEALERS
    # ==========================================================================
    op.create_table('dealers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(length=100), nullable=False),
        sa.Column('contact_person_name', sa.String(length=50), nullable=False),
        sa.Column('mobile', sa.String(length=10), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=200), nullable=False),
        sa.Column('pin_code', sa.String(length=6), nullable=True),
        sa.Column('gst', sa.String(length=15), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('account_status', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_mobile_verified', sa.Boolean(), nullable=False),
        sa.Column('is_email_verified', sa.Boolean(), nullable=False),
        sa.Column('is_first_time_user', sa.Boolean(), nullable=False),
        sa.Column('reset_token_hash', sa.String(length=64), nullable=True),
        sa.Column('reset_token_expires_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by_admin_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "account_status IN ('pending', 'approved', 'rejected')",
            name='ck_dealers_account_status',
        ),
        sa.ForeignKeyConstraint(['reviewed_by_admin_id'], ['admins.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mobile', name='uq_dealers_mobile'),
        sa.UniqueConstraint('email', name='uq_dealers_email'),
        sa.UniqueConstraint('gst', name='uq_dealers_gst'),
        sa.UniqueConstraint('reset_token_hash', name='uq_dealers_reset_token_hash'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_dealers_status_created', 'dealers', ['account_status', 'created_at'])

    # ==========================================================================
    # 3. OTP CODES
    # ==========================================================================
    op.create_table('otp_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_kind', sa.String(length=16), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('purpose', sa.String(length=32), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('target', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_kind', 'owner_id', 'purpose', name='uq_otp_codes_owner_purpose'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_otp_codes_expires_at', 'otp_codes', ['expires_at'])

    # ==========================================================================
    # 4. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=32), nullable=False),
        sa.Column('product_name', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('colors', sa.JSON(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('specifications', sa.JSON(), nullable=False),
        sa.Column('warranty', sa.String(length=64), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by_admin_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_non_negative'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.ForeignKeyConstraint(['created_by_admin_id'], ['admins.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_code', name='uq_products_product_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_category_active', 'products', ['category', 'is_active'])

    # ==========================================================================
    # 5. ENQUIRIES
    # ==========================================================================
    op.create_table('enquiries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('dealer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=32), nullable=False),
        sa.Column('product_name', sa.String(length=100), nullable=False),
        sa.Column('product_color', sa.String(length=64), nullable=True),
        sa.Column('dealer_company_name', sa.String(length=100), nullable=False),
        sa.Column('dealer_contact_person', sa.String(length=50), nullable=False),
        sa.Column('dealer_mobile', sa.String(length=10), nullable=False),
        sa.Column('dealer_email', sa.String(length=255), nullable=False),
        sa.Column('dealer_gst', sa.String(length=15), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('remarks', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('admin_notes', sa.String(length=500), nullable=True),
        sa.Column('processed_by_admin_id', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('confirmation_sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'under_process', 'approved', 'rejected', 'closed')",
            name='ck_enquiries_status',
        ),
        sa.CheckConstraint('quantity > 0', name='ck_enquiries_quantity_positive'),
        sa.CheckConstraint('price_cents >= 0', name='ck_enquiries_price_non_negative'),
        sa.CheckConstraint('total_amount_cents = quantity * price_cents', name='ck_enquiries_total'),
        sa.ForeignKeyConstraint(['dealer_id'], ['dealers.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['processed_by_admin_id'], ['admins.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_enquiries_dealer_created', 'enquiries', ['dealer_id', 'created_at'])
    op.create_index('ix_enquiries_status_created', 'enquiries', ['status', 'created_at'])


def downgrade():
    op.drop_index('ix_enquiries_status_created', table_name='enquiries')
    op.drop_index('ix_enquiries_dealer_created', table_name='enquiries')
    op.drop_table('enquiries')
    op.drop_index('ix_products_category_active', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_otp_codes_expires_at', table_name='otp_codes')
    op.drop_table('otp_codes')
    op.drop_index('ix_dealers_status_created', table_name='dealers')
    op.drop_table('dealers')
    op.drop_table('admins')
