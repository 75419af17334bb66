"""Create product roots, options, values, products and variant bridge tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE = sa.text('archived_on IS NULL')


def _shared_columns() -> list[sa.Column]:
    """Columns a product root shares with the variants materialized from it."""
    return [
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('subtitle', sa.String(500), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('manufacturer', sa.String(200), nullable=False, server_default=''),
        sa.Column('brand', sa.String(200), nullable=False, server_default=''),
        sa.Column('taxable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('product_height', sa.Float(), nullable=False, server_default='0'),
        sa.Column('product_width', sa.Float(), nullable=False, server_default='0'),
        sa.Column('product_length', sa.Float(), nullable=False, server_default='0'),
        sa.Column('package_weight', sa.Float(), nullable=False, server_default='0'),
        sa.Column('package_height', sa.Float(), nullable=False, server_default='0'),
        sa.Column('package_width', sa.Float(), nullable=False, server_default='0'),
        sa.Column('package_length', sa.Float(), nullable=False, server_default='0'),
        sa.Column('quantity_per_package', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('available_on', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_on', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_on', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_on', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create the catalog tables."""
    op.create_table(
        'product_roots',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('sku_prefix', sa.String(100), nullable=False),
        *_shared_columns(),
        *_timestamps(),
    )
    op.create_index('ix_product_roots_archived_on', 'product_roots', ['archived_on'])
    op.create_index(
        'uq_product_roots_active_sku_prefix',
        'product_roots',
        ['sku_prefix'],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )

    op.create_table(
        'product_options',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_root_id', sa.Integer(), sa.ForeignKey('product_roots.id'), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        *_timestamps(),
    )
    # Active option names are unique per root, ignoring case
    op.create_index(
        'uq_product_options_active_name',
        'product_options',
        ['product_root_id', sa.text('lower(name)')],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )

    op.create_table(
        'product_option_values',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_option_id', sa.Integer(), sa.ForeignKey('product_options.id'), nullable=False, index=True),
        sa.Column('value', sa.String(200), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        'uq_product_option_values_active_value',
        'product_option_values',
        ['product_option_id', sa.text('lower(value)')],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_root_id', sa.Integer(), sa.ForeignKey('product_roots.id'), nullable=False, index=True),
        sa.Column('option_summary', sa.String(1000), nullable=False, server_default=''),
        sa.Column('sku', sa.String(500), nullable=False),
        sa.Column('upc', sa.String(50), nullable=False, server_default=''),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('on_sale', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False, server_default='0'),
        *_shared_columns(),
        *_timestamps(),
    )
    op.create_index('ix_products_archived_on', 'products', ['archived_on'])
    op.create_index(
        'uq_products_active_sku',
        'products',
        ['sku'],
        unique=True,
        postgresql_where=ACTIVE,
        sqlite_where=ACTIVE,
    )

    op.create_table(
        'product_variant_bridge',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column(
            'product_option_value_id',
            sa.Integer(),
            sa.ForeignKey('product_option_values.id'),
            nullable=False,
            index=True,
        ),
        sa.Column('created_on', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('archived_on', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop the catalog tables."""
    op.drop_table('product_variant_bridge')
    op.drop_table('products')
    op.drop_table('product_option_values')
    op.drop_table('product_options')
    op.drop_table('product_roots')
