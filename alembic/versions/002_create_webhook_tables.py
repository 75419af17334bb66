"""Create webhooks and webhook_execution_logs tables.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create webhooks and webhook_execution_logs tables."""
    op.create_table(
        'webhooks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('content_type', sa.String(100), nullable=False, server_default='application/json'),
        sa.Column('created_on', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_on', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_on', sa.DateTime(timezone=True), nullable=True),
    )

    # One row per delivery attempt
    op.create_table(
        'webhook_execution_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('webhook_id', sa.Integer(), sa.ForeignKey('webhooks.id'), nullable=False, index=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('status_code', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('succeeded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('executed_on', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop webhooks and webhook_execution_logs tables."""
    op.drop_table('webhook_execution_logs')
    op.drop_table('webhooks')
