"""create channels and stats tables

Revision ID: 0001_channels_stats
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_channels_stats'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'channels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('platform', sa.Enum('youtube', 'tiktok', name='platform', create_type=True), nullable=False),
        sa.Column('handle', sa.String(255), nullable=False),
        sa.Column('channel_url', sa.String(500), nullable=True),
        sa.Column('internal_id', sa.String(255), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('platform', 'handle', name='uix_channels_platform_handle')
    )

    op.create_table(
        'stats',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('channel_id', sa.Integer(), nullable=False),
        sa.Column('subscribers', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('total_views', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('videos', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('likes', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['channel_id'], ['channels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_stats_channel_recorded', 'stats', ['channel_id', 'recorded_at'])


def downgrade() -> None:
    op.drop_index('ix_stats_channel_recorded', table_name='stats')
    op.drop_table('stats')
    op.drop_table('channels')
    op.execute("DROP TYPE IF EXISTS platform")
