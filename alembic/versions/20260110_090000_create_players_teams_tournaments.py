"""Create players, teams and tournaments tables

Revision ID: 3c1e9a7d2b40
Revises:
Create Date: 2026-01-10 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic
revision: str = '3c1e9a7d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'players',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('vlr_url', sa.String(length=255), nullable=True),
        sa.Column('team_name', sa.String(length=255), nullable=True),
        sa.Column('country_code', sa.String(length=10), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('acs', sa.Float(), nullable=True),
        sa.Column('kd_ratio', sa.Float(), nullable=True),
        sa.Column('adr', sa.Float(), nullable=True),
        sa.Column('division', sa.String(length=20), nullable=True),
        sa.Column('agent_usage', sa.JSON(), nullable=True),
        sa.Column('playstyle', sa.JSON(), nullable=True),
        sa.Column('tournament_history', sa.JSON(), nullable=True),
        sa.Column('total_earnings', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('earnings_by_year', sa.JSON(), nullable=True),
        sa.Column('tournament_earnings', sa.JSON(), nullable=True),
        sa.Column('earnings_last_updated', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('idx_players_division_rating', 'players', ['division', 'rating'])
    op.create_index('idx_players_updated_at', 'players', ['updated_at'])

    op.create_table(
        'teams',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('abbreviation', sa.String(length=20), nullable=True),
        sa.Column('vlr_url', sa.String(length=255), nullable=True),
        sa.Column('region', sa.String(length=100), nullable=True),
        sa.Column('logo_url', sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'tournaments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('vlr_url', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('prize_pool', sa.String(length=100), nullable=True),
        sa.Column('dates', sa.String(length=100), nullable=True),
        sa.Column('region', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('tournaments')
    op.drop_table('teams')
    op.drop_index('idx_players_updated_at', table_name='players')
    op.drop_index('idx_players_division_rating', table_name='players')
    op.drop_table('players')
