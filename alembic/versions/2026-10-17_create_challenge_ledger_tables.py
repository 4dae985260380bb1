"""Create challenge ledger tables

Revision ID: 7f3a1c9e2b54
Revises: 
Create Date: 2026-10-17 10:12:41.503218

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7f3a1c9e2b54'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'challenges',
        sa.Column('challenge_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('creator', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('target_distance', sa.Float(), nullable=False),
        sa.Column('required_activity_type', sa.String(), nullable=False),
        sa.Column('min_distance', sa.Float(), nullable=True),
        sa.Column('max_distance', sa.Float(), nullable=True),
        sa.Column('distance_tolerance', sa.Float(), nullable=True),
        sa.Column('start_time', sa.BigInteger(), nullable=False),
        sa.Column('end_time', sa.BigInteger(), nullable=False),
        sa.Column('stake_amount', sa.Numeric(78, 0), nullable=False),
        sa.Column('total_staked', sa.Numeric(78, 0), nullable=False),
        sa.Column('participant_count', sa.Integer(), nullable=False),
        sa.Column('finalized', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('challenge_id')
    )
    op.create_index('ix_challenges_creator', 'challenges', ['creator'])

    op.create_table(
        'participants',
        sa.Column('challenge_id', sa.Integer(), nullable=False),
        sa.Column('address', sa.String(), nullable=False),
        sa.Column('staked_amount', sa.Numeric(78, 0), nullable=False),
        sa.Column('has_completed', sa.Boolean(), nullable=False),
        sa.Column('completion_timestamp', sa.BigInteger(), nullable=True),
        sa.Column('completion_distance', sa.BigInteger(), nullable=True),
        sa.Column('completion_duration', sa.BigInteger(), nullable=True),
        sa.Column('source_activity_id', sa.String(), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['challenge_id'], ['challenges.challenge_id']),
        sa.PrimaryKeyConstraint('challenge_id', 'address')
    )

    op.create_table(
        'completion_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('challenge_id', sa.Integer(), nullable=False),
        sa.Column('participant', sa.String(), nullable=False),
        sa.Column('completion_timestamp', sa.BigInteger(), nullable=False),
        sa.Column('distance', sa.BigInteger(), nullable=False),
        sa.Column('duration', sa.BigInteger(), nullable=False),
        sa.Column('source_activity_id', sa.String(), nullable=False),
        sa.Column('emitted_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['challenge_id'], ['challenges.challenge_id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('challenge_id', 'participant', name='uq_completion_participant')
    )
    op.create_index(
        'ix_completion_events_challenge_id', 'completion_events', ['challenge_id']
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_completion_events_challenge_id', table_name='completion_events')
    op.drop_table('completion_events')
    op.drop_table('participants')
    op.drop_index('ix_challenges_creator', table_name='challenges')
    op.drop_table('challenges')
