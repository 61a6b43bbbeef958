"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

Tables:
- rooms: game sessions addressed by a join code
- players: room members, display name unique per room
- rounds: one row per round, the highest round_number is current
- submissions: one prompt input per (round, player)
- votes, scores: cleared on rematch
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

ROOM_STATUS = sa.Enum('LOBBY', 'IN_GAME', 'ENDED', name='roomstatus')
ROUND_PHASE = sa.Enum('PROMPT', 'GENERATING', 'REVEAL', 'VOTING', 'RESULTS', name='roundphase')

TABLE_OPTIONS = dict(
    mysql_engine='InnoDB',
    mysql_charset='utf8mb4',
    mysql_collate='utf8mb4_unicode_ci',
)


def upgrade() -> None:
    """Create all tables with indexes and constraints"""

    # Create rooms table
    op.create_table('rooms',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('join_code', sa.String(8), nullable=False),
        sa.Column('status', ROOM_STATUS, nullable=False),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='8'),
        sa.Column('is_family_friendly', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('total_rounds', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('round_seconds', sa.Integer(), nullable=False, server_default='45'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        **TABLE_OPTIONS
    )
    op.create_index('ix_rooms_id', 'rooms', ['id'])
    op.create_index('ix_rooms_join_code', 'rooms', ['join_code'], unique=True)

    # Create players table
    op.create_table('players',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column(
            'display_name',
            sa.String(64).with_variant(mysql.VARCHAR(64, collation='utf8mb4_bin'), 'mysql'),
            nullable=False,
        ),
        sa.Column('is_host', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_ready', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'display_name', name='uq_players_room_display_name'),
        **TABLE_OPTIONS
    )
    op.create_index('ix_players_id', 'players', ['id'])
    op.create_index('ix_players_room_id', 'players', ['room_id'])

    # Create rounds table
    op.create_table('rounds',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('phase', ROUND_PHASE, nullable=False),
        sa.Column('prompt_text', sa.Text(), nullable=False),
        sa.Column('phase_ends_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'round_number', name='uq_rounds_room_round_number'),
        **TABLE_OPTIONS
    )
    op.create_index('ix_rounds_id', 'rounds', ['id'])
    op.create_index('ix_rounds_room_id', 'rounds', ['room_id'])
    # Phase sweeper scans by phase and deadline
    op.create_index('ix_rounds_phase_ends_at', 'rounds', ['phase', 'phase_ends_at'])

    # Create submissions table
    op.create_table('submissions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('round_id', sa.String(36), nullable=False),
        sa.Column('player_id', sa.String(36), nullable=False),
        sa.Column('prompt_input', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.ForeignKeyConstraint(['round_id'], ['rounds.id']),
        sa.ForeignKeyConstraint(['player_id'], ['players.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('round_id', 'player_id', name='uq_submissions_round_player'),
        **TABLE_OPTIONS
    )
    op.create_index('ix_submissions_id', 'submissions', ['id'])
    op.create_index('ix_submissions_room_id', 'submissions', ['room_id'])

    # Create votes table
    op.create_table('votes',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('round_id', sa.String(36), nullable=False),
        sa.Column('voter_id', sa.String(36), nullable=False),
        sa.Column('submission_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.ForeignKeyConstraint(['round_id'], ['rounds.id']),
        sa.ForeignKeyConstraint(['voter_id'], ['players.id']),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id']),
        sa.PrimaryKeyConstraint('id'),
        **TABLE_OPTIONS
    )
    op.create_index('ix_votes_id', 'votes', ['id'])
    op.create_index('ix_votes_room_id', 'votes', ['room_id'])

    # Create scores table
    op.create_table('scores',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('player_id', sa.String(36), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.ForeignKeyConstraint(['player_id'], ['players.id']),
        sa.PrimaryKeyConstraint('id'),
        **TABLE_OPTIONS
    )
    op.create_index('ix_scores_id', 'scores', ['id'])
    op.create_index('ix_scores_room_id', 'scores', ['room_id'])


def downgrade() -> None:
    """Drop all tables"""
    op.drop_table('scores')
    op.drop_table('votes')
    op.drop_table('submissions')
    op.drop_table('rounds')
    op.drop_table('players')
    op.drop_table('rooms')
