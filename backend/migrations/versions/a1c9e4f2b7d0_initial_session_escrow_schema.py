"""initial schema: participants, game sessions, escrow journal, move history, leaderboard

Revision ID: a1c9e4f2b7d0
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c9e4f2b7d0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('address', sa.String(length=42), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_participant_address', 'participant', ['address'], unique=True)

    op.create_table(
        'game_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('stake_amount', sa.String(length=80), nullable=False),
        sa.Column('timeout_interval', sa.Integer(), nullable=False),
        sa.Column('player1', sa.String(length=42), nullable=False),
        sa.Column('player2', sa.String(length=42), nullable=True),
        sa.Column('phase', sa.String(length=32), nullable=False),
        sa.Column('resolution', sa.String(length=32), nullable=True),
        sa.Column('escrow_balance', sa.String(length=80), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('last_activity_at', sa.Float(), nullable=False),
        sa.Column('sequence_number', sa.BigInteger(), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=False),
        sa.Column('turn_holder', sa.String(length=42), nullable=True),
        sa.Column('is_terminal', sa.Boolean(), nullable=False),
        sa.Column('winner', sa.String(length=42), nullable=True),
    )
    op.create_index('ix_game_session_code', 'game_session', ['code'], unique=True)
    op.create_index('ix_game_session_player1', 'game_session', ['player1'])
    op.create_index('ix_game_session_player2', 'game_session', ['player2'])

    op.create_table(
        'transfer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('game_session.id'), nullable=False),
        sa.Column('identity', sa.String(length=42), nullable=False),
        sa.Column('amount', sa.String(length=80), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_transfer_session_id', 'transfer', ['session_id'])

    op.create_table(
        'move_record',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('game_session.id'), nullable=False),
        sa.Column('sequence_number', sa.BigInteger(), nullable=False),
        sa.Column('notation', sa.Text(), nullable=True),
        sa.Column('path', sa.String(length=16), nullable=False),
        sa.Column('submitted_by', sa.String(length=42), nullable=False),
        sa.Column('signer', sa.String(length=42), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.UniqueConstraint('session_id', 'sequence_number', name='uq_move_record_session_sequence'),
    )
    op.create_index('ix_move_record_session_id', 'move_record', ['session_id'])

    op.create_table(
        'leaderboard_entry',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identity', sa.String(length=42), nullable=False),
        sa.Column('wins', sa.Integer(), nullable=False),
        sa.Column('losses', sa.Integer(), nullable=False),
    )
    op.create_index('ix_leaderboard_entry_identity', 'leaderboard_entry', ['identity'], unique=True)


def downgrade():
    op.drop_index('ix_leaderboard_entry_identity', table_name='leaderboard_entry')
    op.drop_table('leaderboard_entry')
    op.drop_index('ix_move_record_session_id', table_name='move_record')
    op.drop_table('move_record')
    op.drop_index('ix_transfer_session_id', table_name='transfer')
    op.drop_table('transfer')
    op.drop_index('ix_game_session_player2', table_name='game_session')
    op.drop_index('ix_game_session_player1', table_name='game_session')
    op.drop_index('ix_game_session_code', table_name='game_session')
    op.drop_table('game_session')
    op.drop_index('ix_participant_address', table_name='participant')
    op.drop_table('participant')
