# migrations/versions/001_initial_migration.py

"""Initial migration with all tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

ONE_LIVE_ACTIVATION_PREDICATE = "active = true AND is_template = false"


def upgrade() -> None:
    op.create_table('rooms',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('customer_id', sa.String(), nullable=True),
                    sa.Column('name', sa.String(), nullable=False),
                    sa.Column('code', sa.String(), nullable=False),
                    sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
                    sa.PrimaryKeyConstraint('id'),
                    )
    op.create_index(op.f('ix_rooms_code'), 'rooms', ['code'], unique=True)
    op.create_index(op.f('ix_rooms_customer_id'), 'rooms', ['customer_id'])

    op.create_table('participants',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('room_id', sa.String(), nullable=False),
                    sa.Column('name', sa.String(), nullable=False),
                    sa.Column('score', sa.Float(), server_default='0', nullable=False),
                    sa.Column('total_points', sa.Float(), server_default='0', nullable=False),
                    sa.Column('correct_answers', sa.Integer(), server_default='0', nullable=False),
                    sa.Column('total_answers', sa.Integer(), server_default='0', nullable=False),
                    sa.Column('average_response_ms', sa.Float(), server_default='0', nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
                    sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    )
    op.create_index(op.f('ix_participants_room_id'), 'participants', ['room_id'])

    op.create_table('activations',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('room_id', sa.String(), nullable=True),
                    sa.Column('parent_id', sa.String(), nullable=True),
                    sa.Column('kind', sa.String(), nullable=False),
                    sa.Column('is_template', sa.Boolean(), server_default='true', nullable=False),
                    sa.Column('active', sa.Boolean(), server_default='false', nullable=False),
                    sa.Column('poll_state', sa.String(), nullable=True),
                    sa.Column('title', sa.String(), nullable=True),
                    sa.Column('description', sa.Text(), nullable=True),
                    sa.Column('question', sa.Text(), nullable=True),
                    sa.Column('options', sa.JSON(), server_default='[]', nullable=False),
                    sa.Column('correct_answer', sa.String(), nullable=True),
                    sa.Column('exact_answer', sa.String(), nullable=True),
                    sa.Column('time_limit', sa.Integer(), server_default='0', nullable=False),
                    sa.Column('timer_started_at', sa.DateTime(timezone=True), nullable=True),
                    sa.Column('media_type', sa.String(), server_default='none', nullable=False),
                    sa.Column('media_url', sa.String(), nullable=True),
                    sa.Column('poll_display_type', sa.String(), nullable=True),
                    sa.Column('poll_result_format', sa.String(), nullable=True),
                    sa.Column('option_colors', sa.JSON(), nullable=True),
                    sa.Column('show_answers', sa.Boolean(), server_default='true', nullable=False),
                    sa.Column('history', sa.JSON(), server_default='[]', nullable=False),
                    sa.Column('last_activated', sa.DateTime(timezone=True), nullable=True),
                    sa.Column('last_deactivated', sa.DateTime(timezone=True), nullable=True),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
                    sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['parent_id'], ['activations.id'], ondelete='SET NULL'),
                    sa.PrimaryKeyConstraint('id'),
                    )
    op.create_index(op.f('ix_activations_room_id'), 'activations', ['room_id'])
    op.create_index('ix_activations_room_template', 'activations', ['room_id', 'is_template'])
    # at most one armed live activation per room
    op.create_index('uq_activations_one_active_per_room', 'activations', ['room_id'], unique=True,
                    postgresql_where=sa.text(ONE_LIVE_ACTIVATION_PREDICATE))

    op.create_table('game_sessions',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('room_id', sa.String(), nullable=False),
                    sa.Column('current_activation_id', sa.String(), nullable=True),
                    sa.Column('is_live', sa.Boolean(), server_default='true', nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
                    sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['current_activation_id'], ['activations.id'], ondelete='SET NULL'),
                    sa.PrimaryKeyConstraint('id'),
                    )
    op.create_index(op.f('ix_game_sessions_room_id'), 'game_sessions', ['room_id'], unique=True)
    op.create_index(op.f('ix_game_sessions_current_activation_id'), 'game_sessions',
                    ['current_activation_id'])

    op.create_table('poll_votes',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('activation_id', sa.String(), nullable=False),
                    sa.Column('participant_id', sa.String(), nullable=False),
                    sa.Column('option_id', sa.String(), nullable=True),
                    sa.Column('option_text', sa.String(), nullable=True),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.ForeignKeyConstraint(['activation_id'], ['activations.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('activation_id', 'participant_id',
                                        name='uq_poll_votes_activation_participant'),
                    )
    op.create_index(op.f('ix_poll_votes_activation_id'), 'poll_votes', ['activation_id'])
    op.create_index(op.f('ix_poll_votes_participant_id'), 'poll_votes', ['participant_id'])

    # no foreign keys: a failure record must outlive a broken or deleted poll
    op.create_table('vote_write_failures',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('room_id', sa.String(), nullable=False),
                    sa.Column('activation_id', sa.String(), nullable=False),
                    sa.Column('participant_id', sa.String(), nullable=False),
                    sa.Column('option_id', sa.String(), nullable=True),
                    sa.Column('option_text', sa.String(), nullable=True),
                    sa.Column('error_message', sa.Text(), nullable=True),
                    sa.Column('retry_count', sa.Integer(), server_default='0', nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.Column('last_retry', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=False),
                    sa.PrimaryKeyConstraint('id'),
                    )
    op.create_index(op.f('ix_vote_write_failures_room_id'), 'vote_write_failures', ['room_id'])
    op.create_index('ix_vote_write_failures_retry', 'vote_write_failures', ['retry_count', 'last_retry'])
    op.create_index('ix_vote_write_failures_activation_participant', 'vote_write_failures',
                    ['activation_id', 'participant_id'])

    op.create_table('answers',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('activation_id', sa.String(), nullable=False),
                    sa.Column('participant_id', sa.String(), nullable=False),
                    sa.Column('answer', sa.String(), nullable=False),
                    sa.Column('is_correct', sa.Boolean(), server_default='false', nullable=False),
                    sa.Column('points', sa.Integer(), server_default='0', nullable=False),
                    sa.Column('time_taken_ms', sa.Integer(), server_default='0', nullable=False),
                    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'),
                              nullable=True),
                    sa.ForeignKeyConstraint(['activation_id'], ['activations.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('activation_id', 'participant_id',
                                        name='uq_answers_activation_participant'),
                    )
    op.create_index(op.f('ix_answers_activation_id'), 'answers', ['activation_id'])
    op.create_index(op.f('ix_answers_participant_id'), 'answers', ['participant_id'])


def downgrade() -> None:
    op.drop_table('answers')
    op.drop_table('vote_write_failures')
    op.drop_table('poll_votes')
    op.drop_table('game_sessions')
    op.drop_table('activations')
    op.drop_table('participants')
    op.drop_table('rooms')
