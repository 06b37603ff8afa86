"""create game, player, prompt, submission, vote and suggestion tables

Revision ID: 5c2d9e7a1b34
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d9e7a1b34'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('room_code', sa.String(length=4), nullable=True),
            sa.Column('ruleset', sa.String(length=32), nullable=False),
            sa.Column('status', sa.String(length=32), nullable=False),
            sa.Column('current_round', sa.Integer(), nullable=False),
            sa.Column('max_rounds', sa.Integer(), nullable=True),
            sa.Column('current_prompt_id', sa.Integer(), nullable=True),
            sa.Column('round_status', sa.String(length=16), nullable=True),
            sa.Column('used_prompt_indices', sa.Text(), nullable=True),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.Column('last_activity', sa.Float(), nullable=False),
            sa.Column('finished_at', sa.Float(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_game_room_code', 'game', ['room_code'], unique=True)

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('is_vip', sa.Boolean(), nullable=False),
            sa.Column('is_bot', sa.Boolean(), nullable=False),
            sa.Column('session_token_hash', sa.String(length=128), nullable=True),
            sa.Column('hp', sa.Integer(), nullable=False),
            sa.Column('max_hp', sa.Integer(), nullable=False),
            sa.Column('knocked_out', sa.Boolean(), nullable=False),
            sa.Column('role', sa.String(length=16), nullable=False),
            sa.Column('team_id', sa.Integer(), nullable=True),
            sa.Column('win_streak', sa.Integer(), nullable=False),
            sa.Column('special_bar', sa.Float(), nullable=False),
            sa.Column('joined_at', sa.Float(), nullable=False),
            sa.ForeignKeyConstraint(['game_id'], ['game.id']),
            sa.ForeignKeyConstraint(['team_id'], ['player.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_player_game_id', 'player', ['game_id'])

    if 'prompt' not in existing_tables:
        op.create_table(
            'prompt',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('assigned_to', sa.Text(), nullable=False),
            sa.Column('prompt_type', sa.String(length=16), nullable=True),
            sa.ForeignKeyConstraint(['game_id'], ['game.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_prompt_game_id', 'prompt', ['game_id'])
        # game <-> prompt is circular, so the game side is added once both exist
        with op.batch_alter_table('game') as batch_op:
            batch_op.create_foreign_key('fk_game_current_prompt_id', 'prompt', ['current_prompt_id'], ['id'])

    if 'submission' not in existing_tables:
        op.create_table(
            'submission',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('prompt_id', sa.Integer(), nullable=False),
            sa.Column('player_id', sa.Integer(), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('submitted_at', sa.Float(), nullable=True),
            sa.Column('attack_type', sa.String(length=16), nullable=True),
            sa.ForeignKeyConstraint(['prompt_id'], ['prompt.id']),
            sa.ForeignKeyConstraint(['player_id'], ['player.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('prompt_id', 'player_id', name='uq_submission_prompt_player'),
        )
        op.create_index('ix_submission_prompt_id', 'submission', ['prompt_id'])

    if 'vote' not in existing_tables:
        op.create_table(
            'vote',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('prompt_id', sa.Integer(), nullable=False),
            sa.Column('player_id', sa.Integer(), nullable=False),
            sa.Column('submission_id', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['prompt_id'], ['prompt.id']),
            sa.ForeignKeyConstraint(['player_id'], ['player.id']),
            sa.ForeignKeyConstraint(['submission_id'], ['submission.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('prompt_id', 'player_id', name='uq_vote_prompt_player'),
        )
        op.create_index('ix_vote_prompt_id', 'vote', ['prompt_id'])

    if 'suggestion' not in existing_tables:
        op.create_table(
            'suggestion',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('game_id', sa.Integer(), nullable=False),
            sa.Column('prompt_id', sa.Integer(), nullable=False),
            sa.Column('sender_id', sa.Integer(), nullable=False),
            sa.Column('target_id', sa.Integer(), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.ForeignKeyConstraint(['game_id'], ['game.id']),
            sa.ForeignKeyConstraint(['prompt_id'], ['prompt.id']),
            sa.ForeignKeyConstraint(['sender_id'], ['player.id']),
            sa.ForeignKeyConstraint(['target_id'], ['player.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_suggestion_game_id', 'suggestion', ['game_id'])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    for table in ('suggestion', 'vote', 'submission'):
        if table in existing_tables:
            op.drop_table(table)
    if 'game' in existing_tables:
        with op.batch_alter_table('game') as batch_op:
            batch_op.drop_constraint('fk_game_current_prompt_id', type_='foreignkey')
    for table in ('prompt', 'player', 'game'):
        if table in existing_tables:
            op.drop_table(table)
