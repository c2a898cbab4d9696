"""create cup game, score ledger and tournament tables

Revision ID: 5c2a9e7d1b40
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9e7d1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'tournament' not in existing_tables:
        op.create_table(
            'tournament',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )

    if 'tournament_team' not in existing_tables:
        op.create_table(
            'tournament_team',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournament.id'), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('players', sa.Text(), nullable=True),
        )
        op.create_index('ix_tournament_team_tournament_id', 'tournament_team', ['tournament_id'])

    if 'game' not in existing_tables:
        op.create_table(
            'game',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
            sa.Column('winner', sa.Integer(), nullable=True),
            sa.Column('current_team', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('current_player_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('cup_formation', sa.String(length=4), nullable=False, server_default='10'),
            sa.Column('total_cups_per_team', sa.Integer(), nullable=False, server_default='10'),
            sa.Column('team1_name', sa.String(length=64), nullable=True),
            sa.Column('team2_name', sa.String(length=64), nullable=True),
            sa.Column('team1_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('team2_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_part_of_tournament', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournament.id'), nullable=True),
            sa.Column('tournament_match_id', sa.Integer(), nullable=True),
            sa.Column('redemption_team', sa.Integer(), nullable=True),
            sa.Column('redemption_winning_team', sa.Integer(), nullable=True),
            sa.Column('redemption_winning_index', sa.Integer(), nullable=True),
            sa.Column('team1_redemption_used', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('team2_redemption_used', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('island_player_id', sa.Integer(), nullable=True),
            sa.Column('island_calls', sa.Text(), nullable=True),
            sa.Column('team1_last_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('team2_last_index', sa.Integer(), nullable=False, server_default='-1'),
            sa.Column('team1_drink_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('team2_drink_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('team', sa.Integer(), nullable=False),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('is_registered_user', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('user_id', sa.String(length=64), nullable=True),
        )
        op.create_index('ix_player_game_id', 'player', ['game_id'])

    if 'score_event' not in existing_tables:
        op.create_table(
            'score_event',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('player_id', sa.Integer(), nullable=True),
            sa.Column('event_type', sa.String(length=32), nullable=False),
            sa.Column('team_number', sa.Integer(), nullable=False),
            sa.Column('team1_cups', sa.Integer(), nullable=False),
            sa.Column('team2_cups', sa.Integer(), nullable=False),
            sa.Column('team1_score', sa.Integer(), nullable=False),
            sa.Column('team2_score', sa.Integer(), nullable=False),
            sa.Column('event_data', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True),
        )
        op.create_index('ix_score_event_game_id', 'score_event', ['game_id'])

    if 'player_game_stats' not in existing_tables:
        op.create_table(
            'player_game_stats',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
            sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
            sa.Column('team_number', sa.Integer(), nullable=False),
            sa.Column('shots_attempted', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('shots_made', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('cups_hit', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('catches', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('redemption_shots', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('final_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('won', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.UniqueConstraint('game_id', 'player_id', name='uq_stats_game_player'),
        )
        op.create_index('ix_player_game_stats_game_id', 'player_game_stats', ['game_id'])

    if 'tournament_match' not in existing_tables:
        op.create_table(
            'tournament_match',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('tournament_id', sa.Integer(), sa.ForeignKey('tournament.id'), nullable=False),
            sa.Column('round', sa.Integer(), nullable=False),
            sa.Column('match_index', sa.Integer(), nullable=False),
            sa.Column('team_a_id', sa.Integer(), sa.ForeignKey('tournament_team.id'), nullable=True),
            sa.Column('team_b_id', sa.Integer(), sa.ForeignKey('tournament_team.id'), nullable=True),
            sa.Column('winner_team_id', sa.Integer(), sa.ForeignKey('tournament_team.id'), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=True),
        )
        op.create_index('ix_tournament_match_tournament_id', 'tournament_match', ['tournament_id'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    # Children first
    for table in ('tournament_match', 'player_game_stats', 'score_event', 'player',
                  'game', 'tournament_team', 'tournament'):
        if table in existing_tables:
            op.drop_table(table)
