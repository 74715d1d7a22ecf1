"""create user, live_match and saved_match tables

Revision ID: 5c2d9e71a0b4
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d9e71a0b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('nickname', sa.String(length=64), nullable=True),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'live_match' not in existing_tables:
        op.create_table(
            'live_match',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('room_code', sa.String(length=16), nullable=False),
            sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
            sa.Column('match_setup', sa.Text(), nullable=False),
            sa.Column('participants', sa.Text(), nullable=True),
            sa.Column('user_slot_map', sa.Text(), nullable=True),
            sa.Column('player_stats', sa.Text(), nullable=True),
            sa.Column('team_penalties', sa.Text(), nullable=True),
            sa.Column('match_start_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('winner_team', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        )
        op.create_index('ix_live_match_room_code', 'live_match', ['room_code'], unique=True)

    if 'saved_match' not in existing_tables:
        op.create_table(
            'saved_match',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('room_code', sa.String(length=16), nullable=True),
            sa.Column('match_setup', sa.Text(), nullable=False),
            sa.Column('player_stats', sa.Text(), nullable=False),
            sa.Column('team_penalties', sa.Text(), nullable=False),
            sa.Column('user_slot_map', sa.Text(), nullable=True),
            sa.Column('match_start_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('winner_team', sa.Integer(), nullable=True),
            sa.Column('match_duration', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index('ix_saved_match_user_id', 'saved_match', ['user_id'])


def downgrade():
    op.drop_index('ix_saved_match_user_id', table_name='saved_match')
    op.drop_table('saved_match')
    op.drop_index('ix_live_match_room_code', table_name='live_match')
    op.drop_table('live_match')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
