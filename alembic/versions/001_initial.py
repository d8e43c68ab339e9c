"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create call_recordings table
    op.create_table(
        'call_recordings',
        sa.Column('talkgroup', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('added', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('key', sa.String(1024), nullable=False),
        sa.Column('start_time', sa.Float(), nullable=True),
        sa.Column('end_time', sa.Float(), nullable=True),
        sa.Column('len', sa.Float(), nullable=True),
        sa.Column('freq', sa.BigInteger(), nullable=True),
        sa.Column('emergency', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tone', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tone_index', sa.String(1), nullable=False, server_default='n'),
        sa.Column('tower', sa.String(100), nullable=True),
        sa.Column('sources', sa.JSON(), nullable=True),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.Column('page_sent', sa.Boolean(), nullable=True),
        sa.Column('usage_counted', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    # Create key_translations table
    op.create_table(
        'key_translations',
        sa.Column('key', sa.String(1024), primary_key=True),
        sa.Column('new_key', sa.String(1024), nullable=False),
        sa.Column('expires_at', sa.BigInteger(), nullable=False),
    )

    # Create usage tables
    op.create_table(
        'talkgroup_usage',
        sa.Column('talkgroup', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('in_use', sa.String(1), nullable=False, server_default='N'),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_table(
        'radio_usage',
        sa.Column('radio_id', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('in_use', sa.String(1), nullable=False, server_default='N'),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
    )

    # Create indexes
    op.create_index('ix_call_recordings_key', 'call_recordings', ['key'], unique=True)
    op.create_index('ix_call_recordings_talkgroup_start', 'call_recordings', ['talkgroup', 'start_time'])
    op.create_index('ix_call_recordings_tone_index', 'call_recordings', ['tone_index', 'added'])
    op.create_index('ix_key_translations_expires_at', 'key_translations', ['expires_at'])
    op.create_index('ix_talkgroup_usage_in_use', 'talkgroup_usage', ['in_use'])
    op.create_index('ix_radio_usage_in_use', 'radio_usage', ['in_use'])


def downgrade() -> None:
    op.drop_index('ix_radio_usage_in_use')
    op.drop_index('ix_talkgroup_usage_in_use')
    op.drop_index('ix_key_translations_expires_at')
    op.drop_index('ix_call_recordings_tone_index')
    op.drop_index('ix_call_recordings_talkgroup_start')
    op.drop_index('ix_call_recordings_key')
    op.drop_table('radio_usage')
    op.drop_table('talkgroup_usage')
    op.drop_table('key_translations')
    op.drop_table('call_recordings')
