"""add device sync tables

Revision ID: 3c1f0a9d7e52
Revises:
Create Date: 2026-10-12 18:04:11.532108

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0a9d7e52'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('devices',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('name', sa.String(length=256), nullable=False),
    sa.Column('owner', sa.String(length=256), nullable=False),
    sa.Column('icon', sa.String(length=50), nullable=True),
    sa.Column('color', sa.String(length=20), nullable=True),
    sa.Column('naming_template', sa.String(length=512), nullable=True),
    sa.Column('last_sync_at', sa.DateTime(), nullable=True),
    sa.Column('active_session_id', sa.String(length=36), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('owner', 'name', name='uix_device_owner_name')
    )
    op.create_table('songs',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('title', sa.String(length=256), nullable=False),
    sa.Column('label', sa.String(length=256), nullable=False),
    sa.Column('album', sa.String(length=256), nullable=True),
    sa.Column('album_artist', sa.String(length=256), nullable=True),
    sa.Column('artists', sa.JSON(), nullable=False),
    sa.Column('genres', sa.JSON(), nullable=False),
    sa.Column('track', sa.Integer(), nullable=True),
    sa.Column('year', sa.Integer(), nullable=True),
    sa.Column('duration_seconds', sa.Float(), nullable=False),
    sa.Column('explicit', sa.Boolean(), nullable=False),
    sa.Column('lyrics', sa.Text(), nullable=True),
    sa.Column('size', sa.Integer(), nullable=False),
    sa.Column('repository_path', sa.String(length=1024), nullable=False),
    sa.Column('checksum', sa.String(length=88), nullable=False),
    sa.Column('checksum_algorithm', sa.String(length=64), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('modified_at', sa.DateTime(), nullable=False),
    sa.Column('added_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('repository_path')
    )
    op.create_index(op.f('ix_songs_checksum'), 'songs', ['checksum'], unique=False)
    op.create_table('song_devices',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('song_id', sa.String(length=36), nullable=False),
    sa.Column('device_id', sa.String(length=36), nullable=False),
    sa.Column('device_path', sa.String(length=1024), nullable=False),
    sa.Column('pending_action', sa.Enum('Download', 'Upload', 'Remove', name='pendingaction', native_enum=False, length=16), nullable=True),
    sa.Column('last_synced_modified_at', sa.DateTime(), nullable=True),
    sa.Column('added_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['device_id'], ['devices.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['song_id'], ['songs.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('device_id', 'device_path', name='uix_song_device_path')
    )
    op.create_index('ix_song_devices_device_song', 'song_devices', ['device_id', 'song_id'], unique=False)
    op.create_table('sync_sessions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('device_id', sa.String(length=36), nullable=False),
    sa.Column('started_at', sa.DateTime(), nullable=False),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.Column('last_activity_at', sa.DateTime(), nullable=False),
    sa.Column('status', sa.Enum('InProgress', 'Completed', 'Cancelled', name='syncsessionstatus', native_enum=False, length=16), nullable=False),
    sa.Column('is_dry_run', sa.Boolean(), nullable=False),
    sa.Column('cancel_reason', sa.String(length=512), nullable=True),
    sa.ForeignKeyConstraint(['device_id'], ['devices.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sync_sessions_device_id'), 'sync_sessions', ['device_id'], unique=False)
    op.create_index('uix_sync_sessions_device_in_progress', 'sync_sessions', ['device_id'], unique=True, sqlite_where=sa.text("status = 'InProgress'"), postgresql_where=sa.text("status = 'InProgress'"))
    op.create_table('sync_records',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('session_id', sa.String(length=36), nullable=False),
    sa.Column('file_path', sa.String(length=1024), nullable=False),
    sa.Column('song_id', sa.String(length=36), nullable=True),
    sa.Column('action', sa.Enum('Created', 'Updated', 'Skipped', 'Downloaded', 'Removed', 'Error', name='syncrecordaction', native_enum=False, length=16), nullable=False),
    sa.Column('source', sa.Enum('Device', 'Server', name='syncrecordsource', native_enum=False, length=16), nullable=False),
    sa.Column('error_message', sa.String(length=2048), nullable=True),
    sa.Column('reason', sa.String(length=2048), nullable=True),
    sa.Column('processed_at', sa.DateTime(), nullable=False),
    sa.Column('contested_action', sa.Enum('Created', 'Updated', 'Skipped', 'Downloaded', 'Removed', 'Error', name='syncrecordaction', native_enum=False, length=16), nullable=True),
    sa.Column('contested_source', sa.Enum('Device', 'Server', name='syncrecordsource', native_enum=False, length=16), nullable=True),
    sa.ForeignKeyConstraint(['session_id'], ['sync_sessions.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['song_id'], ['songs.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('session_id', 'file_path', name='uix_sync_record_session_path')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('sync_records')
    op.drop_index('uix_sync_sessions_device_in_progress', table_name='sync_sessions', sqlite_where=sa.text("status = 'InProgress'"), postgresql_where=sa.text("status = 'InProgress'"))
    op.drop_index(op.f('ix_sync_sessions_device_id'), table_name='sync_sessions')
    op.drop_table('sync_sessions')
    op.drop_index('ix_song_devices_device_song', table_name='song_devices')
    op.drop_table('song_devices')
    op.drop_index(op.f('ix_songs_checksum'), table_name='songs')
    op.drop_table('songs')
    op.drop_table('devices')
