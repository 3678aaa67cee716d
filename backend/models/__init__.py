"""SQLAlchemy ORM models."""

from .device import Device
from .enums import PendingAction, SyncRecordAction, SyncRecordSource, SyncSessionStatus
from .song import Song
from .song_device import SongDevice
from .sync_record import SyncRecord
from .sync_session import SyncSession
from .utils import generate_uuid

__all__ = [
    "Device",
    "PendingAction",
    "Song",
    "SongDevice",
    "SyncRecord",
    "SyncRecordAction",
    "SyncRecordSource",
    "SyncSession",
    "SyncSessionStatus",
    "generate_uuid",
]
