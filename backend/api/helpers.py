"""Shared API helpers for route handlers.

Collaborator providers (codec, storage, naming) are FastAPI dependencies so
tests can swap them through ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends

from config import settings
from integrations.catalog_protocol import AudioStorage, MetadataCodec
from integrations.file_storage import LocalAudioStorage
from integrations.mutagen_codec import MutagenMetadataCodec
from models import Device, SongDevice, SyncSession
from services.naming_service import NamingService
from services.record_ledger_service import ActionCounts
from services.song_service import SongService
from services.upload_service import UploadService


def get_metadata_codec() -> MetadataCodec:
    """Tag codec used for uploads and downloads."""
    return MutagenMetadataCodec()


@lru_cache
def get_audio_storage() -> AudioStorage:
    """Byte store for catalog audio (cached)."""
    return LocalAudioStorage(settings.MUSIC_REPOSITORY_PATH)


@lru_cache
def get_naming_service() -> NamingService:
    """Naming resolver; its compiled-template cache lives with the instance."""
    return NamingService()


def get_upload_service(
    codec: MetadataCodec = Depends(get_metadata_codec),
    storage: AudioStorage = Depends(get_audio_storage),
    naming: NamingService = Depends(get_naming_service),
) -> UploadService:
    """UploadService wired to the configured collaborators."""
    return UploadService(codec, storage, naming)


def get_song_service(
    codec: MetadataCodec = Depends(get_metadata_codec),
    storage: AudioStorage = Depends(get_audio_storage),
) -> SongService:
    """SongService wired to the configured collaborators."""
    return SongService(codec, storage)


def device_response_dict(device: Device, song_count: int) -> dict:
    """Build a DeviceResponse-compatible dict from a Device.

    Args:
        device: A Device instance.
        song_count: Number of songs mapped to the device.

    Returns:
        Dict matching the DeviceResponse schema.
    """
    return {
        "id": device.id,
        "name": device.name,
        "owner": device.owner,
        "icon": device.icon,
        "color": device.color,
        "naming_template": device.naming_template,
        "last_sync_at": device.last_sync_at,
        "active_session_id": device.active_session_id,
        "song_count": song_count,
        "created_at": device.created_at,
        "updated_at": device.updated_at,
    }


def counts_dict(counts: ActionCounts) -> dict:
    """Per-action counts as SyncCounts fields."""
    return {
        "created_count": counts.created_count,
        "updated_count": counts.updated_count,
        "skipped_count": counts.skipped_count,
        "downloaded_count": counts.downloaded_count,
        "removed_count": counts.removed_count,
        "error_count": counts.error_count,
    }


def session_response_dict(session: SyncSession, counts: ActionCounts) -> dict:
    """Build a SyncSessionResponse-compatible dict from a SyncSession and its counts."""
    return {
        "id": session.id,
        "device_id": session.device_id,
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "last_activity_at": session.last_activity_at,
        "status": session.status,
        "is_dry_run": session.is_dry_run,
        "cancel_reason": session.cancel_reason,
        **counts_dict(counts),
    }


def device_song_response_dict(mapping: SongDevice) -> dict:
    """Build a DeviceSongResponse-compatible dict from a SongDevice with its song loaded."""
    return {
        "song_id": mapping.song_id,
        "title": mapping.song.title,
        "label": mapping.song.label,
        "device_path": mapping.device_path,
        "pending_action": mapping.pending_action,
        "last_synced_modified_at": mapping.last_synced_modified_at,
    }
