"""Pending action service - the per-(device, song) queue of desired device changes.

``SongDevice.pending_action`` is the queue. It is set when the catalog
wants a device's copy to change (download, upload or removal) and cleared
only by an acknowledgment from the device. Devices poll for it, since they
are not always connected.

Mapping rows are versioned. Every mutation here runs in a retry loop that
re-reads the row and re-applies the change when a concurrent writer bumped
the version first, and commits on success.
"""

import logging
import posixpath
from datetime import datetime
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from integrations.catalog_protocol import SongMetadata
from models import Device, PendingAction, Song, SongDevice, SyncRecord, SyncRecordAction, SyncRecordSource
from models.utils import as_naive_utc
from services.exceptions import ConflictError, NotFoundError
from services.naming_service import NamingService, extension_for

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _get_device(db: Session, device_id: str) -> Device:
    device = db.get(Device, device_id)
    if device is None:
        raise NotFoundError(f"Device {device_id} not found")
    return device


def _get_song(db: Session, song_id: str) -> Song:
    song = db.get(Song, song_id)
    if song is None:
        raise NotFoundError(f"Song {song_id} not found")
    return song


def _find_mapping(db: Session, device_id: str, song_id: str) -> SongDevice | None:
    return (
        db.query(SongDevice)
        .filter(SongDevice.device_id == device_id, SongDevice.song_id == song_id)
        .order_by(SongDevice.added_at)
        .first()
    )


def _other_copies(db: Session, mapping: SongDevice) -> list[SongDevice]:
    """Further mappings of the same song on the same device, at other paths."""
    return (
        db.query(SongDevice)
        .filter(
            SongDevice.device_id == mapping.device_id,
            SongDevice.song_id == mapping.song_id,
            SongDevice.id != mapping.id,
        )
        .all()
    )


def unique_device_path(db: Session, device_id: str, path: str, song_id: str) -> str:
    """Return ``path``, or ``"name (2).ext"`` style variants when another song holds it."""
    stem, ext = posixpath.splitext(path)
    candidate = path
    suffix = 2
    while True:
        holder = (
            db.query(SongDevice)
            .filter(SongDevice.device_id == device_id, SongDevice.device_path == candidate)
            .first()
        )
        if holder is None or holder.song_id == song_id:
            return candidate
        candidate = f"{stem} ({suffix}){ext}"
        suffix += 1


def reported_in_active_session(
    db: Session, device: Device, path: str, action: SyncRecordAction
) -> bool:
    """True if the device already reported ``action`` for ``path`` in its open session."""
    if device.active_session_id is None:
        return False
    return (
        db.query(SyncRecord.id)
        .filter(
            SyncRecord.session_id == device.active_session_id,
            SyncRecord.file_path == path,
            SyncRecord.source == SyncRecordSource.DEVICE,
            SyncRecord.action == action,
        )
        .first()
        is not None
    )


class PendingActionService:
    """Service for setting, listing and acknowledging pending device actions."""

    @staticmethod
    def _mutate_mapping(
        db: Session,
        device_id: str,
        song_id: str,
        mutate: Callable[[SongDevice | None], T],
    ) -> T:
        """Apply ``mutate`` to the (device, song) mapping and commit.

        ``mutate`` receives the freshly loaded mapping (or None) and may
        change, add or delete rows. On a version conflict or a concurrent
        insert the transaction is rolled back and ``mutate`` runs again.

        Raises:
            ConflictError: If every attempt lost to a concurrent writer.
        """
        attempts = settings.MAPPING_UPDATE_RETRIES + 1
        for attempt in range(1, attempts + 1):
            mapping = _find_mapping(db, device_id, song_id)
            result = mutate(mapping)
            try:
                db.commit()
            except (StaleDataError, DBIntegrityError) as e:
                db.rollback()
                logger.warning(
                    "Concurrent update of song %s on device %s (attempt %d/%d): %s",
                    song_id,
                    device_id,
                    attempt,
                    attempts,
                    type(e).__name__,
                )
                continue
            return result

        raise ConflictError(
            f"Mapping of song {song_id} on device {device_id} kept changing; retry later"
        )

    @staticmethod
    def get_pending_actions(db: Session, device_id: str) -> list[SongDevice]:
        """All mappings of a device with a pending action, ordered by path.

        Raises:
            NotFoundError: If the device does not exist.
        """
        _get_device(db, device_id)
        return (
            db.query(SongDevice)
            .filter(SongDevice.device_id == device_id, SongDevice.pending_action.isnot(None))
            .order_by(SongDevice.device_path)
            .all()
        )

    @staticmethod
    def acknowledge(
        db: Session,
        device_id: str,
        song_id: str,
        modified_at: datetime | None = None,
    ) -> PendingAction | None:
        """Retire the pending action of a song on a device.

        Idempotent: when nothing is pending this is a no-op. Acknowledging a
        removal deletes the mapping, since the song is no longer on the
        device. Copies of the song at other paths with the same action
        pending are cleared with it. ``modified_at`` records the device file's timestamp after a
        download so the next sync check treats it as unchanged.

        Returns:
            The action that was cleared, or None if nothing was pending.

        Raises:
            NotFoundError: If the device or song does not exist.
        """
        _get_device(db, device_id)
        _get_song(db, song_id)

        def clear(mapping: SongDevice | None) -> PendingAction | None:
            if mapping is None or mapping.pending_action is None:
                return None
            action = mapping.pending_action
            copies = [c for c in _other_copies(db, mapping) if c.pending_action == action]
            for target in [mapping, *copies]:
                if action == PendingAction.REMOVE:
                    db.delete(target)
                else:
                    target.pending_action = None
                    if modified_at is not None:
                        target.last_synced_modified_at = as_naive_utc(modified_at)
            return action

        cleared = PendingActionService._mutate_mapping(db, device_id, song_id, clear)
        if cleared is None:
            logger.debug("Nothing pending for song %s on device %s", song_id, device_id)
        else:
            logger.info(
                "Acknowledged %s of song %s on device %s", cleared.value, song_id, device_id
            )
        return cleared

    @staticmethod
    def add_song_to_device(
        db: Session,
        device_id: str,
        song_id: str,
        naming: NamingService | None = None,
    ) -> SongDevice:
        """Put a song on a device.

        Creates a mapping at the naming resolver's path with a Download
        pending, or revives a mapping that was pending removal. No action is
        queued when the device already reported downloading that path in
        its open session.

        Raises:
            NotFoundError: If the device or song does not exist.
        """
        device = _get_device(db, device_id)
        song = _get_song(db, song_id)
        naming = naming or NamingService()
        target = naming.resolve(
            SongMetadata.from_song(song),
            device.naming_template,
            extension_for(song.repository_path),
        )

        def add(mapping: SongDevice | None) -> SongDevice:
            if mapping is not None:
                if mapping.pending_action == PendingAction.REMOVE:
                    mapping.pending_action = None
                    logger.info("Cancelled removal of song %s from device %s", song_id, device_id)
                return mapping

            path = unique_device_path(db, device_id, target, song_id)
            downloaded = reported_in_active_session(db, device, path, SyncRecordAction.DOWNLOADED)
            mapping = SongDevice(
                song_id=song_id,
                device_id=device_id,
                device_path=path,
                pending_action=None if downloaded else PendingAction.DOWNLOAD,
            )
            db.add(mapping)
            logger.info(
                "Added song %s to device %s at %s%s",
                song_id,
                device_id,
                path,
                " (already downloaded this session)" if downloaded else "",
            )
            return mapping

        return PendingActionService._mutate_mapping(db, device_id, song_id, add)

    @staticmethod
    def remove_song_from_device(db: Session, device_id: str, song_id: str) -> bool:
        """Take a song off a device.

        Applies to every path the song occupies on the device. A mapping
        whose download never happened is dropped outright; otherwise a
        Remove is queued for the device.

        Returns:
            True if the song was mapped to the device.

        Raises:
            NotFoundError: If the device or song does not exist.
        """
        device = _get_device(db, device_id)
        _get_song(db, song_id)

        def remove(mapping: SongDevice | None) -> bool:
            if mapping is None:
                return False
            for target in [mapping, *_other_copies(db, mapping)]:
                if target.pending_action == PendingAction.DOWNLOAD or reported_in_active_session(
                    db, device, target.device_path, SyncRecordAction.REMOVED
                ):
                    db.delete(target)
                    logger.info(
                        "Dropped mapping of song %s on device %s at %s",
                        song_id,
                        device_id,
                        target.device_path,
                    )
                elif target.pending_action != PendingAction.REMOVE:
                    target.pending_action = PendingAction.REMOVE
                    logger.info(
                        "Queued removal of song %s from device %s at %s",
                        song_id,
                        device_id,
                        target.device_path,
                    )
            return True

        return PendingActionService._mutate_mapping(db, device_id, song_id, remove)

    @staticmethod
    def request_upload(db: Session, device_id: str, song_id: str) -> SongDevice:
        """Ask the device to push its copy of a song back to the server.

        Raises:
            NotFoundError: If the device or song does not exist, or the song
                is not on the device.
        """
        _get_device(db, device_id)
        _get_song(db, song_id)

        def request(mapping: SongDevice | None) -> SongDevice:
            if mapping is None:
                raise NotFoundError(f"Song {song_id} is not on device {device_id}")
            mapping.pending_action = PendingAction.UPLOAD
            return mapping

        mapping = PendingActionService._mutate_mapping(db, device_id, song_id, request)
        logger.info("Requested upload of song %s from device %s", song_id, device_id)
        return mapping

    @staticmethod
    def update_song_devices(
        db: Session,
        song_id: str,
        device_ids: list[str],
        naming: NamingService | None = None,
    ) -> tuple[list[str], list[str]]:
        """Make ``device_ids`` the exact set of devices a song should be on.

        Returns:
            (added device ids, removed device ids)

        Raises:
            NotFoundError: If the song or any device does not exist.
        """
        _get_song(db, song_id)
        wanted = list(dict.fromkeys(device_ids))
        for device_id in wanted:
            _get_device(db, device_id)

        current = {
            m.device_id
            for m in db.query(SongDevice).filter(SongDevice.song_id == song_id)
            if m.pending_action != PendingAction.REMOVE
        }
        added = [d for d in wanted if d not in current]
        removed = sorted(current - set(wanted))

        for device_id in added:
            PendingActionService.add_song_to_device(db, device_id, song_id, naming)
        for device_id in removed:
            PendingActionService.remove_song_from_device(db, device_id, song_id)
        return added, removed
