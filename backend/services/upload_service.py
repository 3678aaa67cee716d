"""Upload service - ingests audio files pushed by a device during a sync.

An upload must happen inside the device's open sync session. The bytes are
hashed, their tags read, and then matched to a catalog song: first the song
already mapped at the submitted device path, then a song with the same
checksum, then a song stored at the same repository path. The song is
created or updated, the submitted path gets its own device mapping and a
Created/Updated record is appended to the session ledger, replacing an Error
recorded for the same path by an earlier attempt. A file whose tags cannot
be read becomes an Error record instead of failing the request.

In a dry-run session only the ledger record is written.
"""

import hashlib
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath

from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from integrations.catalog_protocol import AudioStorage, MetadataCodec, SongMetadata, StoredAudio
from integrations.exceptions import MetadataReadError, StorageError
from models import PendingAction, Song, SongDevice, SyncRecordAction, SyncRecordSource, SyncSession
from models.utils import as_naive_utc
from services.catalog_service import CatalogService
from services.exceptions import ConflictError, IntegrityError, InvalidStateError, ValidationError
from services.naming_service import NamingService, extension_for
from services.record_ledger_service import LedgerEntry, RecordLedgerService
from services.sync_session_service import SyncSessionService
from utils.paths import normalize_device_path

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHM = "sha256"

# Pending actions an upload of the file makes obsolete
_SATISFIED_BY_UPLOAD = (PendingAction.UPLOAD, PendingAction.DOWNLOAD)


def compute_checksum(data: bytes) -> str:
    """Hex digest of ``data`` under ``CHECKSUM_ALGORITHM``."""
    return hashlib.sha256(data).hexdigest()


@dataclass
class UploadResult:
    """Outcome of one uploaded file."""

    success: bool
    device_path: str
    action: SyncRecordAction
    song_id: str | None = None
    canonical_path: str | None = None
    error_message: str | None = None
    dry_run: bool = False


class UploadService:
    """Service for ingesting device uploads into the catalog."""

    def __init__(
        self,
        codec: MetadataCodec,
        storage: AudioStorage,
        naming: NamingService | None = None,
    ):
        self._codec = codec
        self._storage = storage
        self._naming = naming or NamingService()

    def ingest(
        self,
        db: Session,
        device_id: str,
        data: bytes,
        path: str,
        modified_at: datetime,
        created_at: datetime | None = None,
        expected_checksum: str | None = None,
    ) -> UploadResult:
        """Ingest one uploaded file.

        Args:
            db: Database session
            device_id: Uploading device
            data: File content
            path: Device-relative path of the file
            modified_at: File modification time on the device
            created_at: File creation time on the device
            expected_checksum: Optional hex digest the client computed

        Returns:
            UploadResult; ``success`` is False when the file was recorded as
            an Error

        Raises:
            NotFoundError: If the device does not exist
            InvalidStateError: If the device has no session in progress
            ValidationError: If the path, timestamps or size are invalid
            IntegrityError: If ``expected_checksum`` does not match the bytes
            ConflictError: If the device mapping changed concurrently
        """
        device = SyncSessionService.get_device(db, device_id)
        session = SyncSessionService.get_active_session(db, device_id)
        if session is None:
            raise InvalidStateError(
                f"Device {device_id} has no sync session in progress; start one before uploading"
            )

        try:
            device_path = normalize_device_path(path)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if modified_at is None:
            raise ValidationError("modifiedAt is required")
        modified_at = as_naive_utc(modified_at)
        created_at = as_naive_utc(created_at)

        max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
        if len(data) > max_bytes:
            raise ValidationError(
                f"Upload of {len(data)} bytes exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB limit"
            )

        checksum = compute_checksum(data)
        if expected_checksum and expected_checksum.strip().lower() != checksum:
            raise IntegrityError(
                f"Checksum mismatch for '{device_path}'",
                expected=expected_checksum,
                actual=checksum,
            )

        SyncSessionService.touch(session)
        filename = PurePosixPath(device_path).name

        try:
            metadata = self._codec.read(io.BytesIO(data), filename)
        except MetadataReadError as e:
            logger.warning("Could not read tags from upload %s: %s", device_path, e)
            return self._record_error(db, session, device_path, str(e))

        extension = extension_for(filename)
        canonical_path = self._naming.resolve(metadata, device.naming_template, extension)

        catalog = CatalogService(db)
        mapping = (
            db.query(SongDevice)
            .filter(SongDevice.device_id == device_id, SongDevice.device_path == device_path)
            .first()
        )
        song, matched_by = self._match_song(catalog, mapping, checksum, metadata, extension)
        action = SyncRecordAction.UPDATED if song is not None else SyncRecordAction.CREATED

        reasons = [f"Matched existing song by {matched_by}" if song else "New song"]
        if canonical_path != device_path:
            reasons.append(f"canonical path is '{canonical_path}'")

        if session.is_dry_run:
            reasons.append("dry run, catalog not modified")
            record = RecordLedgerService.append(
                db,
                session,
                LedgerEntry(
                    file_path=device_path,
                    action=action,
                    source=SyncRecordSource.DEVICE,
                    song_id=song.id if song else None,
                    reason="; ".join(reasons),
                ),
                replace_errors=True,
            )
            logger.info("Dry-run upload %s would be %s", device_path, action.value)
            return UploadResult(
                success=True,
                device_path=device_path,
                action=record.action,
                song_id=record.song_id,
                canonical_path=canonical_path,
                dry_run=True,
            )

        if song is not None and song.checksum == checksum:
            reasons.append("content unchanged")
        else:
            repository_path = (
                song.repository_path
                if song is not None
                else self._naming.default_path(metadata, extension)
            )
            try:
                self._storage.write(repository_path, data)
            except StorageError as e:
                logger.error("Could not store upload %s: %s", device_path, e)
                return self._record_error(db, session, device_path, str(e))

            stored = StoredAudio(
                repository_path=repository_path,
                size=len(data),
                checksum=checksum,
                checksum_algorithm=CHECKSUM_ALGORITHM,
            )
            if song is None:
                song = catalog.create_song(metadata, stored, created_at or modified_at, modified_at)
            else:
                song = catalog.update_song(song, metadata, stored, modified_at)

        self._upsert_mapping(db, device_id, song, mapping, device_path, modified_at)

        record = RecordLedgerService.append(
            db,
            session,
            LedgerEntry(
                file_path=device_path,
                action=action,
                source=SyncRecordSource.DEVICE,
                song_id=song.id,
                reason="; ".join(reasons),
            ),
            replace_errors=True,
        )
        logger.info(
            "Upload %s from device %s ingested as %s (song %s)",
            device_path,
            device_id,
            record.action.value,
            song.id,
        )
        return UploadResult(
            success=True,
            device_path=device_path,
            action=record.action,
            song_id=song.id,
            canonical_path=canonical_path,
        )

    def _match_song(
        self,
        catalog: CatalogService,
        mapping: SongDevice | None,
        checksum: str,
        metadata: SongMetadata,
        extension: str,
    ) -> tuple[Song | None, str | None]:
        """Find the catalog song an upload replaces, and how it was found."""
        if mapping is not None:
            return mapping.song, "device path"
        song = catalog.find_song_by_checksum(checksum, CHECKSUM_ALGORITHM)
        if song is not None:
            return song, "checksum"
        song = catalog.find_song_by_repository_path(self._naming.default_path(metadata, extension))
        if song is not None:
            return song, "repository path"
        return None, None

    @staticmethod
    def _upsert_mapping(
        db: Session,
        device_id: str,
        song: Song,
        mapping: SongDevice | None,
        device_path: str,
        modified_at: datetime,
    ) -> SongDevice:
        """Make sure ``device_path`` has a mapping to ``song`` on the device.

        Every device path keeps its own mapping, so identical files stored
        under two paths are both known to the catalog. Only a mapping still
        waiting for its first download has no file on the device yet; that
        one is moved to the uploaded path.
        """
        if mapping is None:
            mapping = (
                db.query(SongDevice)
                .filter(
                    SongDevice.device_id == device_id,
                    SongDevice.song_id == song.id,
                    SongDevice.pending_action == PendingAction.DOWNLOAD,
                )
                .order_by(SongDevice.added_at)
                .first()
            )
            if mapping is not None:
                logger.info(
                    "Pending download of song %s on device %s moved: %s -> %s",
                    song.id,
                    device_id,
                    mapping.device_path,
                    device_path,
                )
                mapping.device_path = device_path
            else:
                mapping = SongDevice(song_id=song.id, device_id=device_id, device_path=device_path)
                db.add(mapping)

        mapping.last_synced_modified_at = modified_at
        if mapping.pending_action in _SATISFIED_BY_UPLOAD:
            mapping.pending_action = None

        try:
            db.flush()
        except (StaleDataError, DBIntegrityError) as e:
            db.rollback()
            raise ConflictError(
                f"Mapping of song {song.id} on device {device_id} changed concurrently; retry the upload"
            ) from e
        return mapping

    @staticmethod
    def _record_error(db: Session, session: SyncSession, device_path: str, message: str) -> UploadResult:
        record = RecordLedgerService.append(
            db,
            session,
            LedgerEntry(
                file_path=device_path,
                action=SyncRecordAction.ERROR,
                source=SyncRecordSource.DEVICE,
                error_message=message,
            ),
        )
        return UploadResult(
            success=False,
            device_path=device_path,
            action=record.action,
            error_message=message,
        )
