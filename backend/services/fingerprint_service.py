"""Fingerprint service - decides which device files must be created or updated.

The comparison key is the device-relative path. A file counts as changed
when its ``modifiedAt`` differs from the value recorded on the device's
mapping the last time the catalog saw it; a mapping with no recorded value
(a download the device has not reported back) is left alone unless forced.
Content is never hashed here.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from models import Device, PendingAction, SongDevice
from models.utils import as_naive_utc
from services.exceptions import NotFoundError, ValidationError
from utils.paths import normalize_device_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileFingerprint:
    """A file as reported by the device's scanner."""

    path: str
    modified_at: datetime
    created_at: datetime | None = None


@dataclass(frozen=True)
class KnownFile:
    """What the catalog last recorded for a device path."""

    path: str
    song_id: str
    last_synced_modified_at: datetime | None
    pending_action: PendingAction | None = None


@dataclass
class FingerprintMatch:
    """A file the device must act on, with the reason it was selected."""

    path: str
    modified_at: datetime
    created_at: datetime | None
    reason: str
    song_id: str | None = None


@dataclass
class SyncCheckResult:
    """Disjoint create / update lists produced by a sync check."""

    to_create: list[FingerprintMatch] = field(default_factory=list)
    to_update: list[FingerprintMatch] = field(default_factory=list)


def _format_time(value: datetime | None) -> str:
    return value.isoformat() if value is not None else "never"


def compare_fingerprints(
    files: list[FileFingerprint],
    known: dict[str, KnownFile],
    force: bool = False,
) -> SyncCheckResult:
    """Classify submitted fingerprints against the catalog's known files.

    Pure function: the same inputs always give the same result, so a
    repeated check before the device acts returns identical sets.

    Args:
        files: Fingerprints submitted by the device.
        known: Catalog mappings of the device, keyed by canonical path.
        force: Put every known path into ``to_update``.

    Returns:
        SyncCheckResult with paths in submission order.

    Raises:
        ValidationError: On an empty or escaping path, a missing
            ``modifiedAt``, or a path submitted twice.
    """
    result = SyncCheckResult()
    seen: set[str] = set()

    for file in files:
        try:
            path = normalize_device_path(file.path)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if file.modified_at is None:
            raise ValidationError(f"modifiedAt is required for '{path}'")
        if path in seen:
            raise ValidationError(f"Duplicate path in sync check: '{path}'")
        seen.add(path)

        entry = known.get(path)
        if entry is None:
            result.to_create.append(
                FingerprintMatch(
                    path=path,
                    modified_at=file.modified_at,
                    created_at=file.created_at,
                    reason=f"No matching mapping found on server for path '{path}'",
                )
            )
            continue

        # Scheduled for deletion on the device, not for creation
        if entry.pending_action == PendingAction.REMOVE:
            continue

        local = as_naive_utc(file.modified_at)
        catalog = as_naive_utc(entry.last_synced_modified_at)
        if force:
            reason = "Force flag was set"
        elif catalog is not None and local != catalog:
            reason = (
                f"modifiedAt differs: local={_format_time(local)}, "
                f"catalog={_format_time(catalog)}"
            )
        else:
            continue

        result.to_update.append(
            FingerprintMatch(
                path=path,
                modified_at=file.modified_at,
                created_at=file.created_at,
                reason=reason,
                song_id=entry.song_id,
            )
        )

    return result


class FingerprintService:
    """Service for sync checks against a device's catalog mappings."""

    @staticmethod
    def known_files(db: Session, device_id: str) -> dict[str, KnownFile]:
        """Load the device's mappings as comparator input, keyed by path."""
        mappings = db.query(SongDevice).filter(SongDevice.device_id == device_id).all()
        return {
            m.device_path: KnownFile(
                path=m.device_path,
                song_id=m.song_id,
                last_synced_modified_at=m.last_synced_modified_at,
                pending_action=m.pending_action,
            )
            for m in mappings
        }

    @staticmethod
    def check_sync(
        db: Session,
        device_id: str,
        files: list[FileFingerprint],
        force: bool = False,
    ) -> SyncCheckResult:
        """Compare a device's file listing with the catalog.

        Read-only; does not require a sync session.

        Raises:
            NotFoundError: If the device does not exist.
            ValidationError: If the listing is malformed.
        """
        if db.get(Device, device_id) is None:
            raise NotFoundError(f"Device {device_id} not found")

        result = compare_fingerprints(files, FingerprintService.known_files(db, device_id), force)
        logger.info(
            "Sync check for device %s: %d files, %d to create, %d to update%s",
            device_id,
            len(files),
            len(result.to_create),
            len(result.to_update),
            " (forced)" if force else "",
        )
        return result
