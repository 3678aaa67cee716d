"""Record ledger service - idempotent, chunked accumulation of sync outcomes.

Each session holds at most one record per file path. Re-posting a path the
session already holds from the same source is ignored, which is what lets
a device retry a whole chunk after a timeout without knowing which records
landed. When the other source reports the same path, the outcome with the
later ``processedAt`` survives and the other one is noted in its reason.
The losing outcome is also kept on the row, so a retry of it is ignored
instead of being re-stamped and winning on the retry time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.orm import Session

from config import settings
from models import Song, SyncRecord, SyncRecordAction, SyncRecordSource, SyncSession
from models.utils import as_naive_utc, utc_now
from services.exceptions import ConflictError, ValidationError
from utils.paths import normalize_device_path

logger = logging.getLogger(__name__)

REASON_MAX_LENGTH = 2048


@dataclass
class LedgerEntry:
    """One outcome to record, as posted by the device or produced by the server."""

    file_path: str
    action: SyncRecordAction
    source: SyncRecordSource = SyncRecordSource.DEVICE
    song_id: str | None = None
    error_message: str | None = None
    reason: str | None = None
    processed_at: datetime | None = None


@dataclass
class IngestResult:
    """How a chunk was absorbed by the ledger."""

    inserted: int = 0
    ignored: int = 0
    conflicts: int = 0
    replaced: int = 0
    records: list[SyncRecord] = field(default_factory=list)

    @property
    def received(self) -> int:
        return self.inserted + self.ignored + self.conflicts + self.replaced


@dataclass
class ActionCounts:
    """Per-action record counts for a session."""

    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    downloaded_count: int = 0
    removed_count: int = 0
    error_count: int = 0

    _FIELDS = {
        SyncRecordAction.CREATED: "created_count",
        SyncRecordAction.UPDATED: "updated_count",
        SyncRecordAction.SKIPPED: "skipped_count",
        SyncRecordAction.DOWNLOADED: "downloaded_count",
        SyncRecordAction.REMOVED: "removed_count",
        SyncRecordAction.ERROR: "error_count",
    }

    @classmethod
    def from_counts(cls, counts: dict[SyncRecordAction, int]) -> "ActionCounts":
        result = cls()
        for action, count in counts.items():
            setattr(result, cls._FIELDS[action], count)
        return result

    @property
    def total(self) -> int:
        return sum(getattr(self, name) for name in self._FIELDS.values())


def _truncate(value: str | None) -> str | None:
    if value is None or len(value) <= REASON_MAX_LENGTH:
        return value
    return value[: REASON_MAX_LENGTH - 3] + "..."


def _describe(source: SyncRecordSource, action: SyncRecordAction, processed_at: datetime | None) -> str:
    stamp = processed_at.isoformat() if processed_at is not None else "unknown time"
    return f"{source.value} {action.value} at {stamp}"


class RecordLedgerService:
    """Service for writing and reading a session's sync records."""

    @staticmethod
    def ingest(
        db: Session,
        session: SyncSession,
        entries: list[LedgerEntry],
        max_chunk_size: int | None = None,
        replace_errors: bool = False,
    ) -> IngestResult:
        """Insert-or-ignore a chunk of records into a session's ledger.

        The whole chunk is validated before anything is written. Within one
        chunk the first entry for a path wins. The caller is responsible for
        checking that the session is in progress.

        Args:
            db: Database session
            session: Session the records belong to
            entries: Records to add
            max_chunk_size: Upper bound on ``len(entries)``; defaults to
                ``settings.SYNC_MAX_CHUNK_SIZE``
            replace_errors: Let a non-Error entry overwrite an Error row the
                same source wrote earlier, for a file that was retried and
                then succeeded

        Returns:
            IngestResult with the counts and the surviving record rows

        Raises:
            ValidationError: If the chunk is too large, a path is invalid or
                a record names an unknown song
            ConflictError: If a concurrent request inserted the same path
                first; the transaction is rolled back and the chunk can be
                retried as a whole
        """
        limit = max_chunk_size or settings.SYNC_MAX_CHUNK_SIZE
        if len(entries) > limit:
            raise ValidationError(
                f"Chunk of {len(entries)} records exceeds the maximum of {limit}"
            )

        by_path: dict[str, LedgerEntry] = {}
        for entry in entries:
            try:
                path = normalize_device_path(entry.file_path)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            if path in by_path:
                logger.debug("Duplicate path %s within chunk for session %s", path, session.id)
                continue
            by_path[path] = entry

        song_ids = {e.song_id for e in by_path.values() if e.song_id}
        if song_ids:
            known = {row[0] for row in db.query(Song.id).filter(Song.id.in_(list(song_ids)))}
            unknown = sorted(song_ids - known)
            if unknown:
                raise ValidationError(f"Unknown song ids in chunk: {', '.join(unknown)}")

        result = IngestResult(ignored=len(entries) - len(by_path))
        if not by_path:
            return result

        existing = {
            record.file_path: record
            for record in db.query(SyncRecord).filter(
                SyncRecord.session_id == session.id,
                SyncRecord.file_path.in_(list(by_path)),
            )
        }

        now = utc_now()
        for path, entry in by_path.items():
            processed_at = as_naive_utc(entry.processed_at) or as_naive_utc(now)
            record = existing.get(path)
            if record is None:
                record = SyncRecord(
                    session_id=session.id,
                    file_path=path,
                    song_id=entry.song_id,
                    action=entry.action,
                    source=entry.source,
                    error_message=_truncate(entry.error_message),
                    reason=_truncate(entry.reason),
                    processed_at=processed_at,
                )
                db.add(record)
                result.inserted += 1
            elif record.source == entry.source:
                if (
                    replace_errors
                    and record.action == SyncRecordAction.ERROR
                    and entry.action != SyncRecordAction.ERROR
                ):
                    RecordLedgerService._replace_error(record, entry, processed_at)
                    result.replaced += 1
                else:
                    logger.debug("Record for %s already in session %s, ignoring", path, session.id)
                    result.ignored += 1
            elif record.contested_source == entry.source and record.contested_action == entry.action:
                logger.debug("Contested record for %s in session %s retried, ignoring", path, session.id)
                result.ignored += 1
            else:
                RecordLedgerService._resolve_conflict(record, entry, processed_at)
                result.conflicts += 1
            result.records.append(record)

        session.last_activity_at = now
        try:
            db.flush()
        except DBIntegrityError as e:
            db.rollback()
            raise ConflictError(
                f"Records for session {session.id} were written concurrently; retry the chunk"
            ) from e

        logger.info(
            "Ingested chunk for session %s: %d inserted, %d ignored, %d conflicts, %d replaced",
            session.id,
            result.inserted,
            result.ignored,
            result.conflicts,
            result.replaced,
        )
        return result

    @staticmethod
    def _resolve_conflict(record: SyncRecord, entry: LedgerEntry, processed_at: datetime) -> None:
        """Apply last-write-wins between a stored record and one from the other source."""
        incoming = _describe(entry.source, entry.action, processed_at)
        stored = _describe(record.source, record.action, record.processed_at)

        if as_naive_utc(processed_at) > as_naive_utc(record.processed_at):
            note = f"Superseded {stored}"
            record.contested_action = record.action
            record.contested_source = record.source
            record.action = entry.action
            record.source = entry.source
            record.song_id = entry.song_id or record.song_id
            record.error_message = _truncate(entry.error_message)
            record.processed_at = processed_at
            base_reason = entry.reason
        else:
            note = f"Kept over {incoming}"
            record.contested_action = entry.action
            record.contested_source = entry.source
            base_reason = record.reason

        record.reason = _truncate(f"{base_reason}; {note}" if base_reason else note)
        logger.warning(
            "Conflicting records for %s in session %s: %s (stored) vs %s (incoming)",
            record.file_path,
            record.session_id,
            stored,
            incoming,
        )

    @staticmethod
    def _replace_error(record: SyncRecord, entry: LedgerEntry, processed_at: datetime) -> None:
        """Overwrite an Error row with the outcome of a later successful retry."""
        note = "Retried after error"
        if record.error_message:
            note = f"{note}: {record.error_message}"
        logger.info(
            "Record for %s in session %s changed from Error to %s",
            record.file_path,
            record.session_id,
            entry.action.value,
        )
        record.action = entry.action
        record.song_id = entry.song_id or record.song_id
        record.error_message = None
        record.processed_at = processed_at
        record.reason = _truncate(f"{entry.reason}; {note}" if entry.reason else note)

    @staticmethod
    def append(
        db: Session, session: SyncSession, entry: LedgerEntry, replace_errors: bool = False
    ) -> SyncRecord:
        """Record a single outcome with the same insert-or-ignore rules."""
        result = RecordLedgerService.ingest(
            db, session, [entry], max_chunk_size=1, replace_errors=replace_errors
        )
        return result.records[0]

    @staticmethod
    def count_actions(db: Session, session_id: str) -> ActionCounts:
        """Count a session's records per action."""
        return RecordLedgerService.count_actions_for_sessions(db, [session_id]).get(
            session_id, ActionCounts()
        )

    @staticmethod
    def count_actions_for_sessions(db: Session, session_ids: list[str]) -> dict[str, ActionCounts]:
        """Count records per action for several sessions in one query."""
        if not session_ids:
            return {}
        rows = (
            db.query(SyncRecord.session_id, SyncRecord.action, func.count(SyncRecord.id))
            .filter(SyncRecord.session_id.in_(session_ids))
            .group_by(SyncRecord.session_id, SyncRecord.action)
            .all()
        )
        grouped: dict[str, dict[SyncRecordAction, int]] = {sid: {} for sid in session_ids}
        for session_id, action, count in rows:
            grouped[session_id][action] = count
        return {sid: ActionCounts.from_counts(counts) for sid, counts in grouped.items()}

    @staticmethod
    def list_records(
        db: Session,
        session_id: str,
        actions: set[SyncRecordAction] | None = None,
        source: SyncRecordSource | None = None,
    ) -> list[SyncRecord]:
        """List a session's records ordered by file path, optionally filtered."""
        query = db.query(SyncRecord).filter(SyncRecord.session_id == session_id)
        if actions:
            query = query.filter(SyncRecord.action.in_(list(actions)))
        if source is not None:
            query = query.filter(SyncRecord.source == source)
        return query.order_by(SyncRecord.file_path).all()
