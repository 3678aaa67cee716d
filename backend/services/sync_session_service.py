"""Sync session service - owns the per-device sync session state machine.

States: ``InProgress -> Completed`` or ``InProgress -> Cancelled``. There
is no transition out of a terminal state. A device has at most one session
in progress; ``Device.active_session_id`` mirrors it.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.orm import Session

from config import settings
from models import Device, SyncSession, SyncSessionStatus
from models.utils import as_naive_utc, utc_now
from services.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from services.record_ledger_service import ActionCounts, IngestResult, LedgerEntry, RecordLedgerService

logger = logging.getLogger(__name__)

DEFAULT_SESSION_COUNT = 5
CLIENT_CANCEL_REASON = "Cancelled by client"
STALE_CANCEL_REASON = "No activity for {minutes} minutes"


class SyncSessionService:
    """Service for starting, feeding and finishing device sync sessions."""

    @staticmethod
    def get_device(db: Session, device_id: str) -> Device:
        """Fetch a device or raise NotFoundError."""
        device = db.get(Device, device_id)
        if device is None:
            raise NotFoundError(f"Device {device_id} not found")
        return device

    @staticmethod
    def get_session(db: Session, device_id: str, session_id: str) -> SyncSession:
        """Fetch a session that belongs to ``device_id``.

        Raises:
            NotFoundError: If the device or session does not exist, or the
                session belongs to another device.
        """
        SyncSessionService.get_device(db, device_id)
        session = db.get(SyncSession, session_id)
        if session is None or session.device_id != device_id:
            raise NotFoundError(f"Sync session {session_id} not found for device {device_id}")
        return session

    @staticmethod
    def get_active_session(db: Session, device_id: str) -> SyncSession | None:
        """The device's in-progress session, if any."""
        return (
            db.query(SyncSession)
            .filter(
                SyncSession.device_id == device_id,
                SyncSession.status == SyncSessionStatus.IN_PROGRESS,
            )
            .first()
        )

    @staticmethod
    def require_in_progress(db: Session, device_id: str, session_id: str) -> SyncSession:
        """Fetch a session that still accepts records and uploads.

        Raises:
            NotFoundError: If the device does not exist.
            InvalidStateError: If the session is unknown for the device or
                is no longer in progress.
        """
        SyncSessionService.get_device(db, device_id)
        session = db.get(SyncSession, session_id)
        if session is None or session.device_id != device_id:
            raise InvalidStateError(
                f"Sync session {session_id} is not an open session of device {device_id}"
            )
        if not session.is_in_progress:
            raise InvalidStateError(
                f"Sync session {session_id} is {session.status.value}, not InProgress"
            )
        return session

    @staticmethod
    def start_sync(db: Session, device_id: str, dry_run: bool = False) -> SyncSession:
        """Open a new sync session for a device.

        Raises:
            NotFoundError: If the device does not exist.
            ConflictError: If the device already has a session in progress.
        """
        device = SyncSessionService.get_device(db, device_id)

        active = SyncSessionService.get_active_session(db, device_id)
        if active is not None:
            raise ConflictError(
                f"Sync session {active.id} is already in progress for device {device_id}"
            )

        now = utc_now()
        session = SyncSession(
            device_id=device_id,
            started_at=now,
            last_activity_at=now,
            status=SyncSessionStatus.IN_PROGRESS,
            is_dry_run=dry_run,
        )
        db.add(session)
        try:
            db.flush()
        except DBIntegrityError as e:
            # Lost the race against another start for the same device
            db.rollback()
            raise ConflictError(
                f"A sync session is already in progress for device {device_id}"
            ) from e

        device.active_session_id = session.id
        db.flush()
        logger.info(
            "Started %ssync session %s for device %s",
            "dry-run " if dry_run else "",
            session.id,
            device_id,
        )
        return session

    @staticmethod
    def record_chunk(
        db: Session,
        device_id: str,
        session_id: str,
        entries: list[LedgerEntry],
    ) -> IngestResult:
        """Add a chunk of records to an in-progress session.

        Safe to retry wholesale: records already present are ignored.
        """
        session = SyncSessionService.require_in_progress(db, device_id, session_id)
        return RecordLedgerService.ingest(db, session, entries)

    @staticmethod
    def complete_sync(db: Session, device_id: str, session_id: str) -> tuple[SyncSession, ActionCounts]:
        """Finish a session and return its per-action counts.

        Counts come from the ledger alone; completing performs no catalog
        changes. Completing an already completed session returns the same
        counts again.

        Raises:
            NotFoundError: If the device or session does not exist.
            InvalidStateError: If the session was cancelled.
        """
        session = SyncSessionService.get_session(db, device_id, session_id)
        if session.status == SyncSessionStatus.CANCELLED:
            raise InvalidStateError(f"Sync session {session_id} was cancelled")

        if session.is_in_progress:
            now = utc_now()
            session.status = SyncSessionStatus.COMPLETED
            session.completed_at = now
            session.last_activity_at = now
            device = session.device
            if device.active_session_id == session.id:
                device.active_session_id = None
            if not session.is_dry_run:
                device.last_sync_at = now
            db.flush()

        counts = RecordLedgerService.count_actions(db, session.id)
        logger.info(
            "Completed sync session %s for device %s: created=%d updated=%d skipped=%d "
            "downloaded=%d removed=%d errors=%d",
            session.id,
            device_id,
            counts.created_count,
            counts.updated_count,
            counts.skipped_count,
            counts.downloaded_count,
            counts.removed_count,
            counts.error_count,
        )
        return session, counts

    @staticmethod
    def cancel_sync(
        db: Session,
        device_id: str,
        session_id: str,
        reason: str = CLIENT_CANCEL_REASON,
    ) -> SyncSession:
        """Abort an in-progress session; its records are kept.

        Cancelling an already cancelled session is a no-op.

        Raises:
            NotFoundError: If the device or session does not exist.
            InvalidStateError: If the session already completed.
        """
        session = SyncSessionService.get_session(db, device_id, session_id)
        if session.status == SyncSessionStatus.COMPLETED:
            raise InvalidStateError(f"Sync session {session_id} already completed")
        if session.is_in_progress:
            SyncSessionService._cancel(session, reason)
            db.flush()
            logger.info("Cancelled sync session %s for device %s: %s", session.id, device_id, reason)
        return session

    @staticmethod
    def _cancel(session: SyncSession, reason: str) -> None:
        now = utc_now()
        session.status = SyncSessionStatus.CANCELLED
        session.completed_at = now
        session.cancel_reason = reason
        device = session.device
        if device is not None and device.active_session_id == session.id:
            device.active_session_id = None

    @staticmethod
    def touch(session: SyncSession) -> None:
        """Mark activity on a session so the stale sweep leaves it alone."""
        session.last_activity_at = utc_now()

    @staticmethod
    def find_stale_sessions(
        db: Session,
        older_than_minutes: int | None = None,
        now: datetime | None = None,
    ) -> list[SyncSession]:
        """In-progress sessions with no activity within the window."""
        minutes = older_than_minutes
        if minutes is None:
            minutes = settings.SYNC_STALE_SESSION_MINUTES
        cutoff = as_naive_utc((now or utc_now()) - timedelta(minutes=minutes))
        sessions = (
            db.query(SyncSession)
            .filter(SyncSession.status == SyncSessionStatus.IN_PROGRESS)
            .order_by(SyncSession.started_at)
            .all()
        )
        return [s for s in sessions if as_naive_utc(s.last_activity_at or s.started_at) < cutoff]

    @staticmethod
    def cancel_stale_sessions(
        db: Session,
        older_than_minutes: int | None = None,
        now: datetime | None = None,
    ) -> list[SyncSession]:
        """Cancel abandoned in-progress sessions and commit.

        Args:
            db: Database session
            older_than_minutes: Inactivity window; defaults to
                ``settings.SYNC_STALE_SESSION_MINUTES``
            now: Reference time, for tests

        Returns:
            The sessions that were cancelled
        """
        minutes = older_than_minutes
        if minutes is None:
            minutes = settings.SYNC_STALE_SESSION_MINUTES
        if minutes < 1:
            raise ValidationError("older_than_minutes must be a positive integer")

        stale = SyncSessionService.find_stale_sessions(db, minutes, now)
        reason = STALE_CANCEL_REASON.format(minutes=minutes)
        for session in stale:
            SyncSessionService._cancel(session, reason)
            logger.info(
                "Cancelled stale sync session %s for device %s (last activity %s)",
                session.id,
                session.device_id,
                session.last_activity_at,
            )
        db.commit()
        if stale:
            logger.info("Stale session sweep cancelled %d sessions", len(stale))
        return stale

    @staticmethod
    def list_sessions(
        db: Session,
        device_id: str,
        count: int = DEFAULT_SESSION_COUNT,
    ) -> list[tuple[SyncSession, ActionCounts]]:
        """Most recent sessions of a device, newest first, with their counts.

        Raises:
            NotFoundError: If the device does not exist.
            ValidationError: If ``count`` is not positive.
        """
        if count < 1:
            raise ValidationError("count must be a positive integer")
        SyncSessionService.get_device(db, device_id)

        sessions = (
            db.query(SyncSession)
            .filter(SyncSession.device_id == device_id)
            .order_by(SyncSession.started_at.desc())
            .limit(count)
            .all()
        )
        counts = RecordLedgerService.count_actions_for_sessions(db, [s.id for s in sessions])
        return [(s, counts[s.id]) for s in sessions]

