"""Device sync API endpoints.

A sync runs as: check fingerprints, upload new or changed files, post
per-file records in chunks, complete. Pending actions are polled and
acknowledged independently of sessions.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from api.helpers import counts_dict, get_upload_service, session_response_dict
from config import settings
from database import get_db
from schemas import (
    AcknowledgeActionRequest,
    AcknowledgeActionResponse,
    CancelStaleSessionsResponse,
    PendingActionItem,
    SyncCheckRequest,
    SyncCheckResponse,
    SyncCompleteResponse,
    SyncRecordResponse,
    SyncRecordsRequest,
    SyncRecordsResponse,
    SyncSessionResponse,
    SyncStartRequest,
    SyncStartResponse,
    SyncUploadResponse,
)
from services.fingerprint_service import FileFingerprint, FingerprintMatch, FingerprintService
from services.pending_action_service import PendingActionService
from services.record_ledger_service import LedgerEntry, RecordLedgerService
from services.sync_session_service import DEFAULT_SESSION_COUNT, SyncSessionService
from services.upload_service import UploadService
from utils.query_params import parse_record_actions, parse_record_source

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/devices/{device_id}/sync", tags=["sync"])
admin_router = APIRouter(prefix="/api/sync", tags=["sync"])


def _file_info(match: FingerprintMatch) -> dict:
    return {
        "path": match.path,
        "modified_at": match.modified_at,
        "created_at": match.created_at,
        "reason": match.reason,
    }


@router.post("/start", response_model=SyncStartResponse)
def start_sync(
    device_id: str,
    body: Optional[SyncStartRequest] = None,
    db: Session = Depends(get_db),
):
    """Open a sync session for a device.

    Raises:
        404: Unknown device
        409: The device already has a session in progress
    """
    dry_run = body.dry_run if body is not None else False
    session = SyncSessionService.start_sync(db, device_id, dry_run=dry_run)
    db.commit()
    return {
        "session_id": session.id,
        "device_id": session.device_id,
        "started_at": session.started_at,
        "is_dry_run": session.is_dry_run,
    }


@router.post("/check", response_model=SyncCheckResponse)
def check_sync(device_id: str, body: SyncCheckRequest, db: Session = Depends(get_db)):
    """Compare the device's file listing against the catalog.

    Read-only. Returns paths unknown to the catalog in ``toCreate`` and known
    paths that changed (or every known path when ``force`` is set) in
    ``toUpdate``.
    """
    files = [
        FileFingerprint(path=f.path, modified_at=f.modified_at, created_at=f.created_at)
        for f in body.files
    ]
    result = FingerprintService.check_sync(db, device_id, files, force=body.force)
    return {
        "to_create": [_file_info(m) for m in result.to_create],
        "to_update": [_file_info(m) for m in result.to_update],
    }


@router.post("/upload", response_model=SyncUploadResponse)
def upload_file(
    device_id: str,
    file: UploadFile = File(...),
    path: str = Form(...),
    modified_at: datetime = Form(..., alias="modifiedAt"),
    created_at: Optional[datetime] = Form(None, alias="createdAt"),
    checksum: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    upload_service: UploadService = Depends(get_upload_service),
):
    """Upload a new or changed file from the device into the catalog.

    Requires an open session. A file whose tags cannot be read is recorded
    as an Error and reported with ``success: false``.

    Raises:
        409: The device has no session in progress
        422: Invalid path, size limit exceeded or checksum mismatch
    """
    # One byte past the limit is enough for the service to reject it
    data = file.file.read(settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024 + 1)
    result = upload_service.ingest(
        db,
        device_id,
        data,
        path,
        modified_at,
        created_at=created_at,
        expected_checksum=checksum,
    )
    db.commit()
    return {
        "success": result.success,
        "song_id": result.song_id,
        "action": result.action,
        "device_path": result.device_path,
        "canonical_path": result.canonical_path,
        "error_message": result.error_message,
        "dry_run": result.dry_run,
    }


@router.get("/pending-actions", response_model=list[PendingActionItem])
def get_pending_actions(device_id: str, db: Session = Depends(get_db)):
    """List the downloads, uploads and removals the server wants the device to make."""
    mappings = PendingActionService.get_pending_actions(db, device_id)
    return [
        {"song_id": m.song_id, "path": m.device_path, "action": m.pending_action}
        for m in mappings
    ]


@router.post("/acknowledge", response_model=AcknowledgeActionResponse)
def acknowledge_action(
    device_id: str,
    body: AcknowledgeActionRequest,
    db: Session = Depends(get_db),
):
    """Confirm the device applied the pending action for a song.

    Acknowledging when nothing is pending succeeds without changes.
    """
    cleared = PendingActionService.acknowledge(
        db, device_id, body.song_id, modified_at=body.modified_at
    )
    return {"success": True, "cleared_action": cleared}


@router.get("/sessions", response_model=list[SyncSessionResponse])
def list_sessions(
    device_id: str,
    count: int = Query(DEFAULT_SESSION_COUNT, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List the device's most recent sync sessions, newest first."""
    return [
        session_response_dict(session, counts)
        for session, counts in SyncSessionService.list_sessions(db, device_id, count)
    ]


@router.get("/sessions/{session_id}/records", response_model=list[SyncRecordResponse])
def list_session_records(
    device_id: str,
    session_id: str,
    actions: Optional[str] = Query(None, description="Comma-separated actions, e.g. created,error"),
    source: Optional[str] = Query(None, description="Device or Server"),
    db: Session = Depends(get_db),
):
    """List a session's records ordered by file path, optionally filtered."""
    action_filter = parse_record_actions(actions)
    source_filter = parse_record_source(source)
    SyncSessionService.get_session(db, device_id, session_id)
    return RecordLedgerService.list_records(db, session_id, action_filter, source_filter)


@router.post("/{session_id}/records", response_model=SyncRecordsResponse)
def record_chunk(
    device_id: str,
    session_id: str,
    body: SyncRecordsRequest,
    db: Session = Depends(get_db),
):
    """Post a chunk of per-file outcomes.

    Safe to retry wholesale: records the session already holds are ignored.

    Raises:
        409: The session is not in progress
        422: Chunk too large or an invalid path
    """
    entries = [
        LedgerEntry(
            file_path=r.file_path,
            action=r.action,
            source=r.source,
            song_id=r.song_id,
            error_message=r.error_message,
            reason=r.reason,
            processed_at=r.processed_at,
        )
        for r in body.records
    ]
    result = SyncSessionService.record_chunk(db, device_id, session_id, entries)
    db.commit()
    return {
        "success": True,
        "received": result.received,
        "inserted": result.inserted,
        "ignored": result.ignored,
        "conflicts": result.conflicts,
    }


@router.post("/{session_id}/complete", response_model=SyncCompleteResponse)
def complete_sync(device_id: str, session_id: str, db: Session = Depends(get_db)):
    """Finish a session and return its per-action counts."""
    session, counts = SyncSessionService.complete_sync(db, device_id, session_id)
    db.commit()
    return {
        "session_id": session.id,
        "status": session.status,
        "completed_at": session.completed_at,
        "is_dry_run": session.is_dry_run,
        **counts_dict(counts),
    }


@router.post("/{session_id}/cancel", response_model=SyncSessionResponse)
def cancel_sync(device_id: str, session_id: str, db: Session = Depends(get_db)):
    """Abort an in-progress session; records already posted are kept."""
    session = SyncSessionService.cancel_sync(db, device_id, session_id)
    db.commit()
    return session_response_dict(session, RecordLedgerService.count_actions(db, session.id))


@admin_router.post("/cancel-stale", response_model=CancelStaleSessionsResponse)
def cancel_stale_sessions(
    older_than_minutes: Optional[int] = Query(None, alias="olderThanMinutes", ge=1),
    db: Session = Depends(get_db),
):
    """Cancel in-progress sessions with no activity within the window.

    Defaults to ``SYNC_STALE_SESSION_MINUTES``.
    """
    minutes = older_than_minutes
    if minutes is None:
        minutes = settings.SYNC_STALE_SESSION_MINUTES
    cancelled = SyncSessionService.cancel_stale_sessions(db, minutes)
    return {
        "cancelled_session_ids": [s.id for s in cancelled],
        "older_than_minutes": minutes,
    }
