"""Pydantic schemas for device sync sessions, checks, uploads and pending actions."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from models.enums import PendingAction, SyncRecordAction, SyncRecordSource, SyncSessionStatus
from schemas.common import CamelModel


class SyncStartRequest(CamelModel):
    """Schema for starting a sync session."""

    dry_run: bool = False


class SyncStartResponse(CamelModel):
    """Schema returned when a sync session starts."""

    session_id: str
    device_id: str
    started_at: datetime
    is_dry_run: bool


class SyncRecordItem(CamelModel):
    """One per-file outcome posted by the device."""

    file_path: str = Field(min_length=1, max_length=1024)
    action: SyncRecordAction
    source: SyncRecordSource = SyncRecordSource.DEVICE
    song_id: Optional[str] = None
    error_message: Optional[str] = None
    reason: Optional[str] = None
    processed_at: Optional[datetime] = None


class SyncRecordsRequest(CamelModel):
    """A chunk of records for one session."""

    records: list[SyncRecordItem]


class SyncRecordsResponse(CamelModel):
    """Acknowledgment of a record chunk."""

    success: bool = True
    received: int
    inserted: int
    ignored: int
    conflicts: int


class SyncCounts(CamelModel):
    """Per-action record counts of a session."""

    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    downloaded_count: int = 0
    removed_count: int = 0
    error_count: int = 0


class SyncCompleteResponse(SyncCounts):
    """Schema returned when a sync session completes."""

    session_id: str
    status: SyncSessionStatus
    completed_at: Optional[datetime] = None
    is_dry_run: bool


class SyncSessionResponse(SyncCounts):
    """Schema for a sync session in the device history."""

    id: str
    device_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    last_activity_at: datetime
    status: SyncSessionStatus
    is_dry_run: bool
    cancel_reason: Optional[str] = None


class SyncRecordResponse(CamelModel):
    """Schema for SyncRecord API response."""

    id: str
    file_path: str
    song_id: Optional[str] = None
    action: SyncRecordAction
    source: SyncRecordSource
    error_message: Optional[str] = None
    reason: Optional[str] = None
    processed_at: datetime


class SyncCheckFile(CamelModel):
    """A file fingerprint reported by the device."""

    path: str
    modified_at: datetime
    created_at: Optional[datetime] = None


class SyncCheckRequest(CamelModel):
    """Schema for a sync check."""

    files: list[SyncCheckFile]
    force: bool = False


class SyncFileInfoItem(CamelModel):
    """A file the device must act on, with the reason."""

    path: str
    modified_at: datetime
    created_at: Optional[datetime] = None
    reason: str


class SyncCheckResponse(CamelModel):
    """Files to create (unknown to the catalog) and to update (changed or forced)."""

    to_create: list[SyncFileInfoItem]
    to_update: list[SyncFileInfoItem]


class SyncUploadResponse(CamelModel):
    """Outcome of an uploaded file."""

    success: bool
    song_id: Optional[str] = None
    action: SyncRecordAction
    device_path: str
    canonical_path: Optional[str] = None
    error_message: Optional[str] = None
    dry_run: bool = False


class PendingActionItem(CamelModel):
    """A change the server wants the device to make."""

    song_id: str
    path: str
    action: PendingAction


class AcknowledgeActionRequest(CamelModel):
    """Schema for acknowledging a pending action.

    ``modified_at`` is the device file's timestamp after a download, so the
    next sync check does not report the file as changed.
    """

    song_id: str
    modified_at: Optional[datetime] = None


class AcknowledgeActionResponse(CamelModel):
    """Result of an acknowledgment; ``cleared_action`` is null when nothing was pending."""

    success: bool = True
    cleared_action: Optional[PendingAction] = None


class CancelStaleSessionsResponse(CamelModel):
    """Sessions cancelled by the stale-session sweep."""

    cancelled_session_ids: list[str]
    older_than_minutes: int
