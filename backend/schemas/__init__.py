"""Pydantic schemas for API request/response validation."""

from schemas.common import CamelModel
from schemas.device import (
    DeviceCreate,
    DeviceResponse,
    DeviceSongResponse,
    DeviceUpdate,
    SongDevicesUpdate,
    SongDevicesUpdateResponse,
)
from schemas.song import SongResponse
from schemas.sync import (
    AcknowledgeActionRequest,
    AcknowledgeActionResponse,
    CancelStaleSessionsResponse,
    PendingActionItem,
    SyncCheckFile,
    SyncCheckRequest,
    SyncCheckResponse,
    SyncCompleteResponse,
    SyncCounts,
    SyncFileInfoItem,
    SyncRecordItem,
    SyncRecordResponse,
    SyncRecordsRequest,
    SyncRecordsResponse,
    SyncSessionResponse,
    SyncStartRequest,
    SyncStartResponse,
    SyncUploadResponse,
)

__all__ = [
    "AcknowledgeActionRequest",
    "AcknowledgeActionResponse",
    "CamelModel",
    "CancelStaleSessionsResponse",
    "DeviceCreate",
    "DeviceResponse",
    "DeviceSongResponse",
    "DeviceUpdate",
    "PendingActionItem",
    "SongDevicesUpdate",
    "SongDevicesUpdateResponse",
    "SongResponse",
    "SyncCheckFile",
    "SyncCheckRequest",
    "SyncCheckResponse",
    "SyncCompleteResponse",
    "SyncCounts",
    "SyncFileInfoItem",
    "SyncRecordItem",
    "SyncRecordResponse",
    "SyncRecordsRequest",
    "SyncRecordsResponse",
    "SyncSessionResponse",
    "SyncStartRequest",
    "SyncStartResponse",
    "SyncUploadResponse",
]
