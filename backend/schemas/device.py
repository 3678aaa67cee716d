"""Pydantic schemas for devices."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from models.enums import PendingAction
from schemas.common import CamelModel


class DeviceCreate(CamelModel):
    """Schema for registering a device."""

    name: str = Field(min_length=1, max_length=256)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)  # Hex color code, e.g., "#3B82F6"
    naming_template: Optional[str] = Field(default=None, max_length=512)


class DeviceUpdate(CamelModel):
    """Schema for updating a device.

    Only fields present in the request body change; an explicit null
    clears the field.
    """

    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    naming_template: Optional[str] = Field(default=None, max_length=512)


class DeviceResponse(CamelModel):
    """Schema for Device API response."""

    id: str
    name: str
    owner: str
    icon: Optional[str] = None
    color: Optional[str] = None
    naming_template: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    active_session_id: Optional[str] = None
    song_count: int = 0
    created_at: datetime
    updated_at: datetime


class DeviceSongResponse(CamelModel):
    """A song on a device, with where it lives and what is pending for it."""

    song_id: str
    title: str
    label: str
    device_path: str
    pending_action: Optional[PendingAction] = None
    last_synced_modified_at: Optional[datetime] = None


class SongDevicesUpdate(CamelModel):
    """The exact set of devices a song should be on."""

    device_ids: list[str]


class SongDevicesUpdateResponse(CamelModel):
    """Devices a membership update added the song to and removed it from."""

    added: list[str]
    removed: list[str]
