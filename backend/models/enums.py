"""Enumerations shared by the device sync models and schemas.

Values are the wire names used by device clients. Lookups are
case-insensitive so ``"created"`` and ``"Created"`` parse the same.
"""

from enum import Enum


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class SyncSessionStatus(_CaseInsensitiveEnum):
    """Lifecycle state of a device sync session."""

    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class SyncRecordAction(_CaseInsensitiveEnum):
    """Outcome recorded for one file within a sync session."""

    CREATED = "Created"
    UPDATED = "Updated"
    SKIPPED = "Skipped"
    DOWNLOADED = "Downloaded"
    REMOVED = "Removed"
    ERROR = "Error"


class SyncRecordSource(_CaseInsensitiveEnum):
    """Who originated or observed a sync record."""

    DEVICE = "Device"
    SERVER = "Server"


class PendingAction(_CaseInsensitiveEnum):
    """Desired device-side change for a (device, song) pair."""

    DOWNLOAD = "Download"
    UPLOAD = "Upload"
    REMOVE = "Remove"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Stored values for a SQLAlchemy ``Enum`` column."""
    return [member.value for member in enum_cls]
