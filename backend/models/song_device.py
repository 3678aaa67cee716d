"""SongDevice model - places a song on a device at a device-relative path."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.enums import PendingAction, enum_values
from models.utils import generate_uuid, utc_now


class SongDevice(Base):
    """Mapping between a song and a device.

    ``pending_action`` is the pending-action queue: it is set when the
    server wants the device's copy to change and cleared only by an
    acknowledgment. ``version`` is an optimistic-concurrency counter; a
    flush against a stale version raises ``StaleDataError``.
    """

    __tablename__ = "song_devices"
    __table_args__ = (
        UniqueConstraint("device_id", "device_path", name="uix_song_device_path"),
        Index("ix_song_devices_device_song", "device_id", "song_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    song_id = Column(String(36), ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    device_id = Column(String(36), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    device_path = Column(String(1024), nullable=False)
    pending_action = Column(
        Enum(PendingAction, native_enum=False, values_callable=enum_values, length=16),
        nullable=True,
    )
    last_synced_modified_at = Column(DateTime, nullable=True)
    added_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    song = relationship("Song", back_populates="device_mappings")
    device = relationship("Device", back_populates="song_mappings")
