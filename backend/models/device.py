"""Device model - a storage target kept in sync with the catalog."""

from sqlalchemy import Column, DateTime, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class Device(Base):
    """A phone, player or other file tree that mirrors part of the catalog.

    The combination of owner + name uniquely identifies a device.
    ``active_session_id`` mirrors the device's single in-progress sync
    session, if any.
    """

    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("owner", "name", name="uix_device_owner_name"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(256), nullable=False)
    owner = Column(String(256), nullable=False, default="default")
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    naming_template = Column(String(512), nullable=True)  # None -> Artist/Album strategy
    last_sync_at = Column(DateTime, nullable=True)
    active_session_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    song_mappings = relationship(
        "SongDevice",
        back_populates="device",
        cascade="all, delete-orphan",
    )
    sync_sessions = relationship(
        "SyncSession",
        back_populates="device",
        cascade="all, delete-orphan",
    )
