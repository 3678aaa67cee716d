"""SyncSession model - one reconciliation run for one device."""

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, String, text
from sqlalchemy.orm import relationship

from database import Base
from models.enums import SyncSessionStatus, enum_values
from models.utils import generate_uuid, utc_now


class SyncSession(Base):
    """A device sync session.

    At most one session per device may be in progress; the partial unique
    index enforces this at the storage layer.
    """

    __tablename__ = "sync_sessions"
    __table_args__ = (
        Index(
            "uix_sync_sessions_device_in_progress",
            "device_id",
            unique=True,
            sqlite_where=text("status = 'InProgress'"),
            postgresql_where=text("status = 'InProgress'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    device_id = Column(
        String(36), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    started_at = Column(DateTime, nullable=False, default=utc_now)
    completed_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=False, default=utc_now)
    status = Column(
        Enum(SyncSessionStatus, native_enum=False, values_callable=enum_values, length=16),
        nullable=False,
        default=SyncSessionStatus.IN_PROGRESS,
    )
    is_dry_run = Column(Boolean, nullable=False, default=False)
    cancel_reason = Column(String(512), nullable=True)

    # Relationships
    device = relationship("Device", back_populates="sync_sessions")
    records = relationship(
        "SyncRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SyncRecord.file_path",
    )

    @property
    def is_in_progress(self) -> bool:
        """True while the session still accepts records and uploads."""
        return self.status == SyncSessionStatus.IN_PROGRESS
