"""SyncRecord model - the per-file outcome ledger of a sync session."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.enums import SyncRecordAction, SyncRecordSource, enum_values
from models.utils import generate_uuid, utc_now


class SyncRecord(Base):
    """One outcome for one file within one session.

    (session_id, file_path) is unique: re-posting a record for a path the
    session already holds is a no-op, which makes chunk retries safe.
    """

    __tablename__ = "sync_records"
    __table_args__ = (
        UniqueConstraint("session_id", "file_path", name="uix_sync_record_session_path"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(
        String(36), ForeignKey("sync_sessions.id", ondelete="CASCADE"), nullable=False
    )
    file_path = Column(String(1024), nullable=False)
    song_id = Column(String(36), ForeignKey("songs.id", ondelete="SET NULL"), nullable=True)
    action = Column(
        Enum(SyncRecordAction, native_enum=False, values_callable=enum_values, length=16),
        nullable=False,
    )
    source = Column(
        Enum(SyncRecordSource, native_enum=False, values_callable=enum_values, length=16),
        nullable=False,
        default=SyncRecordSource.DEVICE,
    )
    error_message = Column(String(2048), nullable=True)
    reason = Column(String(2048), nullable=True)
    processed_at = Column(DateTime, nullable=False, default=utc_now)
    # The other source's outcome for this path that lost last-write-wins
    contested_action = Column(
        Enum(SyncRecordAction, native_enum=False, values_callable=enum_values, length=16),
        nullable=True,
    )
    contested_source = Column(
        Enum(SyncRecordSource, native_enum=False, values_callable=enum_values, length=16),
        nullable=True,
    )

    # Relationships
    session = relationship("SyncSession", back_populates="records")
