"""Song model - flat catalog entry for one audio file."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class Song(Base):
    """A song in the catalog.

    Album and artist information is stored inline; the catalog's richer
    entity graph lives outside the sync engine.
    """

    __tablename__ = "songs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(256), nullable=False)
    label = Column(String(256), nullable=False)  # Full display label
    album = Column(String(256), nullable=True)
    album_artist = Column(String(256), nullable=True)
    artists = Column(JSON, nullable=False, default=list)  # list[str]
    genres = Column(JSON, nullable=False, default=list)  # list[str]
    track = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)
    duration_seconds = Column(Float, nullable=False, default=0.0)
    explicit = Column(Boolean, nullable=False, default=False)
    lyrics = Column(Text, nullable=True)
    size = Column(Integer, nullable=False, default=0)
    repository_path = Column(String(1024), nullable=False, unique=True)
    checksum = Column(String(88), nullable=False, index=True)
    checksum_algorithm = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False)  # File creation time reported by the uploader
    modified_at = Column(DateTime, nullable=False)  # File modification time reported by the uploader
    added_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    device_mappings = relationship(
        "SongDevice",
        back_populates="song",
        cascade="all, delete-orphan",
    )
