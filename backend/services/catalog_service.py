"""Catalog service - SQLAlchemy implementation of the catalog repository."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from integrations.catalog_protocol import SongMetadata, StoredAudio
from models import Song

logger = logging.getLogger(__name__)


class CatalogService:
    """Catalog repository backed by the ``songs`` table.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self._db = db

    def get_song(self, song_id: str) -> Song | None:
        return self._db.get(Song, song_id)

    def find_song_by_checksum(self, checksum: str, algorithm: str) -> Song | None:
        return (
            self._db.query(Song)
            .filter(Song.checksum == checksum, Song.checksum_algorithm == algorithm)
            .order_by(Song.added_at)
            .first()
        )

    def find_song_by_repository_path(self, repository_path: str) -> Song | None:
        return self._db.query(Song).filter(Song.repository_path == repository_path).first()

    @staticmethod
    def _apply(song: Song, metadata: SongMetadata, stored: StoredAudio, modified_at: datetime) -> None:
        song.title = metadata.title
        song.label = metadata.full_label
        song.album = metadata.album
        song.album_artist = metadata.album_artist
        song.artists = list(metadata.artists)
        song.genres = list(metadata.genres)
        song.track = metadata.track
        song.year = metadata.year
        song.duration_seconds = metadata.duration_seconds
        song.explicit = metadata.explicit
        song.lyrics = metadata.lyrics
        song.size = stored.size
        song.repository_path = stored.repository_path
        song.checksum = stored.checksum
        song.checksum_algorithm = stored.checksum_algorithm
        song.modified_at = modified_at

    def create_song(
        self,
        metadata: SongMetadata,
        stored: StoredAudio,
        created_at: datetime,
        modified_at: datetime,
    ) -> Song:
        """Create a catalog entry for freshly stored audio."""
        song = Song(created_at=created_at)
        self._apply(song, metadata, stored, modified_at)
        self._db.add(song)
        self._db.flush()
        logger.info("Created song %s: %s", song.id, song.label)
        return song

    def update_song(
        self,
        song: Song,
        metadata: SongMetadata,
        stored: StoredAudio,
        modified_at: datetime,
    ) -> Song:
        """Overwrite an existing catalog entry with new metadata and bytes."""
        self._apply(song, metadata, stored, modified_at)
        self._db.flush()
        logger.info("Updated song %s: %s", song.id, song.label)
        return song

