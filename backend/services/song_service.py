"""Song service - serves catalog audio to devices."""

import io
import logging
import posixpath
from dataclasses import dataclass

from sqlalchemy.orm import Session

from integrations.catalog_protocol import AudioStorage, MetadataCodec, SongMetadata
from integrations.exceptions import MetadataWriteError, StorageError
from models import Song, SongDevice
from services.exceptions import NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class SongDownload:
    """Audio bytes ready to send, with the file name the device should use."""

    content: bytes
    filename: str
    media_type: str


_MEDIA_TYPES = {
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".wav": "audio/wav",
}


def media_type_for(filename: str) -> str:
    """MIME type for an audio file name, by extension."""
    return _MEDIA_TYPES.get(posixpath.splitext(filename)[1].lower(), "application/octet-stream")


class SongService:
    """Service for reading catalog songs and their stored audio."""

    def __init__(self, codec: MetadataCodec, storage: AudioStorage):
        self._codec = codec
        self._storage = storage

    @staticmethod
    def get_song(db: Session, song_id: str) -> Song:
        """Get a song by ID.

        Raises:
            NotFoundError: If the song does not exist.
        """
        song = db.get(Song, song_id)
        if song is None:
            raise NotFoundError(f"Song {song_id} not found")
        return song

    def download(self, db: Session, song_id: str, device_id: str | None = None) -> SongDownload:
        """Read a song's stored audio with the catalog's tags written into it.

        The catalog is the source of truth for tags, so edits made on the
        server reach the device with the file. When tags cannot be written
        the stored bytes are sent unchanged. With ``device_id`` the file is
        named after the song's path on that device.

        Raises:
            NotFoundError: If the song, or its stored audio, does not exist.
        """
        song = self.get_song(db, song_id)
        if not self._storage.exists(song.repository_path):
            raise NotFoundError(f"Audio for song {song_id} is missing from the repository")

        try:
            with self._storage.open(song.repository_path) as f:
                original = f.read()
        except StorageError as e:
            raise NotFoundError(str(e)) from e

        filename = posixpath.basename(song.repository_path)
        if device_id is not None:
            mapping = (
                db.query(SongDevice)
                .filter(SongDevice.device_id == device_id, SongDevice.song_id == song_id)
                .first()
            )
            if mapping is not None:
                filename = posixpath.basename(mapping.device_path)

        stream = io.BytesIO(original)
        try:
            self._codec.write(stream, filename, SongMetadata.from_song(song))
            content = stream.getvalue()
        except MetadataWriteError as e:
            logger.warning("Serving song %s with its stored tags: %s", song_id, e)
            content = original

        logger.info("Serving song %s as %s", song_id, filename)
        return SongDownload(
            content=content,
            filename=filename,
            media_type=media_type_for(filename),
        )
