"""Collaborator protocol definitions for the device sync engine.

The sync engine does not own the music catalog, tag parsing or the naming
template language. This module defines the value objects and interfaces it
consumes from them, so concrete adapters (SQLAlchemy catalog, mutagen
codec, Jinja2 templates, local file storage) can be swapped in tests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Protocol

from models import Song


@dataclass
class SongMetadata:
    """Normalized song metadata, as read from tags or the catalog.

    All codecs must map their tag data to this format.
    """

    title: str
    album: str | None = None
    album_artist: str | None = None
    artists: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    track: int | None = None
    year: int | None = None
    duration_seconds: float = 0.0
    explicit: bool = False
    lyrics: str | None = None
    song_id: str | None = None  # Catalog id when built from a catalog entry

    def normalized_artists(self) -> list[str]:
        """Album artist first, then the other artists alphabetically, without duplicates."""
        result: list[str] = []
        if self.album_artist:
            result.append(self.album_artist)
        for name in sorted(self.artists):
            if name not in result:
                result.append(name)
        return result

    @property
    def artists_label(self) -> str | None:
        """Comma-separated artist names, or None when no artist is known."""
        names = self.normalized_artists()
        return ", ".join(names) if names else None

    @property
    def simple_label(self) -> str:
        """``Title (Explicit) - Artists``, omitting the parts that are unknown."""
        label = self.title
        if self.explicit:
            label += " (Explicit)"
        if self.artists_label is not None:
            label += f" - {self.artists_label}"
        return label

    @property
    def full_label(self) -> str:
        """The simple label followed by the album name, when known."""
        if self.album is not None:
            return f"{self.simple_label} - {self.album}"
        return self.simple_label

    @property
    def primary_artist(self) -> str | None:
        """Album artist, falling back to the first listed artist."""
        if self.album_artist:
            return self.album_artist
        return self.artists[0] if self.artists else None

    @classmethod
    def from_song(cls, song: Song) -> "SongMetadata":
        """Build metadata from a catalog entry."""
        return cls(
            title=song.title,
            album=song.album,
            album_artist=song.album_artist,
            artists=list(song.artists or []),
            genres=list(song.genres or []),
            track=song.track,
            year=song.year,
            duration_seconds=song.duration_seconds or 0.0,
            explicit=bool(song.explicit),
            lyrics=song.lyrics,
            song_id=song.id,
        )


@dataclass
class StoredAudio:
    """Result of writing audio bytes into the repository."""

    repository_path: str  # Relative to the repository root
    size: int
    checksum: str
    checksum_algorithm: str


class CatalogRepository(Protocol):
    """Protocol for the catalog store consumed by the sync engine.

    Entities are referenced by id and returned flat; the engine never
    traverses a live object graph.
    """

    def get_song(self, song_id: str) -> Song | None:
        """Look up a song by id."""
        ...

    def find_song_by_checksum(self, checksum: str, algorithm: str) -> Song | None:
        """Look up a song whose stored bytes hash to ``checksum``."""
        ...

    def find_song_by_repository_path(self, repository_path: str) -> Song | None:
        """Look up a song by its relative path in the audio repository."""
        ...

    def create_song(
        self,
        metadata: SongMetadata,
        stored: StoredAudio,
        created_at: datetime,
        modified_at: datetime,
    ) -> Song:
        """Create a catalog entry for freshly stored audio."""
        ...

    def update_song(
        self,
        song: Song,
        metadata: SongMetadata,
        stored: StoredAudio,
        modified_at: datetime,
    ) -> Song:
        """Overwrite an existing catalog entry with new metadata and bytes."""
        ...


class MetadataCodec(Protocol):
    """Protocol for reading and writing audio tags."""

    def read(self, stream: BinaryIO, filename: str) -> SongMetadata:
        """Read tags from an audio byte stream.

        Raises:
            MetadataReadError: If the stream is not a recognised audio file.
        """
        ...

    def write(self, stream: BinaryIO, filename: str, metadata: SongMetadata) -> None:
        """Write ``metadata`` into the tags of the audio byte stream in place.

        Raises:
            MetadataWriteError: If the tags cannot be written.
        """
        ...


class PathTemplateEvaluator(Protocol):
    """Protocol for the naming-template language.

    Only "template + metadata -> path" is needed; the result is a
    ``/``-delimited relative path whose segments are sanitized afterwards.
    """

    def render(self, template: str, metadata: SongMetadata) -> str:
        """Render ``template`` against ``metadata``.

        Raises:
            TemplateError: If the template is invalid or fails to render.
        """
        ...


class AudioStorage(Protocol):
    """Protocol for the byte store backing the catalog."""

    def write(self, repository_path: str, data: bytes) -> None:
        """Store ``data`` at ``repository_path``, replacing any existing file.

        Raises:
            StorageError: If the bytes cannot be written.
        """
        ...

    def exists(self, repository_path: str) -> bool:
        """True if a file is stored at ``repository_path``."""
        ...

    def open(self, repository_path: str) -> BinaryIO:
        """Open stored audio for reading.

        Raises:
            StorageError: If the file does not exist.
        """
        ...

    def absolute_path(self, repository_path: str) -> str:
        """Filesystem path of a stored file, for streaming responses."""
        ...
