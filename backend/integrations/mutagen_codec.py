"""Audio tag codec backed by Mutagen.

Reads and writes the common tag set through Mutagen's "easy" interfaces
(EasyID3 for MP3, EasyMP4 for M4A, Vorbis comments for FLAC/Ogg/Opus), so
the same key names work across formats.
"""

import logging
from pathlib import PurePosixPath
from typing import BinaryIO

from mutagen import File as MutagenFile
from mutagen import MutagenError

from integrations.catalog_protocol import SongMetadata
from integrations.exceptions import MetadataReadError, MetadataWriteError

logger = logging.getLogger(__name__)

CODEC_NAME = "mutagen"


def _first(tags, key: str) -> str | None:
    """Return the first non-empty value stored under ``key``."""
    try:
        values = tags.get(key)
    except (KeyError, ValueError):
        # Some formats (like Vorbis) raise ValueError for unknown keys
        return None
    if not values:
        return None
    if isinstance(values, list):
        values = values[0]
    value = str(values).strip()
    return value or None


def _all(tags, key: str) -> list[str]:
    """Return every non-empty value stored under ``key``."""
    try:
        values = tags.get(key) or []
    except (KeyError, ValueError):
        return []
    if not isinstance(values, list):
        values = [values]
    return [str(v).strip() for v in values if str(v).strip()]


def _parse_int_prefix(value: str | None) -> int | None:
    """Parse ``"3/12"`` or ``"2021-05-01"`` style values to their leading integer."""
    if not value:
        return None
    head = value.replace("/", "-").split("-")[0].strip()
    try:
        return int(head)
    except ValueError:
        return None


class MutagenMetadataCodec:
    """Metadata codec implementation using Mutagen."""

    def read(self, stream: BinaryIO, filename: str) -> SongMetadata:
        """Read tags from an audio byte stream.

        Falls back to the filename stem for the title when the file carries
        no title tag.

        Raises:
            MetadataReadError: If Mutagen does not recognise the stream.
        """
        stream.seek(0)
        try:
            audio = MutagenFile(stream, easy=True)
        except MutagenError as e:
            raise MetadataReadError(
                f"Could not parse audio file '{filename}': {e}", collaborator=CODEC_NAME
            ) from e
        if audio is None:
            raise MetadataReadError(
                f"Unrecognised audio format for '{filename}'", collaborator=CODEC_NAME
            )

        tags = audio.tags or {}
        title = _first(tags, "title") or PurePosixPath(filename).stem
        duration = getattr(getattr(audio, "info", None), "length", None) or 0.0

        metadata = SongMetadata(
            title=title,
            album=_first(tags, "album"),
            album_artist=_first(tags, "albumartist"),
            artists=_all(tags, "artist"),
            genres=_all(tags, "genre"),
            track=_parse_int_prefix(_first(tags, "tracknumber")),
            year=_parse_int_prefix(_first(tags, "date")),
            duration_seconds=float(duration),
        )
        logger.debug("Read tags from %s: %s", filename, metadata.full_label)
        return metadata

    def write(self, stream: BinaryIO, filename: str, metadata: SongMetadata) -> None:
        """Write ``metadata`` into the stream's tags in place.

        Raises:
            MetadataWriteError: If the stream is not a writable audio file.
        """
        stream.seek(0)
        try:
            audio = MutagenFile(stream, easy=True)
            if audio is None:
                raise MetadataWriteError(
                    f"Unrecognised audio format for '{filename}'", collaborator=CODEC_NAME
                )
            if audio.tags is None:
                audio.add_tags()

            audio["title"] = metadata.title
            if metadata.album is not None:
                audio["album"] = metadata.album
            if metadata.album_artist is not None:
                audio["albumartist"] = metadata.album_artist
            if metadata.artists:
                audio["artist"] = list(metadata.artists)
            if metadata.genres:
                audio["genre"] = list(metadata.genres)
            if metadata.track is not None:
                audio["tracknumber"] = str(metadata.track)
            if metadata.year is not None:
                audio["date"] = str(metadata.year)

            stream.seek(0)
            audio.save(stream)
        except MutagenError as e:
            raise MetadataWriteError(
                f"Could not write tags to '{filename}': {e}", collaborator=CODEC_NAME
            ) from e
        logger.debug("Wrote tags to %s", filename)
