"""Fake collaborators for testing.

``FakeMetadataCodec`` understands a tiny audio format: a magic header
followed by the tags as JSON. Anything else is unreadable, which is how
tests provoke ``MetadataReadError``.
"""

import io
import json
from typing import BinaryIO

from integrations.catalog_protocol import SongMetadata
from integrations.exceptions import MetadataReadError, MetadataWriteError, StorageError

FAKE_AUDIO_MAGIC = b"FAKEAUDIO\n"

_TAG_FIELDS = (
    "title",
    "album",
    "album_artist",
    "artists",
    "genres",
    "track",
    "year",
    "duration_seconds",
    "explicit",
    "lyrics",
)


def fake_audio(title: str = "Song", **tags) -> bytes:
    """Encode tags in the fake audio format.

    Pass ``payload`` to vary the bytes (and checksum) without changing tags.
    """
    payload = tags.pop("payload", "")
    body = {"title": title, **tags, "payload": payload}
    return FAKE_AUDIO_MAGIC + json.dumps(body, sort_keys=True).encode("utf-8")


class FakeMetadataCodec:
    """In-memory MetadataCodec for the fake audio format."""

    def __init__(self, fail_writes: bool = False):
        self.fail_writes = fail_writes
        self.written: list[str] = []

    def _decode(self, stream: BinaryIO, filename: str, error_cls) -> dict:
        stream.seek(0)
        data = stream.read()
        if not data.startswith(FAKE_AUDIO_MAGIC):
            raise error_cls(f"Unrecognised audio format for '{filename}'", collaborator="fake")
        try:
            return json.loads(data[len(FAKE_AUDIO_MAGIC):].decode("utf-8"))
        except ValueError as e:
            raise error_cls(f"Corrupt tags in '{filename}': {e}", collaborator="fake") from e

    def read(self, stream: BinaryIO, filename: str) -> SongMetadata:
        body = self._decode(stream, filename, MetadataReadError)
        return SongMetadata(**{k: body[k] for k in _TAG_FIELDS if k in body})

    def write(self, stream: BinaryIO, filename: str, metadata: SongMetadata) -> None:
        if self.fail_writes:
            raise MetadataWriteError(f"Cannot write tags to '{filename}'", collaborator="fake")
        body = self._decode(stream, filename, MetadataWriteError)
        for name in _TAG_FIELDS:
            body[name] = getattr(metadata, name)
        stream.seek(0)
        stream.truncate()
        stream.write(FAKE_AUDIO_MAGIC + json.dumps(body, sort_keys=True).encode("utf-8"))
        self.written.append(filename)


class InMemoryAudioStorage:
    """AudioStorage that keeps files in a dict keyed by repository path."""

    def __init__(self, fail_writes: bool = False):
        self.files: dict[str, bytes] = {}
        self.fail_writes = fail_writes
        self.write_count = 0

    def write(self, repository_path: str, data: bytes) -> None:
        if self.fail_writes:
            raise StorageError(f"Disk full writing {repository_path}", collaborator="memory")
        self.files[repository_path] = data
        self.write_count += 1

    def exists(self, repository_path: str) -> bool:
        return repository_path in self.files

    def open(self, repository_path: str) -> BinaryIO:
        if repository_path not in self.files:
            raise StorageError(f"No such file: {repository_path}", collaborator="memory")
        return io.BytesIO(self.files[repository_path])

    def absolute_path(self, repository_path: str) -> str:
        return f"memory://{repository_path}"
