"""Tests for the Mutagen metadata codec."""

import io

import pytest

from integrations.catalog_protocol import SongMetadata
from integrations.exceptions import MetadataReadError, MetadataWriteError
from integrations.mutagen_codec import MutagenMetadataCodec, _all, _first, _parse_int_prefix


class TestTagHelpers:
    """Tests for the tag value helpers."""

    def test_first(self):
        tags = {"title": ["  Song  ", "Other"], "empty": [""]}
        assert _first(tags, "title") == "Song"
        assert _first(tags, "empty") is None
        assert _first(tags, "missing") is None

    def test_all(self):
        tags = {"artist": ["A", " ", "B"]}
        assert _all(tags, "artist") == ["A", "B"]
        assert _all(tags, "missing") == []

    @pytest.mark.parametrize(
        "value,expected",
        [("3/12", 3), ("2021-05-01", 2021), ("7", 7), ("abc", None), (None, None), ("", None)],
    )
    def test_parse_int_prefix(self, value, expected):
        assert _parse_int_prefix(value) == expected


class TestMutagenMetadataCodec:
    """Tests for MutagenMetadataCodec."""

    def test_read_garbage(self):
        with pytest.raises(MetadataReadError) as exc_info:
            MutagenMetadataCodec().read(io.BytesIO(b"garbage"), "song.mp3")
        assert exc_info.value.collaborator == "mutagen"

    def test_write_garbage(self):
        stream = io.BytesIO(b"garbage")
        with pytest.raises(MetadataWriteError):
            MutagenMetadataCodec().write(stream, "song.mp3", SongMetadata(title="T"))
        assert stream.getvalue() == b"garbage"
