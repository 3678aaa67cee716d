"""Tests for NamingService."""

import pytest

from integrations.catalog_protocol import SongMetadata
from integrations.exceptions import TemplateError
from services.exceptions import ValidationError
from services.naming_service import NamingService, extension_for


def _metadata(**overrides) -> SongMetadata:
    values = {
        "title": "Song",
        "album": "Album",
        "album_artist": "Artist",
        "artists": ["Artist", "Guest"],
        "track": 3,
        "year": 2020,
    }
    values.update(overrides)
    return SongMetadata(**values)


class BrokenEvaluator:
    """Evaluator that fails every render."""

    def render(self, template, metadata):
        raise TemplateError("boom", collaborator="broken")


class TestExtensionFor:
    """Tests for extension_for()."""

    def test_lowercases(self):
        assert extension_for("Track.FLAC") == ".flac"

    def test_windows_path(self):
        assert extension_for("Music\\Artist\\a.m4a") == ".m4a"

    @pytest.mark.parametrize("name", [None, "", "noext"])
    def test_default(self, name):
        assert extension_for(name) == ".mp3"


class TestDefaultStrategy:
    """Tests for the Artist/Album default naming."""

    def test_artist_album_label(self):
        path = NamingService().resolve(_metadata())
        assert path == "Artist/Album/Song - Artist, Guest.mp3"

    def test_missing_album_and_artist(self):
        path = NamingService().resolve(_metadata(album=None, album_artist=None, artists=[]))
        assert path == "(Unknown)/(No album)/Song.mp3"

    def test_first_artist_when_no_album_artist(self):
        path = NamingService().resolve(_metadata(album_artist=None, artists=["Zed", "Amy"]))
        assert path.startswith("Zed/Album/")

    def test_explicit_in_label(self):
        path = NamingService().resolve(_metadata(explicit=True, artists=[]))
        assert path == "Artist/Album/Song (Explicit) - Artist.mp3"

    def test_segments_sanitized(self):
        path = NamingService().resolve(_metadata(album="AC/DC: Live?", title='What "Is" It'))
        assert path.split("/")[1] == "AC_DC_ Live"
        assert "/" not in path.split("/")[2]

    def test_extension_used(self):
        assert NamingService().resolve(_metadata(), extension=".flac").endswith(".flac")


class TestTemplates:
    """Tests for template-driven naming."""

    def test_template_applied(self):
        naming = NamingService()
        path = naming.resolve(_metadata(), '{{ artist }}/{{ "%02d"|format(track) }} {{ title }}')
        assert path == "Artist/03 Song.mp3"

    def test_each_segment_sanitized_separately(self):
        naming = NamingService()
        path = naming.resolve(_metadata(title="a:b"), "{{ album }}/{{ title }}")
        assert path == "Album/a_b.mp3"

    def test_empty_segments_dropped(self):
        naming = NamingService()
        path = naming.resolve(_metadata(album=None), "{{ artist }}/{{ album or '' }}/{{ title }}")
        assert path == "Artist/Song.mp3"

    def test_extension_not_doubled(self):
        naming = NamingService()
        path = naming.resolve(_metadata(), "{{ title }}.mp3")
        assert path == "Song.mp3"

    def test_empty_render_falls_back_to_placeholder(self):
        naming = NamingService()
        assert naming.resolve(_metadata(album=None), "{{ album or '' }}") == "_.mp3"

    def test_broken_template_falls_back_to_default(self):
        naming = NamingService(evaluator=BrokenEvaluator())
        path = naming.resolve(_metadata(), "{{ whatever }}")
        assert path == NamingService().default_path(_metadata())

    def test_none_template_uses_default(self):
        naming = NamingService(evaluator=BrokenEvaluator())
        assert naming.resolve(_metadata(), None) == "Artist/Album/Song - Artist, Guest.mp3"


class TestValidateTemplate:
    """Tests for NamingService.validate_template."""

    def test_valid(self):
        NamingService().validate_template("{{ artist }}/{{ title }}")

    def test_syntax_error(self):
        with pytest.raises(ValidationError):
            NamingService().validate_template("{{ artist ")

    def test_renders_empty(self):
        with pytest.raises(ValidationError, match="empty"):
            NamingService().validate_template("{{ '' }}")
