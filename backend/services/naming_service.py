"""Naming service - computes canonical device-relative paths for songs."""

import logging
from pathlib import PurePosixPath

from integrations.catalog_protocol import PathTemplateEvaluator, SongMetadata
from integrations.exceptions import TemplateError
from integrations.jinja_template import JinjaPathTemplateEvaluator
from services.exceptions import ValidationError
from utils.paths import sanitize_filename

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".mp3"
UNKNOWN_ARTIST = "(Unknown)"
NO_ALBUM = "(No album)"
EMPTY_SEGMENT = "_"

# Rendered against a candidate template to check it before saving a device
_SAMPLE_METADATA = SongMetadata(
    title="Sample Title",
    album="Sample Album",
    album_artist="Sample Artist",
    artists=["Sample Artist", "Guest"],
    genres=["Rock"],
    track=1,
    year=2000,
    duration_seconds=180.0,
    song_id="00000000-0000-0000-0000-000000000000",
)


def extension_for(filename: str | None) -> str:
    """Lowercased file extension of ``filename``, or the default when it has none."""
    if filename:
        suffix = PurePosixPath(filename.replace("\\", "/")).suffix
        if suffix:
            return suffix.lower()
    return DEFAULT_EXTENSION


class NamingService:
    """Resolves where a song lives on a device.

    Without a device template the Artist/Album strategy applies:
    ``<album artist or first artist>/<album>/<simple label><ext>``. Template
    output is split on ``/`` and every segment is sanitized on its own so
    directory separators survive.
    """

    def __init__(self, evaluator: PathTemplateEvaluator | None = None):
        self._evaluator = evaluator or JinjaPathTemplateEvaluator()

    @staticmethod
    def default_segments(metadata: SongMetadata) -> list[str]:
        """Raw (unsanitized) Artist/Album strategy segments, without extension."""
        return [
            metadata.primary_artist or UNKNOWN_ARTIST,
            metadata.album or NO_ALBUM,
            metadata.simple_label,
        ]

    def default_path(self, metadata: SongMetadata, extension: str = DEFAULT_EXTENSION) -> str:
        """Path under the default Artist/Album strategy."""
        return self._finalize(self.default_segments(metadata), extension)

    def resolve(
        self,
        metadata: SongMetadata,
        template: str | None = None,
        extension: str = DEFAULT_EXTENSION,
    ) -> str:
        """Compute the sanitized device-relative path for a song.

        A template that fails to render falls back to the default strategy
        so a broken device template never blocks a sync.

        Args:
            metadata: Song metadata to name.
            template: Device naming template, or None for the default.
            extension: File extension appended when the result lacks it.

        Returns:
            ``/``-delimited relative path.
        """
        if template:
            try:
                rendered = self._evaluator.render(template, metadata)
            except TemplateError as e:
                logger.warning(
                    "Naming template failed for '%s', using default strategy: %s",
                    metadata.title,
                    e,
                )
            else:
                return self._finalize(rendered.split("/"), extension)
        return self.default_path(metadata, extension)

    def validate_template(self, template: str) -> None:
        """Check that a naming template renders to a usable path.

        Raises:
            ValidationError: If the template is invalid or renders empty.
        """
        try:
            rendered = self._evaluator.render(template, _SAMPLE_METADATA)
        except TemplateError as e:
            raise ValidationError(str(e)) from e
        if not any(sanitize_filename(segment) for segment in rendered.split("/")):
            raise ValidationError("Naming template renders an empty path")

    @staticmethod
    def _finalize(segments: list[str], extension: str) -> str:
        cleaned = [sanitize_filename(segment.strip()) for segment in segments]
        cleaned = [segment for segment in cleaned if segment]
        if not cleaned:
            cleaned = [EMPTY_SEGMENT]
        if not cleaned[-1].lower().endswith(extension.lower()):
            cleaned[-1] += extension
        return "/".join(cleaned)
