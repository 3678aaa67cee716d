"""Naming-template evaluator backed by a sandboxed Jinja2 environment.

Device naming templates are user-supplied, so they render in a
``SandboxedEnvironment``: attribute access is restricted and no Python
callables beyond the exposed variables are reachable.

Example template::

    {{ artists_label }}/{{ album or "(No album)" }}/{{ "%02d"|format(track or 0) }} {{ title }}
"""

import logging

from jinja2 import TemplateError as JinjaTemplateError
from jinja2.sandbox import SandboxedEnvironment

from integrations.catalog_protocol import SongMetadata
from integrations.exceptions import TemplateError

logger = logging.getLogger(__name__)

EVALUATOR_NAME = "jinja2"


def template_context(metadata: SongMetadata) -> dict:
    """Variables exposed to naming templates."""
    return {
        "song": metadata,
        "id": metadata.song_id,
        "title": metadata.title,
        "album": metadata.album,
        "album_artist": metadata.album_artist,
        "artist": metadata.primary_artist,
        "artists": metadata.normalized_artists(),
        "genres": list(metadata.genres),
        "track": metadata.track,
        "year": metadata.year,
        "duration": metadata.duration_seconds,
        "explicit": metadata.explicit,
        "simple_label": metadata.simple_label,
        "full_label": metadata.full_label,
        "artists_label": metadata.artists_label,
    }


class JinjaPathTemplateEvaluator:
    """Path template evaluator using Jinja2's sandbox."""

    def __init__(self):
        self._env = SandboxedEnvironment(autoescape=False, keep_trailing_newline=False)
        self._compiled = {}

    def validate(self, template: str) -> None:
        """Parse ``template`` without rendering it.

        Raises:
            TemplateError: If the template has a syntax error.
        """
        self._compile(template)

    def render(self, template: str, metadata: SongMetadata) -> str:
        """Render ``template`` against ``metadata``.

        Raises:
            TemplateError: If the template is invalid or fails to render.
        """
        compiled = self._compile(template)
        try:
            return compiled.render(**template_context(metadata)).strip()
        except JinjaTemplateError as e:
            raise TemplateError(
                f"Naming template failed to render: {e}", collaborator=EVALUATOR_NAME
            ) from e

    def _compile(self, template: str):
        compiled = self._compiled.get(template)
        if compiled is None:
            try:
                compiled = self._env.from_string(template)
            except JinjaTemplateError as e:
                raise TemplateError(
                    f"Invalid naming template: {e}", collaborator=EVALUATOR_NAME
                ) from e
            self._compiled[template] = compiled
            logger.debug("Compiled naming template %r", template)
        return compiled
