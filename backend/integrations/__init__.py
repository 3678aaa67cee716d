"""External collaborator integrations.

This package contains:
- Catalog protocol: interfaces the sync engine consumes (catalog, codec,
  naming templates, audio storage) and the SongMetadata value object
- Mutagen codec: reads and writes audio tags
- Jinja2 evaluator: renders device naming templates in a sandbox
- Local storage: keeps uploaded audio bytes on disk
"""

from integrations.catalog_protocol import (
    AudioStorage,
    CatalogRepository,
    MetadataCodec,
    PathTemplateEvaluator,
    SongMetadata,
    StoredAudio,
)

__all__ = [
    "AudioStorage",
    "CatalogRepository",
    "MetadataCodec",
    "PathTemplateEvaluator",
    "SongMetadata",
    "StoredAudio",
]
