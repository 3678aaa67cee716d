"""API route handlers."""
from . import devices, songs, sync

__all__ = ["devices", "songs", "sync"]
