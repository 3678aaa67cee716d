"""Device path canonicalisation and file-name sanitisation."""

import re

# Characters invalid in a file name on at least one supported target
# platform (Windows is the strictest), plus ASCII control characters.
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


def normalize_device_path(path: str) -> str:
    """Return the canonical form of a device-relative path.

    Backslashes become ``/``, leading ``./`` and ``/`` are dropped and
    repeated separators collapse.

    Raises:
        ValueError: If the path is empty or contains a ``..`` segment.
    """
    if path is None or not path.strip():
        raise ValueError("Device path must not be empty")
    segments = []
    for segment in path.strip().replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            raise ValueError(f"Device path must not contain '..': {path}")
        segments.append(segment)
    if not segments:
        raise ValueError(f"Device path has no file name: {path}")
    return "/".join(segments)


def sanitize_filename(name: str) -> str:
    """Make a single path segment safe to use as a file or directory name.

    Runs of invalid characters become ``_`` (leading and trailing runs are
    dropped) and trailing dots and spaces are trimmed.
    """
    parts = [p for p in _INVALID_FILENAME_CHARS.split(name) if p]
    return "_".join(parts).rstrip(". ")
