"""Local filesystem audio storage for the catalog repository."""

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from integrations.exceptions import StorageError

logger = logging.getLogger(__name__)

STORAGE_NAME = "local"


class LocalAudioStorage:
    """Stores audio bytes below a repository root directory."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """Repository root directory."""
        return self._root

    def _resolve(self, repository_path: str) -> Path:
        """Resolve a relative path within the root, rejecting traversal."""
        full_path = (self._root / repository_path.lstrip("/")).resolve()
        if not full_path.is_relative_to(self._root.resolve()):
            raise StorageError(
                f"Path escapes the repository: {repository_path}", collaborator=STORAGE_NAME
            )
        return full_path

    def write(self, repository_path: str, data: bytes) -> None:
        """Store ``data`` at ``repository_path`` atomically, replacing any existing file."""
        target = self._resolve(repository_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(temp_name, target)
            except BaseException:
                if os.path.exists(temp_name):
                    os.remove(temp_name)
                raise
        except OSError as e:
            raise StorageError(
                f"Could not write {repository_path}: {e}", collaborator=STORAGE_NAME
            ) from e
        logger.debug("Stored %d bytes at %s", len(data), repository_path)

    def exists(self, repository_path: str) -> bool:
        """True if a file is stored at ``repository_path``."""
        return self._resolve(repository_path).is_file()

    def open(self, repository_path: str) -> BinaryIO:
        """Open stored audio for reading."""
        path = self._resolve(repository_path)
        try:
            return open(path, "rb")
        except OSError as e:
            raise StorageError(
                f"Could not open {repository_path}: {e}", collaborator=STORAGE_NAME
            ) from e

    def absolute_path(self, repository_path: str) -> str:
        """Filesystem path of a stored file."""
        return str(self._resolve(repository_path))
