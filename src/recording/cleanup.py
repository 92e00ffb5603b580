"""Guaranteed removal of temporary files created while processing a session."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


def remove_file(path: str | None) -> bool:
    """Delete ``path`` if it exists.

    A missing file is not an error. Other failures are logged, never raised.
    Returns True only if a file was actually removed.
    """
    if not path:
        return False
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError:
        logger.exception("Error deleting temp file %s", path)
        return False
    logger.info("Temp file deleted: %s", path)
    return True


class TempArtifacts:
    """Registry of temp paths owned by one session or job."""

    def __init__(self, directory: str | None = None) -> None:
        self.directory = directory or tempfile.gettempdir()
        self._paths: list[str] = []
        self._released = False

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    def path_for(self, name: str) -> str:
        """Reserve a path inside the temp directory and register it for cleanup."""
        path = os.path.join(self.directory, os.path.basename(name))
        return self.register(path)

    def register(self, path: str) -> str:
        if path not in self._paths:
            self._paths.append(path)
        return path

    def release(self) -> None:
        """Remove every registered path. Subsequent calls are no-ops."""
        if self._released:
            return
        self._released = True
        for path in self._paths:
            remove_file(path)


@asynccontextmanager
async def temp_artifacts(directory: str | None = None) -> AsyncIterator[TempArtifacts]:
    """Yield a :class:`TempArtifacts` whose files are removed on every exit path."""
    artifacts = TempArtifacts(directory)
    try:
        yield artifacts
    finally:
        artifacts.release()
