"""Index persistence and the single-writer lock.

The project index is one JSON document. Saves are atomic (temp file then
rename), and a stored index that is unreadable, corrupt or from another
format version is treated as absent.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import IO

from polyindex.engine.types import INDEX_VERSION, ProjectIndex

if os.name == "nt":
    import msvcrt
else:
    import fcntl

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"


class IndexLockError(RuntimeError):
    """Raised when another writer already holds the index lock."""


class IndexStore:
    """Loads and saves a ``ProjectIndex`` at a fixed path."""

    def __init__(self, index_path: Path):
        self.index_path = Path(index_path)

    def load(self, project_path: str) -> ProjectIndex:
        """Load the stored index, or start empty.

        Args:
            project_path: Project root recorded in a fresh index

        Returns:
            The stored index, or an empty one when missing, corrupt or
            written by a different format version
        """
        if not self.index_path.exists():
            return ProjectIndex(project_path=project_path)

        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable index %s: %s", self.index_path, e)
            return ProjectIndex(project_path=project_path)

        if not isinstance(data, dict) or data.get("version") != INDEX_VERSION:
            logger.warning(
                "Index %s has version %s, expected %s; rebuilding",
                self.index_path,
                data.get("version") if isinstance(data, dict) else None,
                INDEX_VERSION,
            )
            return ProjectIndex(project_path=project_path)

        try:
            index = ProjectIndex.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring corrupt index %s: %s", self.index_path, e)
            return ProjectIndex(project_path=project_path)

        index.project_path = project_path
        return index

    def save(self, index: ProjectIndex) -> bool:
        """Write the index atomically.

        Returns:
            True on success. A failed write is logged and leaves the
            previous file untouched.
        """
        json_content = json.dumps(index.to_dict(), indent=2, ensure_ascii=False)

        # Write atomically using a temp file
        temp_path = self.index_path.with_suffix(".json.tmp")
        try:
            self.index_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json_content, encoding="utf-8")
            temp_path.replace(self.index_path)
        except OSError as e:
            logger.warning("Failed to save index to %s: %s", self.index_path, e)
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove %s", temp_path)
            return False

        logger.debug("Saved index: %s (%d files)", self.index_path, len(index.files))
        return True


class IndexLock:
    """Exclusive, non-blocking advisory lock on ``<index>.lock``.

    Every mutating operation holds it, so at most one writer (thread or
    process) touches an index file at a time. A second writer fails fast
    with ``IndexLockError`` instead of waiting.

    Usage:
        with IndexLock(index_path):
            ...
    """

    def __init__(self, index_path: Path):
        self.path = Path(index_path).with_suffix(".lock")
        self._fh: IO | None = None

    @property
    def held(self) -> bool:
        return self._fh is not None

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            IndexLockError: If the lock is already held
        """
        if self._fh is not None:
            raise IndexLockError(f"Index lock already held: {self.path}")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(self.path, "a+")
        try:
            if os.name == "nt":
                msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            fh.close()
            raise IndexLockError(f"Index is locked by another writer: {self.path}") from e
        self._fh = fh

    def release(self) -> None:
        if self._fh is None:
            return
        try:
            if os.name == "nt":
                msvcrt.locking(self._fh.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._fh.fileno(), fcntl.LOCK_UN)
        finally:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> IndexLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
