"""Project file enumeration.

Walks the project tree respecting include/exclude globs, the default
excluded directories, ``.gitignore`` and the maximum file size, and yields
only files whose extension maps to a supported language.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterator

from polyindex.config import DEFAULT_EXCLUDE_DIRS
from polyindex.engine.languages import Language, language_for_path
from polyindex.engine.types import ProjectConfig

logger = logging.getLogger(__name__)


def glob_match(path: str, pattern: str) -> bool:
    """Match a relative POSIX path against a glob.

    ``**/`` may also match zero directories, so ``**/*.py`` matches
    ``main.py`` at the project root.
    """
    if fnmatch.fnmatch(path, pattern):
        return True
    while pattern.startswith("**/"):
        pattern = pattern[3:]
        if fnmatch.fnmatch(path, pattern):
            return True
    return False


class GitignoreParser:
    """Parser for .gitignore files."""

    def __init__(self, project_root: Path):
        """Initialize with project root."""
        self.project_root = project_root
        self.patterns: list[str] = []
        self._load_gitignore()

    def _load_gitignore(self) -> None:
        """Load patterns from .gitignore file."""
        gitignore_path = self.project_root / ".gitignore"
        if gitignore_path.exists():
            try:
                content = gitignore_path.read_text()
            except OSError as e:
                logger.warning("Failed to read .gitignore: %s", e)
                return
            for line in content.splitlines():
                line = line.strip()
                # Skip comments and empty lines
                if line and not line.startswith("#"):
                    self.patterns.append(line)

    def should_ignore(self, path: PurePosixPath) -> bool:
        """Check if a path should be ignored based on gitignore patterns.

        Args:
            path: Path to check (relative to project root)

        Returns:
            True if path should be ignored
        """
        path_str = path.as_posix()
        ignored = False

        for raw_pattern in self.patterns:
            negated = raw_pattern.startswith("!")
            pattern = raw_pattern[1:] if negated else raw_pattern

            # Directory-only patterns match any path below the directory
            pattern = pattern.rstrip("/")
            if not pattern:
                continue

            if pattern.startswith("/"):
                # Match only from root
                pattern = pattern[1:]
                matched = fnmatch.fnmatch(path_str, pattern) or path_str.startswith(
                    pattern + "/"
                )
            else:
                matched = glob_match(path_str, pattern) or glob_match(path_str, f"**/{pattern}")
                if not matched:
                    matched = any(fnmatch.fnmatch(part, pattern) for part in path.parts)

            if matched:
                ignored = not negated

        return ignored


class FileScanner:
    """Enumerates indexable files of a project.

    Usage:
        scanner = FileScanner("./my-project", ProjectConfig(exclude=("**/gen/**",)))
        for path, file_id in scanner.scan():
            ...
    """

    def __init__(
        self,
        project_path: str | Path,
        project_config: ProjectConfig | None = None,
        *,
        max_file_size_bytes: int = 1_000_000,
        respect_gitignore: bool = True,
        exclude_dirs: tuple[str, ...] = DEFAULT_EXCLUDE_DIRS,
    ):
        self.project_path = Path(project_path).resolve()
        self.project_config = project_config or ProjectConfig()
        self.max_file_size_bytes = max_file_size_bytes
        self.exclude_dirs = frozenset(exclude_dirs)
        self._gitignore = GitignoreParser(self.project_path) if respect_gitignore else None
        self._languages: set[Language] = set()
        for name in self.project_config.languages:
            try:
                self._languages.add(Language(name))
            except ValueError:
                logger.warning("Ignoring unknown language filter: %s", name)

    def file_id(self, path: Path) -> str:
        """Project-relative POSIX path used as the index key."""
        resolved = Path(os.path.realpath(path))
        real_project = Path(os.path.realpath(self.project_path))
        return resolved.relative_to(real_project).as_posix()

    def accepts_language(self, language: Language) -> bool:
        if language == Language.UNKNOWN:
            return False
        return not self._languages or language in self._languages

    def should_ignore(self, file_id: str) -> bool:
        """Check if a project-relative path is out of scope.

        Args:
            file_id: Path relative to the project root

        Returns:
            True if the path should not be indexed
        """
        relative = PurePosixPath(file_id)
        if any(part in self.exclude_dirs for part in relative.parts[:-1]):
            return True
        if self.project_config.include and not any(
            glob_match(file_id, pattern) for pattern in self.project_config.include
        ):
            return True
        if any(glob_match(file_id, pattern) for pattern in self.project_config.exclude):
            return True
        if self._gitignore and self._gitignore.should_ignore(relative):
            return True
        return False

    def scan(self) -> Iterator[tuple[Path, str]]:
        """Scan the project for source files.

        Yields:
            ``(absolute_path, file_id)`` for each file to index
        """
        for root, dirs, files in os.walk(self.project_path):
            # Prune excluded directories in place
            dirs[:] = sorted(d for d in dirs if d not in self.exclude_dirs)
            for name in sorted(files):
                path = Path(root) / name
                if not self.accepts_language(language_for_path(path)):
                    continue
                try:
                    file_id = self.file_id(path)
                except ValueError:
                    # Symlink pointing outside the project
                    continue
                if self.should_ignore(file_id):
                    continue
                try:
                    if path.stat().st_size > self.max_file_size_bytes:
                        logger.debug("Skipping large file: %s", path)
                        continue
                except OSError:
                    continue
                yield path, file_id
