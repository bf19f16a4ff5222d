"""Index manager: the persisted project index and every query over it.

The manager is the only writer of its ``ProjectIndex``. Parsing runs on a
bounded thread pool, but workers only read their own file and build their
own ``FileIndex``; results are merged on the calling thread into a copy of
the file map, which replaces the published map when the run ends. Readers
therefore never see the map change while they iterate it. Each mutating
operation holds an exclusive file lock for its duration.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Iterable

from polyindex.config import (
    DEFAULT_EXCLUDE_DIRS,
    PolyindexConfig,
    config_path_for,
    load_config,
)
from polyindex.engine.parser import ParserEngine
from polyindex.engine.types import (
    FileIndex,
    IndexStats,
    ProjectConfig,
    ProjectIndex,
    Reference,
    Symbol,
    SymbolKind,
)
from polyindex.index.callgraph import (
    CallGraph,
    CallGraphNode,
    DependencyGraph,
    build_call_graph,
    build_dependency_graph,
)
from polyindex.index.scanner import FileScanner
from polyindex.index.search import ScoredSymbol, search_symbols
from polyindex.index.storage import INDEX_FILENAME, IndexLock, IndexStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class IndexResult:
    """Outcome of an ``index_project`` run.

    Attributes:
        indexed: Files parsed in this run
        skipped: Files left as stored (unchanged hash or no grammar)
        removed: Stored entries dropped because the file is gone
        errors: ``"<path>: <error>"`` for each file that failed
        cancelled: Whether the run stopped early on request
    """

    indexed: int = 0
    skipped: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "indexed": self.indexed,
            "skipped": self.skipped,
            "removed": self.removed,
            "errors": list(self.errors),
            "cancelled": self.cancelled,
        }


@dataclass
class ReferencesResult:
    """Definitions and usages of one name."""

    symbol: str
    definitions: list[Symbol] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.definitions) + len(self.references)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "definitions": [s.to_dict() for s in self.definitions],
            "references": [r.to_dict() for r in self.references],
            "total": self.total,
        }


@dataclass(frozen=True)
class _WorkItem:
    path: Path
    file_id: str
    stored_hash: str | None


class IndexManager:
    """Builds, persists and queries the symbol index of one project.

    Usage:
        manager = IndexManager("./my-project")
        result = manager.index_project()
        refs = manager.find_references("handleSubmit")
    """

    def __init__(
        self,
        project_path: str | Path,
        config: PolyindexConfig | None = None,
        *,
        index_path: str | Path | None = None,
        parser: ParserEngine | None = None,
    ):
        """Initialize the manager and load any stored index.

        Args:
            project_path: Path to the project root
            config: Configuration; read from the project's config file if
                omitted, in which case a stored index keeps its own project scope
            index_path: Override for ``<project>/.polyindex/index.json``
            parser: Parser engine to use, a new one by default
        """
        self.project_path = Path(project_path).resolve()
        self.config = config or load_config(config_path_for(self.project_path))
        self.index_path = (
            Path(index_path)
            if index_path is not None
            else self.project_path / self.config.indexing.index_dir / INDEX_FILENAME
        )
        self.parser = parser or ParserEngine()
        self._store = IndexStore(self.index_path)
        self._lock = IndexLock(self.index_path)
        self._index = self._store.load(str(self.project_path))
        if config is not None or not self._index.last_indexed:
            self._index.config = self.config.project.to_project_config()
        else:
            # A stored index keeps the scope last set through set_config
            self._sync_project_section()

    @property
    def index(self) -> ProjectIndex:
        return self._index

    def _sync_project_section(self) -> None:
        scope = self._index.config
        project = self.config.project
        project.name = scope.name
        project.include = list(scope.include)
        project.exclude = list(scope.exclude)
        project.languages = list(scope.languages)

    def _scanner(self) -> FileScanner:
        return FileScanner(
            self.project_path,
            self._index.config,
            max_file_size_bytes=self.config.indexing.max_file_size_bytes,
            respect_gitignore=self.config.indexing.respect_gitignore,
            exclude_dirs=DEFAULT_EXCLUDE_DIRS + (self.config.indexing.index_dir,),
        )

    def _file_id(self, path: str | Path) -> str:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.project_path / candidate
        return self._scanner().file_id(candidate)

    def _persist(self) -> bool:
        self._index.refresh_stats()
        self._index.last_indexed = time.time()
        return self._store.save(self._index)

    # --- indexing ------------------------------------------------------------

    def _index_one(self, item: _WorkItem, incremental: bool) -> tuple[bool, FileIndex | None]:
        """Worker: hash the file and parse it when it changed.

        Returns:
            ``(parsed, file_index)``; ``parsed`` is False when the stored
            entry is still current
        """
        raw = item.path.read_bytes()
        if incremental and item.stored_hash == ParserEngine.hash_content(raw):
            return False, None
        return True, self.parser.parse_file(item.path, raw, file_id=item.file_id)

    def index_project(
        self,
        incremental: bool = True,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> IndexResult:
        """Bring the index up to date with the project on disk.

        Args:
            incremental: Keep stored entries whose content hash is unchanged
            progress_callback: Called as ``(current, total, file_id)`` per file
            cancel_event: When set, no further files are scheduled; finished
                work is kept and saved, and stale entries are not pruned

        Returns:
            Counts of indexed/skipped/removed files and per-file errors

        Raises:
            IndexLockError: If another writer holds the index
        """
        result = IndexResult()

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        with self._lock:
            logger.info("Indexing project: %s", self.project_path)
            work = [
                _WorkItem(path, file_id, self._stored_hash(file_id))
                for path, file_id in self._scanner().scan()
            ]
            total = len(work)
            on_disk = {item.file_id for item in work}
            files = dict(self._index.files)
            done = 0
            queue = iter(work)
            window = max(self.config.indexing.max_workers, 1) * 2

            with ThreadPoolExecutor(max_workers=self.config.indexing.max_workers) as pool:
                pending: dict[Future, _WorkItem] = {}

                def schedule() -> None:
                    while len(pending) < window and not cancelled():
                        item = next(queue, None)
                        if item is None:
                            return
                        pending[pool.submit(self._index_one, item, incremental)] = item

                schedule()
                while pending:
                    finished, _ = wait(pending, return_when=FIRST_COMPLETED)
                    for future in finished:
                        item = pending.pop(future)
                        self._merge(item, future, files, result)
                        done += 1
                        if progress_callback:
                            progress_callback(done, total, item.file_id)
                    schedule()

            if cancelled() and done < total:
                result.cancelled = True
                logger.info("Indexing cancelled after %d of %d files", done, total)
            else:
                for file_id in [f for f in files if f not in on_disk]:
                    del files[file_id]
                    result.removed += 1

            self._index.files = files
            self._persist()

        logger.info(
            "Indexed %d files, skipped %d, removed %d, %d errors",
            result.indexed,
            result.skipped,
            result.removed,
            len(result.errors),
        )
        return result

    def _stored_hash(self, file_id: str) -> str | None:
        stored = self._index.files.get(file_id)
        return stored.hash if stored is not None else None

    def _merge(
        self, item: _WorkItem, future: Future, files: dict[str, FileIndex], result: IndexResult
    ) -> None:
        """Fold one worker outcome into the run's file map (calling thread only)."""
        try:
            parsed, file_index = future.result()
        except Exception as e:
            logger.warning("Failed to index file %s: %s", item.file_id, e)
            result.errors.append(f"{item.file_id}: {e}")
            return

        if not parsed:
            result.skipped += 1
        elif file_index is None:
            # No grammar for this file any more
            files.pop(item.file_id, None)
            result.skipped += 1
        else:
            files[item.file_id] = file_index
            result.indexed += 1

    async def index_project_async(
        self,
        incremental: bool = True,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> IndexResult:
        """``index_project`` on a worker thread, for use from async code."""
        return await asyncio.to_thread(
            self.index_project, incremental, progress_callback, cancel_event
        )

    def index_file(self, path: str | Path) -> FileIndex | None:
        """Re-parse one file regardless of its hash and persist.

        Args:
            path: Absolute path or path relative to the project root

        Returns:
            The new entry, or None if the file could not be indexed

        Raises:
            IndexLockError: If another writer holds the index
        """
        with self._lock:
            try:
                candidate = Path(path)
                if not candidate.is_absolute():
                    candidate = self.project_path / candidate
                file_id = self._file_id(candidate)
                file_index = self.parser.parse_file(candidate, file_id=file_id)
            except Exception as e:
                logger.warning("Failed to index file %s: %s", path, e)
                return None

            if file_index is None:
                return None
            self._index.files = {**self._index.files, file_id: file_index}
            self._persist()
            return file_index

    def remove_file(self, path: str | Path) -> bool:
        """Drop one file's entry and persist."""
        with self._lock:
            file_id = self._file_id(path)
            if file_id not in self._index.files:
                return False
            self._index.files = {k: v for k, v in self._index.files.items() if k != file_id}
            self._persist()
            return True

    # --- queries -------------------------------------------------------------

    def _symbols(self) -> Iterable[Symbol]:
        for file_index in self._index.files.values():
            yield from file_index.symbols

    def get_all_symbols(self) -> list[Symbol]:
        return list(self._symbols())

    def get_all_definitions(self, name: str) -> list[Symbol]:
        """Every symbol declared with exactly this name."""
        return [s for s in self._symbols() if s.name == name]

    def get_symbol(self, name: str) -> Symbol | None:
        """First definition of a name, or None."""
        return next((s for s in self._symbols() if s.name == name), None)

    def find_references(self, name: str) -> ReferencesResult:
        """Definitions and usage sites of a name, matched by exact name."""
        references = [
            ref
            for file_index in self._index.files.values()
            for ref in file_index.references
            if ref.symbol == name
        ]
        return ReferencesResult(
            symbol=name,
            definitions=self.get_all_definitions(name),
            references=references,
        )

    def get_symbols_in_file(self, path: str | Path) -> list[Symbol]:
        file_id = str(path)
        if file_id not in self._index.files:
            try:
                file_id = self._file_id(path)
            except ValueError:
                return []
        file_index = self._index.files.get(file_id)
        return list(file_index.symbols) if file_index is not None else []

    def search(
        self,
        query: str,
        kind: SymbolKind | str | list | None = None,
        language: str | list | None = None,
        file: str | None = None,
        exported: bool | None = None,
        limit: int | None = None,
        fuzzy: bool | None = None,
        regex: bool = False,
    ) -> list[ScoredSymbol]:
        """Search symbols by name.

        Args:
            query: Name, name fragment or regex
            kind: Symbol kind or list of kinds to keep
            language: Language or list of languages to keep
            file: Substring (or glob) of the file id
            exported: Keep only exported / only non-exported symbols
            limit: Maximum results, defaults to ``search.default_limit``
            fuzzy: Allow subsequence and signature matches, defaults to
                ``search.fuzzy``
            regex: Treat ``query`` as a regular expression

        Returns:
            Hits sorted by descending score
        """
        return search_symbols(
            self._symbols(),
            query,
            kind=kind,
            language=language,
            file=file,
            exported=exported,
            limit=self.config.search.default_limit if limit is None else limit,
            fuzzy=self.config.search.fuzzy if fuzzy is None else fuzzy,
            regex=regex,
        )

    def build_call_graph(self) -> CallGraph:
        return build_call_graph(self._index.files.values())

    def get_callers(self, name: str) -> list[CallGraphNode]:
        """Functions and methods that call ``name``."""
        return self.build_call_graph().callers_of(name)

    def build_dependency_graph(self) -> DependencyGraph:
        return build_dependency_graph(self._index.files.values())

    def get_stats(self) -> IndexStats:
        return IndexStats.compute(self._index.files)

    # --- configuration -------------------------------------------------------

    def get_config(self) -> ProjectConfig:
        return self._index.config

    def set_config(self, **changes: Any) -> ProjectConfig:
        """Update project scope (name, include, exclude, languages) and persist.

        Raises:
            TypeError: For unknown fields
        """
        normalized = {
            key: tuple(value) if isinstance(value, (list, tuple)) else value
            for key, value in changes.items()
        }
        with self._lock:
            self._index.config = replace(self._index.config, **normalized)
            project = self.config.project
            for key, value in normalized.items():
                setattr(project, key, list(value) if isinstance(value, tuple) else value)
            self._persist()
        return self._index.config

    def clear(self) -> None:
        """Forget every indexed file and persist the empty index."""
        with self._lock:
            config = self._index.config
            self._index = ProjectIndex(project_path=str(self.project_path), config=config)
            self._persist()
        logger.info("Cleared index: %s", self.index_path)
