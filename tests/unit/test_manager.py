"""Unit tests for the index manager.

Tests cover:
- Full and incremental indexing, deletion and error capture
- Cancellation and progress reporting
- Persistence, the stored project scope and the single-writer lock
- Readers running while a build swaps in new results
- Queries: definitions, references, search, call and dependency graphs
- Project config updates and clearing
"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from polyindex.config import IndexingConfig, PolyindexConfig
from polyindex.engine.types import SymbolKind
from polyindex.index.manager import IndexManager, IndexResult, ReferencesResult
from polyindex.index.storage import IndexLock, IndexLockError


# Check if tree-sitter is available
def _has_tree_sitter() -> bool:
    """Check if tree-sitter-language-pack is installed."""
    try:
        import tree_sitter_language_pack  # noqa: F401

        return True
    except ImportError:
        return False


requires_tree_sitter = pytest.mark.skipif(
    not _has_tree_sitter(), reason="tree-sitter-language-pack not installed"
)

pytestmark = requires_tree_sitter

VALIDATE_TS = """\
export function validate(input: string): boolean {
  return input.length > 0;
}
"""

FORM_TS = """\
import { validate } from "./validate";

export class Form {
  submit(value: string) {
    if (validate(value)) {
      this.save(value);
    }
  }

  save(value: string) {}
}
"""

TOOL_PY = """\
def run():
    return helper()


def helper():
    return 1
"""

FILE_IDS = ["scripts/tool.py", "src/form.ts", "src/validate.ts"]


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a small project with TypeScript and Python sources."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "scripts").mkdir()
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "src" / "validate.ts").write_text(VALIDATE_TS)
    (root / "src" / "form.ts").write_text(FORM_TS)
    (root / "scripts" / "tool.py").write_text(TOOL_PY)
    (root / "node_modules" / "dep" / "index.js").write_text("export function dep() {}\n")
    return root


@pytest.fixture
def manager(project: Path) -> IndexManager:
    config = PolyindexConfig(indexing=IndexingConfig(max_workers=2))
    return IndexManager(project, config)


@pytest.fixture
def indexed(manager: IndexManager) -> IndexManager:
    manager.index_project()
    return manager


def _count_parses(monkeypatch, manager: IndexManager) -> list[str]:
    """Record every file the manager's parser is asked to parse."""
    calls: list[str] = []
    original = manager.parser.parse_file

    def spy(path, content=None, *, file_id=None):
        calls.append(file_id)
        return original(path, content, file_id=file_id)

    monkeypatch.setattr(manager.parser, "parse_file", spy)
    return calls


class TestIndexProject:
    """Tests for index_project."""

    def test_first_run(self, manager: IndexManager):
        """Test every supported file outside excluded dirs is indexed."""
        result = manager.index_project()
        assert isinstance(result, IndexResult)
        assert result.indexed == 3
        assert result.skipped == 0
        assert result.errors == []
        assert not result.cancelled
        assert sorted(manager.index.files) == FILE_IDS
        assert manager.index_path.exists()
        assert manager.index_path == manager.project_path / ".polyindex" / "index.json"

    def test_second_run_parses_nothing(self, indexed: IndexManager, monkeypatch):
        """Test an unchanged project is not re-parsed."""
        before = dict(indexed.index.files)
        calls = _count_parses(monkeypatch, indexed)

        result = indexed.index_project()

        assert calls == []
        assert result.indexed == 0
        assert result.skipped == 3
        assert indexed.index.files == before

    def test_changed_file_is_reparsed(self, indexed: IndexManager, project: Path, monkeypatch):
        """Test only files whose content hash changed are re-parsed."""
        calls = _count_parses(monkeypatch, indexed)
        (project / "src" / "validate.ts").write_text(
            VALIDATE_TS + "\nexport function sanitize(s: string) { return s; }\n"
        )

        result = indexed.index_project()

        assert calls == ["src/validate.ts"]
        assert result.indexed == 1
        assert result.skipped == 2
        assert indexed.get_symbol("sanitize") is not None

    def test_full_rebuild(self, indexed: IndexManager, monkeypatch):
        """Test incremental=False re-parses everything."""
        calls = _count_parses(monkeypatch, indexed)
        result = indexed.index_project(incremental=False)
        assert sorted(calls) == FILE_IDS
        assert result.indexed == 3

    def test_deleted_file_is_removed(self, indexed: IndexManager, project: Path):
        """Test entries for vanished files are dropped."""
        (project / "scripts" / "tool.py").unlink()
        result = indexed.index_project()
        assert result.removed == 1
        assert "scripts/tool.py" not in indexed.index.files
        assert indexed.get_symbol("helper") is None

    def test_new_file_is_added(self, indexed: IndexManager, project: Path):
        """Test files created after the first run are picked up."""
        (project / "src" / "extra.py").write_text("def extra():\n    pass\n")
        result = indexed.index_project()
        assert result.indexed == 1
        assert indexed.get_symbol("extra").file == "src/extra.py"

    def test_gitignore_is_respected(self, project: Path, manager: IndexManager):
        """Test gitignored files are not indexed."""
        (project / ".gitignore").write_text("scripts/\n")
        manager.index_project()
        assert "scripts/tool.py" not in manager.index.files

    def test_parse_errors_are_collected(self, manager: IndexManager, monkeypatch):
        """Test one failing file does not stop the run."""
        original = manager.parser.parse_file

        def flaky(path, content=None, *, file_id=None):
            if file_id == "src/form.ts":
                raise ValueError("bad bytes")
            return original(path, content, file_id=file_id)

        monkeypatch.setattr(manager.parser, "parse_file", flaky)
        result = manager.index_project()

        assert result.errors == ["src/form.ts: bad bytes"]
        assert result.indexed == 2
        assert "src/form.ts" not in manager.index.files

    def test_progress_callback(self, manager: IndexManager):
        """Test progress is reported once per file."""
        seen: list[tuple[int, int, str]] = []
        manager.index_project(progress_callback=lambda c, t, p: seen.append((c, t, p)))
        assert [c for c, _, _ in seen] == [1, 2, 3]
        assert {t for _, t, _ in seen} == {3}
        assert sorted(p for _, _, p in seen) == FILE_IDS


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_before_start(self, indexed: IndexManager, project: Path):
        """Test a pre-set event schedules nothing and prunes nothing."""
        (project / "scripts" / "tool.py").unlink()
        event = threading.Event()
        event.set()

        result = indexed.index_project(cancel_event=event)

        assert result.cancelled
        assert result.indexed == 0
        assert result.removed == 0
        assert "scripts/tool.py" in indexed.index.files

    def test_cancel_midway_keeps_finished_work(self, project: Path):
        """Test files finished before cancellation are kept and saved."""
        for i in range(10):
            (project / "src" / f"gen_{i}.py").write_text(f"def gen_{i}():\n    pass\n")
        manager = IndexManager(project, PolyindexConfig(indexing=IndexingConfig(max_workers=1)))
        event = threading.Event()

        result = manager.index_project(progress_callback=lambda *_: event.set(), cancel_event=event)

        assert result.cancelled
        assert 0 < result.indexed < 13
        assert len(manager.index.files) == result.indexed
        reloaded = IndexManager(project, PolyindexConfig())
        assert len(reloaded.index.files) == result.indexed


class TestPersistence:
    """Tests for loading and locking."""

    def test_reload_from_disk(self, indexed: IndexManager, project: Path, monkeypatch):
        """Test a new manager sees the stored index without parsing."""
        other = IndexManager(project, PolyindexConfig())
        calls = _count_parses(monkeypatch, other)
        assert other.get_symbol("validate") is not None
        assert other.index_project().indexed == 0
        assert calls == []

    def test_custom_index_path(self, project: Path, tmp_path: Path):
        """Test the index can live outside the project."""
        index_path = tmp_path / "elsewhere" / "index.json"
        manager = IndexManager(project, PolyindexConfig(), index_path=index_path)
        manager.index_project()
        assert index_path.exists()
        assert not (project / ".polyindex" / "index.json").exists()

    def test_concurrent_writer_fails_fast(self, manager: IndexManager):
        """Test a held lock makes mutating calls raise."""
        with IndexLock(manager.index_path):
            with pytest.raises(IndexLockError):
                manager.index_project()
            with pytest.raises(IndexLockError):
                manager.clear()

    async def test_index_project_async(self, manager: IndexManager):
        """Test the async wrapper runs a normal build."""
        result = await manager.index_project_async()
        assert result.indexed == 3


class TestIndexFile:
    """Tests for single-file indexing."""

    def test_index_file(self, manager: IndexManager, project: Path):
        """Test one file is parsed and persisted."""
        file_index = manager.index_file(project / "src" / "validate.ts")
        assert file_index.file == "src/validate.ts"
        assert list(manager.index.files) == ["src/validate.ts"]
        assert IndexManager(project, PolyindexConfig()).get_symbol("validate") is not None

    def test_index_file_always_reparses(self, indexed: IndexManager, monkeypatch):
        """Test unchanged files are re-parsed on request."""
        calls = _count_parses(monkeypatch, indexed)
        assert indexed.index_file("src/form.ts") is not None
        assert calls == ["src/form.ts"]

    def test_index_file_failures_return_none(self, manager: IndexManager, project: Path):
        """Test missing and unsupported files yield None."""
        assert manager.index_file(project / "src" / "missing.ts") is None
        (project / "notes.txt").write_text("hello")
        assert manager.index_file("notes.txt") is None
        assert manager.index.files == {}

    def test_remove_file(self, indexed: IndexManager):
        """Test dropping one entry."""
        assert indexed.remove_file("scripts/tool.py")
        assert not indexed.remove_file("scripts/tool.py")
        assert "scripts/tool.py" not in indexed.index.files


class TestQueries:
    """Tests for read-only queries."""

    def test_get_all_definitions(self, indexed: IndexManager, project: Path):
        """Test every definition of a name is returned."""
        (project / "scripts" / "validate.py").write_text("def validate():\n    pass\n")
        indexed.index_project()
        files = sorted(s.file for s in indexed.get_all_definitions("validate"))
        assert files == ["scripts/validate.py", "src/validate.ts"]

    def test_find_references(self, indexed: IndexManager):
        """Test definitions and usages are combined by name."""
        result = indexed.find_references("validate")
        assert isinstance(result, ReferencesResult)
        assert [s.file for s in result.definitions] == ["src/validate.ts"]
        assert [r.file for r in result.references] == ["src/form.ts"]
        assert result.total == 2
        assert result.to_dict()["total"] == 2

    def test_find_references_unknown(self, indexed: IndexManager):
        """Test an unknown name has nothing."""
        assert indexed.find_references("nothing").total == 0

    def test_search(self, indexed: IndexManager):
        """Test search runs over the whole index."""
        hits = indexed.search("sub")
        assert hits[0].symbol.name == "submit"
        classes = indexed.search("", kind=SymbolKind.CLASS)
        assert [h.symbol.name for h in classes] == ["Form"]
        assert indexed.search("valid", language="python") == []

    def test_search_uses_config_defaults(self, project: Path):
        """Test limit defaults come from the search config."""
        config = PolyindexConfig()
        config.search.default_limit = 1
        manager = IndexManager(project, config)
        manager.index_project()
        assert len(manager.search("")) == 1
        assert len(manager.search("", limit=10)) > 1

    def test_get_symbols_in_file(self, indexed: IndexManager, project: Path):
        """Test lookup by file id or absolute path."""
        names = [s.name for s in indexed.get_symbols_in_file("src/form.ts")]
        assert names == ["Form", "submit", "save"]
        absolute = indexed.get_symbols_in_file(project / "src" / "form.ts")
        assert [s.name for s in absolute] == names
        assert indexed.get_symbols_in_file("src/none.ts") == []

    def test_get_all_symbols(self, indexed: IndexManager):
        """Test every symbol of every file."""
        names = {s.name for s in indexed.get_all_symbols()}
        assert {"validate", "Form", "submit", "save", "run", "helper"} <= names

    def test_get_callers(self, indexed: IndexManager):
        """Test callers are the enclosing functions of call sites."""
        assert [n.id for n in indexed.get_callers("validate")] == ["src/form.ts:Form.submit"]
        assert [n.id for n in indexed.get_callers("helper")] == ["scripts/tool.py:run"]

    def test_call_graph(self, indexed: IndexManager):
        """Test the call graph includes method-to-method calls."""
        graph = indexed.build_call_graph()
        assert "save" in graph.callees_of("src/form.ts:Form.submit")

    def test_dependency_graph(self, indexed: IndexManager):
        """Test relative imports link files."""
        graph = indexed.build_dependency_graph()
        assert graph.dependencies_of("src/form.ts") == ["src/validate.ts"]

    def test_get_stats(self, indexed: IndexManager):
        """Test stats reflect the index."""
        stats = indexed.get_stats()
        assert stats.total_files == 3
        assert stats.by_language["typescript"] == 4
        assert stats.by_language["python"] == 2
        assert indexed.index.stats.total_files == 3


class TestConfigAndClear:
    """Tests for set_config, get_config and clear."""

    def test_get_config(self, manager: IndexManager):
        """Test the project config starts from the loaded configuration."""
        assert manager.get_config().include == ("**/*",)

    def test_set_config_changes_scope(self, indexed: IndexManager, project: Path):
        """Test exclude changes persist and apply on the next run."""
        config = indexed.set_config(exclude=["scripts/**"])
        assert config.exclude == ("scripts/**",)

        result = indexed.index_project()
        assert result.removed == 1
        assert "scripts/tool.py" not in indexed.index.files

    def test_set_config_rejects_unknown_fields(self, manager: IndexManager):
        """Test unknown fields raise."""
        with pytest.raises(TypeError):
            manager.set_config(colour="blue")

    def test_clear(self, indexed: IndexManager, project: Path):
        """Test clearing forgets every file and persists."""
        indexed.clear()
        assert indexed.index.files == {}
        assert indexed.get_stats().total_files == 0
        assert IndexManager(project, PolyindexConfig()).index.files == {}

    def test_set_config_survives_reload(self, project: Path):
        """Test a stored scope is kept when no explicit config is given."""
        manager = IndexManager(project)
        manager.set_config(languages=["python"])
        manager.index_project()
        assert list(manager.index.files) == ["scripts/tool.py"]

        reloaded = IndexManager(project)
        assert reloaded.get_config().languages == ("python",)
        assert reloaded.config.project.languages == ["python"]
        reloaded.index_project()
        assert list(reloaded.index.files) == ["scripts/tool.py"]

    def test_explicit_config_replaces_stored_scope(self, project: Path):
        """Test a config passed in wins over the stored scope."""
        IndexManager(project).set_config(exclude=["scripts/**"])
        manager = IndexManager(project, PolyindexConfig())
        assert manager.get_config().exclude == ()


class TestConcurrentReaders:
    """Tests for queries running while the index is rebuilt."""

    def test_published_map_is_not_mutated(self, indexed: IndexManager, project: Path):
        """Test a run swaps in a new file map instead of editing the old one."""
        published = indexed.index.files
        snapshot = dict(published)
        (project / "scripts" / "tool.py").unlink()
        (project / "src" / "extra.py").write_text("def extra():\n    pass\n")

        indexed.index_project()

        assert published == snapshot
        assert "src/extra.py" in indexed.index.files
        assert "scripts/tool.py" not in indexed.index.files

    def test_queries_during_indexing(self, project: Path):
        """Test readers on another thread never fail mid-run."""
        for i in range(150):
            (project / "src" / f"mod_{i}.py").write_text(f"def func_{i}():\n    return {i}\n")
        manager = IndexManager(project, PolyindexConfig(indexing=IndexingConfig(max_workers=4)))
        finished = threading.Event()
        failures: list[Exception] = []
        reads = 0

        def reader():
            nonlocal reads
            while True:
                try:
                    manager.get_all_symbols()
                    manager.search("func")
                    manager.find_references("helper")
                    manager.build_call_graph()
                    manager.get_stats()
                except Exception as e:
                    failures.append(e)
                    return
                reads += 1
                if finished.is_set():
                    return

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            result = manager.index_project()
        finally:
            finished.set()
            thread.join()

        assert failures == []
        assert reads > 0
        assert result.indexed == 153
        assert len(manager.get_all_symbols()) >= 150
