"""Project index: scanning, storage, search and graphs.

Usage:
    from polyindex.index import IndexManager

    manager = IndexManager("./my-project")
    result = manager.index_project()
    callers = manager.get_callers("validate")
"""

from polyindex.index.callgraph import (
    CallGraph,
    CallGraphEdge,
    CallGraphNode,
    DependencyGraph,
    build_call_graph,
    build_dependency_graph,
)
from polyindex.index.manager import IndexManager, IndexResult, ReferencesResult
from polyindex.index.scanner import FileScanner, GitignoreParser, glob_match
from polyindex.index.search import MatchSpan, ScoredSymbol, search_symbols
from polyindex.index.storage import IndexLock, IndexLockError, IndexStore

__all__ = [
    "CallGraph",
    "CallGraphEdge",
    "CallGraphNode",
    "DependencyGraph",
    "FileScanner",
    "GitignoreParser",
    "IndexLock",
    "IndexLockError",
    "IndexManager",
    "IndexResult",
    "IndexStore",
    "MatchSpan",
    "ReferencesResult",
    "ScoredSymbol",
    "build_call_graph",
    "build_dependency_graph",
    "glob_match",
    "search_symbols",
]
