"""polyindex - polyglot source-code indexer.

Parses source files with tree-sitter, extracts symbols, imports, exports and
references, and keeps a persisted per-project index that can be searched
and turned into call and dependency graphs.

Usage:
    from polyindex import IndexManager

    manager = IndexManager("./my-project")
    manager.index_project()
    hits = manager.search("handle")
"""

from polyindex.config import PolyindexConfig, load_config, save_config
from polyindex.engine import GrammarRegistry, Language, ParserEngine
from polyindex.engine.types import FileIndex, Reference, Symbol, SymbolKind
from polyindex.index import IndexLockError, IndexManager, IndexResult, ReferencesResult

__version__ = "0.1.0"

__all__ = [
    "FileIndex",
    "GrammarRegistry",
    "IndexLockError",
    "IndexManager",
    "IndexResult",
    "Language",
    "ParserEngine",
    "PolyindexConfig",
    "Reference",
    "ReferencesResult",
    "Symbol",
    "SymbolKind",
    "__version__",
    "load_config",
    "save_config",
]
