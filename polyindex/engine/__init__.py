"""Indexing engine: grammars, visitors, composite documents and the parser."""

from polyindex.engine.languages import (
    EXTENSION_TO_LANGUAGE,
    LANGUAGE_SPECS,
    GrammarRegistry,
    Language,
    LanguageSpec,
    language_for_extension,
    language_for_path,
    supported_extensions,
)
from polyindex.engine.parser import Extraction, ParserEngine
from polyindex.engine.types import (
    INDEX_VERSION,
    Export,
    ExportKind,
    FileIndex,
    Import,
    ImportKind,
    ImportSpecifier,
    IndexStats,
    Parameter,
    Position,
    ProjectConfig,
    ProjectIndex,
    Range,
    Reference,
    ReferenceKind,
    Symbol,
    SymbolKind,
)

__all__ = [
    "EXTENSION_TO_LANGUAGE",
    "INDEX_VERSION",
    "LANGUAGE_SPECS",
    "Export",
    "ExportKind",
    "Extraction",
    "FileIndex",
    "GrammarRegistry",
    "Import",
    "ImportKind",
    "ImportSpecifier",
    "IndexStats",
    "Language",
    "LanguageSpec",
    "Parameter",
    "ParserEngine",
    "Position",
    "ProjectConfig",
    "ProjectIndex",
    "Range",
    "Reference",
    "ReferenceKind",
    "Symbol",
    "SymbolKind",
    "language_for_extension",
    "language_for_path",
    "supported_extensions",
]
