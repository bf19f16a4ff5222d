"""Data model shared by the parser engine and the index manager.

Every record is an immutable dataclass with ``to_dict``/``from_dict`` so the
whole project index can round-trip through JSON. Records that need adjusting
(for example when an embedded script region is shifted into document
coordinates) are rebuilt with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

INDEX_VERSION = 2


class SymbolKind(Enum):
    """Classification of a declaration site."""

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    VARIABLE = "variable"
    CONSTANT = "constant"
    PROPERTY = "property"
    CONSTRUCTOR = "constructor"
    MODULE = "module"
    NAMESPACE = "namespace"
    COMPONENT = "component"
    HOOK = "hook"
    DECORATOR = "decorator"
    EVENT = "event"
    UNKNOWN = "unknown"


class ReferenceKind(Enum):
    """Classification of a usage site."""

    CALL = "call"
    READ = "read"
    WRITE = "write"
    IMPORT = "import"
    EXPORT = "export"
    TYPE = "type"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    INSTANTIATE = "instantiate"
    DECORATOR = "decorator"
    COMPONENT_USAGE = "component-usage"
    UNKNOWN = "unknown"


class ImportKind(Enum):
    """How a module is brought into scope."""

    NAMED = "named"
    DEFAULT = "default"
    NAMESPACE = "namespace"
    SIDE_EFFECT = "side-effect"


class ExportKind(Enum):
    """How a name leaves a module."""

    NAMED = "named"
    DEFAULT = "default"
    RE_EXPORT = "re-export"


@dataclass(frozen=True, order=True)
class Position:
    """A point in a file. Lines are 1-based, columns 0-based."""

    line: int
    column: int
    byte_offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "column": self.column, "byte_offset": self.byte_offset}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        return cls(
            line=data["line"],
            column=data["column"],
            byte_offset=data.get("byte_offset", 0),
        )

    @classmethod
    def from_node(cls, point: tuple[int, int], byte_offset: int) -> Position:
        """Build from a tree-sitter ``(row, column)`` point."""
        return cls(line=point[0] + 1, column=point[1], byte_offset=byte_offset)


@dataclass(frozen=True)
class Range:
    """A span between two positions with ``end >= start``."""

    start: Position
    end: Position

    def contains(self, other: Range) -> bool:
        """Check whether ``other`` lies entirely inside this range."""
        return (self.start.line, self.start.column) <= (
            other.start.line,
            other.start.column,
        ) and (other.end.line, other.end.column) <= (self.end.line, self.end.column)

    @property
    def line_span(self) -> int:
        return self.end.line - self.start.line

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Range:
        return cls(start=Position.from_dict(data["start"]), end=Position.from_dict(data["end"]))

    @classmethod
    def from_node(cls, node) -> Range:
        """Build from any tree-sitter node."""
        return cls(
            start=Position.from_node(node.start_point, node.start_byte),
            end=Position.from_node(node.end_point, node.end_byte),
        )


@dataclass(frozen=True)
class Parameter:
    """A single parameter of a callable symbol."""

    name: str
    type: str | None = None
    default_value: str | None = None
    rest: bool = False
    optional: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "default_value": self.default_value,
            "rest": self.rest,
            "optional": self.optional,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Parameter:
        return cls(
            name=data["name"],
            type=data.get("type"),
            default_value=data.get("default_value"),
            rest=data.get("rest", False),
            optional=data.get("optional", False),
        )


@dataclass(frozen=True)
class Symbol:
    """A named, classified declaration site.

    Attributes:
        name: Declared name
        kind: Symbol classification
        range: Span of the whole declaration
        selection_range: Span of the name token only
        file: File identifier (relative path inside a project)
        language: Language name the symbol was extracted as
        signature: First line of the declaration, at most 100 chars
        documentation: Docstring or preceding doc comment
        exported: Whether the declaration is visible outside its module
        is_async: Declared async
        is_static: Declared static / class-level
        visibility: public, private or protected when declared
        parameters: Declared parameters for callables
        return_type: Declared return type annotation
        extends: Base class name
        implements: Implemented interface / trait names
        parent: Enclosing type name for members
        children: Member names for class-like symbols
    """

    name: str
    kind: SymbolKind
    range: Range
    selection_range: Range
    file: str
    language: str
    signature: str | None = None
    documentation: str | None = None
    exported: bool = False
    is_async: bool = False
    is_static: bool = False
    visibility: str | None = None
    parameters: tuple[Parameter, ...] = ()
    return_type: str | None = None
    extends: str | None = None
    implements: tuple[str, ...] = ()
    parent: str | None = None
    children: tuple[str, ...] = ()

    @property
    def qualified_name(self) -> str:
        if self.parent:
            return f"{self.parent}.{self.name}"
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "range": self.range.to_dict(),
            "selection_range": self.selection_range.to_dict(),
            "file": self.file,
            "language": self.language,
            "signature": self.signature,
            "documentation": self.documentation,
            "exported": self.exported,
            "is_async": self.is_async,
            "is_static": self.is_static,
            "visibility": self.visibility,
            "parameters": [p.to_dict() for p in self.parameters],
            "return_type": self.return_type,
            "extends": self.extends,
            "implements": list(self.implements),
            "parent": self.parent,
            "children": list(self.children),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Symbol:
        try:
            kind = SymbolKind(data.get("kind", "unknown"))
        except ValueError:
            kind = SymbolKind.UNKNOWN
        return cls(
            name=data["name"],
            kind=kind,
            range=Range.from_dict(data["range"]),
            selection_range=Range.from_dict(data["selection_range"]),
            file=data["file"],
            language=data["language"],
            signature=data.get("signature"),
            documentation=data.get("documentation"),
            exported=data.get("exported", False),
            is_async=data.get("is_async", False),
            is_static=data.get("is_static", False),
            visibility=data.get("visibility"),
            parameters=tuple(Parameter.from_dict(p) for p in data.get("parameters", [])),
            return_type=data.get("return_type"),
            extends=data.get("extends"),
            implements=tuple(data.get("implements", [])),
            parent=data.get("parent"),
            children=tuple(data.get("children", [])),
        )


@dataclass(frozen=True)
class Reference:
    """A usage of a name. Resolved against definitions at query time only."""

    symbol: str
    file: str
    range: Range
    context: str
    kind: ReferenceKind

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "file": self.file,
            "range": self.range.to_dict(),
            "context": self.context,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reference:
        try:
            kind = ReferenceKind(data.get("kind", "unknown"))
        except ValueError:
            kind = ReferenceKind.UNKNOWN
        return cls(
            symbol=data["symbol"],
            file=data["file"],
            range=Range.from_dict(data["range"]),
            context=data.get("context", ""),
            kind=kind,
        )


@dataclass(frozen=True)
class ImportSpecifier:
    """One imported binding."""

    name: str
    alias: str | None = None
    is_default: bool = False
    is_namespace: bool = False

    @property
    def local_name(self) -> str:
        return self.alias or self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "alias": self.alias,
            "is_default": self.is_default,
            "is_namespace": self.is_namespace,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportSpecifier:
        return cls(
            name=data["name"],
            alias=data.get("alias"),
            is_default=data.get("is_default", False),
            is_namespace=data.get("is_namespace", False),
        )


@dataclass(frozen=True)
class Import:
    """An import statement and its bindings."""

    source: str
    file: str
    range: Range
    specifiers: tuple[ImportSpecifier, ...] = ()
    kind: ImportKind = ImportKind.NAMED

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "file": self.file,
            "range": self.range.to_dict(),
            "specifiers": [s.to_dict() for s in self.specifiers],
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Import:
        return cls(
            source=data["source"],
            file=data["file"],
            range=Range.from_dict(data["range"]),
            specifiers=tuple(ImportSpecifier.from_dict(s) for s in data.get("specifiers", [])),
            kind=ImportKind(data.get("kind", "named")),
        )


@dataclass(frozen=True)
class Export:
    """A name made visible to other modules."""

    name: str
    file: str
    range: Range
    kind: ExportKind = ExportKind.NAMED
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "file": self.file,
            "range": self.range.to_dict(),
            "kind": self.kind.value,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Export:
        return cls(
            name=data["name"],
            file=data["file"],
            range=Range.from_dict(data["range"]),
            kind=ExportKind(data.get("kind", "named")),
            source=data.get("source"),
        )


@dataclass(frozen=True)
class FileIndex:
    """Complete extraction result for one file.

    Replaced wholesale whenever the file is re-indexed.
    """

    file: str
    language: str
    hash: str
    last_modified: float
    symbols: tuple[Symbol, ...] = ()
    imports: tuple[Import, ...] = ()
    exports: tuple[Export, ...] = ()
    references: tuple[Reference, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "language": self.language,
            "hash": self.hash,
            "last_modified": self.last_modified,
            "symbols": [s.to_dict() for s in self.symbols],
            "imports": [i.to_dict() for i in self.imports],
            "exports": [e.to_dict() for e in self.exports],
            "references": [r.to_dict() for r in self.references],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileIndex:
        return cls(
            file=data["file"],
            language=data["language"],
            hash=data["hash"],
            last_modified=data.get("last_modified", 0.0),
            symbols=tuple(Symbol.from_dict(s) for s in data.get("symbols", [])),
            imports=tuple(Import.from_dict(i) for i in data.get("imports", [])),
            exports=tuple(Export.from_dict(e) for e in data.get("exports", [])),
            references=tuple(Reference.from_dict(r) for r in data.get("references", [])),
        )


@dataclass(frozen=True)
class ProjectConfig:
    """Project-level indexing scope stored alongside the index."""

    name: str = ""
    include: tuple[str, ...] = ("**/*",)
    exclude: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "languages": list(self.languages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        return cls(
            name=data.get("name", ""),
            include=tuple(data.get("include", ["**/*"])),
            exclude=tuple(data.get("exclude", [])),
            languages=tuple(data.get("languages", [])),
        )


@dataclass
class IndexStats:
    """Aggregate counts over the whole index."""

    total_files: int = 0
    total_symbols: int = 0
    total_references: int = 0
    by_language: dict[str, int] = field(default_factory=dict)
    by_kind: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_symbols": self.total_symbols,
            "total_references": self.total_references,
            "by_language": dict(self.by_language),
            "by_kind": dict(self.by_kind),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexStats:
        return cls(
            total_files=data.get("total_files", 0),
            total_symbols=data.get("total_symbols", 0),
            total_references=data.get("total_references", 0),
            by_language=dict(data.get("by_language", {})),
            by_kind=dict(data.get("by_kind", {})),
        )

    @classmethod
    def compute(cls, files: dict[str, FileIndex]) -> IndexStats:
        """Recount everything from the per-file entries."""
        stats = cls(total_files=len(files))
        for file_index in files.values():
            stats.total_symbols += len(file_index.symbols)
            stats.total_references += len(file_index.references)
            for symbol in file_index.symbols:
                stats.by_language[symbol.language] = stats.by_language.get(symbol.language, 0) + 1
                kind = symbol.kind.value
                stats.by_kind[kind] = stats.by_kind.get(kind, 0) + 1
        return stats


@dataclass
class ProjectIndex:
    """The persisted aggregate of every indexed file.

    This is the single mutable record in the model; only the index manager's
    calling thread writes to it.
    """

    project_path: str
    version: int = INDEX_VERSION
    last_indexed: float = 0.0
    config: ProjectConfig = field(default_factory=ProjectConfig)
    stats: IndexStats = field(default_factory=IndexStats)
    files: dict[str, FileIndex] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "project_path": self.project_path,
            "last_indexed": self.last_indexed,
            "config": self.config.to_dict(),
            "stats": self.stats.to_dict(),
            "files": {path: f.to_dict() for path, f in self.files.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectIndex:
        return cls(
            project_path=data["project_path"],
            version=data.get("version", 0),
            last_indexed=data.get("last_indexed", 0.0),
            config=ProjectConfig.from_dict(data.get("config", {})),
            stats=IndexStats.from_dict(data.get("stats", {})),
            files={path: FileIndex.from_dict(f) for path, f in data.get("files", {}).items()},
        )

    def refresh_stats(self) -> IndexStats:
        self.stats = IndexStats.compute(self.files)
        return self.stats
