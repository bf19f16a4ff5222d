"""Call graph and file dependency graph built from a project index.

Both graphs are plain dataclasses so they serialize like the rest of the
model; ``to_networkx`` converts them for graph algorithms.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Iterable

from polyindex.engine.languages import supported_extensions
from polyindex.engine.types import FileIndex, ReferenceKind, Symbol, SymbolKind

CALLABLE_KINDS = frozenset(
    {SymbolKind.FUNCTION, SymbolKind.METHOD, SymbolKind.CONSTRUCTOR, SymbolKind.HOOK}
)


def _get_networkx():
    """Get NetworkX module, importing lazily."""
    try:
        import networkx as nx

        return nx
    except ImportError as e:
        raise ImportError(
            "networkx is required for graph conversion. Install with: pip install networkx"
        ) from e


def node_id(symbol: Symbol) -> str:
    """Call graph node id: ``file:name`` or ``file:Parent.name``."""
    return f"{symbol.file}:{symbol.qualified_name}"


@dataclass(frozen=True)
class CallGraphNode:
    """One known symbol."""

    id: str
    name: str
    kind: SymbolKind
    file: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "file": self.file,
            "line": self.line,
        }


@dataclass(frozen=True)
class CallLocation:
    file: str
    line: int
    column: int

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "line": self.line, "column": self.column}


@dataclass
class CallGraphEdge:
    """Calls from one callable to a name, aggregated over call sites.

    Attributes:
        caller: Node id of the calling function or method
        callee: Bare name of the called symbol
        count: Number of call sites
        locations: Where each call site is
    """

    caller: str
    callee: str
    count: int = 0
    locations: list[CallLocation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.caller,
            "to": self.callee,
            "count": self.count,
            "locations": [loc.to_dict() for loc in self.locations],
        }


@dataclass
class CallGraph:
    """Who calls what, by name."""

    nodes: dict[str, CallGraphNode] = field(default_factory=dict)
    edges: list[CallGraphEdge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges],
        }

    def callers_of(self, name: str) -> list[CallGraphNode]:
        """Nodes with at least one edge to ``name``."""
        seen: dict[str, CallGraphNode] = {}
        for edge in self.edges:
            if edge.callee == name and edge.caller in self.nodes:
                seen.setdefault(edge.caller, self.nodes[edge.caller])
        return list(seen.values())

    def callees_of(self, caller_id: str) -> list[str]:
        return [edge.callee for edge in self.edges if edge.caller == caller_id]

    def to_networkx(self):
        """Convert to a ``networkx.DiGraph``.

        Edges point from the caller node to every node defining the callee
        name, carrying the aggregated ``count``.
        """
        nx = _get_networkx()
        graph = nx.DiGraph()
        by_name: dict[str, list[str]] = {}
        for node in self.nodes.values():
            graph.add_node(node.id, name=node.name, kind=node.kind.value, file=node.file, line=node.line)
            by_name.setdefault(node.name, []).append(node.id)

        for edge in self.edges:
            for target in by_name.get(edge.callee, [edge.callee]):
                graph.add_edge(edge.caller, target, count=edge.count)
        return graph


def _innermost_callable(symbols: list[Symbol], line: int, column: int) -> Symbol | None:
    best = None
    for symbol in symbols:
        start, end = symbol.range.start, symbol.range.end
        if (start.line, start.column) <= (line, column) <= (end.line, end.column):
            if best is None or symbol.range.line_span <= best.range.line_span:
                best = symbol
    return best


def build_call_graph(files: Iterable[FileIndex]) -> CallGraph:
    """Assemble the call graph of an index.

    Only calls whose target name matches a known symbol become edges, and
    only calls made inside a function or method are attributed; top-level
    call sites have no caller and are dropped.
    """
    files = list(files)
    graph = CallGraph()
    for file_index in files:
        for symbol in file_index.symbols:
            graph.nodes.setdefault(
                node_id(symbol),
                CallGraphNode(
                    id=node_id(symbol),
                    name=symbol.name,
                    kind=symbol.kind,
                    file=symbol.file,
                    line=symbol.range.start.line,
                ),
            )
    known_names = {node.name for node in graph.nodes.values()}

    edges: dict[tuple[str, str], CallGraphEdge] = {}
    for file_index in files:
        callables = [s for s in file_index.symbols if s.kind in CALLABLE_KINDS]
        for ref in file_index.references:
            if ref.kind != ReferenceKind.CALL or ref.symbol not in known_names:
                continue
            caller = _innermost_callable(callables, ref.range.start.line, ref.range.start.column)
            if caller is None:
                continue
            key = (node_id(caller), ref.symbol)
            edge = edges.get(key)
            if edge is None:
                edge = edges[key] = CallGraphEdge(caller=key[0], callee=ref.symbol)
            edge.count += 1
            edge.locations.append(
                CallLocation(file=ref.file, line=ref.range.start.line, column=ref.range.start.column)
            )

    graph.edges = list(edges.values())
    return graph


# --- dependency graph --------------------------------------------------------


@dataclass(frozen=True)
class DependencyNode:
    id: str
    is_external: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "file": None if self.is_external else self.id, "is_external": self.is_external}


@dataclass
class DependencyEdge:
    source: str
    target: str
    imports: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "imports": list(self.imports)}


@dataclass
class DependencyGraph:
    """Which file imports which file or external module."""

    nodes: dict[str, DependencyNode] = field(default_factory=dict)
    edges: list[DependencyEdge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges],
        }

    def dependencies_of(self, file: str) -> list[str]:
        return [edge.target for edge in self.edges if edge.source == file]

    def to_networkx(self):
        nx = _get_networkx()
        graph = nx.DiGraph()
        for node in self.nodes.values():
            graph.add_node(node.id, is_external=node.is_external)
        for edge in self.edges:
            graph.add_edge(edge.source, edge.target, imports=list(edge.imports))
        return graph


_INDEX_FILES = ("index.js", "index.ts", "index.tsx", "index.jsx", "__init__.py", "mod.rs")


def resolve_import(source: str, importer: str, known: set[str]) -> str | None:
    """Map an import source to an indexed file id, if it is one."""
    base = PurePosixPath(importer).parent
    candidates: list[str] = []

    if source.startswith(("./", "../")):
        candidates.append(posixpath.normpath((base / source).as_posix()))
    elif source.startswith("."):
        # Python relative import: one dot is the current package
        dots = len(source) - len(source.lstrip("."))
        parent = base
        for _ in range(dots - 1):
            parent = parent.parent
        rest = source[dots:].replace(".", "/")
        candidates.append((parent / rest).as_posix() if rest else parent.as_posix())
    else:
        candidates.append(posixpath.normpath((base / source).as_posix()))
        candidates.append(source)
        if "/" not in source:
            candidates.append(source.replace(".", "/"))

    for candidate in candidates:
        candidate = candidate.removeprefix("./")
        if candidate in known:
            return candidate
        for ext in supported_extensions():
            if f"{candidate}{ext}" in known:
                return f"{candidate}{ext}"
        for index_file in _INDEX_FILES:
            if f"{candidate}/{index_file}" in known:
                return f"{candidate}/{index_file}"
    return None


def build_dependency_graph(files: Iterable[FileIndex]) -> DependencyGraph:
    """Assemble the file dependency graph of an index.

    Import sources that resolve to indexed files become file-to-file edges;
    everything else is an external module node.
    """
    files = list(files)
    known = {f.file for f in files}
    graph = DependencyGraph(nodes={f.file: DependencyNode(f.file) for f in files})

    edges: dict[tuple[str, str], DependencyEdge] = {}
    for file_index in files:
        for imp in file_index.imports:
            target = resolve_import(imp.source, file_index.file, known)
            if target is None:
                target = imp.source
                graph.nodes.setdefault(target, DependencyNode(target, is_external=True))
            key = (file_index.file, target)
            edge = edges.get(key)
            if edge is None:
                edge = edges[key] = DependencyEdge(source=key[0], target=target)
            edge.imports.extend(spec.local_name for spec in imp.specifiers)

    graph.edges = list(edges.values())
    return graph
