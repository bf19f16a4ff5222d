"""Import extraction: module dependency statements to ``Import`` records."""

from __future__ import annotations

import re
from typing import Callable

from polyindex.engine.types import Import, ImportKind, ImportSpecifier, Range
from polyindex.engine.visitors.base import (
    ExtractionContext,
    child_of_type,
    children_of_type,
    text_of,
)

_CSHARP_USING_RE = re.compile(r"using\s+(?:static\s+)?(?:(\w+)\s*=\s*)?([\w.]+)")
_PHP_USE_RE = re.compile(r"([\\\w]+)(?:\s+as\s+(\w+))?")


def _unquote(text: str) -> str:
    return text.strip().strip("\"'`<>")


def _last_segment(path: str) -> str:
    return re.split(r"[./\\:]+", path.rstrip("/.:\\"))[-1]


def _make_import(
    ctx: ExtractionContext,
    node,
    source: str,
    specifiers: list[ImportSpecifier] | tuple[ImportSpecifier, ...] = (),
    kind: ImportKind = ImportKind.NAMED,
) -> Import:
    return Import(
        source=source,
        file=ctx.file,
        range=Range.from_node(node),
        specifiers=tuple(specifiers),
        kind=kind,
    )


def _imports_ecmascript(node, ctx: ExtractionContext) -> list[Import]:
    if node.type == "import_statement":
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return []
        source = _unquote(text_of(source_node))
        clause = child_of_type(node, "import_clause")
        if clause is None:
            return [_make_import(ctx, node, source, kind=ImportKind.SIDE_EFFECT)]

        specifiers = []
        has_default = has_namespace = False
        for child in clause.named_children:
            if child.type == "identifier":
                has_default = True
                specifiers.append(ImportSpecifier(name=text_of(child), is_default=True))
            elif child.type == "namespace_import":
                has_namespace = True
                alias = child_of_type(child, "identifier")
                specifiers.append(
                    ImportSpecifier(name="*", alias=text_of(alias) or None, is_namespace=True)
                )
            elif child.type == "named_imports":
                for spec in children_of_type(child, "import_specifier"):
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    specifiers.append(
                        ImportSpecifier(
                            name=text_of(name),
                            alias=text_of(alias) if alias is not None else None,
                        )
                    )

        if has_namespace:
            kind = ImportKind.NAMESPACE
        elif has_default:
            kind = ImportKind.DEFAULT
        else:
            kind = ImportKind.NAMED
        return [_make_import(ctx, node, source, specifiers, kind)]

    if node.type == "call_expression":
        # CommonJS: const x = require("x")
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or text_of(function) != "require" or arguments is None:
            return []
        strings = children_of_type(arguments, "string")
        if not strings:
            return []
        source = _unquote(text_of(strings[0]))
        parent = node.parent
        if parent is not None and parent.type == "variable_declarator":
            target = parent.child_by_field_name("name")
            if target is not None and target.type == "identifier":
                spec = ImportSpecifier(name=text_of(target), is_default=True)
                return [_make_import(ctx, node, source, [spec], ImportKind.DEFAULT)]
        return [_make_import(ctx, node, source, kind=ImportKind.SIDE_EFFECT)]

    return []


def _imports_python(node, ctx: ExtractionContext) -> list[Import]:
    if node.type == "import_statement":
        imports = []
        for child in node.named_children:
            if child.type == "aliased_import":
                name = text_of(child.child_by_field_name("name"))
                alias = text_of(child.child_by_field_name("alias")) or None
            elif child.type == "dotted_name":
                name, alias = text_of(child), None
            else:
                continue
            spec = ImportSpecifier(name=name, alias=alias, is_namespace=True)
            imports.append(_make_import(ctx, node, name, [spec], ImportKind.NAMESPACE))
        return imports

    if node.type == "import_from_statement":
        module = node.child_by_field_name("module_name")
        if module is None:
            return []
        if child_of_type(node, "wildcard_import") is not None:
            spec = ImportSpecifier(name="*", is_namespace=True)
            return [_make_import(ctx, node, text_of(module), [spec], ImportKind.NAMESPACE)]

        specifiers = []
        for child in node.children_by_field_name("name"):
            if child.type == "aliased_import":
                specifiers.append(
                    ImportSpecifier(
                        name=text_of(child.child_by_field_name("name")),
                        alias=text_of(child.child_by_field_name("alias")) or None,
                    )
                )
            else:
                specifiers.append(ImportSpecifier(name=text_of(child)))
        return [_make_import(ctx, node, text_of(module), specifiers)]

    return []


def _imports_go(node, ctx: ExtractionContext) -> list[Import]:
    if node.type != "import_spec":
        return []
    path = node.child_by_field_name("path")
    if path is None:
        return []
    source = _unquote(text_of(path))
    alias_node = node.child_by_field_name("name")
    alias = text_of(alias_node) if alias_node is not None else None
    if alias == "_":
        return [_make_import(ctx, node, source, kind=ImportKind.SIDE_EFFECT)]
    spec = ImportSpecifier(name=_last_segment(source), alias=alias, is_namespace=True)
    return [_make_import(ctx, node, source, [spec], ImportKind.NAMESPACE)]


def _rust_use_items(node, prefix: str) -> list[tuple[str, ImportSpecifier]]:
    """Flatten a use tree into ``(source, specifier)`` pairs."""
    kind = node.type
    if kind == "scoped_use_list":
        path = node.child_by_field_name("path")
        inner_prefix = "::".join(p for p in (prefix, text_of(path)) if p)
        items = node.child_by_field_name("list")
        pairs = []
        for item in items.named_children if items is not None else []:
            pairs.extend(_rust_use_items(item, inner_prefix))
        return pairs
    if kind == "use_list":
        pairs = []
        for item in node.named_children:
            pairs.extend(_rust_use_items(item, prefix))
        return pairs
    if kind == "use_as_clause":
        path = text_of(node.child_by_field_name("path"))
        alias = text_of(node.child_by_field_name("alias")) or None
        source, _, name = path.rpartition("::")
        full = "::".join(p for p in (prefix, source) if p)
        return [(full, ImportSpecifier(name=name, alias=alias))]
    if kind == "use_wildcard":
        source = text_of(node).removesuffix("*").rstrip(":")
        full = "::".join(p for p in (prefix, source) if p)
        return [(full, ImportSpecifier(name="*", is_namespace=True))]
    if kind == "self":
        return [(prefix, ImportSpecifier(name=_last_segment(prefix), is_namespace=True))]

    text = text_of(node)
    source, _, name = text.rpartition("::")
    full = "::".join(p for p in (prefix, source) if p)
    return [(full or name, ImportSpecifier(name=name))]


def _imports_rust(node, ctx: ExtractionContext) -> list[Import]:
    if node.type != "use_declaration":
        return []
    argument = node.child_by_field_name("argument")
    if argument is None:
        return []

    grouped: dict[str, list[ImportSpecifier]] = {}
    for source, spec in _rust_use_items(argument, ""):
        grouped.setdefault(source, []).append(spec)

    imports = []
    for source, specs in grouped.items():
        kind = ImportKind.NAMESPACE if any(s.is_namespace for s in specs) else ImportKind.NAMED
        imports.append(_make_import(ctx, node, source, specs, kind))
    return imports


def _imports_jvm(node, ctx: ExtractionContext) -> list[Import]:
    if node.type == "import_declaration":
        target = None
        for child in node.named_children:
            if child.type in ("scoped_identifier", "identifier"):
                target = text_of(child)
        if target is None:
            return []
        if child_of_type(node, "asterisk") is not None:
            spec = ImportSpecifier(name="*", is_namespace=True)
            return [_make_import(ctx, node, target, [spec], ImportKind.NAMESPACE)]
        source, _, name = target.rpartition(".")
        return [_make_import(ctx, node, source or name, [ImportSpecifier(name=name)])]

    if node.type == "import_header":
        identifier = child_of_type(node, "identifier")
        if identifier is None:
            return []
        target = text_of(identifier)
        if child_of_type(node, "wildcard_import") is not None:
            spec = ImportSpecifier(name="*", is_namespace=True)
            return [_make_import(ctx, node, target, [spec], ImportKind.NAMESPACE)]
        alias_node = child_of_type(node, "import_alias")
        alias = None
        if alias_node is not None:
            alias_name = child_of_type(alias_node, "type_identifier", "simple_identifier")
            alias = text_of(alias_name) or None
        source, _, name = target.rpartition(".")
        return [_make_import(ctx, node, source or name, [ImportSpecifier(name=name, alias=alias)])]

    return []


def _imports_csharp(node, ctx: ExtractionContext) -> list[Import]:
    if node.type != "using_directive":
        return []
    match = _CSHARP_USING_RE.search(text_of(node))
    if match is None:
        return []
    alias, target = match.groups()
    spec = ImportSpecifier(name=_last_segment(target), alias=alias, is_namespace=True)
    return [_make_import(ctx, node, target, [spec], ImportKind.NAMESPACE)]


def _imports_php(node, ctx: ExtractionContext) -> list[Import]:
    if node.type != "namespace_use_declaration":
        return []
    imports = []
    for clause in children_of_type(node, "namespace_use_clause"):
        match = _PHP_USE_RE.search(text_of(clause))
        if match is None:
            continue
        target, alias = match.groups()
        target = target.lstrip("\\")
        source, _, name = target.rpartition("\\")
        spec = ImportSpecifier(name=name, alias=alias)
        imports.append(_make_import(ctx, clause, source or name, [spec]))
    return imports


def _imports_c(node, ctx: ExtractionContext) -> list[Import]:
    if node.type != "preproc_include":
        return []
    path = node.child_by_field_name("path")
    if path is None:
        return []
    return [_make_import(ctx, node, _unquote(text_of(path)), kind=ImportKind.SIDE_EFFECT)]


def _imports_ruby(node, ctx: ExtractionContext) -> list[Import]:
    if node.type != "call":
        return []
    method = node.child_by_field_name("method")
    if method is None or text_of(method) not in ("require", "require_relative", "load"):
        return []
    arguments = node.child_by_field_name("arguments")
    if arguments is None:
        return []
    strings = children_of_type(arguments, "string")
    if not strings:
        return []
    return [_make_import(ctx, node, _unquote(text_of(strings[0])), kind=ImportKind.SIDE_EFFECT)]


def _imports_none(node, ctx: ExtractionContext) -> list[Import]:
    return []


IMPORT_STRATEGIES: dict[str, Callable[..., list[Import]]] = {
    "ecmascript": _imports_ecmascript,
    "python": _imports_python,
    "go": _imports_go,
    "rust": _imports_rust,
    "jvm": _imports_jvm,
    "csharp": _imports_csharp,
    "php": _imports_php,
    "c": _imports_c,
    "ruby": _imports_ruby,
}


class ImportVisitor:
    """Emits imports for dependency statements of one file."""

    def __init__(self, ctx: ExtractionContext):
        self.ctx = ctx
        self._strategy = IMPORT_STRATEGIES.get(ctx.family, _imports_none)

    def visit(self, node) -> list[Import]:
        return self._strategy(node, self.ctx)
