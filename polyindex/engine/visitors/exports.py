"""Export extraction for module systems with explicit export statements.

ECMAScript ``export`` statements and Python ``__all__`` lists are the only
explicit forms; other languages mark exports on the declaration itself,
which the symbol pass records in ``Symbol.exported``.
"""

from __future__ import annotations

from typing import Callable

from polyindex.engine.types import Export, ExportKind, Range
from polyindex.engine.visitors.base import (
    ExtractionContext,
    child_of_type,
    children_of_type,
    has_token,
    text_of,
)


def _make_export(
    ctx: ExtractionContext, node, name: str, kind: ExportKind, source: str | None = None
) -> Export:
    return Export(name=name, file=ctx.file, range=Range.from_node(node), kind=kind, source=source)


def _declared_names(declaration) -> list[str]:
    if declaration.type in ("lexical_declaration", "variable_declaration"):
        names = []
        for declarator in children_of_type(declaration, "variable_declarator"):
            name = declarator.child_by_field_name("name")
            if name is not None:
                names.append(text_of(name))
        return names
    name = declaration.child_by_field_name("name")
    return [text_of(name)] if name is not None else []


def _exports_ecmascript(node, ctx: ExtractionContext) -> list[Export]:
    if node.type != "export_statement":
        return []

    source_node = node.child_by_field_name("source")
    source = text_of(source_node).strip("\"'`") if source_node is not None else None
    clause = child_of_type(node, "export_clause")

    if source is not None:
        if clause is None:
            # export * from "x" / export * as ns from "x"
            namespace = child_of_type(node, "namespace_export")
            alias = child_of_type(namespace, "identifier") if namespace is not None else None
            name = text_of(alias) if alias is not None else "*"
            return [_make_export(ctx, node, name, ExportKind.RE_EXPORT, source)]
        exports = []
        for spec in children_of_type(clause, "export_specifier"):
            name = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
            exports.append(_make_export(ctx, spec, text_of(name), ExportKind.RE_EXPORT, source))
        return exports

    is_default = has_token(node, "default")
    kind = ExportKind.DEFAULT if is_default else ExportKind.NAMED

    declaration = node.child_by_field_name("declaration")
    if declaration is not None:
        names = _declared_names(declaration)
        if not names and is_default:
            names = ["default"]
        return [_make_export(ctx, node, name, kind) for name in names]

    if clause is not None:
        exports = []
        for spec in children_of_type(clause, "export_specifier"):
            name = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
            exported_name = text_of(name)
            spec_kind = ExportKind.DEFAULT if exported_name == "default" else ExportKind.NAMED
            exports.append(_make_export(ctx, spec, exported_name, spec_kind))
        return exports

    if is_default:
        value = node.child_by_field_name("value")
        if value is not None and value.type in ("function_expression", "function", "class"):
            named = value.child_by_field_name("name")
            name = text_of(named) if named is not None else "default"
        elif value is not None and value.type == "identifier":
            name = text_of(value)
        else:
            name = "default"
        return [_make_export(ctx, node, name, ExportKind.DEFAULT)]

    return []


def _exports_python(node, ctx: ExtractionContext) -> list[Export]:
    if node.type != "assignment":
        return []
    left = node.child_by_field_name("left")
    right = node.child_by_field_name("right")
    if left is None or right is None or text_of(left) != "__all__":
        return []
    statement = node.parent
    if statement is None or statement.parent is None or statement.parent.type != "module":
        return []
    if right.type not in ("list", "tuple"):
        return []
    return [
        _make_export(ctx, item, text_of(item).strip("\"'"), ExportKind.NAMED)
        for item in right.named_children
        if item.type == "string"
    ]


def _exports_none(node, ctx: ExtractionContext) -> list[Export]:
    return []


EXPORT_STRATEGIES: dict[str, Callable[..., list[Export]]] = {
    "ecmascript": _exports_ecmascript,
    "python": _exports_python,
}


class ExportVisitor:
    """Emits exports for explicit export statements of one file."""

    def __init__(self, ctx: ExtractionContext):
        self.ctx = ctx
        self._strategy = EXPORT_STRATEGIES.get(ctx.family, _exports_none)

    def visit(self, node) -> list[Export]:
        return self._strategy(node, self.ctx)
