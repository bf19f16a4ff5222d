"""Reference extraction: calls, instantiations, decorators and heritage.

References carry only the target name. Nothing is resolved here; the index
manager matches names against definitions at query time.
"""

from __future__ import annotations

from typing import Callable

from polyindex.engine.types import Range, Reference, ReferenceKind
from polyindex.engine.visitors.base import (
    ExtractionContext,
    child_of_type,
    target_name_node,
    text_of,
)

# node type -> field holding the callee expression, per family
CALL_RULES: dict[str, dict[str, tuple[str, ...]]] = {
    "ecmascript": {"call_expression": ("function",)},
    "python": {"call": ("function",)},
    "go": {"call_expression": ("function",)},
    "rust": {"call_expression": ("function",), "macro_invocation": ("macro",)},
    "jvm": {"method_invocation": ("name",), "call_expression": ()},
    "csharp": {"invocation_expression": ("function",)},
    "c": {"call_expression": ("function",)},
    "php": {
        "function_call_expression": ("function",),
        "member_call_expression": ("name",),
        "scoped_call_expression": ("name",),
        "nullsafe_member_call_expression": ("name",),
    },
    "ruby": {"call": ("method",)},
    "generic": {"call_expression": ("function",)},
}

# node type -> field holding the instantiated type, per family
INSTANTIATE_RULES: dict[str, dict[str, tuple[str, ...]]] = {
    "ecmascript": {"new_expression": ("constructor",)},
    "go": {"composite_literal": ("type",)},
    "rust": {"struct_expression": ("name",)},
    "jvm": {"object_creation_expression": ("type",)},
    "csharp": {"object_creation_expression": ("type",)},
    "c": {"new_expression": ("type",)},
    "php": {"object_creation_expression": ()},
}

_IGNORED_CALLEES = frozenset({"require", "super", "import"})
_RUBY_IMPORT_CALLS = frozenset({"require", "require_relative", "load"})


def _callee(node, fields: tuple[str, ...]):
    for field_name in fields:
        found = node.child_by_field_name(field_name)
        if found is not None:
            return found
    named = [c for c in node.named_children if "comment" not in c.type]
    return named[0] if named else None


class ReferenceVisitor:
    """Emits references for usage sites of one file."""

    def __init__(self, ctx: ExtractionContext):
        self.ctx = ctx
        self._calls = CALL_RULES.get(ctx.family, CALL_RULES["generic"])
        self._instantiations = INSTANTIATE_RULES.get(ctx.family, {})
        self._extras: Callable = _EXTRA_RULES.get(ctx.family, _no_extras)

    def _reference(self, name_node, kind: ReferenceKind, name: str | None = None) -> Reference:
        return Reference(
            symbol=name if name is not None else text_of(name_node),
            file=self.ctx.file,
            range=Range.from_node(name_node),
            context=self.ctx.line_text(name_node.start_point[0]),
            kind=kind,
        )

    def visit(self, node) -> list[Reference]:
        kind = node.type

        if kind in self._calls:
            callee = _callee(node, self._calls[kind])
            target = target_name_node(callee) if callee is not None else None
            if target is None:
                return []
            name = text_of(target)
            if self.ctx.family == "ruby" and name in _RUBY_IMPORT_CALLS:
                return []
            if name in _IGNORED_CALLEES or not name:
                return []
            return [self._reference(target, ReferenceKind.CALL)]

        if kind in self._instantiations:
            type_node = _callee(node, self._instantiations[kind])
            target = target_name_node(type_node) if type_node is not None else None
            if target is None:
                return []
            return [self._reference(target, ReferenceKind.INSTANTIATE)]

        return self._extras(self, node)


def _no_extras(visitor: ReferenceVisitor, node) -> list[Reference]:
    return []


def _extras_ecmascript(visitor: ReferenceVisitor, node) -> list[Reference]:
    kind = node.type
    if kind == "class_heritage":
        refs = []
        extends_clause = child_of_type(node, "extends_clause")
        values = extends_clause.named_children if extends_clause is not None else [
            c for c in node.named_children if c.type != "implements_clause"
        ][:1]
        for value in values:
            target = target_name_node(value)
            if target is not None:
                refs.append(visitor._reference(target, ReferenceKind.EXTENDS))
        implements_clause = child_of_type(node, "implements_clause")
        if implements_clause is not None:
            for value in implements_clause.named_children:
                target = target_name_node(value)
                if target is not None:
                    refs.append(visitor._reference(target, ReferenceKind.IMPLEMENTS))
        return refs

    if kind == "decorator":
        return _decorator_reference(visitor, node)

    if kind in ("jsx_opening_element", "jsx_self_closing_element"):
        name = node.child_by_field_name("name")
        target = target_name_node(name) if name is not None else None
        if target is not None and text_of(target)[:1].isupper():
            return [visitor._reference(target, ReferenceKind.COMPONENT_USAGE)]

    return []


def _decorator_reference(visitor: ReferenceVisitor, node) -> list[Reference]:
    expression = node.named_children[0] if node.named_children else None
    if expression is not None and expression.type in ("call", "call_expression"):
        expression = expression.child_by_field_name("function")
    target = target_name_node(expression) if expression is not None else None
    if target is None:
        return []
    return [visitor._reference(target, ReferenceKind.DECORATOR)]


def _extras_python(visitor: ReferenceVisitor, node) -> list[Reference]:
    if node.type == "decorator":
        return _decorator_reference(visitor, node)
    if node.type == "class_definition":
        superclasses = node.child_by_field_name("superclasses")
        if superclasses is None:
            return []
        refs = []
        for base in superclasses.named_children:
            if base.type in ("identifier", "attribute"):
                target = target_name_node(base)
                if target is not None:
                    refs.append(visitor._reference(target, ReferenceKind.EXTENDS))
        return refs
    return []


def _extras_jvm(visitor: ReferenceVisitor, node) -> list[Reference]:
    if node.type == "superclass":
        return [
            visitor._reference(target, ReferenceKind.EXTENDS)
            for target in map(target_name_node, node.named_children)
            if target is not None
        ]
    if node.type == "super_interfaces":
        type_list = child_of_type(node, "type_list") or node
        return [
            visitor._reference(target, ReferenceKind.IMPLEMENTS)
            for target in map(target_name_node, type_list.named_children)
            if target is not None
        ]
    return []


def _extras_php(visitor: ReferenceVisitor, node) -> list[Reference]:
    if node.type == "base_clause":
        kind = ReferenceKind.EXTENDS
    elif node.type == "class_interface_clause":
        kind = ReferenceKind.IMPLEMENTS
    else:
        return []
    return [
        visitor._reference(target, kind)
        for target in map(target_name_node, node.named_children)
        if target is not None
    ]


def _extras_ruby(visitor: ReferenceVisitor, node) -> list[Reference]:
    if node.type != "superclass":
        return []
    return [
        visitor._reference(target, ReferenceKind.EXTENDS)
        for target in map(target_name_node, node.named_children)
        if target is not None
    ]


def _extras_rust(visitor: ReferenceVisitor, node) -> list[Reference]:
    if node.type != "impl_item":
        return []
    trait = node.child_by_field_name("trait")
    target = target_name_node(trait) if trait is not None else None
    if target is None:
        return []
    return [visitor._reference(target, ReferenceKind.IMPLEMENTS)]


_EXTRA_RULES: dict[str, Callable[..., list[Reference]]] = {
    "ecmascript": _extras_ecmascript,
    "python": _extras_python,
    "jvm": _extras_jvm,
    "php": _extras_php,
    "ruby": _extras_ruby,
    "rust": _extras_rust,
}
