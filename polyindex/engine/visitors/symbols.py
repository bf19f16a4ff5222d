"""Symbol extraction: declarations to ``Symbol`` records.

Each language family is one visit function in ``SYMBOL_STRATEGIES``. The
parser engine walks every node of a tree pre-order and hands it to the
family's function, which returns zero or more symbols for that node.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from polyindex.engine.types import Symbol, SymbolKind
from polyindex.engine.visitors.base import (
    ExtractionContext,
    child_of_type,
    children_of_type,
    has_modifier,
    has_token,
    is_top_level,
    is_upper_constant,
    leading_comment,
    make_symbol,
    modifier_text,
    name_node,
    outer_statement,
    parse_parameters,
    strip_type_annotation,
    target_name_node,
    text_of,
    visibility_of,
)

CLASS_LIKE_KINDS = frozenset(
    {
        SymbolKind.CLASS,
        SymbolKind.INTERFACE,
        SymbolKind.ENUM,
        SymbolKind.MODULE,
        SymbolKind.NAMESPACE,
        SymbolKind.COMPONENT,
    }
)


def _owner(node, class_types: tuple[str, ...], bodies: tuple[str, ...]):
    """Enclosing type declaration when ``node`` sits directly in its body."""
    parent = node.parent
    while parent is not None and parent.type in bodies:
        parent = parent.parent
    if parent is not None and parent.type in class_types:
        return parent
    return None


def _owner_name(owner) -> str | None:
    if owner is None:
        return None
    if owner.type == "impl_item":
        type_node = owner.child_by_field_name("type")
        return text_of(target_name_node(type_node) or type_node)
    found = name_node(owner)
    return text_of(found) if found is not None else None


def _type_names(nodes) -> tuple[str, ...]:
    names = []
    for node in nodes:
        if "comment" in node.type:
            continue
        target = target_name_node(node)
        names.append(text_of(target if target is not None else node))
    return tuple(names)


def _return_type(node, *fields: str) -> str | None:
    for field_name in fields:
        found = node.child_by_field_name(field_name)
        if found is not None:
            return strip_type_annotation(text_of(found))
    return None


# --- ECMAScript (javascript, jsx, typescript, tsx) ---------------------------

_ES_CLASS_TYPES = ("class_declaration", "abstract_class_declaration", "class")
_ES_FUNCTION_VALUES = ("arrow_function", "function_expression", "function", "generator_function")


def _is_hook_name(name: str) -> bool:
    return len(name) > 3 and name.startswith("use") and name[3].isupper()


def _declarator_span(node):
    """Whole statement for single-declarator statements, else the declarator."""
    parent = node.parent
    if parent is not None and parent.type in ("lexical_declaration", "variable_declaration"):
        if len(children_of_type(parent, "variable_declarator")) == 1:
            return parent
    return node


def _es_function(ctx: ExtractionContext, node, name_token, function_node) -> Symbol:
    name = text_of(name_token)
    kind = SymbolKind.FUNCTION
    if ctx.composite and _is_hook_name(name):
        kind = SymbolKind.HOOK
    params = function_node.child_by_field_name("parameters") or function_node.child_by_field_name(
        "parameter"
    )
    span = _declarator_span(node) if node.type == "variable_declarator" else node
    return make_symbol(
        ctx,
        node,
        name_token,
        kind,
        range_node=span,
        documentation=leading_comment(outer_statement(node)),
        is_async=has_token(function_node, "async"),
        parameters=parse_parameters(params, ctx.family),
        return_type=_return_type(function_node, "return_type"),
    )


def _es_heritage(node) -> tuple[str | None, tuple[str, ...]]:
    heritage = child_of_type(node, "class_heritage")
    if heritage is None:
        extends_clause = child_of_type(node, "extends_type_clause")
        if extends_clause is None:
            return None, ()
        bases = _type_names(extends_clause.named_children)
        return (bases[0] if bases else None), bases[1:]

    extends = None
    extends_clause = child_of_type(heritage, "extends_clause")
    if extends_clause is not None:
        value = extends_clause.child_by_field_name("value")
        if value is None and extends_clause.named_children:
            value = extends_clause.named_children[0]
        if value is not None:
            extends = _type_names([value])[0]
    else:
        values = [c for c in heritage.named_children if c.type != "implements_clause"]
        if values:
            extends = _type_names(values[:1])[0]

    implements_clause = child_of_type(heritage, "implements_clause")
    implements = _type_names(implements_clause.named_children) if implements_clause else ()
    return extends, implements


def _visit_ecmascript(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in ("function_declaration", "generator_function_declaration"):
        name = node.child_by_field_name("name")
        return [_es_function(ctx, node, name, node)] if name is not None else []

    if kind == "variable_declarator":
        name = node.child_by_field_name("name")
        value = node.child_by_field_name("value")
        if name is None or name.type != "identifier":
            return []
        if value is not None and value.type in _ES_FUNCTION_VALUES:
            return [_es_function(ctx, node, name, value)]
        statement = node.parent
        if (
            statement is not None
            and has_token(statement, "const")
            and is_upper_constant(text_of(name))
            and is_top_level(node)
        ):
            return [
                make_symbol(
                    ctx,
                    node,
                    name,
                    SymbolKind.CONSTANT,
                    range_node=_declarator_span(node),
                    documentation=leading_comment(outer_statement(node)),
                )
            ]
        return []

    if kind in ("method_definition", "abstract_method_signature", "method_signature"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        method_name = text_of(name)
        owner = _owner(
            node,
            _ES_CLASS_TYPES + ("interface_declaration",),
            ("class_body", "interface_body", "object_type"),
        )
        symbol_kind = SymbolKind.CONSTRUCTOR if method_name == "constructor" else SymbolKind.METHOD
        if has_token(node, "get") or has_token(node, "set"):
            symbol_kind = SymbolKind.PROPERTY
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                documentation=leading_comment(node),
                is_async=has_token(node, "async"),
                is_static=has_token(node, "static"),
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(node.child_by_field_name("parameters"), ctx.family),
                return_type=_return_type(node, "return_type"),
                parent=_owner_name(owner),
            )
        ]

    if kind in _ES_CLASS_TYPES:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        extends, implements = _es_heritage(node)
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.CLASS,
                documentation=leading_comment(outer_statement(node)),
                extends=extends,
                implements=implements,
            )
        ]

    simple_kinds = {
        "interface_declaration": SymbolKind.INTERFACE,
        "type_alias_declaration": SymbolKind.TYPE,
        "enum_declaration": SymbolKind.ENUM,
        "internal_module": SymbolKind.NAMESPACE,
    }
    if kind in simple_kinds:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        extends, implements = _es_heritage(node) if kind == "interface_declaration" else (None, ())
        return [
            make_symbol(
                ctx,
                node,
                name,
                simple_kinds[kind],
                documentation=leading_comment(outer_statement(node)),
                extends=extends,
                implements=implements,
            )
        ]

    return []


# --- Python -------------------------------------------------------------------


def _python_docstring(node) -> str | None:
    body = node.child_by_field_name("body")
    if body is None or not body.named_children:
        return None
    first = body.named_children[0]
    if first.type != "expression_statement" or not first.named_children:
        return None
    string = first.named_children[0]
    if string.type != "string":
        return None
    text = text_of(string).lstrip("rbuRBUfF")
    for quote in ('"""', "'''", '"', "'"):
        if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
            return text[len(quote) : -len(quote)].strip() or None
    return None


def _python_decorators(node) -> list[str]:
    if node.parent is None or node.parent.type != "decorated_definition":
        return []
    names = []
    for decorator in children_of_type(node.parent, "decorator"):
        expression = decorator.named_children[0] if decorator.named_children else None
        if expression is not None and expression.type == "call":
            expression = expression.child_by_field_name("function")
        target = target_name_node(expression) if expression is not None else None
        if target is not None:
            names.append(text_of(target))
    return names


def _python_owner(node):
    return _owner(node, ("class_definition",), ("block", "decorated_definition"))


def _visit_python(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind == "function_definition":
        name = node.child_by_field_name("name")
        if name is None:
            return []
        function_name = text_of(name)
        span = node.parent if node.parent.type == "decorated_definition" else node
        owner = _python_owner(node)
        decorators = _python_decorators(node)

        symbol_kind = SymbolKind.FUNCTION
        if owner is not None:
            symbol_kind = SymbolKind.CONSTRUCTOR if function_name == "__init__" else SymbolKind.METHOD
            if "property" in decorators:
                symbol_kind = SymbolKind.PROPERTY

        params = parse_parameters(node.child_by_field_name("parameters"), ctx.family)
        if owner is not None and params and params[0].name in ("self", "cls"):
            params = params[1:]

        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                range_node=span,
                documentation=_python_docstring(node),
                is_async=has_token(node, "async"),
                is_static="staticmethod" in decorators or "classmethod" in decorators,
                parameters=params,
                return_type=_return_type(node, "return_type"),
                parent=_owner_name(owner),
            )
        ]

    if kind == "class_definition":
        name = node.child_by_field_name("name")
        if name is None:
            return []
        superclasses = node.child_by_field_name("superclasses")
        bases = ()
        if superclasses is not None:
            bases = _type_names(
                c for c in superclasses.named_children if c.type in ("identifier", "attribute")
            )
        span = node.parent if node.parent.type == "decorated_definition" else node
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.CLASS,
                range_node=span,
                documentation=_python_docstring(node),
                extends=bases[0] if bases else None,
                implements=bases[1:],
                parent=_owner_name(_python_owner(node)),
            )
        ]

    if kind == "assignment":
        left = node.child_by_field_name("left")
        statement = node.parent
        if (
            left is not None
            and left.type == "identifier"
            and is_upper_constant(text_of(left))
            and statement is not None
            and statement.type == "expression_statement"
            and statement.parent is not None
            and statement.parent.type == "module"
        ):
            annotation = node.child_by_field_name("type")
            return [
                make_symbol(
                    ctx,
                    statement,
                    left,
                    SymbolKind.CONSTANT,
                    return_type=text_of(annotation) if annotation is not None else None,
                )
            ]

    return []


# --- Go -----------------------------------------------------------------------


def _go_receiver_type(node) -> str | None:
    receiver = node.child_by_field_name("receiver")
    if receiver is None:
        return None
    stack = [receiver]
    while stack:
        current = stack.pop()
        if current.type == "type_identifier":
            return text_of(current)
        stack.extend(reversed(current.named_children))
    return None


def _visit_go(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in ("function_declaration", "method_declaration"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        receiver = _go_receiver_type(node) if kind == "method_declaration" else None
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.METHOD if kind == "method_declaration" else SymbolKind.FUNCTION,
                documentation=leading_comment(node),
                parameters=parse_parameters(node.child_by_field_name("parameters"), ctx.family),
                return_type=_return_type(node, "result"),
                parent=receiver,
            )
        ]

    if kind in ("type_spec", "type_alias"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        type_node = node.child_by_field_name("type")
        symbol_kind = SymbolKind.TYPE
        if kind == "type_spec" and type_node is not None:
            if type_node.type == "struct_type":
                symbol_kind = SymbolKind.CLASS
            elif type_node.type == "interface_type":
                symbol_kind = SymbolKind.INTERFACE
        declaration = node.parent
        span = node
        if declaration is not None and declaration.type == "type_declaration":
            if len(declaration.named_children) == 1:
                span = declaration
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                range_node=span,
                documentation=leading_comment(declaration if declaration is not None else node),
            )
        ]

    if kind == "const_spec":
        declaration = node.parent
        if declaration is None or declaration.parent is None:
            return []
        if declaration.parent.type != "source_file":
            return []
        return [
            make_symbol(ctx, node, name, SymbolKind.CONSTANT)
            for name in node.children_by_field_name("name")
        ]

    return []


# --- Rust ---------------------------------------------------------------------

_RUST_KINDS = {
    "struct_item": SymbolKind.CLASS,
    "union_item": SymbolKind.CLASS,
    "enum_item": SymbolKind.ENUM,
    "trait_item": SymbolKind.INTERFACE,
    "type_item": SymbolKind.TYPE,
    "mod_item": SymbolKind.MODULE,
    "const_item": SymbolKind.CONSTANT,
    "static_item": SymbolKind.CONSTANT,
    "macro_definition": SymbolKind.FUNCTION,
}


def _visit_rust(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in ("function_item", "function_signature_item"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        owner = _owner(node, ("impl_item", "trait_item"), ("declaration_list",))
        params_node = node.child_by_field_name("parameters")
        takes_self = params_node is not None and child_of_type(params_node, "self_parameter") is not None
        modifiers = child_of_type(node, "function_modifiers")
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.METHOD if owner is not None else SymbolKind.FUNCTION,
                documentation=leading_comment(node),
                is_async=modifiers is not None and "async" in text_of(modifiers),
                is_static=owner is not None and not takes_self,
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(params_node, ctx.family),
                return_type=_return_type(node, "return_type"),
                parent=_owner_name(owner),
            )
        ]

    if kind == "impl_item":
        type_node = node.child_by_field_name("type")
        if type_node is None:
            return []
        name = target_name_node(type_node) or type_node
        trait = node.child_by_field_name("trait")
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.CLASS,
                implements=_type_names([trait]) if trait is not None else (),
            )
        ]

    if kind in _RUST_KINDS:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        return [
            make_symbol(
                ctx,
                node,
                name,
                _RUST_KINDS[kind],
                documentation=leading_comment(node),
                visibility=visibility_of(node, ctx.family),
            )
        ]

    return []


# --- JVM (java, kotlin) -------------------------------------------------------

_JVM_TYPE_KINDS = {
    "class_declaration": SymbolKind.CLASS,
    "record_declaration": SymbolKind.CLASS,
    "object_declaration": SymbolKind.CLASS,
    "interface_declaration": SymbolKind.INTERFACE,
    "annotation_type_declaration": SymbolKind.INTERFACE,
    "enum_declaration": SymbolKind.ENUM,
}
_JVM_BODIES = ("class_body", "interface_body", "enum_body", "enum_body_declarations", "enum_class_body")


def _jvm_heritage(node) -> tuple[str | None, tuple[str, ...]]:
    extends = None
    superclass = node.child_by_field_name("superclass")
    if superclass is not None and superclass.named_children:
        extends = _type_names(superclass.named_children[:1])[0]

    implements: tuple[str, ...] = ()
    interfaces = node.child_by_field_name("interfaces") or child_of_type(node, "extends_interfaces")
    if interfaces is not None:
        type_list = child_of_type(interfaces, "type_list") or interfaces
        implements = _type_names(type_list.named_children)
        if node.type == "interface_declaration" and implements:
            extends, implements = implements[0], implements[1:]
    return extends, implements


def _visit_jvm(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in _JVM_TYPE_KINDS:
        name = name_node(node)
        if name is None:
            return []
        symbol_kind = _JVM_TYPE_KINDS[kind]
        if kind == "class_declaration":
            # Kotlin spells interfaces and enums as class_declaration
            if has_token(node, "interface"):
                symbol_kind = SymbolKind.INTERFACE
            elif "enum" in modifier_text(node, ctx.family).split():
                symbol_kind = SymbolKind.ENUM
        extends, implements = _jvm_heritage(node)
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                documentation=leading_comment(node),
                is_static=has_modifier(node, ctx.family, "static"),
                visibility=visibility_of(node, ctx.family),
                extends=extends,
                implements=implements,
                parent=_owner_name(_owner(node, tuple(_JVM_TYPE_KINDS), _JVM_BODIES)),
            )
        ]

    if kind in ("method_declaration", "constructor_declaration", "function_declaration"):
        name = name_node(node)
        if name is None:
            return []
        owner = _owner(node, tuple(_JVM_TYPE_KINDS), _JVM_BODIES)
        if kind == "constructor_declaration":
            symbol_kind = SymbolKind.CONSTRUCTOR
        elif owner is not None or kind == "method_declaration":
            symbol_kind = SymbolKind.METHOD
        else:
            symbol_kind = SymbolKind.FUNCTION
        params = node.child_by_field_name("parameters") or child_of_type(
            node, "function_value_parameters"
        )
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                documentation=leading_comment(node),
                is_async=has_modifier(node, ctx.family, "suspend"),
                is_static=has_modifier(node, ctx.family, "static"),
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(params, ctx.family),
                return_type=_return_type(node, "type"),
                parent=_owner_name(owner),
            )
        ]

    if kind == "field_declaration":
        if not (
            has_modifier(node, ctx.family, "static") and has_modifier(node, ctx.family, "final")
        ):
            return []
        symbols = []
        for declarator in node.children_by_field_name("declarator"):
            name = declarator.child_by_field_name("name")
            if name is not None and is_upper_constant(text_of(name)):
                symbols.append(
                    make_symbol(
                        ctx,
                        node,
                        name,
                        SymbolKind.CONSTANT,
                        visibility=visibility_of(node, ctx.family),
                        parent=_owner_name(_owner(node, tuple(_JVM_TYPE_KINDS), _JVM_BODIES)),
                    )
                )
        return symbols

    return []


# --- C# -----------------------------------------------------------------------

_CSHARP_TYPE_KINDS = {
    "class_declaration": SymbolKind.CLASS,
    "struct_declaration": SymbolKind.CLASS,
    "record_declaration": SymbolKind.CLASS,
    "record_struct_declaration": SymbolKind.CLASS,
    "interface_declaration": SymbolKind.INTERFACE,
    "enum_declaration": SymbolKind.ENUM,
    "delegate_declaration": SymbolKind.TYPE,
    "namespace_declaration": SymbolKind.NAMESPACE,
    "file_scoped_namespace_declaration": SymbolKind.NAMESPACE,
}
_CSHARP_MEMBER_KINDS = {
    "method_declaration": SymbolKind.METHOD,
    "constructor_declaration": SymbolKind.CONSTRUCTOR,
    "property_declaration": SymbolKind.PROPERTY,
    "event_declaration": SymbolKind.EVENT,
}


def _csharp_heritage(node) -> tuple[str | None, tuple[str, ...]]:
    base_list = child_of_type(node, "base_list")
    if base_list is None:
        return None, ()
    bases = _type_names(base_list.named_children)
    # Interfaces conventionally start with I followed by an uppercase letter
    interfaces = tuple(b for b in bases if len(b) > 1 and b[0] == "I" and b[1].isupper())
    classes = [b for b in bases if b not in interfaces]
    return (classes[0] if classes else None), interfaces


def _csharp_owner(node):
    return _owner(node, tuple(_CSHARP_TYPE_KINDS), ("declaration_list",))


def _visit_csharp(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in _CSHARP_TYPE_KINDS:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        extends, implements = _csharp_heritage(node)
        return [
            make_symbol(
                ctx,
                node,
                name,
                _CSHARP_TYPE_KINDS[kind],
                documentation=leading_comment(node),
                is_static=has_modifier(node, ctx.family, "static"),
                visibility=visibility_of(node, ctx.family),
                extends=extends,
                implements=implements,
                parent=_owner_name(_csharp_owner(node)),
            )
        ]

    if kind in _CSHARP_MEMBER_KINDS:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        return [
            make_symbol(
                ctx,
                node,
                name,
                _CSHARP_MEMBER_KINDS[kind],
                documentation=leading_comment(node),
                is_async=has_modifier(node, ctx.family, "async"),
                is_static=has_modifier(node, ctx.family, "static"),
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(node.child_by_field_name("parameters"), ctx.family),
                return_type=_return_type(node, "returns", "type"),
                parent=_owner_name(_csharp_owner(node)),
            )
        ]

    if kind == "field_declaration" and has_modifier(node, ctx.family, "const"):
        declaration = child_of_type(node, "variable_declaration")
        if declaration is None:
            return []
        symbols = []
        for declarator in children_of_type(declaration, "variable_declarator"):
            name = name_node(declarator)
            if name is not None:
                symbols.append(
                    make_symbol(
                        ctx,
                        node,
                        name,
                        SymbolKind.CONSTANT,
                        visibility=visibility_of(node, ctx.family),
                        parent=_owner_name(_csharp_owner(node)),
                    )
                )
        return symbols

    return []


# --- C / C++ ------------------------------------------------------------------

_C_CLASS_TYPES = ("struct_specifier", "class_specifier", "union_specifier")


def _function_declarator(node):
    current = node
    while current is not None and current.type != "function_declarator":
        current = current.child_by_field_name("declarator")
    return current


def _visit_c(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind == "function_definition":
        declarator = _function_declarator(node.child_by_field_name("declarator"))
        if declarator is None:
            return []
        inner = declarator.child_by_field_name("declarator")
        if inner is None:
            return []
        parent = None
        if inner.type == "qualified_identifier":
            scope = inner.child_by_field_name("scope")
            parent = text_of(scope) if scope is not None else None
        name = inner if inner.type in ("destructor_name", "operator_name") else target_name_node(inner)
        if name is None:
            return []
        owner = _owner(node, _C_CLASS_TYPES, ("field_declaration_list",))
        if owner is not None:
            parent = _owner_name(owner)
        function_name = text_of(name)
        if parent is None:
            symbol_kind = SymbolKind.FUNCTION
        elif function_name == parent.rsplit("::", 1)[-1]:
            symbol_kind = SymbolKind.CONSTRUCTOR
        else:
            symbol_kind = SymbolKind.METHOD
        type_node = node.child_by_field_name("type")
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                documentation=leading_comment(node),
                is_static=has_modifier(node, ctx.family, "static"),
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(declarator.child_by_field_name("parameters"), ctx.family),
                return_type=text_of(type_node) if type_node is not None else None,
                parent=parent,
            )
        ]

    if kind in _C_CLASS_TYPES or kind == "enum_specifier":
        name = node.child_by_field_name("name")
        if name is None or node.child_by_field_name("body") is None:
            return []
        extends, implements = None, ()
        base_clause = child_of_type(node, "base_class_clause")
        if base_clause is not None:
            bases = _type_names(
                c for c in base_clause.named_children if c.type != "access_specifier"
            )
            extends, implements = (bases[0] if bases else None), bases[1:]
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.ENUM if kind == "enum_specifier" else SymbolKind.CLASS,
                documentation=leading_comment(node),
                extends=extends,
                implements=implements,
            )
        ]

    if kind == "namespace_definition":
        name = node.child_by_field_name("name")
        return [make_symbol(ctx, node, name, SymbolKind.NAMESPACE)] if name is not None else []

    if kind == "type_definition":
        symbols = []
        for declarator in node.children_by_field_name("declarator"):
            name = target_name_node(declarator)
            if name is not None:
                symbols.append(
                    make_symbol(ctx, node, name, SymbolKind.TYPE, documentation=leading_comment(node))
                )
        return symbols

    if kind == "preproc_def":
        name = node.child_by_field_name("name")
        if name is not None and is_upper_constant(text_of(name)):
            return [make_symbol(ctx, node, name, SymbolKind.CONSTANT)]

    return []


# --- PHP ----------------------------------------------------------------------

_PHP_TYPE_KINDS = {
    "class_declaration": SymbolKind.CLASS,
    "interface_declaration": SymbolKind.INTERFACE,
    "trait_declaration": SymbolKind.INTERFACE,
    "enum_declaration": SymbolKind.ENUM,
}


def _visit_php(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in ("function_definition", "method_declaration"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        function_name = text_of(name)
        owner = _owner(node, tuple(_PHP_TYPE_KINDS), ("declaration_list",))
        if kind == "function_definition":
            symbol_kind = SymbolKind.FUNCTION
        elif function_name == "__construct":
            symbol_kind = SymbolKind.CONSTRUCTOR
        else:
            symbol_kind = SymbolKind.METHOD
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                documentation=leading_comment(node),
                is_static=child_of_type(node, "static_modifier") is not None,
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(node.child_by_field_name("parameters"), ctx.family),
                return_type=_return_type(node, "return_type"),
                parent=_owner_name(owner),
            )
        ]

    if kind in _PHP_TYPE_KINDS:
        name = node.child_by_field_name("name")
        if name is None:
            return []
        base = child_of_type(node, "base_clause")
        interfaces = child_of_type(node, "class_interface_clause")
        bases = _type_names(base.named_children) if base is not None else ()
        return [
            make_symbol(
                ctx,
                node,
                name,
                _PHP_TYPE_KINDS[kind],
                documentation=leading_comment(node),
                extends=bases[0] if bases else None,
                implements=_type_names(interfaces.named_children) if interfaces is not None else (),
            )
        ]

    if kind == "namespace_definition":
        name = node.child_by_field_name("name")
        return [make_symbol(ctx, node, name, SymbolKind.NAMESPACE)] if name is not None else []

    if kind == "const_declaration":
        symbols = []
        for element in children_of_type(node, "const_element"):
            name = child_of_type(element, "name")
            if name is not None:
                symbols.append(
                    make_symbol(
                        ctx,
                        node,
                        name,
                        SymbolKind.CONSTANT,
                        parent=_owner_name(_owner(node, tuple(_PHP_TYPE_KINDS), ("declaration_list",))),
                    )
                )
        return symbols

    return []


# --- Ruby ---------------------------------------------------------------------


def _ruby_owner(node) -> tuple[object | None, bool]:
    """Enclosing class/module and whether the member is singleton-level."""
    parent = node.parent
    if parent is not None and parent.type == "body_statement":
        parent = parent.parent
    singleton = False
    if parent is not None and parent.type == "singleton_class":
        singleton = True
        parent = parent.parent
        if parent is not None and parent.type == "body_statement":
            parent = parent.parent
    if parent is not None and parent.type in ("class", "module"):
        return parent, singleton
    return None, singleton


def _visit_ruby(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type

    if kind in ("method", "singleton_method"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        owner, singleton = _ruby_owner(node)
        method_name = text_of(name)
        if owner is None and kind == "method":
            symbol_kind = SymbolKind.FUNCTION
        elif method_name == "initialize":
            symbol_kind = SymbolKind.CONSTRUCTOR
        else:
            symbol_kind = SymbolKind.METHOD
        return [
            make_symbol(
                ctx,
                node,
                name,
                symbol_kind,
                documentation=leading_comment(node),
                is_static=singleton or kind == "singleton_method",
                visibility=visibility_of(node, ctx.family),
                parameters=parse_parameters(node.child_by_field_name("parameters"), ctx.family),
                parent=_owner_name(owner),
            )
        ]

    if kind in ("class", "module"):
        name = node.child_by_field_name("name")
        if name is None:
            return []
        superclass = node.child_by_field_name("superclass")
        extends = None
        if superclass is not None and superclass.named_children:
            extends = _type_names(superclass.named_children[:1])[0]
        owner, _ = _ruby_owner(node)
        return [
            make_symbol(
                ctx,
                node,
                name,
                SymbolKind.CLASS if kind == "class" else SymbolKind.MODULE,
                documentation=leading_comment(node),
                extends=extends,
                parent=_owner_name(owner),
            )
        ]

    if kind == "assignment":
        left = node.child_by_field_name("left")
        if left is not None and left.type == "constant":
            owner, _ = _ruby_owner(node)
            if owner is not None or (node.parent is not None and node.parent.type == "program"):
                return [make_symbol(ctx, node, left, SymbolKind.CONSTANT, parent=_owner_name(owner))]

    return []


# --- Generic fallback ---------------------------------------------------------


def _visit_generic(node, ctx: ExtractionContext) -> list[Symbol]:
    kind = node.type
    if "declaration" not in kind and "definition" not in kind:
        return []
    name = node.child_by_field_name("name")
    if name is None:
        return []

    if "function" in kind:
        symbol_kind = SymbolKind.FUNCTION
    elif "class" in kind:
        symbol_kind = SymbolKind.CLASS
    elif "protocol" in kind or "interface" in kind:
        symbol_kind = SymbolKind.INTERFACE
    else:
        return []
    return [make_symbol(ctx, node, name, symbol_kind, documentation=leading_comment(node))]


SYMBOL_STRATEGIES: dict[str, Callable[..., list[Symbol]]] = {
    "ecmascript": _visit_ecmascript,
    "python": _visit_python,
    "go": _visit_go,
    "rust": _visit_rust,
    "jvm": _visit_jvm,
    "csharp": _visit_csharp,
    "c": _visit_c,
    "php": _visit_php,
    "ruby": _visit_ruby,
    "generic": _visit_generic,
}


class SymbolVisitor:
    """Emits symbols for declaration nodes of one file."""

    def __init__(self, ctx: ExtractionContext):
        self.ctx = ctx
        self._strategy = SYMBOL_STRATEGIES.get(ctx.family, _visit_generic)

    def visit(self, node) -> list[Symbol]:
        return self._strategy(node, self.ctx)


def link_children(symbols: list[Symbol]) -> list[Symbol]:
    """Fill ``children`` of class-like symbols from their members' ``parent``."""
    members: dict[str, list[str]] = {}
    for symbol in symbols:
        if symbol.parent:
            members.setdefault(symbol.parent, []).append(symbol.name)

    linked = []
    for symbol in symbols:
        names = members.get(symbol.name)
        if names and symbol.kind in CLASS_LIKE_KINDS:
            symbol = replace(symbol, children=tuple(dict.fromkeys(names)))
        linked.append(symbol)
    return linked
