"""Shared helpers for the language visitors.

The textual heuristics (modifier detection, visibility, export detection)
live here, one function per language family, so each can be swapped for a
grammar-field lookup without touching the visitors that call them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterator

from polyindex.engine.types import Parameter, Range, Symbol, SymbolKind

MAX_SIGNATURE_LENGTH = 100

IDENTIFIER_TYPES = frozenset(
    {
        "identifier",
        "type_identifier",
        "property_identifier",
        "private_property_identifier",
        "shorthand_property_identifier",
        "field_identifier",
        "simple_identifier",
        "constant",
        "name",
        "package_identifier",
        "namespace_identifier",
    }
)

# Wrapper nodes whose last named child names the target (a.b.c -> c)
QUALIFIED_TYPES = frozenset(
    {
        "member_expression",
        "scoped_identifier",
        "scoped_type_identifier",
        "qualified_name",
        "qualified_identifier",
        "selector_expression",
        "field_expression",
        "attribute",
        "navigation_expression",
        "member_access_expression",
        "scope_resolution",
        "nested_identifier",
        "scoped_call_expression",
        "qualified_type",
        "nested_type_identifier",
        "pointer_declarator",
        "reference_declarator",
        "function_declarator",
        "parenthesized_declarator",
        "array_declarator",
        "init_declarator",
    }
)

# Wrapper nodes whose first named child names the target (Foo<T> -> Foo)
GENERIC_TYPES = frozenset(
    {"generic_type", "generic_name", "parameterized_type", "user_type", "template_type"}
)

_VISIBILITY_RE = re.compile(r"\b(private|protected|public)\b")
_UPPER_CONSTANT_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")
_COMMENT_MARKERS = re.compile(r"^\s*(/\*\*|/\*|\*/|\*|///|//!|//|#)\s?")


@dataclass
class ExtractionContext:
    """Per-file state handed to every visitor.

    Attributes:
        file: File identifier stamped on every record
        language: Language label stamped on symbols
        family: Visitor family key
        lines: Source text split into lines
        composite: True when extracting a script region of a composite file
    """

    file: str
    language: str
    family: str
    lines: list[str] = field(default_factory=list)
    composite: bool = False

    def line_text(self, row: int) -> str:
        """Stripped text of a 0-based row."""
        if 0 <= row < len(self.lines):
            return self.lines[row].strip()
        return ""


def walk(root) -> Iterator:
    """Iterative pre-order traversal of a tree-sitter tree."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def text_of(node) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def child_of_type(node, *types: str):
    """First direct child whose type is one of ``types``."""
    for child in node.children:
        if child.type in types:
            return child
    return None


def children_of_type(node, *types: str) -> list:
    return [child for child in node.children if child.type in types]


def has_token(node, token: str) -> bool:
    """Whether a direct child (usually anonymous) has type ``token``."""
    return any(child.type == token for child in node.children)


def name_node(node):
    """The node holding a declaration's name, or None."""
    found = node.child_by_field_name("name")
    if found is not None:
        return found
    return child_of_type(node, *IDENTIFIER_TYPES)


def target_name_node(node):
    """Reduce a callee, type or declarator expression to its plain name.

    Returns None for expressions that do not name anything (calls on call
    results, subscripts, literals).
    """
    current = node
    while current is not None:
        if current.type in IDENTIFIER_TYPES:
            return current
        named = [c for c in current.named_children if c.type not in ("comment", "type_arguments")]
        if not named:
            return None
        if current.type in GENERIC_TYPES:
            current = named[0]
        elif current.type in QUALIFIED_TYPES:
            current = (
                current.child_by_field_name("name")
                or current.child_by_field_name("property")
                or current.child_by_field_name("declarator")
                or named[-1]
            )
        else:
            return None
    return None


def is_upper_constant(name: str) -> bool:
    return bool(_UPPER_CONSTANT_RE.match(name)) and len(name) > 1


def make_signature(node) -> str:
    """First line of the node text, cut to at most 100 characters."""
    first = text_of(node).split("\n", 1)[0].strip()
    if len(first) > MAX_SIGNATURE_LENGTH:
        return first[: MAX_SIGNATURE_LENGTH - 3] + "..."
    return first


def leading_comment(node) -> str | None:
    """Contiguous comment block immediately above ``node``."""
    comments = []
    expected_row = node.start_point[0]
    sibling = node.prev_sibling
    while sibling is not None and "comment" in sibling.type:
        if sibling.end_point[0] < expected_row - 1:
            break
        comments.append(sibling)
        expected_row = sibling.start_point[0]
        sibling = sibling.prev_sibling

    if not comments:
        return None

    lines = []
    for comment in reversed(comments):
        for line in text_of(comment).splitlines():
            cleaned = _COMMENT_MARKERS.sub("", line).rstrip()
            if cleaned.endswith("*/"):
                cleaned = cleaned[:-2].rstrip()
            if cleaned:
                lines.append(cleaned)
    return "\n".join(lines) or None


def declaration_statement(node):
    """Climb from a declarator to the statement that owns it.

    ``const a = () => {}`` yields a ``variable_declarator`` whose export
    wrapper sits above the enclosing ``lexical_declaration``.
    """
    if node.type == "variable_declarator" and node.parent is not None:
        if node.parent.type in ("lexical_declaration", "variable_declaration"):
            return node.parent
    if node.parent is not None and node.parent.type == "decorated_definition":
        return node.parent
    return node


def outer_statement(node):
    """The declaration statement including any export wrapper."""
    statement = declaration_statement(node)
    parent = statement.parent
    if parent is not None and "export" in parent.type:
        return parent
    return statement


def header_text(node) -> str:
    """Declaration text that precedes its name or body.

    Modifier heuristics only look here, so tokens inside a body never leak
    into the enclosing declaration.
    """
    stop = node.child_by_field_name("name") or node.child_by_field_name("body")
    if stop is None:
        return text_of(node).split("\n", 1)[0]
    raw = node.text or b""
    return raw[: stop.start_byte - node.start_byte].decode("utf-8", errors="replace")


def is_top_level(node) -> bool:
    parent = declaration_statement(node).parent
    while parent is not None and "export" in parent.type:
        parent = parent.parent
    return parent is None or parent.type in (
        "program",
        "module",
        "source_file",
        "translation_unit",
        "compilation_unit",
    )


# --- modifier text -----------------------------------------------------------


def _modifier_text_default(node) -> str:
    return header_text(node)


def _modifier_text_jvm(node) -> str:
    modifiers = child_of_type(node, "modifiers")
    if modifiers is not None:
        return text_of(modifiers)
    return header_text(node)


def _modifier_text_csharp(node) -> str:
    modifiers = children_of_type(node, "modifier")
    if modifiers:
        return " ".join(text_of(m) for m in modifiers)
    return header_text(node)


def _modifier_text_php(node) -> str:
    parts = children_of_type(
        node, "visibility_modifier", "static_modifier", "abstract_modifier", "final_modifier"
    )
    if parts:
        return " ".join(text_of(p) for p in parts)
    return header_text(node)


MODIFIER_READERS: dict[str, Callable] = {
    "jvm": _modifier_text_jvm,
    "csharp": _modifier_text_csharp,
    "php": _modifier_text_php,
}


def modifier_text(node, family: str) -> str:
    """Raw modifier text of a declaration for the given family."""
    return MODIFIER_READERS.get(family, _modifier_text_default)(node)


def has_modifier(node, family: str, modifier: str) -> bool:
    return re.search(rf"\b{re.escape(modifier)}\b", modifier_text(node, family)) is not None


# --- visibility --------------------------------------------------------------


def _visibility_textual(node, family: str) -> str | None:
    match = _VISIBILITY_RE.search(modifier_text(node, family))
    return match.group(1) if match else None


def _visibility_ecmascript(node, family: str) -> str | None:
    accessibility = child_of_type(node, "accessibility_modifier")
    if accessibility is not None:
        return text_of(accessibility)
    name = node.child_by_field_name("name")
    if name is not None and name.type == "private_property_identifier":
        return "private"
    return _visibility_textual(node, family)


def _visibility_rust(node, family: str) -> str | None:
    if child_of_type(node, "visibility_modifier") is not None:
        return "public"
    return None


def _visibility_ruby(node, family: str) -> str | None:
    # Ruby switches visibility with bare `private`/`protected` statements
    sibling = node.prev_named_sibling
    while sibling is not None:
        if sibling.type == "identifier":
            word = text_of(sibling)
            if word in ("private", "protected", "public"):
                return word
        sibling = sibling.prev_named_sibling
    return None


def _visibility_cpp(node, family: str) -> str | None:
    # Access labels (`public:`) apply to every member that follows them
    sibling = node.prev_named_sibling
    while sibling is not None:
        if sibling.type == "access_specifier":
            return _visibility_textual(sibling, family) or text_of(sibling).rstrip(":").strip()
        sibling = sibling.prev_named_sibling
    return None


def _visibility_none(node, family: str) -> str | None:
    return None


VISIBILITY_RULES: dict[str, Callable] = {
    "ecmascript": _visibility_ecmascript,
    "rust": _visibility_rust,
    "ruby": _visibility_ruby,
    "python": _visibility_none,
    "go": _visibility_none,
    "c": _visibility_cpp,
}


def visibility_of(node, family: str) -> str | None:
    """Declared visibility of a member, or None when not stated."""
    return VISIBILITY_RULES.get(family, _visibility_textual)(node, family)


# --- export detection --------------------------------------------------------

EXPORT_KEYWORDS: dict[str, str] = {
    "ecmascript": "export",
    "rust": "pub",
    "jvm": "public",
    "csharp": "public",
    "php": "public",
}


def _exported_by_keyword(node, name: str, family: str) -> bool:
    statement = declaration_statement(node)
    parent = statement.parent
    if parent is not None and "export" in parent.type:
        return True
    keyword = EXPORT_KEYWORDS.get(family)
    if keyword is None:
        return False
    text = text_of(statement).lstrip()
    if re.match(rf"{keyword}\b", text):
        return True
    return family in ("jvm", "csharp", "php") and has_modifier(node, family, keyword)


def _exported_go(node, name: str, family: str) -> bool:
    return bool(name) and name[0].isupper()


def _exported_python(node, name: str, family: str) -> bool:
    return is_top_level(node) and not name.startswith("_")


def _exported_php(node, name: str, family: str) -> bool:
    if is_top_level(node) or (node.parent is not None and node.parent.type == "compound_statement"):
        return True
    return _exported_by_keyword(node, name, family)


def _exported_c(node, name: str, family: str) -> bool:
    return is_top_level(node) and not re.search(r"\bstatic\b", header_text(node))


EXPORT_RULES: dict[str, Callable] = {
    "go": _exported_go,
    "python": _exported_python,
    "php": _exported_php,
    "c": _exported_c,
}


def is_exported(node, name: str, family: str) -> bool:
    """Whether a declaration is visible outside its module."""
    return EXPORT_RULES.get(family, _exported_by_keyword)(node, name, family)


# --- record construction -----------------------------------------------------


def make_symbol(
    ctx: ExtractionContext,
    node,
    name_token,
    kind: SymbolKind,
    *,
    name: str | None = None,
    range_node=None,
    **extra,
) -> Symbol:
    """Build a symbol with range, selection range and signature filled in.

    Args:
        ctx: Extraction context
        node: Declaration node, used for export detection
        name_token: Node holding the name (selection range)
        kind: Symbol classification
        name: Override for the name text
        range_node: Node spanning the full declaration, defaults to ``node``
        **extra: Any other ``Symbol`` field
    """
    span = range_node if range_node is not None else node
    symbol_name = name if name is not None else text_of(name_token)
    selection = Range.from_node(name_token) if name_token is not None else Range.from_node(span)
    extra.setdefault("exported", is_exported(node, symbol_name, ctx.family))
    extra.setdefault("signature", make_signature(span))
    return Symbol(
        name=symbol_name,
        kind=kind,
        range=Range.from_node(span),
        selection_range=selection,
        file=ctx.file,
        language=ctx.language,
        **extra,
    )


def strip_type_annotation(text: str) -> str | None:
    cleaned = text.strip()
    if cleaned.startswith(":"):
        cleaned = cleaned[1:].strip()
    if cleaned.startswith("->"):
        cleaned = cleaned[2:].strip()
    return cleaned or None


def parse_parameters(params_node, family: str) -> tuple[Parameter, ...]:
    """Best-effort parameter list for any grammar."""
    if params_node is None:
        return ()
    if params_node.type in IDENTIFIER_TYPES:
        return (Parameter(name=text_of(params_node)),)

    params = []
    for child in params_node.named_children:
        if "comment" in child.type:
            continue
        param = _parse_parameter(child, family)
        if param is not None:
            params.append(param)
    return tuple(params)


def _parse_parameter(node, family: str) -> Parameter | None:
    kind = node.type
    if kind in ("self_parameter", "keyword_separator", "positional_separator"):
        return None
    if kind in IDENTIFIER_TYPES:
        return Parameter(name=text_of(node))

    rest = kind in (
        "rest_pattern",
        "list_splat_pattern",
        "dictionary_splat_pattern",
        "variadic_parameter",
        "variadic_parameter_declaration",
        "spread_parameter",
        "splat_parameter",
        "hash_splat_parameter",
    ) or text_of(node).lstrip().startswith(("...", "*"))

    name_field = (
        node.child_by_field_name("name")
        or node.child_by_field_name("pattern")
        or node.child_by_field_name("left")
        or child_of_type(node, "identifier", "simple_identifier", "variable_name")
    )
    if name_field is None:
        declarator_child = child_of_type(node, "variable_declarator")
        if declarator_child is not None:
            name_field = declarator_child.child_by_field_name("name")
    type_field = node.child_by_field_name("type")
    value_field = node.child_by_field_name("value") or node.child_by_field_name(
        "default_value"
    ) or node.child_by_field_name("right")

    if name_field is None:
        # e.g. a bare C parameter type or a destructuring pattern
        declarator = node.child_by_field_name("declarator")
        if declarator is None and family == "c" and text_of(node).strip() == "void":
            return None
        name_field = target_name_node(declarator) if declarator is not None else None

    raw_name = text_of(name_field) if name_field is not None else text_of(node)
    raw_name = raw_name.lstrip(".*&$").strip()
    if family == "php":
        raw_name = raw_name.lstrip("$")

    return Parameter(
        name=raw_name,
        type=strip_type_annotation(text_of(type_field)) if type_field is not None else None,
        default_value=text_of(value_field) if value_field is not None else None,
        rest=rest,
        optional=kind == "optional_parameter" or value_field is not None,
    )
