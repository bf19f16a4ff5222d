"""Per-language visitors that turn tree-sitter nodes into index records."""

from polyindex.engine.visitors.base import (
    ExtractionContext,
    is_exported,
    make_signature,
    modifier_text,
    visibility_of,
    walk,
)
from polyindex.engine.visitors.exports import ExportVisitor
from polyindex.engine.visitors.imports import ImportVisitor
from polyindex.engine.visitors.references import ReferenceVisitor
from polyindex.engine.visitors.symbols import SYMBOL_STRATEGIES, SymbolVisitor, link_children

__all__ = [
    "ExtractionContext",
    "ExportVisitor",
    "ImportVisitor",
    "ReferenceVisitor",
    "SYMBOL_STRATEGIES",
    "SymbolVisitor",
    "is_exported",
    "link_children",
    "make_signature",
    "modifier_text",
    "visibility_of",
    "walk",
]
