"""Embedded-document splitter for single-file components.

Vue and Svelte files mix markup with one or more ``<script>`` regions. Each
script region is parsed on its own with the script grammar its ``lang``
attribute asks for, then every position is shifted back into document
coordinates. The markup is scanned with patterns (not parsed) for component
tags and event-handler bindings.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass, replace
from pathlib import PurePath
from typing import TYPE_CHECKING, Callable

from polyindex.engine.languages import Language
from polyindex.engine.types import (
    Export,
    Import,
    Position,
    Range,
    Reference,
    ReferenceKind,
    Symbol,
    SymbolKind,
)

if TYPE_CHECKING:
    from polyindex.engine.parser import Extraction, ParserEngine

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script([^>]*)>([\s\S]*?)</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TEMPLATE_RE = re.compile(r"<template[^>]*>([\s\S]*)</template>", re.IGNORECASE)
_LANG_ATTR_RE = re.compile(r"""\blang\s*=\s*["']?([\w-]+)""", re.IGNORECASE)
_SETUP_ATTR_RE = re.compile(r"(?:^|\s)setup(?:\s|=|$)")
_COMPONENT_TAG_RE = re.compile(r"<([A-Z][a-zA-Z0-9]*)(?=[\s/>])")
_VUE_HANDLER_RE = re.compile(r"""(?:@|v-on:)([\w:.-]+)\s*=\s*(["'])([^"']*)\2""")
_SVELTE_HANDLER_RE = re.compile(r"""\bon:([\w.|-]+)\s*=\s*\{([^}]*)\}""")
_BARE_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")

SETUP_MACROS: tuple[tuple[re.Pattern, str, SymbolKind], ...] = (
    (re.compile(r"\bdefineProps\s*[<(]"), "props", SymbolKind.PROPERTY),
    (re.compile(r"\bdefineEmits\s*[<(]"), "emit", SymbolKind.EVENT),
    (re.compile(r"\bdefineExpose\s*\("), "expose", SymbolKind.PROPERTY),
)

SCRIPT_GRAMMARS: dict[str, str] = {
    "ts": "typescript",
    "typescript": "typescript",
    "tsx": "tsx",
}
DEFAULT_SCRIPT_GRAMMAR = "javascript"


class _LineIndex:
    """Maps character offsets of a document to line/column/byte positions."""

    def __init__(self, text: str):
        self.text = text
        self.line_starts = [0]
        for match in re.finditer("\n", text):
            self.line_starts.append(match.end())

    def position(self, offset: int) -> Position:
        row = bisect.bisect_right(self.line_starts, offset) - 1
        line_start = self.line_starts[row]
        column = len(self.text[line_start:offset].encode("utf-8"))
        byte_offset = len(self.text[:offset].encode("utf-8"))
        return Position(line=row + 1, column=column, byte_offset=byte_offset)

    def line_text(self, offset: int) -> str:
        row = bisect.bisect_right(self.line_starts, offset) - 1
        end = self.text.find("\n", offset)
        return self.text[self.line_starts[row] : end if end != -1 else len(self.text)].strip()

    def span(self, start: int, end: int) -> Range:
        return Range(start=self.position(start), end=self.position(end))


@dataclass(frozen=True)
class ScriptRegion:
    """One ``<script>`` block of a composite document.

    Attributes:
        attributes: Raw attribute text of the opening tag
        text: Script source between the tags
        start: Character offset just past the opening tag's ``>``
        line_offset: Lines to add to region-relative line numbers
        column_offset: Byte column of ``start`` on its line
        byte_offset: Byte offset of ``start`` in the document
    """

    attributes: str
    text: str
    start: int
    line_offset: int
    column_offset: int
    byte_offset: int

    @property
    def lang(self) -> str | None:
        match = _LANG_ATTR_RE.search(self.attributes)
        return match.group(1).lower() if match else None

    @property
    def grammar(self) -> str:
        return SCRIPT_GRAMMARS.get(self.lang or "", DEFAULT_SCRIPT_GRAMMAR)

    @property
    def is_setup(self) -> bool:
        return _SETUP_ATTR_RE.search(self.attributes) is not None

    def shift_position(self, position: Position) -> Position:
        column = position.column + self.column_offset if position.line == 1 else position.column
        return Position(
            line=position.line + self.line_offset,
            column=column,
            byte_offset=position.byte_offset + self.byte_offset,
        )

    def shift_range(self, span: Range) -> Range:
        return Range(start=self.shift_position(span.start), end=self.shift_position(span.end))


def find_script_regions(text: str, lines: _LineIndex | None = None) -> list[ScriptRegion]:
    """Locate every ``<script>`` block by pattern scan."""
    index = lines or _LineIndex(text)
    regions = []
    for match in _SCRIPT_RE.finditer(text):
        start = match.start(2)
        origin = index.position(start)
        regions.append(
            ScriptRegion(
                attributes=match.group(1),
                text=match.group(2),
                start=start,
                line_offset=origin.line - 1,
                column_offset=origin.column,
                byte_offset=origin.byte_offset,
            )
        )
    return regions


def _blank(text: str, pattern: re.Pattern) -> str:
    """Replace every match with spaces, keeping newlines so offsets hold."""
    return pattern.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def _vue_markup(text: str) -> tuple[str, int]:
    match = _TEMPLATE_RE.search(text)
    if match is None:
        return "", 0
    return match.group(1), match.start(1)


def _svelte_markup(text: str) -> tuple[str, int]:
    return _blank(_blank(text, _SCRIPT_RE), _STYLE_RE), 0


@dataclass(frozen=True)
class CompositeSpec:
    """How one composite language lays out its markup.

    Attributes:
        markup: Returns the markup text and its start offset in the document
        handler_pattern: Event binding pattern; last group is the handler value
        setup_macros: Whether ``<script setup>`` compiler macros apply
    """

    markup: Callable[[str], tuple[str, int]]
    handler_pattern: re.Pattern
    setup_macros: bool = False


COMPOSITE_SPECS: dict[Language, CompositeSpec] = {
    Language.VUE: CompositeSpec(_vue_markup, _VUE_HANDLER_RE, setup_macros=True),
    Language.SVELTE: CompositeSpec(_svelte_markup, _SVELTE_HANDLER_RE),
}


class CompositeSplitter:
    """Extracts one merged result from a composite document.

    The splitter reuses the parser engine's four extraction passes for each
    script region, so script code in a ``.vue`` file yields the same records
    as the same code in a ``.js`` file, only relocated.
    """

    def __init__(self, engine: ParserEngine):
        self.engine = engine

    def split(self, text: str, language: Language, file_id: str) -> Extraction:
        """Extract symbols, imports, exports and references from a document.

        Args:
            text: Whole document text
            language: The composite language (vue or svelte)
            file_id: File identifier stamped on every record

        Returns:
            Merged extraction in document coordinates
        """
        from polyindex.engine.parser import Extraction

        spec = COMPOSITE_SPECS[language]
        lines = _LineIndex(text)
        label = language.value

        symbols: list[Symbol] = [self._component_symbol(text, file_id, label, lines)]
        imports: list[Import] = []
        exports: list[Export] = []
        references: list[Reference] = []

        for region in find_script_regions(text, lines):
            extraction = self.engine.parse_source(
                region.text.encode("utf-8"),
                region.grammar,
                file_id,
                label,
                "ecmascript",
                composite=True,
            )
            if extraction is None:
                logger.debug("Skipping %s script region in %s", region.grammar, file_id)
            else:
                symbols.extend(
                    replace(
                        s,
                        range=region.shift_range(s.range),
                        selection_range=region.shift_range(s.selection_range),
                    )
                    for s in extraction.symbols
                )
                imports.extend(replace(i, range=region.shift_range(i.range)) for i in extraction.imports)
                exports.extend(replace(e, range=region.shift_range(e.range)) for e in extraction.exports)
                references.extend(
                    replace(r, range=region.shift_range(r.range)) for r in extraction.references
                )

            if spec.setup_macros and region.is_setup:
                symbols.extend(self._setup_macros(region, file_id, label, lines))

        markup, markup_start = spec.markup(text)
        if markup:
            references.extend(self._scan_markup(markup, markup_start, spec, file_id, lines))

        return Extraction(symbols=symbols, imports=imports, exports=exports, references=references)

    def _component_symbol(self, text: str, file_id: str, label: str, lines: _LineIndex) -> Symbol:
        name = PurePath(file_id).stem
        origin = Position(line=1, column=0, byte_offset=0)
        return Symbol(
            name=name,
            kind=SymbolKind.COMPONENT,
            range=Range(start=origin, end=lines.position(len(text))),
            selection_range=Range(start=origin, end=origin),
            file=file_id,
            language=label,
            signature=f"<{name}>",
            exported=True,
        )

    def _setup_macros(
        self, region: ScriptRegion, file_id: str, label: str, lines: _LineIndex
    ) -> list[Symbol]:
        symbols = []
        for pattern, name, kind in SETUP_MACROS:
            for match in pattern.finditer(region.text):
                start = region.start + match.start()
                macro_end = start + len(match.group(0).rstrip("<( \t\n"))
                span = lines.span(start, macro_end)
                symbols.append(
                    Symbol(
                        name=name,
                        kind=kind,
                        range=span,
                        selection_range=span,
                        file=file_id,
                        language=label,
                        signature=lines.line_text(start)[:100],
                    )
                )
        return symbols

    def _scan_markup(
        self,
        markup: str,
        markup_start: int,
        spec: CompositeSpec,
        file_id: str,
        lines: _LineIndex,
    ) -> list[Reference]:
        references = []
        for match in _COMPONENT_TAG_RE.finditer(markup):
            start = markup_start + match.start(1)
            references.append(
                Reference(
                    symbol=match.group(1),
                    file=file_id,
                    range=lines.span(start, start + len(match.group(1))),
                    context=lines.line_text(start),
                    kind=ReferenceKind.COMPONENT_USAGE,
                )
            )

        handler_group = spec.handler_pattern.groups
        for match in spec.handler_pattern.finditer(markup):
            raw = match.group(handler_group)
            value = raw.strip()
            if not _BARE_IDENTIFIER_RE.fullmatch(value):
                continue
            start = markup_start + match.start(handler_group) + (len(raw) - len(raw.lstrip()))
            references.append(
                Reference(
                    symbol=value,
                    file=file_id,
                    range=lines.span(start, start + len(value)),
                    context=lines.line_text(start),
                    kind=ReferenceKind.CALL,
                )
            )
        return references
