"""Parser engine: one file in, one ``FileIndex`` out.

Parses a file with its tree-sitter grammar and runs four independent
pre-order passes over the tree (symbols, imports, exports, references).
Composite documents are handed to the ``CompositeSplitter``.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from polyindex.engine.composite import CompositeSplitter
from polyindex.engine.languages import (
    LANGUAGE_SPECS,
    GrammarRegistry,
    Language,
    language_for_path,
)
from polyindex.engine.types import Export, FileIndex, Import, Reference, Symbol
from polyindex.engine.visitors import (
    ExportVisitor,
    ExtractionContext,
    ImportVisitor,
    ReferenceVisitor,
    SymbolVisitor,
    link_children,
    walk,
)

logger = logging.getLogger(__name__)


@dataclass
class Extraction:
    """Records produced by the four passes over one tree."""

    symbols: list[Symbol] = field(default_factory=list)
    imports: list[Import] = field(default_factory=list)
    exports: list[Export] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)


def _run_pass(root, visitor) -> list:
    records = []
    for node in walk(root):
        records.extend(visitor.visit(node))
    return records


class ParserEngine:
    """Turns source files into ``FileIndex`` records.

    The engine holds no per-file state, so one instance can serve many
    worker threads; each parse gets its own tree-sitter parser from the
    shared ``GrammarRegistry``.

    Usage:
        engine = ParserEngine()
        file_index = engine.parse_file("src/app.ts", file_id="src/app.ts")
    """

    def __init__(self, registry: GrammarRegistry | None = None):
        self.registry = registry or GrammarRegistry()
        self.splitter = CompositeSplitter(self)

    @staticmethod
    def hash_content(data: bytes | str) -> str:
        """Content fingerprint used for change detection."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hashlib.sha256(data).hexdigest()[:16]

    def parse_file(
        self,
        path: str | Path,
        content: str | bytes | None = None,
        *,
        file_id: str | None = None,
    ) -> FileIndex | None:
        """Parse one file.

        Args:
            path: Path of the file; its extension selects the language
            content: Source to parse instead of reading ``path``
            file_id: Identifier stamped on every record, defaults to ``path``

        Returns:
            The file's index, or None for unsupported languages or
            missing grammars

        Raises:
            OSError: If ``content`` is not given and the file cannot be read
        """
        path = Path(path)
        language = language_for_path(path)
        if language == Language.UNKNOWN:
            logger.debug("Unsupported file type: %s", path)
            return None

        spec = LANGUAGE_SPECS[language]
        if self.registry.load_language(spec.grammar) is None:
            logger.debug("No grammar for %s, skipping %s", spec.grammar, path)
            return None

        if content is None:
            raw = path.read_bytes()
            last_modified = path.stat().st_mtime
        else:
            raw = content.encode("utf-8") if isinstance(content, str) else content
            try:
                last_modified = path.stat().st_mtime
            except OSError:
                last_modified = time.time()

        file_id = file_id or str(path)

        if spec.composite:
            extraction = self.splitter.split(
                raw.decode("utf-8", errors="replace"), language, file_id
            )
        else:
            extraction = self.parse_source(raw, spec.grammar, file_id, language.value, spec.family)
            if extraction is None:
                return None

        return FileIndex(
            file=file_id,
            language=language.value,
            hash=self.hash_content(raw),
            last_modified=last_modified,
            symbols=tuple(extraction.symbols),
            imports=tuple(extraction.imports),
            exports=tuple(extraction.exports),
            references=tuple(extraction.references),
        )

    def parse_source(
        self,
        source: bytes,
        grammar: str,
        file_id: str,
        label: str,
        family: str,
        *,
        composite: bool = False,
    ) -> Extraction | None:
        """Parse raw source with a grammar and run all passes.

        Args:
            source: Source bytes
            grammar: tree-sitter-language-pack grammar name
            file_id: File identifier for the records
            label: Language label stamped on symbols
            family: Visitor family key
            composite: Whether the source is a script region of a composite file

        Returns:
            The extraction, or None when the grammar is missing
        """
        parser = self.registry.new_parser(grammar)
        if parser is None:
            return None

        tree = parser.parse(source)
        ctx = ExtractionContext(
            file=file_id,
            language=label,
            family=family,
            lines=source.decode("utf-8", errors="replace").split("\n"),
            composite=composite,
        )
        return self.extract(tree.root_node, ctx)

    def extract(self, root, ctx: ExtractionContext) -> Extraction:
        """Run the symbol, import, export and reference passes over a tree."""
        symbols = _run_pass(root, SymbolVisitor(ctx))
        return Extraction(
            symbols=link_children(symbols),
            imports=_run_pass(root, ImportVisitor(ctx)),
            exports=_run_pass(root, ExportVisitor(ctx)),
            references=_run_pass(root, ReferenceVisitor(ctx)),
        )
