"""Grammar registry: language detection and lazy tree-sitter grammar loading.

Grammars come from ``tree-sitter-language-pack``. Loading one is expensive,
so each registry memoizes every lookup (misses included) for its lifetime.
The registry is an ordinary object that callers pass around; there is no
process-wide cache.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class Language(Enum):
    """Languages the indexer recognizes by file extension."""

    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    JSX = "jsx"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    JAVA = "java"
    KOTLIN = "kotlin"
    C = "c"
    CPP = "cpp"
    CSHARP = "csharp"
    PHP = "php"
    RUBY = "ruby"
    SWIFT = "swift"
    DART = "dart"
    VUE = "vue"
    SVELTE = "svelte"
    HTML = "html"
    CSS = "css"
    SCSS = "scss"
    JSON = "json"
    YAML = "yaml"
    MARKDOWN = "markdown"
    BASH = "bash"
    SQL = "sql"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LanguageSpec:
    """Static description of one language.

    Attributes:
        extensions: File extensions (lowercase, with dot)
        grammar: tree-sitter-language-pack grammar name. For composite
            languages this is the default script grammar.
        family: Key into the visitor strategy table
        composite: Whether files embed script regions in markup
    """

    extensions: tuple[str, ...]
    grammar: str
    family: str = "generic"
    composite: bool = False


LANGUAGE_SPECS: dict[Language, LanguageSpec] = {
    Language.JAVASCRIPT: LanguageSpec((".js", ".mjs", ".cjs"), "javascript", "ecmascript"),
    Language.TYPESCRIPT: LanguageSpec((".ts", ".mts", ".cts"), "typescript", "ecmascript"),
    Language.TSX: LanguageSpec((".tsx",), "tsx", "ecmascript"),
    Language.JSX: LanguageSpec((".jsx",), "javascript", "ecmascript"),
    Language.PYTHON: LanguageSpec((".py", ".pyi"), "python", "python"),
    Language.GO: LanguageSpec((".go",), "go", "go"),
    Language.RUST: LanguageSpec((".rs",), "rust", "rust"),
    Language.JAVA: LanguageSpec((".java",), "java", "jvm"),
    Language.KOTLIN: LanguageSpec((".kt", ".kts"), "kotlin", "jvm"),
    Language.C: LanguageSpec((".c", ".h"), "c", "c"),
    Language.CPP: LanguageSpec((".cpp", ".cc", ".cxx", ".hpp", ".hxx"), "cpp", "c"),
    Language.CSHARP: LanguageSpec((".cs",), "csharp", "csharp"),
    Language.PHP: LanguageSpec((".php",), "php", "php"),
    Language.RUBY: LanguageSpec((".rb",), "ruby", "ruby"),
    Language.SWIFT: LanguageSpec((".swift",), "swift"),
    Language.DART: LanguageSpec((".dart",), "dart"),
    Language.VUE: LanguageSpec((".vue",), "javascript", "ecmascript", composite=True),
    Language.SVELTE: LanguageSpec((".svelte",), "javascript", "ecmascript", composite=True),
    Language.HTML: LanguageSpec((".html", ".htm"), "html"),
    Language.CSS: LanguageSpec((".css",), "css"),
    Language.SCSS: LanguageSpec((".scss", ".sass"), "scss"),
    Language.JSON: LanguageSpec((".json",), "json"),
    Language.YAML: LanguageSpec((".yaml", ".yml"), "yaml"),
    Language.MARKDOWN: LanguageSpec((".md", ".mdx"), "markdown"),
    Language.BASH: LanguageSpec((".sh", ".bash"), "bash"),
    Language.SQL: LanguageSpec((".sql",), "sql"),
}

# File extension to language mapping
EXTENSION_TO_LANGUAGE: dict[str, Language] = {
    ext: language for language, spec in LANGUAGE_SPECS.items() for ext in spec.extensions
}


def language_for_extension(extension: str) -> Language:
    """Map a file extension (with or without the dot) to a language."""
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return EXTENSION_TO_LANGUAGE.get(ext, Language.UNKNOWN)


def language_for_path(path: str | Path) -> Language:
    return language_for_extension(Path(path).suffix)


def supported_extensions() -> list[str]:
    return sorted(EXTENSION_TO_LANGUAGE)


def family_for(language: Language | str) -> str:
    """Visitor family for a language; unknown names map to ``generic``."""
    if isinstance(language, str):
        try:
            language = Language(language)
        except ValueError:
            return "generic"
    spec = LANGUAGE_SPECS.get(language)
    return spec.family if spec else "generic"


class GrammarRegistry:
    """Loads tree-sitter grammars on demand and remembers the outcome.

    Safe to share between worker threads: the first load of each grammar
    happens under a lock, and later lookups are served from the cache. A
    grammar that cannot be loaded is cached as ``None`` and never retried.

    Usage:
        registry = GrammarRegistry()
        parser = registry.new_parser("python")
        tree = parser.parse(b"def f(): pass")
    """

    def __init__(self):
        self._languages: dict[str, Any] = {}
        self._lock = threading.Lock()
        self.load_count = 0
        self._warned = False

    def load_language(self, name: str) -> Any | None:
        """Get the tree-sitter ``Language`` for a grammar name.

        Args:
            name: tree-sitter-language-pack grammar name

        Returns:
            The grammar, or None when it is not available
        """
        if name in self._languages:
            return self._languages[name]

        with self._lock:
            if name in self._languages:
                return self._languages[name]

            self.load_count += 1
            try:
                from tree_sitter_language_pack import get_language

                grammar = get_language(name)
            except Exception as e:
                self._report_miss(name, e)
                grammar = None

            self._languages[name] = grammar
            return grammar

    def _report_miss(self, name: str, error: Exception) -> None:
        # Only the first miss per registry is a warning
        if self._warned:
            logger.debug("Grammar not available for %s: %s", name, error)
            return
        self._warned = True
        logger.warning(
            "Grammar not available for %s, its files will not be indexed: %s", name, error
        )

    def grammar_for(self, language: Language) -> Any | None:
        spec = LANGUAGE_SPECS.get(language)
        if spec is None:
            return None
        return self.load_language(spec.grammar)

    def new_parser(self, name: str):
        """Create a fresh parser for a grammar name.

        Parsers are cheap and are not shared between threads, so every call
        gets its own instance.

        Returns:
            A ``tree_sitter.Parser``, or None when the grammar is missing
        """
        grammar = self.load_language(name)
        if grammar is None:
            return None

        from tree_sitter import Parser

        return Parser(grammar)

