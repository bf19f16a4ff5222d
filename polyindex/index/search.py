"""Symbol search: filtering and scoring.

Scores, highest first: exact name 100, name prefix 90, name substring 70,
in-order subsequence 50 and signature substring 30. The last two only apply
in fuzzy mode. Regex mode skips scoring and gives every match 70.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from polyindex.engine.types import Symbol, SymbolKind
from polyindex.index.scanner import glob_match

logger = logging.getLogger(__name__)

EXACT_SCORE = 100
PREFIX_SCORE = 90
SUBSTRING_SCORE = 70
SUBSEQUENCE_SCORE = 50
SIGNATURE_SCORE = 30
REGEX_SCORE = 70


@dataclass(frozen=True)
class MatchSpan:
    """Character positions of a query inside one symbol field."""

    field: str
    indices: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "indices": list(self.indices)}


@dataclass(frozen=True)
class ScoredSymbol:
    """A search hit."""

    symbol: Symbol
    score: int
    matches: tuple[MatchSpan, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol.to_dict(),
            "score": self.score,
            "matches": [m.to_dict() for m in self.matches],
        }


def _as_values(value: Any) -> set[str] | None:
    """Normalize a single filter value or a list of them to strings."""
    if value is None:
        return None
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    return {item.value if hasattr(item, "value") else str(item) for item in items}


def filter_symbols(
    symbols: Iterable[Symbol],
    *,
    kind: SymbolKind | str | Iterable[SymbolKind | str] | None = None,
    language: str | Iterable[str] | None = None,
    file: str | None = None,
    exported: bool | None = None,
) -> Iterator[Symbol]:
    """Yield symbols passing every given filter.

    ``file`` is a substring of the file id, or a glob when it contains
    wildcard characters.
    """
    kinds = _as_values(kind)
    languages = _as_values(language)
    file_is_glob = file is not None and any(c in file for c in "*?[")

    for symbol in symbols:
        if kinds is not None and symbol.kind.value not in kinds:
            continue
        if languages is not None and symbol.language not in languages:
            continue
        if file is not None:
            if file_is_glob:
                if not glob_match(symbol.file, file):
                    continue
            elif file not in symbol.file:
                continue
        if exported is not None and symbol.exported != exported:
            continue
        yield symbol


def _subsequence(query: str, text: str) -> tuple[int, ...] | None:
    """Indices of ``query`` characters appearing in order in ``text``."""
    indices = []
    position = 0
    for char in query:
        position = text.find(char, position)
        if position == -1:
            return None
        indices.append(position)
        position += 1
    return tuple(indices)


def score_symbol(symbol: Symbol, query: str, fuzzy: bool = True) -> ScoredSymbol | None:
    """Score one symbol against a query, case-insensitively.

    Returns:
        The scored hit, or None when nothing matches
    """
    needle = query.lower()
    name = symbol.name.lower()

    if name == needle:
        return ScoredSymbol(symbol, EXACT_SCORE, (MatchSpan("name", tuple(range(len(name)))),))
    if name.startswith(needle):
        return ScoredSymbol(symbol, PREFIX_SCORE, (MatchSpan("name", tuple(range(len(needle)))),))
    position = name.find(needle)
    if position != -1:
        indices = tuple(range(position, position + len(needle)))
        return ScoredSymbol(symbol, SUBSTRING_SCORE, (MatchSpan("name", indices),))
    if not fuzzy:
        return None

    indices = _subsequence(needle, name)
    if indices is not None:
        return ScoredSymbol(symbol, SUBSEQUENCE_SCORE, (MatchSpan("name", indices),))

    signature = (symbol.signature or "").lower()
    position = signature.find(needle)
    if position != -1:
        indices = tuple(range(position, position + len(needle)))
        return ScoredSymbol(symbol, SIGNATURE_SCORE, (MatchSpan("signature", indices),))
    return None


def search_symbols(
    symbols: Iterable[Symbol],
    query: str,
    *,
    kind: SymbolKind | str | Iterable[SymbolKind | str] | None = None,
    language: str | Iterable[str] | None = None,
    file: str | None = None,
    exported: bool | None = None,
    limit: int = 50,
    fuzzy: bool = True,
    regex: bool = False,
) -> list[ScoredSymbol]:
    """Filter, score, sort and truncate.

    An empty query lists every filtered symbol with score 0. An invalid
    regex yields no results.
    """
    candidates = filter_symbols(symbols, kind=kind, language=language, file=file, exported=exported)

    results: list[ScoredSymbol] = []
    if regex:
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error as e:
            logger.debug("Invalid search pattern %r: %s", query, e)
            return []
        for symbol in candidates:
            match = pattern.search(symbol.name)
            if match:
                span = MatchSpan("name", tuple(range(match.start(), match.end())))
                results.append(ScoredSymbol(symbol, REGEX_SCORE, (span,)))
    elif not query:
        results = [ScoredSymbol(symbol, 0) for symbol in candidates]
    else:
        for symbol in candidates:
            scored = score_symbol(symbol, query, fuzzy)
            if scored is not None:
                results.append(scored)

    # Stable sort keeps index order among equal scores
    results.sort(key=lambda r: r.score, reverse=True)
    return results[: max(limit, 0)]
