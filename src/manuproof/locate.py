from __future__ import annotations

import enum
import logging
from bisect import bisect_left
from typing import Iterable, Union

from .models import Span
from .normalize import normalize_needle, normalize_with_map

logger = logging.getLogger(__name__)

DEFAULT_FOOTNOTE_SEPARATOR = "\n---\n"


class _NotFound(enum.Enum):
    NOT_FOUND = "NOT_FOUND"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound.NOT_FOUND
LocateResult = Union[Span, _NotFound]


class ChunkLocator:
    """
    Finds reported snippets inside one chunk.

    The chunk is split at the footnote separator into a main section and an
    optional footnote section; the normalized search form of the text is
    computed once and shared by every lookup.
    """

    def __init__(self, text: str, footnote_separator: str | None = DEFAULT_FOOTNOTE_SEPARATOR) -> None:
        self.text = text
        separator_idx = text.find(footnote_separator) if footnote_separator else -1
        if separator_idx == -1:
            self.main_end = len(text)
            self.footnote_start: int | None = None
        else:
            self.main_end = separator_idx
            self.footnote_start = separator_idx + len(footnote_separator)
        self._normalized, self._offsets = normalize_with_map(text)

    def _exact(self, snippet: str, start: int, end: int) -> Span | None:
        idx = self.text.find(snippet, start, end)
        if idx == -1:
            return None
        return Span(idx, idx + len(snippet))

    def _normalized_search(self, needle: str, start: int, end: int) -> Span | None:
        if not needle:
            return None
        norm_start = bisect_left(self._offsets, start)
        norm_end = bisect_left(self._offsets, end)
        found = self._normalized.find(needle, norm_start, norm_end)
        if found == -1:
            return None
        first = self._offsets[found]
        last = self._offsets[found + len(needle) - 1]
        return Span(first, last + 1)

    def locate(self, snippet: str, hint: int = 0) -> LocateResult:
        """
        Resolve ``snippet`` to a span of the chunk, or ``NOT_FOUND``.

        Exact search from ``hint`` and then from the start of the main text is
        tried before the whitespace/case/glyph-insensitive search in the same
        order; the footnote section is searched last.
        """
        if not snippet:
            return NOT_FOUND
        main_end = self.main_end
        start = hint if 0 <= hint < main_end else 0
        needle = normalize_needle(snippet)

        span = self._exact(snippet, start, main_end)
        if span is None and start > 0:
            span = self._exact(snippet, 0, main_end)
        if span is None:
            span = self._normalized_search(needle, start, main_end)
        if span is None and start > 0:
            span = self._normalized_search(needle, 0, main_end)
        if span is None and self.footnote_start is not None:
            span = self._exact(snippet, self.footnote_start, len(self.text))
            if span is None:
                span = self._normalized_search(needle, self.footnote_start, len(self.text))
        if span is None:
            return NOT_FOUND
        return span

    def resolve(self, snippets: Iterable[str], hint: int = 0) -> list[LocateResult]:
        """Locate ``snippets`` in report order, moving the hint past each match."""
        results: list[LocateResult] = []
        for snippet in snippets:
            result = self.locate(snippet, hint)
            if result is not NOT_FOUND:
                hint = max(hint, result.end)
            results.append(result)
        return results


def locate(
    chunk_text: str,
    snippet: str,
    hint: int = 0,
    *,
    footnote_separator: str | None = DEFAULT_FOOTNOTE_SEPARATOR,
) -> LocateResult:
    return ChunkLocator(chunk_text, footnote_separator).locate(snippet, hint)


def resolve_positions(
    chunk_text: str,
    snippets: Iterable[str],
    *,
    footnote_separator: str | None = DEFAULT_FOOTNOTE_SEPARATOR,
) -> list[LocateResult]:
    return ChunkLocator(chunk_text, footnote_separator).resolve(snippets)


__all__ = [
    "ChunkLocator",
    "DEFAULT_FOOTNOTE_SEPARATOR",
    "LocateResult",
    "NOT_FOUND",
    "locate",
    "resolve_positions",
]
