from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .models import Span

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(
    r"\*\*(?P<bold>.+?)\*\*"
    r"|(?<!\*)\*(?!\*)(?P<italic>.+?)(?<!\*)\*(?!\*)"
)
_DELIMITERS = {"bold": "**", "italic": "*"}


@dataclass(frozen=True)
class MarkerSpan:
    kind: str
    inner: str
    span: Span

    @property
    def delimiter(self) -> str:
        return _DELIMITERS[self.kind]


def find_marker_spans(text: str) -> list[MarkerSpan]:
    """Return the ``**bold**`` and ``*italic*`` spans of ``text`` in order."""
    spans: list[MarkerSpan] = []
    for match in _MARKER_RE.finditer(text):
        kind = "bold" if match.group("bold") is not None else "italic"
        spans.append(MarkerSpan(kind=kind, inner=match.group(kind), span=Span(match.start(), match.end())))
    return spans


def strip_markers(text: str) -> str:
    return _MARKER_RE.sub(lambda match: match.group("bold") or match.group("italic") or "", text)


def reconcile(original: str, suggested: str) -> str:
    """
    Carry the bold/italic markup of ``original`` over to ``suggested``.

    Markers the suggestion invents are removed when the original has none.
    When the original is marked up and the suggestion lost (part of) it, each
    original span is re-applied to the first occurrence of its text in the
    suggestion; if one of them cannot be found the suggestion is returned
    untouched.
    """
    original_spans = find_marker_spans(original)
    suggested_spans = find_marker_spans(suggested)
    if not original_spans:
        return strip_markers(suggested) if suggested_spans else suggested
    if [span.kind for span in suggested_spans] == [span.kind for span in original_spans]:
        return suggested

    result = strip_markers(suggested)
    cursor = 0
    for marker in original_spans:
        if not marker.inner.strip():
            logger.debug("Cannot re-apply empty %s marker; keeping suggestion %r", marker.kind, suggested)
            return suggested
        idx = result.find(marker.inner, cursor)
        if idx == -1:
            logger.debug("Marked text %r not found in suggestion %r", marker.inner, suggested)
            return suggested
        wrapped = f"{marker.delimiter}{marker.inner}{marker.delimiter}"
        result = result[:idx] + wrapped + result[idx + len(marker.inner) :]
        cursor = idx + len(wrapped)
    return result


__all__ = ["MarkerSpan", "find_marker_spans", "reconcile", "strip_markers"]
