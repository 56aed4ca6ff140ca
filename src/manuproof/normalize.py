from __future__ import annotations

import re

QUOTE_VARIANTS = "\"“”„‟«»〝〞＂"
APOSTROPHE_VARIANTS = "'‘’‚‛‹›`´"
DASH_VARIANTS = "-‐‑‒–—―−"

_GLYPH_TABLE = str.maketrans(
    {
        **{ch: '"' for ch in QUOTE_VARIANTS},
        **{ch: "'" for ch in APOSTROPHE_VARIANTS},
        **{ch: "-" for ch in DASH_VARIANTS},
    }
)
_WS_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text)


def normalize_for_comparison(text: str) -> str:
    """Fold quote/dash glyphs and whitespace runs so no-op edits compare equal."""
    return collapse_whitespace(text.translate(_GLYPH_TABLE)).strip()


def _fold_char(ch: str) -> str:
    if ch == "…":
        return "..."
    return ch.translate(_GLYPH_TABLE).lower()


def normalize_with_map(text: str) -> tuple[str, list[int]]:
    """
    Return the search form of ``text`` and an index map back to ``text``.

    Whitespace runs become a single space, case is folded and quote, dash and
    ellipsis variants are unified. ``offsets[i]`` is the index in ``text`` of
    the character that produced ``normalized[i]``; the map is non-decreasing.
    """
    parts: list[str] = []
    offsets: list[int] = []
    last_was_space = False
    for idx, ch in enumerate(text):
        if ch.isspace():
            if not last_was_space:
                parts.append(" ")
                offsets.append(idx)
                last_was_space = True
            continue
        folded = _fold_char(ch)
        parts.append(folded)
        offsets.extend([idx] * len(folded))
        last_was_space = False
    return "".join(parts), offsets


def normalize_needle(text: str) -> str:
    normalized, _ = normalize_with_map(text)
    return normalized.strip(" ")


__all__ = [
    "DASH_VARIANTS",
    "QUOTE_VARIANTS",
    "collapse_whitespace",
    "normalize_for_comparison",
    "normalize_needle",
    "normalize_with_map",
]
