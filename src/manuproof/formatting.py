from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .markers import find_marker_spans
from .models import LocalMistake, Span
from .mistakes import select_non_overlapping

logger = logging.getLogger(__name__)

DEFAULT_DIALOGUE_DASH = "–"
DEFAULT_QUOTES = ("„", "”")
DEFAULT_ABBREVIATIONS = (
    "itd",
    "itp",
    "np",
    "zob",
    "por",
    "tzn",
    "tzw",
    "tj",
    "jw",
    "ok",
    "ul",
    "al",
    "pl",
    "wg",
    "dr",
    "mgr",
    "inż",
    "hab",
    "prof",
    "godz",
    "min",
    "str",
    "tys",
    "mln",
    "mld",
    "zł",
    "nr",
    "r",
    "w",
    "cdn",
    "etc",
    "vs",
    "e.g",
    "i.e",
    "mr",
    "mrs",
    "ms",
    "jr",
    "sr",
)

_LETTER = r"[^\W\d_]"
_HYPHENATION_RE = re.compile(rf"(?=({_LETTER}[ \t]?-[ \t]?{_LETTER}))")

FixFunc = Callable[[re.Match[str]], str]
AcceptFunc = Callable[[str, re.Match[str]], bool]


@dataclass(frozen=True)
class FormattingRule:
    """
    One regex check of the local engine.

    ``group`` selects the part of the match reported as the mistake, so a
    rule can use surrounding context without flagging it.
    """

    name: str
    pattern: re.Pattern[str]
    reason: str
    fix: str | FixFunc
    group: int = 0
    accept: AcceptFunc | None = None
    guard_abbreviations: bool = False

    def replacement(self, match: re.Match[str]) -> str:
        if callable(self.fix):
            return self.fix(match)
        return self.fix


def _lower_then_upper(text: str, match: re.Match[str]) -> bool:
    start, end = match.span()
    return start > 0 and end < len(text) and text[start - 1].islower() and text[end].isupper()


def _followed_by_upper(text: str, match: re.Match[str]) -> bool:
    end = match.end()
    return end < len(text) and text[end].isupper()


def default_rules(
    dialogue_dash: str = DEFAULT_DIALOGUE_DASH,
    quotes: Sequence[str] = DEFAULT_QUOTES,
) -> list[FormattingRule]:
    """Build the ordered rule table; earlier rules win when two start together."""
    open_quote, close_quote = quotes[0], quotes[1]
    return [
        FormattingRule(
            "trailing_whitespace",
            re.compile(r"(?<=\S)[ \t]+(?=\r?\n|\Z)"),
            "trailing whitespace",
            "",
        ),
        FormattingRule(
            "space_before_punctuation",
            re.compile(r"(?<=\S)[ \t]+(?=[,;:!?)]|\.(?!\.))"),
            "space before punctuation",
            "",
        ),
        FormattingRule(
            "double_space",
            re.compile(r"(?<=\S)[ \t]{2,}(?=\S)"),
            "double space",
            " ",
        ),
        FormattingRule(
            "space_after_opening_parenthesis",
            re.compile(r"(?<=[(\[])[ \t]+(?=\S)"),
            "space after opening parenthesis",
            "",
        ),
        FormattingRule(
            "missing_space_after_punctuation",
            re.compile(rf"(?<={_LETTER})[,;:!?](?={_LETTER})"),
            "missing space after punctuation",
            lambda match: match.group(0) + " ",
        ),
        FormattingRule(
            "missing_space_after_period",
            re.compile(rf"(?<={_LETTER})\.(?={_LETTER})"),
            "missing space after period",
            ". ",
            accept=_lower_then_upper,
        ),
        FormattingRule(
            "missing_space_before_parenthesis",
            re.compile(rf"(?<={_LETTER})\((?=[^)\n]{{3,}}\))"),
            "missing space before parenthesis",
            " (",
        ),
        FormattingRule(
            "missing_space_after_parenthesis",
            re.compile(rf"(?<=[^\s(]{{3}})\)(?={_LETTER})"),
            "missing space after parenthesis",
            ") ",
        ),
        FormattingRule(
            "ascii_opening_quote",
            re.compile(r"(?<![^\s(\[{—–-])\"(?=\S)"),
            "ASCII quotation mark",
            open_quote,
        ),
        FormattingRule(
            "ascii_closing_quote",
            re.compile(r"(?<=\S)\""),
            "ASCII quotation mark",
            close_quote,
        ),
        FormattingRule(
            "dialogue_dash_line_start",
            re.compile(rf"^[ \t]*(-{{1,2}})(?=[ \t]*(?:{_LETTER}|[„\"«]))", re.MULTILINE),
            "hyphen instead of dialogue dash",
            dialogue_dash,
            group=1,
        ),
        FormattingRule(
            "dialogue_dash_after_quote",
            re.compile(r"(?<=[”\"»])[ \t]+(-{1,2})(?=[ \t]+\S)"),
            "hyphen instead of dialogue dash",
            dialogue_dash,
            group=1,
        ),
        FormattingRule(
            "hyphen_as_dash",
            re.compile(r"(?<=\S)[ \t](-{1,2})[ \t](?=\S)"),
            "hyphen instead of dash",
            dialogue_dash,
            group=1,
        ),
        FormattingRule(
            "space_before_ellipsis",
            re.compile(rf"(?<={_LETTER})[ \t]+(?=(?:…|\.{{3}})[ \t]*(?:\r?\n|\Z))"),
            "space before ellipsis",
            "",
        ),
        FormattingRule(
            "missing_space_after_ellipsis",
            re.compile(rf"(?<={_LETTER})(?:…|\.{{3}})(?={_LETTER})"),
            "missing space after ellipsis",
            "… ",
            accept=_followed_by_upper,
        ),
        FormattingRule(
            "ellipsis",
            re.compile(r"\.{3,}"),
            "three dots instead of ellipsis",
            "…",
        ),
        FormattingRule(
            "duplicated_punctuation",
            re.compile(r"([,;:…])\1+|(?<!\.)\.\.(?!\.)"),
            "duplicated punctuation",
            lambda match: match.group(1) or ".",
        ),
        FormattingRule(
            "comma_after_period",
            re.compile(r"\.,"),
            "period followed by comma",
            ",",
            guard_abbreviations=True,
        ),
        FormattingRule(
            "period_after_comma",
            re.compile(r",\.(?!\.)"),
            "comma followed by period",
            ".",
        ),
    ]


def hyphenation_spans(text: str) -> list[Span]:
    """
    Spans that look like words broken by a layout tool (``przy- kład``).

    A lowercase letter, an optional space, a hyphen, an optional space and
    another lowercase letter.
    """
    spans: list[Span] = []
    for match in _HYPHENATION_RE.finditer(text):
        start, end = match.span(1)
        if text[start].islower() and text[end - 1].islower():
            spans.append(Span(start, end))
    return spans


def _follows_abbreviation(text: str, dot_index: int, abbreviations: frozenset[str]) -> bool:
    """Whether the ``.`` at ``dot_index`` closes one of ``abbreviations``."""
    start = dot_index
    while start > 0 and (text[start - 1].isalpha() or text[start - 1] == "."):
        start -= 1
    token = text[start:dot_index].strip(".").lower()
    return bool(token) and token in abbreviations


def _normalize_abbreviations(abbreviations: Iterable[str]) -> frozenset[str]:
    return frozenset(item.strip().rstrip(".").lower() for item in abbreviations if item.strip())


def detect_formatting_errors(
    text: str,
    indesign_import: bool = False,
    *,
    rules: Sequence[FormattingRule] | None = None,
    abbreviations: Iterable[str] | None = None,
) -> list[LocalMistake]:
    """
    Run the rule table over ``text`` and return sorted, non-overlapping findings.

    Matches touching bold/italic markup are skipped, as are matches inside
    layout hyphenation when ``indesign_import`` is set and period-comma
    pairs closing a known abbreviation.
    """
    if not text:
        return []
    active_rules = default_rules() if rules is None else list(rules)
    known_abbreviations = _normalize_abbreviations(
        DEFAULT_ABBREVIATIONS if abbreviations is None else abbreviations
    )
    protected = [marker.span for marker in find_marker_spans(text)]
    if indesign_import:
        protected.extend(hyphenation_spans(text))

    candidates: list[tuple[int, int, LocalMistake]] = []
    for order, rule in enumerate(active_rules):
        for match in rule.pattern.finditer(text):
            start, end = match.span(rule.group)
            if start >= end:
                continue
            if rule.accept is not None and not rule.accept(text, match):
                continue
            if rule.guard_abbreviations and _follows_abbreviation(text, start, known_abbreviations):
                continue
            span = Span(start, end)
            if any(span.overlaps(other) for other in protected):
                continue
            original = text[start:end]
            fix = rule.replacement(match)
            if fix == original:
                continue
            candidates.append(
                (
                    start,
                    order,
                    LocalMistake(
                        original_text=original,
                        suggested_fix=fix,
                        reason=rule.reason,
                        position=span,
                        rule=rule.name,
                    ),
                )
            )
    candidates.sort(key=lambda item: (item[0], item[1]))
    findings = select_non_overlapping([candidate for _, _, candidate in candidates])
    logger.debug("Local rules: %d match(es), %d kept", len(candidates), len(findings))
    return findings


__all__ = [
    "DEFAULT_ABBREVIATIONS",
    "DEFAULT_DIALOGUE_DASH",
    "DEFAULT_QUOTES",
    "FormattingRule",
    "default_rules",
    "detect_formatting_errors",
    "hyphenation_spans",
]
