from __future__ import annotations

import re

from manuproof.formatting import (
    FormattingRule,
    default_rules,
    detect_formatting_errors,
    hyphenation_spans,
)
from manuproof.models import Span


def _summary(text: str, **kwargs) -> list[tuple[str, str, int, int]]:
    return [
        (finding.original_text, finding.suggested_fix, finding.position.start, finding.position.end)
        for finding in detect_formatting_errors(text, **kwargs)
    ]


def test_double_space_is_reported_once() -> None:
    findings = detect_formatting_errors("foo   bar")
    assert len(findings) == 1
    finding = findings[0]
    assert finding.original_text == "   "
    assert finding.suggested_fix == " "
    assert finding.reason == "double space"
    assert finding.position == Span(3, 6)
    assert finding.category == "formatting"
    assert finding.rule == "double_space"


def test_clean_text_has_no_findings() -> None:
    assert detect_formatting_errors("To jest poprawne zdanie, prawda?\n– Tak.\n") == []
    assert detect_formatting_errors("") == []


def test_space_before_punctuation() -> None:
    assert _summary("Tak , jak mówiłem .") == [(" ", "", 3, 4), (" ", "", 17, 18)]


def test_ascii_quotes_become_typographic() -> None:
    assert _summary('Powiedział "tak" wczoraj.') == [('"', "„", 11, 12), ('"', "”", 15, 16)]


def test_custom_quotes() -> None:
    rules = default_rules(quotes=("«", "»"))
    assert _summary('Rzekł "nie".', rules=rules) == [('"', "«", 6, 7), ('"', "»", 10, 11)]


def test_three_dots_become_ellipsis() -> None:
    assert _summary("Czekał... Potem wyszedł.") == [("...", "…", 6, 9)]


def test_hyphen_at_line_start_becomes_dialogue_dash() -> None:
    assert _summary("- Chodź tu.\n") == [("-", "–", 0, 1)]


def test_spaced_hyphen_becomes_dash() -> None:
    assert _summary("stare - nowe") == [("-", "–", 6, 7)]


def test_missing_space_after_comma() -> None:
    assert _summary("raz,dwa") == [(",", ", ", 3, 4)]


def test_comma_after_period() -> None:
    assert _summary("Był tam dom., a obok las.") == [(".,", ",", 11, 13)]


def test_abbreviation_before_comma_is_not_reported() -> None:
    assert _summary("Jabłka, gruszki itd., a potem śliwki.") == []


def test_abbreviation_inside_markers_is_not_reported() -> None:
    # both the abbreviation exception and the marker exclusion cover ".,"
    assert _summary("Owoce **itd.,** a potem reszta.") == []
    assert _summary("Owoce *itd.,* a potem reszta.") == []
    assert _summary("Był **dom.,** a obok las.") == []
    assert _summary("Był dom., a obok las.") == [(".,", ",", 7, 9)]


def test_custom_abbreviations() -> None:
    assert _summary("Był dom., a obok las.", abbreviations=["dom"]) == []


def test_marked_up_text_is_skipped() -> None:
    assert _summary("**foo   bar** i foo   bar") == [("   ", " ", 19, 22)]


def test_indesign_hyphenation_is_ignored_only_when_enabled() -> None:
    text = "stare - nowe"
    assert len(detect_formatting_errors(text)) == 1
    assert detect_formatting_errors(text, indesign_import=True) == []


def test_hyphenation_spans() -> None:
    assert hyphenation_spans("przy- kład i Jan-Nowak") == [Span(3, 7)]


def test_findings_are_sorted_and_disjoint() -> None:
    text = 'Ala  ma kota ,a "kot"  ma Alę...'
    findings = detect_formatting_errors(text)
    starts = [finding.position.start for finding in findings]
    assert starts == sorted(starts)
    for left, right in zip(findings, findings[1:]):
        assert left.position.end <= right.position.start
    for finding in findings:
        assert text[finding.position.start : finding.position.end] == finding.original_text
        assert finding.original_text != finding.suggested_fix


def test_custom_rule_table() -> None:
    rule = FormattingRule("tab", re.compile(r"\t"), "tab character", " ")
    findings = detect_formatting_errors("a\tb", rules=[rule])
    assert [(f.rule, f.reason, f.position) for f in findings] == [("tab", "tab character", Span(1, 2))]
