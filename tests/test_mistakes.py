from __future__ import annotations

import json
import logging

from manuproof.mistakes import (
    DEFAULT_AI_REASON,
    build_ai_mistakes,
    drop_identity_edits,
    integrate_mistakes,
    local_mistakes_for_chunk,
    parse_candidates,
    select_non_overlapping,
)
from manuproof.models import ChunkData, LocalMistake, Mistake, RawCandidate, Span


def _mistake(start: int, end: int, *, original: str = "x", fix: str = "y", mistake_id: str | None = None) -> Mistake:
    return Mistake(
        id=mistake_id or f"m{start}-{end}",
        chunk_id=0,
        original_text=original,
        suggested_fix=fix,
        reason="test",
        category="other",
        position=Span(start, end),
    )


def test_overlap_filter_keeps_first_span() -> None:
    kept = select_non_overlapping([_mistake(0, 5), _mistake(3, 8)])
    assert [m.position for m in kept] == [Span(0, 5)]


def test_overlap_filter_sorts_and_allows_touching_spans() -> None:
    kept = select_non_overlapping([_mistake(10, 12), _mistake(5, 10), _mistake(0, 5), _mistake(4, 6)])
    assert [m.position for m in kept] == [Span(0, 5), Span(5, 10), Span(10, 12)]


def test_overlap_filter_keeps_report_order_on_ties() -> None:
    first = _mistake(2, 4, mistake_id="first")
    second = _mistake(2, 3, mistake_id="second")
    assert [m.id for m in select_non_overlapping([first, second])] == ["first"]


def test_identity_edits_are_dropped() -> None:
    mistakes = [
        _mistake(0, 3, original="„tak”", fix='"tak"'),
        _mistake(4, 9, original="a  b", fix="a b"),
        _mistake(10, 12, original="kot", fix="Kot"),
    ]
    assert [m.suggested_fix for m in drop_identity_edits(mistakes)] == ["Kot"]


def test_parse_candidates_filters_malformed_entries() -> None:
    payload = {
        "mistakes": [
            {"original": "kot", "suggested": "Kot", "reason": "wielka litera", "category": "orthography"},
            {"original": "", "suggested": "x"},
            {"original": "pies"},
            "not an object",
            {"original": "dom", "suggested": "Dom", "category": "unknown"},
        ]
    }
    candidates = parse_candidates(payload)
    assert candidates == [
        RawCandidate("kot", "Kot", "wielka litera", "orthography"),
        RawCandidate("dom", "Dom", DEFAULT_AI_REASON, "other"),
    ]


def test_parse_candidates_accepts_text_and_lists() -> None:
    entries = [{"original": "a", "suggested": "b", "reason": "r"}]
    assert parse_candidates(json.dumps({"mistakes": entries})) == [RawCandidate("a", "b", "r", "other")]
    assert parse_candidates(entries) == [RawCandidate("a", "b", "r", "other")]
    assert parse_candidates("") == []
    assert parse_candidates({"other": []}) == []


def test_parse_candidates_logs_invalid_json(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="manuproof"):
        assert parse_candidates("{not json") == []
    assert "not valid JSON" in caplog.text


def test_build_ai_mistakes_locates_and_filters() -> None:
    chunk = ChunkData(id=3, original_text="Ala  ma kota. Kot ma Alę.")
    candidates = [
        RawCandidate("Ala ma kota.", "Ala ma kota!", "emfaza", "style"),
        RawCandidate("ma kota", "ma psa", "zmiana", "other"),
        RawCandidate("Kot ma", "Kot ma", "bez zmian", "other"),
        RawCandidate("zebra", "Zebra", "brak", "other"),
        RawCandidate("Alę", "Ale", "literówka", "orthography"),
    ]
    mistakes = build_ai_mistakes(chunk, candidates)
    assert [(m.original_text, m.suggested_fix, m.position) for m in mistakes] == [
        ("Ala  ma kota.", "Ala ma kota!", Span(0, 13)),
        ("Alę", "Ale", Span(21, 24)),
    ]
    assert all(m.chunk_id == 3 and m.source == "ai" and m.status == "pending" for m in mistakes)
    assert all(m.id.startswith("3-") for m in mistakes)
    assert len({m.id for m in mistakes}) == 2


def test_build_ai_mistakes_preserves_markup() -> None:
    chunk = ChunkData(id=0, original_text="On był **bardzo** zmęczny.")
    mistakes = build_ai_mistakes(chunk, [RawCandidate("**bardzo** zmęczny", "bardzo zmęczony", "literówka")])
    assert [m.suggested_fix for m in mistakes] == ["**bardzo** zmęczony"]


def test_integrate_mistakes_never_removes_existing() -> None:
    existing = _mistake(0, 5, mistake_id="old")
    chunk = ChunkData(id=1, original_text="0123456789abc", mistakes=[existing])
    updated = integrate_mistakes(chunk, [_mistake(3, 7), _mistake(5, 8), _mistake(8, 20), _mistake(9, 10)])
    assert [m.position for m in updated.mistakes] == [Span(0, 5), Span(5, 8), Span(9, 10)]
    assert updated.mistakes[0] is existing
    assert all(m.chunk_id == 1 for m in updated.mistakes[1:])
    assert chunk.mistakes == [existing]


def test_integrate_mistakes_is_idempotent_for_same_findings() -> None:
    chunk = ChunkData(id=0, original_text="foo   bar")
    finding = LocalMistake("   ", " ", "double space", Span(3, 6), "double_space")
    once = integrate_mistakes(chunk, local_mistakes_for_chunk(0, [finding]))
    twice = integrate_mistakes(once, local_mistakes_for_chunk(0, [finding]))
    assert len(once.mistakes) == 1
    assert twice.mistakes == once.mistakes
    assert once.mistakes[0].source == "local"
    assert once.mistakes[0].category == "formatting"


def test_build_ai_mistakes_drops_markup_only_edits() -> None:
    added = ChunkData(id=0, original_text="Ala ma kota.")
    assert build_ai_mistakes(added, [RawCandidate("kota", "**kota**", "pogrubienie")]) == []
    removed = ChunkData(id=0, original_text="On był **bardzo** zły.")
    assert build_ai_mistakes(removed, [RawCandidate("**bardzo**", "bardzo", "bez pogrubienia")]) == []


def test_markup_only_edit_does_not_block_a_later_fix() -> None:
    chunk = ChunkData(id=0, original_text="On był **bardzo** zły.")
    mistakes = build_ai_mistakes(
        chunk,
        [RawCandidate("był **bardzo**", "był bardzo"), RawCandidate("**bardzo** zły", "**bardzo** zła")],
    )
    assert [(m.original_text, m.suggested_fix) for m in mistakes] == [("**bardzo** zły", "**bardzo** zła")]


def test_parse_candidates_reads_fenced_and_wrapped_responses() -> None:
    body = '{"mistakes": [{"original": "kot", "suggested": "Kot", "reason": "r"}]}'
    expected = [RawCandidate("kot", "Kot", "r", "other")]
    assert parse_candidates(f"```json\n{body}\n```") == expected
    assert parse_candidates(f"Oto wynik:\n{body}\nTo wszystko.") == expected
    assert parse_candidates('Lista: [{"original": "kot", "suggested": "Kot", "reason": "r"}]') == expected
    assert parse_candidates(body.encode("utf-8")) == expected
