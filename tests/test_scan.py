from __future__ import annotations

import json

import pytest

from manuproof.config import ProofConfig
from manuproof.errors import InvalidTransitionError
from manuproof.models import ChunkData
from manuproof.scan import (
    chunk_context,
    integrate_model_response,
    lint_chunk,
    lint_chunks,
    mark_failed,
    mark_processed,
)


def test_lint_chunk_adds_local_findings_and_completes() -> None:
    chunk = ChunkData(id=4, original_text="foo   bar ...")
    updated, added = lint_chunk(chunk)
    assert added == len(updated.mistakes) > 0
    assert updated.status == "completed"
    assert all(m.source == "local" and m.chunk_id == 4 for m in updated.mistakes)
    again, added_again = lint_chunk(updated)
    assert added_again == 0
    assert again.mistakes == updated.mistakes


def test_lint_chunk_respects_config() -> None:
    chunk = ChunkData(id=0, original_text='Rzekł "nie".')
    updated, _ = lint_chunk(chunk, ProofConfig(quotes=("«", "»")))
    assert [m.suggested_fix for m in updated.mistakes] == ["«", "»"]
    assert lint_chunks([chunk], ProofConfig(indesign_import=True))[0].status == "completed"


def test_integrate_model_response_keeps_local_findings() -> None:
    chunk, _ = lint_chunk(ChunkData(id=1, original_text="Ala  ma kota. Kot ma Alę."))
    response = json.dumps(
        {
            "mistakes": [
                {"original": "Ala ma", "suggested": "Ola ma", "reason": "imię"},
                {"original": "Alę", "suggested": "Olę", "reason": "imię", "category": "orthography"},
            ]
        }
    )
    updated, added = integrate_model_response(chunk, response)
    assert added == 1
    assert [(m.source, m.original_text) for m in updated.mistakes] == [("local", "  "), ("ai", "Alę")]


def test_failed_chunks_can_be_retried() -> None:
    failed = mark_failed(ChunkData(id=0, original_text="x"), "quota exceeded")
    assert (failed.status, failed.error_msg) == ("error", "quota exceeded")
    done = mark_processed(failed)
    assert (done.status, done.error_msg) == ("completed", None)
    with pytest.raises(InvalidTransitionError):
        mark_failed(done, "again")


def test_chunk_context_includes_lookback() -> None:
    chunks = [
        ChunkData(id=1, original_text="Drugi fragment.", source_file_name="Chapter 2"),
        ChunkData(id=0, original_text="Pierwszy fragment.", source_file_name="Chapter 1"),
    ]
    context = chunk_context(chunks, 1, ProofConfig(lookback_size=9))
    assert context == {
        "chunkId": 1,
        "section": "Chapter 2",
        "lookback": "fragment.",
        "text": "Drugi fragment.",
    }
    assert chunk_context(chunks, 0)["lookback"] == ""
    with pytest.raises(KeyError):
        chunk_context(chunks, 7)
