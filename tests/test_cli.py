from __future__ import annotations

import json

import pytest

import manuproof.cli as cli
from manuproof.manifest import load_manifest


def _write_book(tmp_path):
    book = tmp_path / "book.txt"
    book.write_text(
        "Chapter 1\nAla  ma kota.\nChapter 2\nKot ma Alę...\n",
        encoding="utf-8",
    )
    return book


def test_no_arguments_prints_help(capsys) -> None:
    assert cli.main([]) == 0
    assert "manuproof" in capsys.readouterr().out


def test_unknown_command_errors() -> None:
    with pytest.raises(SystemExit):
        cli.main(["frobnicate"])


def test_chunk_writes_manifest(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    assert cli.main(["chunk", str(book)]) == 0
    manifest = load_manifest(tmp_path / "book.proof.json")
    assert [c.source_file_name for c in manifest.chunks] == ["Chapter 1", "Chapter 2"]
    assert "Manifest written" in capsys.readouterr().out


def test_chunk_without_pattern(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    out = tmp_path / "plain.json"
    assert cli.main(["chunk", str(book), "--no-pattern", "--chunk-size", "1000", "-o", str(out)]) == 0
    chunks = load_manifest(out).chunks
    assert len(chunks) == 1
    assert chunks[0].source_file_name == "book.txt"


def test_chunk_missing_input(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit, match="not found"):
        cli.main(["chunk", str(tmp_path / "nope.txt")])


def test_chunk_bad_config(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    config = tmp_path / "bad.toml"
    config.write_text("chunk_size = -5\n", encoding="utf-8")
    with pytest.raises(SystemExit, match="chunk_size"):
        cli.main(["chunk", str(book), "--config", str(config)])


def test_full_review_flow(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    manifest_path = tmp_path / "book.proof.json"
    assert cli.main(["chunk", str(book)]) == 0

    capsys.readouterr()
    assert cli.main(["lint", str(manifest_path), "--json"]) == 0
    findings = json.loads(capsys.readouterr().out)
    assert {(f["originalText"], f["suggestedFix"]) for f in findings} == {("  ", " "), ("...", "…")}
    chunks = load_manifest(manifest_path).chunks
    assert all(c.status == "completed" for c in chunks)

    response = tmp_path / "response.json"
    response.write_text(
        json.dumps({"mistakes": [{"original": "Kot", "suggested": "Pies", "reason": "zmiana"}]}),
        encoding="utf-8",
    )
    assert cli.main(["resolve", str(manifest_path), "--chunk-id", "1", str(response)]) == 0
    chunks = load_manifest(manifest_path).chunks
    ai = [m for m in chunks[1].mistakes if m.source == "ai"]
    assert [(m.original_text, m.suggested_fix) for m in ai] == [("Kot", "Pies")]

    double_space = next(m for m in chunks[0].mistakes if m.original_text == "  ")
    assert cli.main(["review", str(manifest_path), "--reject", double_space.id]) == 0
    assert cli.main(["review", str(manifest_path), "--approve-all"]) == 0

    out = tmp_path / "fixed.txt"
    assert cli.main(["export", str(manifest_path), "-o", str(out)]) == 0
    assert out.read_text(encoding="utf-8") == "Chapter 1\nAla  ma kota.\nChapter 2\nPies ma Alę…\n"


def test_review_unknown_mistake(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    assert cli.main(["chunk", str(book)]) == 0
    with pytest.raises(SystemExit, match="Mistake not found"):
        cli.main(["review", str(tmp_path / "book.proof.json"), "--approve", "nope"])


def test_resolve_unknown_chunk(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    assert cli.main(["chunk", str(book)]) == 0
    response = tmp_path / "response.json"
    response.write_text("[]", encoding="utf-8")
    with pytest.raises(SystemExit, match="Chunk 9"):
        cli.main(["resolve", str(tmp_path / "book.proof.json"), "--chunk-id", "9", str(response)])


def test_context_prints_lookback(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    book = _write_book(tmp_path)
    manifest_path = tmp_path / "book.proof.json"
    assert cli.main(["chunk", str(book)]) == 0
    capsys.readouterr()
    assert cli.main(["context", str(manifest_path), "--chunk-id", "1", "--lookback", "6"]) == 0
    context = json.loads(capsys.readouterr().out)
    assert context["lookback"] == "kota.\n"
    assert context["text"] == "Chapter 2\nKot ma Alę...\n"
    with pytest.raises(SystemExit, match="Chunk 5"):
        cli.main(["context", str(manifest_path), "--chunk-id", "5"])
