from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from .models import ChunkData, RawFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 40_000
DEFAULT_SECTION_SLACK = 0.2
DEFAULT_TITLE_MAX_CHARS = 50
INTRO_TITLE = "Intro / Prologue"
AUTO_SPLIT_LABEL = "Auto-Split"

# A sentence is everything up to a run of terminal punctuation, plus any
# closing quotes and whitespace that follow it; the tail needs no terminator.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+[\"'”’»)]*\s*|[^.!?]+\Z")


@dataclass
class ChunkDraft:
    text: str
    label: str | None = None


def chunk_by_length(text: str, target_size: int) -> list[str]:
    """
    Split ``text`` into pieces of at most ``target_size`` characters.

    Lines are packed greedily and keep their newline, so joining the result
    reproduces ``text`` exactly. A line longer than the target is broken at
    sentence ends, and a sentence longer than the target is cut into
    fixed-width windows.
    """
    if target_size < 1:
        raise ValueError(f"target_size must be positive, got {target_size}")
    chunks: list[str] = []
    buffer = ""
    for line in _iter_lines(text):
        if len(line) > target_size:
            if buffer:
                chunks.append(buffer)
                buffer = ""
            chunks.extend(_split_long_line(line, target_size))
            continue
        if buffer and len(buffer) + len(line) > target_size:
            chunks.append(buffer)
            buffer = ""
        buffer += line
    if buffer:
        chunks.append(buffer)
    return chunks


def _iter_lines(text: str) -> Iterator[str]:
    start = 0
    while start < len(text):
        newline = text.find("\n", start)
        if newline == -1:
            yield text[start:]
            return
        yield text[start : newline + 1]
        start = newline + 1


def split_sentences(line: str) -> list[str]:
    sentences = [match.group(0) for match in _SENTENCE_RE.finditer(line)]
    if "".join(sentences) != line:
        return [line]
    return sentences


def _hard_slice(text: str, width: int) -> list[str]:
    return [text[idx : idx + width] for idx in range(0, len(text), width)]


def _split_long_line(line: str, target_size: int) -> list[str]:
    pieces: list[str] = []
    pending = ""
    for sentence in split_sentences(line):
        if len(pending) + len(sentence) > target_size:
            if pending:
                pieces.append(pending)
                pending = ""
            if len(sentence) > target_size:
                pieces.extend(_hard_slice(sentence, target_size))
                continue
        pending += sentence
    if pending:
        pieces.append(pending)
    return pieces


def _compile_chapter_pattern(chapter_pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(rf"^(?:{chapter_pattern}).*", re.MULTILINE | re.IGNORECASE)
    except re.error as exc:
        logger.warning("Invalid chapter pattern %r (%s); falling back to length chunking", chapter_pattern, exc)
        return None


def _section_boundaries(text: str, regex: re.Pattern[str]) -> list[tuple[int, str]]:
    boundaries: list[tuple[int, str]] = []
    for match in regex.finditer(text):
        if boundaries and boundaries[-1][0] == match.start():
            continue
        boundaries.append((match.start(), match.group(0)))
    return boundaries


def _auto_split(text: str, target_size: int) -> list[ChunkDraft]:
    return [ChunkDraft(piece, AUTO_SPLIT_LABEL) for piece in chunk_by_length(text, target_size)]


def chunk_text(
    text: str,
    target_size: int,
    chapter_pattern: str | None = None,
    *,
    section_slack: float = DEFAULT_SECTION_SLACK,
    title_max_chars: int = DEFAULT_TITLE_MAX_CHARS,
) -> list[ChunkDraft]:
    """
    Segment ``text`` into chunk drafts.

    With a chapter pattern, every line matching it opens a new section and
    sections are kept whole when they fit ``target_size`` plus the slack;
    larger sections are sub-split and labelled ``"<title> (Part N)"``. A
    pattern that is invalid or matches nothing falls back to plain length
    chunking labelled ``"Auto-Split"``.
    """
    if not chapter_pattern or not chapter_pattern.strip():
        return [ChunkDraft(piece) for piece in chunk_by_length(text, target_size)]

    regex = _compile_chapter_pattern(chapter_pattern)
    boundaries = _section_boundaries(text, regex) if regex is not None else []
    if not boundaries:
        if regex is not None:
            logger.info("Chapter pattern %r matched nothing; using length chunking", chapter_pattern)
        return _auto_split(text, target_size)

    sections: list[tuple[str, str]] = []
    carry = ""
    intro = text[: boundaries[0][0]]
    if intro.strip():
        sections.append((intro, INTRO_TITLE))
    else:
        carry = intro
    for index, (start, header) in enumerate(boundaries):
        end = boundaries[index + 1][0] if index + 1 < len(boundaries) else len(text)
        title = header.strip()[:title_max_chars] or INTRO_TITLE
        sections.append((carry + text[start:end], title))
        carry = ""

    limit = target_size * (1 + section_slack)
    drafts: list[ChunkDraft] = []
    for section, title in sections:
        drafts.extend(_section_drafts(section, title, target_size, limit))
    logger.debug("Segmented %d characters into %d sections / %d chunks", len(text), len(sections), len(drafts))
    return drafts


def _section_drafts(section: str, title: str, target_size: int, limit: float) -> list[ChunkDraft]:
    if len(section) <= limit:
        return [ChunkDraft(section, title)]
    return [
        ChunkDraft(piece, f"{title} (Part {index})")
        for index, piece in enumerate(chunk_by_length(section, target_size), start=1)
    ]


def build_chunks(
    files: Iterable[RawFile],
    target_size: int = DEFAULT_CHUNK_SIZE,
    chapter_pattern: str | None = None,
    *,
    section_slack: float = DEFAULT_SECTION_SLACK,
    title_max_chars: int = DEFAULT_TITLE_MAX_CHARS,
    start_id: int = 0,
) -> list[ChunkData]:
    """Segment every file in order and number the chunks across the project."""
    chunks: list[ChunkData] = []
    next_id = start_id
    for raw in files:
        drafts = chunk_text(
            raw.content,
            target_size,
            chapter_pattern,
            section_slack=section_slack,
            title_max_chars=title_max_chars,
        )
        for draft in drafts:
            chunks.append(
                ChunkData(
                    id=next_id,
                    original_text=draft.text,
                    source_file_name=draft.label or raw.name,
                    file_name=raw.name,
                )
            )
            next_id += 1
        logger.debug("%s: %d chunk(s)", raw.name, len(drafts))
    return chunks


def reassemble(chunks: Iterable[ChunkData], file_name: str | None = None) -> str:
    selected = [chunk for chunk in chunks if file_name is None or chunk.file_name == file_name]
    return "".join(chunk.original_text for chunk in sorted(selected, key=lambda chunk: chunk.id))


def get_lookback(text: str, size: int) -> str:
    if size <= 0:
        return ""
    if len(text) <= size:
        return text
    return text[-size:]


def lookback_for(chunks: Sequence[ChunkData], index: int, size: int) -> str:
    if index <= 0 or index > len(chunks):
        return ""
    return get_lookback(chunks[index - 1].original_text, size)


__all__ = [
    "AUTO_SPLIT_LABEL",
    "ChunkDraft",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_SECTION_SLACK",
    "DEFAULT_TITLE_MAX_CHARS",
    "INTRO_TITLE",
    "build_chunks",
    "chunk_by_length",
    "chunk_text",
    "get_lookback",
    "lookback_for",
    "reassemble",
    "split_sentences",
]
