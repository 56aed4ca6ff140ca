from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

CHUNK_STATUSES = ("pending", "processing", "completed", "error")
MISTAKE_STATUSES = ("pending", "approved", "rejected")
MISTAKE_SOURCES = ("ai", "local")
CATEGORIES = (
    "grammar",
    "orthography",
    "punctuation",
    "style",
    "gender",
    "localization",
    "formatting",
    "other",
)


@dataclass(frozen=True)
class Span:
    """Half-open ``[start, end)`` character range inside a chunk."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class RawFile:
    name: str
    content: str


@dataclass(frozen=True)
class RawCandidate:
    """A correction reported by the language model, before it is located."""

    original: str
    suggested: str
    reason: str = ""
    category: str = "other"


@dataclass
class LocalMistake:
    """
    Finding of the local formatting rules.

    Carries everything a :class:`Mistake` needs except the identity fields,
    which are assigned once the finding is attached to a chunk.
    """

    original_text: str
    suggested_fix: str
    reason: str
    position: Span
    rule: str
    category: str = "formatting"


@dataclass
class Mistake:
    id: str
    chunk_id: int
    original_text: str
    suggested_fix: str
    reason: str
    category: str
    position: Span
    status: str = "pending"
    source: str = "ai"


@dataclass
class ChunkData:
    id: int
    original_text: str
    corrected_text: str | None = None
    mistakes: list[Mistake] = field(default_factory=list)
    status: str = "pending"
    source_file_name: str | None = None
    file_name: str | None = None
    error_msg: str | None = None


def mistake_to_payload(mistake: Mistake) -> dict[str, object]:
    return {
        "id": mistake.id,
        "chunkId": mistake.chunk_id,
        "originalText": mistake.original_text,
        "suggestedFix": mistake.suggested_fix,
        "reason": mistake.reason,
        "category": mistake.category,
        "position": {"start": mistake.position.start, "end": mistake.position.end},
        "status": mistake.status,
        "source": mistake.source,
    }


def mistake_from_payload(entry: Mapping[str, object]) -> Mistake | None:
    if not isinstance(entry, Mapping):
        return None
    mistake_id = entry.get("id")
    chunk_id = entry.get("chunkId")
    original = entry.get("originalText")
    suggested = entry.get("suggestedFix")
    position = entry.get("position")
    if not isinstance(mistake_id, str) or not isinstance(chunk_id, int):
        return None
    if not isinstance(original, str) or not isinstance(suggested, str):
        return None
    if not isinstance(position, Mapping):
        return None
    start = position.get("start")
    end = position.get("end")
    if not isinstance(start, int) or not isinstance(end, int) or not 0 <= start < end:
        return None
    reason = entry.get("reason")
    if not isinstance(reason, str):
        reason = ""
    category = entry.get("category")
    if category not in CATEGORIES:
        category = "other"
    status = entry.get("status")
    if status not in MISTAKE_STATUSES:
        status = "pending"
    source = entry.get("source")
    if source not in MISTAKE_SOURCES:
        source = "ai"
    return Mistake(
        id=mistake_id,
        chunk_id=chunk_id,
        original_text=original,
        suggested_fix=suggested,
        reason=reason,
        category=category,
        position=Span(start, end),
        status=status,
        source=source,
    )


def deserialize_mistakes(data: Iterable[Mapping[str, object]]) -> list[Mistake]:
    mistakes: list[Mistake] = []
    for entry in data:
        mistake = mistake_from_payload(entry)
        if mistake is not None:
            mistakes.append(mistake)
    return mistakes


def chunk_to_payload(chunk: ChunkData) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": chunk.id,
        "originalText": chunk.original_text,
        "correctedText": chunk.corrected_text,
        "mistakes": [mistake_to_payload(mistake) for mistake in chunk.mistakes],
        "status": chunk.status,
    }
    if chunk.source_file_name is not None:
        payload["sourceFileName"] = chunk.source_file_name
    if chunk.file_name is not None:
        payload["fileName"] = chunk.file_name
    if chunk.error_msg is not None:
        payload["errorMsg"] = chunk.error_msg
    return payload


def chunk_from_payload(entry: Mapping[str, object]) -> ChunkData | None:
    if not isinstance(entry, Mapping):
        return None
    chunk_id = entry.get("id")
    original = entry.get("originalText")
    if not isinstance(chunk_id, int) or not isinstance(original, str):
        return None
    corrected = entry.get("correctedText")
    if not isinstance(corrected, str):
        corrected = None
    status = entry.get("status")
    if status not in CHUNK_STATUSES:
        status = "pending"
    raw_mistakes = entry.get("mistakes")
    mistakes: list[Mistake] = []
    if isinstance(raw_mistakes, list):
        text_len = len(original)
        # Offsets that no longer fit the chunk text are discarded.
        mistakes = [m for m in deserialize_mistakes(raw_mistakes) if m.position.end <= text_len]
    source_file_name = entry.get("sourceFileName")
    if not isinstance(source_file_name, str):
        source_file_name = None
    file_name = entry.get("fileName")
    if not isinstance(file_name, str):
        file_name = None
    error_msg = entry.get("errorMsg")
    if not isinstance(error_msg, str):
        error_msg = None
    return ChunkData(
        id=chunk_id,
        original_text=original,
        corrected_text=corrected,
        mistakes=mistakes,
        status=status,
        source_file_name=source_file_name,
        file_name=file_name,
        error_msg=error_msg,
    )


def serialize_chunks(chunks: Iterable[ChunkData]) -> list[dict[str, object]]:
    return [chunk_to_payload(chunk) for chunk in chunks]


def deserialize_chunks(data: Iterable[Mapping[str, object]]) -> list[ChunkData]:
    chunks: list[ChunkData] = []
    for entry in data:
        chunk = chunk_from_payload(entry)
        if chunk is not None:
            chunks.append(chunk)
    return chunks


__all__ = [
    "CATEGORIES",
    "CHUNK_STATUSES",
    "MISTAKE_SOURCES",
    "MISTAKE_STATUSES",
    "ChunkData",
    "LocalMistake",
    "Mistake",
    "RawCandidate",
    "RawFile",
    "Span",
    "chunk_from_payload",
    "chunk_to_payload",
    "deserialize_chunks",
    "deserialize_mistakes",
    "mistake_from_payload",
    "mistake_to_payload",
    "serialize_chunks",
]
