from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Sequence

from .errors import InvalidTransitionError
from .models import CHUNK_STATUSES, MISTAKE_STATUSES, ChunkData, Mistake

logger = logging.getLogger(__name__)

_CHUNK_TRANSITIONS = {
    "pending": {"processing"},
    "processing": {"completed", "error"},
    "error": {"processing"},
    "completed": set(),
}
_MISTAKE_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": {"pending"},
    "rejected": {"pending"},
}


def transition_chunk(chunk: ChunkData, status: str, *, error_msg: str | None = None) -> ChunkData:
    if status not in CHUNK_STATUSES:
        raise InvalidTransitionError(f"Unknown chunk status: {status!r}")
    if status not in _CHUNK_TRANSITIONS[chunk.status]:
        raise InvalidTransitionError(f"Chunk {chunk.id} cannot move from {chunk.status} to {status}")
    return replace(chunk, status=status, error_msg=error_msg if status == "error" else None)


def transition_mistake(mistake: Mistake, status: str) -> Mistake:
    if status not in MISTAKE_STATUSES:
        raise InvalidTransitionError(f"Unknown mistake status: {status!r}")
    if status not in _MISTAKE_TRANSITIONS[mistake.status]:
        raise InvalidTransitionError(f"Mistake {mistake.id} cannot move from {mistake.status} to {status}")
    return replace(mistake, status=status)


def set_mistake_status(chunks: Sequence[ChunkData], mistake_id: str, status: str) -> list[ChunkData]:
    """Return ``chunks`` with the mistake ``mistake_id`` moved to ``status``."""
    updated: list[ChunkData] = []
    found = False
    for chunk in chunks:
        if not found and any(mistake.id == mistake_id for mistake in chunk.mistakes):
            found = True
            mistakes = [
                transition_mistake(mistake, status) if mistake.id == mistake_id else mistake
                for mistake in chunk.mistakes
            ]
            chunk = replace(chunk, mistakes=mistakes, corrected_text=None)
        updated.append(chunk)
    if not found:
        raise KeyError(mistake_id)
    return updated


def approve(chunks: Sequence[ChunkData], mistake_id: str) -> list[ChunkData]:
    return set_mistake_status(chunks, mistake_id, "approved")


def reject(chunks: Sequence[ChunkData], mistake_id: str) -> list[ChunkData]:
    return set_mistake_status(chunks, mistake_id, "rejected")


def revert(chunks: Sequence[ChunkData], mistake_id: str) -> list[ChunkData]:
    return set_mistake_status(chunks, mistake_id, "pending")


def _settle_pending(chunks: Iterable[ChunkData], status: str) -> list[ChunkData]:
    updated: list[ChunkData] = []
    for chunk in chunks:
        if any(mistake.status == "pending" for mistake in chunk.mistakes):
            mistakes = [
                transition_mistake(mistake, status) if mistake.status == "pending" else mistake
                for mistake in chunk.mistakes
            ]
            chunk = replace(chunk, mistakes=mistakes, corrected_text=None)
        updated.append(chunk)
    return updated


def approve_all(chunks: Iterable[ChunkData]) -> list[ChunkData]:
    return _settle_pending(chunks, "approved")


def reject_all(chunks: Iterable[ChunkData]) -> list[ChunkData]:
    return _settle_pending(chunks, "rejected")


def apply_corrections(chunk: ChunkData) -> str:
    """
    Apply the approved fixes of ``chunk`` to its original text.

    Replacements run from the end of the text backwards so earlier offsets
    stay valid.
    """
    text = chunk.original_text
    approved = sorted(
        (mistake for mistake in chunk.mistakes if mistake.status == "approved"),
        key=lambda mistake: mistake.position.start,
        reverse=True,
    )
    for mistake in approved:
        start, end = mistake.position.start, mistake.position.end
        text = text[:start] + mistake.suggested_fix + text[end:]
    return text


def with_corrected_text(chunk: ChunkData) -> ChunkData:
    return replace(chunk, corrected_text=apply_corrections(chunk))


def export_corrected_text(chunks: Iterable[ChunkData]) -> str:
    ordered = sorted(chunks, key=lambda chunk: chunk.id)
    logger.debug("Exporting corrected text for %d chunk(s)", len(ordered))
    return "".join(apply_corrections(chunk) for chunk in ordered)


__all__ = [
    "apply_corrections",
    "approve",
    "approve_all",
    "export_corrected_text",
    "reject",
    "reject_all",
    "revert",
    "set_mistake_status",
    "transition_chunk",
    "transition_mistake",
    "with_corrected_text",
]
