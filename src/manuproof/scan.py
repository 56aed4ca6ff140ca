from __future__ import annotations

import logging
from typing import Sequence

from .chunking import lookback_for
from .config import ProofConfig
from .formatting import default_rules, detect_formatting_errors
from .mistakes import build_ai_mistakes, integrate_mistakes, local_mistakes_for_chunk, parse_candidates
from .models import ChunkData
from .review import transition_chunk

logger = logging.getLogger(__name__)


def mark_processed(chunk: ChunkData) -> ChunkData:
    """Walk ``chunk`` through ``processing`` to ``completed`` unless it is already done."""
    if chunk.status == "completed":
        return chunk
    if chunk.status != "processing":
        chunk = transition_chunk(chunk, "processing")
    return transition_chunk(chunk, "completed")


def mark_failed(chunk: ChunkData, message: str) -> ChunkData:
    if chunk.status != "processing":
        chunk = transition_chunk(chunk, "processing")
    return transition_chunk(chunk, "error", error_msg=message)


def lint_chunk(chunk: ChunkData, config: ProofConfig | None = None) -> tuple[ChunkData, int]:
    """Run the local rules over one chunk; returns the updated chunk and how many findings were added."""
    config = config or ProofConfig()
    findings = detect_formatting_errors(
        chunk.original_text,
        config.indesign_import,
        rules=default_rules(config.dialogue_dash, config.quotes),
        abbreviations=config.abbreviations,
    )
    before = len(chunk.mistakes)
    updated = integrate_mistakes(chunk, local_mistakes_for_chunk(chunk.id, findings))
    return mark_processed(updated), len(updated.mistakes) - before


def lint_chunks(chunks: Sequence[ChunkData], config: ProofConfig | None = None) -> list[ChunkData]:
    config = config or ProofConfig()
    return [lint_chunk(chunk, config)[0] for chunk in chunks]


def integrate_model_response(
    chunk: ChunkData,
    payload: object,
    config: ProofConfig | None = None,
) -> tuple[ChunkData, int]:
    config = config or ProofConfig()
    candidates = parse_candidates(payload)
    mistakes = build_ai_mistakes(chunk, candidates, footnote_separator=config.footnote_separator)
    before = len(chunk.mistakes)
    updated = integrate_mistakes(chunk, mistakes)
    added = len(updated.mistakes) - before
    logger.debug("Chunk %s: %d candidate(s), %d added", chunk.id, len(candidates), added)
    return mark_processed(updated), added


def chunk_context(
    chunks: Sequence[ChunkData],
    chunk_id: int,
    config: ProofConfig | None = None,
) -> dict[str, object]:
    """
    Collect what a model needs to proofread one chunk.

    ``lookback`` holds the tail of the preceding chunk, at most
    ``config.lookback_size`` characters, and is empty for the first chunk.
    """
    config = config or ProofConfig()
    ordered = sorted(chunks, key=lambda chunk: chunk.id)
    for index, chunk in enumerate(ordered):
        if chunk.id == chunk_id:
            return {
                "chunkId": chunk.id,
                "section": chunk.source_file_name,
                "lookback": lookback_for(ordered, index, config.lookback_size),
                "text": chunk.original_text,
            }
    raise KeyError(chunk_id)


__all__ = [
    "chunk_context",
    "integrate_model_response",
    "lint_chunk",
    "lint_chunks",
    "mark_failed",
    "mark_processed",
]
