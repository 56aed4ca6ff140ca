from __future__ import annotations

import json
import logging
import re
import uuid
from bisect import bisect_right
from dataclasses import replace
from typing import Iterable, Mapping, Sequence, TypeVar

from .locate import DEFAULT_FOOTNOTE_SEPARATOR, NOT_FOUND, ChunkLocator
from .markers import reconcile
from .models import CATEGORIES, ChunkData, LocalMistake, Mistake, RawCandidate
from .normalize import normalize_for_comparison

logger = logging.getLogger(__name__)

DEFAULT_AI_REASON = "Issue reported by the language model"
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", flags=re.IGNORECASE)


T = TypeVar("T")


def select_non_overlapping(items: Iterable[T]) -> list[T]:
    """
    Greedy left-to-right selection of non-overlapping spans.

    Items are ordered by start offset (ties keep their incoming order) and an
    item survives only if it starts at or after the end of the last survivor.
    """
    kept: list[T] = []
    for item in sorted(items, key=lambda entry: entry.position.start):
        if kept and item.position.start < kept[-1].position.end:
            logger.debug("Dropping overlapping span %r", item.position)
            continue
        kept.append(item)
    return kept


def is_identity_edit(original: str, suggested: str) -> bool:
    return normalize_for_comparison(original) == normalize_for_comparison(suggested)


def drop_identity_edits(mistakes: Iterable[Mistake]) -> list[Mistake]:
    kept: list[Mistake] = []
    for mistake in mistakes:
        if is_identity_edit(mistake.original_text, mistake.suggested_fix):
            logger.debug("Dropping no-op edit %r -> %r", mistake.original_text, mistake.suggested_fix)
            continue
        kept.append(mistake)
    return kept


def _candidate_from_entry(entry: object) -> RawCandidate | None:
    if not isinstance(entry, Mapping):
        return None
    original = entry.get("original")
    suggested = entry.get("suggested")
    if not isinstance(original, str) or not original:
        return None
    if not isinstance(suggested, str) or not suggested:
        return None
    reason = entry.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = DEFAULT_AI_REASON
    category = entry.get("category")
    if not isinstance(category, str) or category not in CATEGORIES:
        category = "other"
    return RawCandidate(original=original, suggested=suggested, reason=reason, category=category)


def extract_json_payload(raw: str | bytes) -> object | None:
    """Decode a model response that may wrap its JSON in a code fence or prose."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = raw.strip()
    if not text:
        return None
    candidates: list[str] = [text]
    for match in _JSON_FENCE_RE.finditer(text):
        inner = (match.group(1) or "").strip()
        if inner:
            candidates.append(inner)
    slices: list[tuple[int, str]] = []
    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start >= 0 and end > start:
            slices.append((start, text[start : end + 1]))
    # The outermost container starts first.
    candidates.extend(piece for _, piece in sorted(slices))
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def parse_candidates(payload: object) -> list[RawCandidate]:
    """
    Extract well-formed candidates from a model response.

    ``payload`` is the raw response text or the decoded object, either
    ``{"mistakes": [...]}`` or a bare list. Entries without a non-empty
    ``original`` and ``suggested`` string are skipped.
    """
    if isinstance(payload, (str, bytes)):
        decoded = extract_json_payload(payload)
        if decoded is None:
            if payload.strip():
                logger.error("Model response is not valid JSON: %.80r", payload)
            return []
        payload = decoded
    if isinstance(payload, Mapping):
        payload = payload.get("mistakes")
    if not isinstance(payload, list):
        return []
    candidates: list[RawCandidate] = []
    for entry in payload:
        candidate = _candidate_from_entry(entry)
        if candidate is None:
            logger.debug("Skipping malformed candidate %r", entry)
            continue
        candidates.append(candidate)
    return candidates


def new_mistake_id(chunk_id: int) -> str:
    return f"{chunk_id}-{uuid.uuid4().hex[:12]}"


def build_ai_mistakes(
    chunk: ChunkData,
    candidates: Iterable[RawCandidate],
    *,
    footnote_separator: str | None = DEFAULT_FOOTNOTE_SEPARATOR,
) -> list[Mistake]:
    """
    Turn model candidates into located mistakes for ``chunk``.

    Candidates are resolved in report order and markup is reconciled in
    each suggestion before no-op and overlapping edits are dropped.
    """
    candidates = list(candidates)
    locator = ChunkLocator(chunk.original_text, footnote_separator)
    located: list[Mistake] = []
    for candidate, span in zip(candidates, locator.resolve(c.original for c in candidates)):
        if span is NOT_FOUND:
            logger.debug("Chunk %s: could not locate %r", chunk.id, candidate.original)
            continue
        original = chunk.original_text[span.start : span.end]
        located.append(
            Mistake(
                id=new_mistake_id(chunk.id),
                chunk_id=chunk.id,
                original_text=original,
                suggested_fix=reconcile(original, candidate.suggested),
                reason=candidate.reason,
                category=candidate.category,
                position=span,
                source="ai",
            )
        )
    return select_non_overlapping(drop_identity_edits(located))


def local_mistakes_for_chunk(chunk_id: int, findings: Iterable[LocalMistake]) -> list[Mistake]:
    return [
        Mistake(
            id=new_mistake_id(chunk_id),
            chunk_id=chunk_id,
            original_text=finding.original_text,
            suggested_fix=finding.suggested_fix,
            reason=finding.reason,
            category=finding.category,
            position=finding.position,
            source="local",
        )
        for finding in findings
    ]


def integrate_mistakes(chunk: ChunkData, new_mistakes: Sequence[Mistake]) -> ChunkData:
    """
    Return a copy of ``chunk`` with ``new_mistakes`` merged in.

    Existing mistakes are never removed; a new one is added only when its
    span lies inside the chunk and overlaps nothing already kept.
    """
    kept = sorted(chunk.mistakes, key=lambda mistake: mistake.position.start)
    starts = [mistake.position.start for mistake in kept]
    text_len = len(chunk.original_text)
    added = 0
    for mistake in sorted(new_mistakes, key=lambda item: item.position.start):
        span = mistake.position
        if not 0 <= span.start < span.end <= text_len:
            logger.debug("Chunk %s: span %r outside text", chunk.id, span)
            continue
        idx = bisect_right(starts, span.start)
        if idx > 0 and kept[idx - 1].position.end > span.start:
            continue
        if idx < len(kept) and kept[idx].position.start < span.end:
            continue
        kept.insert(idx, replace(mistake, chunk_id=chunk.id))
        starts.insert(idx, span.start)
        added += 1
    logger.debug("Chunk %s: integrated %d of %d mistake(s)", chunk.id, added, len(new_mistakes))
    return replace(chunk, mistakes=kept)


__all__ = [
    "DEFAULT_AI_REASON",
    "build_ai_mistakes",
    "drop_identity_edits",
    "extract_json_payload",
    "integrate_mistakes",
    "is_identity_edit",
    "local_mistakes_for_chunk",
    "new_mistake_id",
    "parse_candidates",
    "select_non_overlapping",
]
