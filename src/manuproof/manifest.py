from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .chunking import reassemble
from .errors import ManifestError
from .models import ChunkData, deserialize_chunks, serialize_chunks

MANIFEST_VERSION = 1
MANIFEST_SUFFIX = ".proof.json"


@dataclass
class ProjectManifest:
    text_sha1: str
    chunks: list[ChunkData] = field(default_factory=list)


def manifest_path_for(input_path: Path) -> Path:
    base = input_path.name if input_path.is_dir() else input_path.stem
    return input_path.with_name(base + MANIFEST_SUFFIX)


def text_sha1(chunks: Iterable[ChunkData]) -> str:
    return hashlib.sha1(reassemble(chunks).encode("utf-8")).hexdigest()


def build_manifest_payload(chunks: Iterable[ChunkData]) -> dict[str, object]:
    ordered = sorted(chunks, key=lambda chunk: chunk.id)
    entries = serialize_chunks(ordered)
    payload: dict[str, object] = {
        "version": MANIFEST_VERSION,
        "text_sha1": text_sha1(ordered),
        "chunk_count": len(entries),
        "chunks": entries,
    }
    return payload


def write_manifest(path: Path, chunks: Iterable[ChunkData]) -> Path:
    payload = build_manifest_payload(chunks)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return path


def load_manifest(path: Path) -> ProjectManifest:
    """
    Read a manifest written by :func:`write_manifest`.

    Raises :class:`ManifestError` when the file is missing, is not JSON, has
    an unknown version or its chunks no longer hash to ``text_sha1``.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ManifestError(f"Manifest not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(f"Failed to read manifest {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ManifestError(f"Manifest {path} must contain a JSON object")
    version = payload.get("version")
    if version != MANIFEST_VERSION:
        raise ManifestError(f"Unsupported manifest version {version!r} in {path}")
    entries = payload.get("chunks")
    if not isinstance(entries, list):
        raise ManifestError(f"Manifest {path} has no chunk list")
    chunks = deserialize_chunks(entry for entry in entries if isinstance(entry, dict))
    if len(chunks) != len(entries):
        raise ManifestError(f"Manifest {path} contains malformed chunks")
    expected = payload.get("text_sha1")
    actual = text_sha1(chunks)
    if expected != actual:
        raise ManifestError(f"Manifest {path} text checksum mismatch")
    return ProjectManifest(text_sha1=actual, chunks=sorted(chunks, key=lambda chunk: chunk.id))


__all__ = [
    "MANIFEST_SUFFIX",
    "MANIFEST_VERSION",
    "ProjectManifest",
    "build_manifest_payload",
    "load_manifest",
    "manifest_path_for",
    "text_sha1",
    "write_manifest",
]
