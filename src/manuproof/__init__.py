from .chunking import build_chunks, chunk_by_length, chunk_text, get_lookback
from .config import ProofConfig, load_config
from .errors import ConfigError, InvalidTransitionError, ManifestError
from .formatting import detect_formatting_errors
from .locate import NOT_FOUND, locate, resolve_positions
from .markers import reconcile
from .mistakes import build_ai_mistakes, drop_identity_edits, integrate_mistakes, select_non_overlapping
from .models import ChunkData, LocalMistake, Mistake, RawFile, Span

__all__ = [
    "ChunkData",
    "LocalMistake",
    "Mistake",
    "RawFile",
    "Span",
    "build_chunks",
    "chunk_by_length",
    "chunk_text",
    "get_lookback",
    "detect_formatting_errors",
    "NOT_FOUND",
    "locate",
    "resolve_positions",
    "reconcile",
    "build_ai_mistakes",
    "drop_identity_edits",
    "integrate_mistakes",
    "select_non_overlapping",
    "ProofConfig",
    "load_config",
    "ConfigError",
    "InvalidTransitionError",
    "ManifestError",
]
