from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from .chunking import DEFAULT_CHUNK_SIZE, DEFAULT_SECTION_SLACK, DEFAULT_TITLE_MAX_CHARS
from .errors import ConfigError
from .formatting import DEFAULT_ABBREVIATIONS, DEFAULT_DIALOGUE_DASH, DEFAULT_QUOTES
from .locate import DEFAULT_FOOTNOTE_SEPARATOR

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MANUPROOF_CONFIG"
CONFIG_FILENAME = "manuproof.toml"
DEFAULT_CHAPTER_PATTERN = r"(Chapter|Rozdział|Part)\s+\d+"
DEFAULT_LOOKBACK_SIZE = 10_000


@dataclass(frozen=True)
class ProofConfig:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    lookback_size: int = DEFAULT_LOOKBACK_SIZE
    chapter_pattern: str | None = DEFAULT_CHAPTER_PATTERN
    section_slack: float = DEFAULT_SECTION_SLACK
    title_max_chars: int = DEFAULT_TITLE_MAX_CHARS
    indesign_import: bool = False
    footnote_separator: str = DEFAULT_FOOTNOTE_SEPARATOR
    dialogue_dash: str = DEFAULT_DIALOGUE_DASH
    quotes: tuple[str, str] = DEFAULT_QUOTES
    abbreviations: tuple[str, ...] = DEFAULT_ABBREVIATIONS

    def with_overrides(self, **values: Any) -> "ProofConfig":
        """Return a copy with every non-None value applied and re-validated."""
        changes = {key: value for key, value in values.items() if value is not None}
        if not changes:
            return self
        return _validated(replace(self, **changes))


def _validated(config: ProofConfig) -> ProofConfig:
    if config.chunk_size < 1:
        raise ConfigError(f"chunk_size must be positive, got {config.chunk_size}")
    if config.lookback_size < 0:
        raise ConfigError(f"lookback_size must not be negative, got {config.lookback_size}")
    if config.section_slack < 0:
        raise ConfigError(f"section_slack must not be negative, got {config.section_slack}")
    if config.title_max_chars < 1:
        raise ConfigError(f"title_max_chars must be positive, got {config.title_max_chars}")
    if len(config.quotes) != 2 or not all(config.quotes):
        raise ConfigError("quotes must hold an opening and a closing quotation mark")
    if not config.footnote_separator:
        raise ConfigError("footnote_separator must not be empty")
    return config


def _coerce(name: str, value: object) -> object:
    if name in {"chunk_size", "lookback_size", "title_max_chars"}:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer")
        return value
    if name == "section_slack":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError("section_slack must be a number")
        return float(value)
    if name == "indesign_import":
        if not isinstance(value, bool):
            raise ConfigError("indesign_import must be true or false")
        return value
    if name == "chapter_pattern":
        if not isinstance(value, str):
            raise ConfigError("chapter_pattern must be a string")
        return value or None
    if name in {"footnote_separator", "dialogue_dash"}:
        if not isinstance(value, str):
            raise ConfigError(f"{name} must be a string")
        return value
    if name in {"quotes", "abbreviations"}:
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ConfigError(f"{name} must be an array of strings")
        return tuple(value)
    return value


def config_from_mapping(raw: Mapping[str, object]) -> ProofConfig:
    section = raw.get("manuproof")
    if isinstance(section, Mapping):
        raw = section
    known = {field.name for field in fields(ProofConfig)}
    values: dict[str, object] = {}
    for key, value in raw.items():
        name = key.replace("-", "_")
        if name not in known:
            logger.warning("Ignoring unknown configuration key %r", key)
            continue
        values[name] = _coerce(name, value)
    return _validated(ProofConfig(**values))


def default_config_path() -> Path | None:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    local = Path.cwd() / CONFIG_FILENAME
    if local.exists():
        return local
    return None


def load_config(path: Path | str | None = None) -> ProofConfig:
    """
    Load settings from a TOML file.

    Without ``path``, ``$MANUPROOF_CONFIG`` and then ``./manuproof.toml`` are
    tried; if neither exists the defaults are returned.
    """
    config_path = Path(path).expanduser() if path is not None else default_config_path()
    if config_path is None:
        return ProofConfig()
    try:
        with config_path.open("rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse configuration file {config_path}: {exc}") from exc
    logger.debug("Loaded configuration from %s", config_path)
    return config_from_mapping(raw)


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "DEFAULT_CHAPTER_PATTERN",
    "DEFAULT_LOOKBACK_SIZE",
    "ProofConfig",
    "config_from_mapping",
    "default_config_path",
    "load_config",
]
