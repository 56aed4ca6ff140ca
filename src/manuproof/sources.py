from __future__ import annotations

import codecs
import logging
import re
import zipfile
from pathlib import Path, PurePosixPath

from .models import RawFile

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = (".txt", ".md")
_FALLBACK_ENCODINGS = ("utf-8-sig", "cp1250")
_DIGITS_RE = re.compile(r"(\d+)")


def natural_key(name: str) -> tuple[object, ...]:
    """Sort key that orders ``part2`` before ``part10``."""
    parts = _DIGITS_RE.split(name.lower())
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in parts if part)


def decode_text(raw: bytes) -> str:
    if raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return raw.decode("utf-16")
    for enc in _FALLBACK_ENCODINGS:
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    return raw.decode("latin-1")


def _is_hidden(name: str) -> bool:
    parts = PurePosixPath(name).parts
    return any(part.startswith(".") or part == "__MACOSX" for part in parts)


def _is_text_name(name: str) -> bool:
    return name.lower().endswith(TEXT_SUFFIXES)


def read_zip(path: Path) -> list[RawFile]:
    files: list[RawFile] = []
    try:
        zf = zipfile.ZipFile(path)
    except zipfile.BadZipFile as exc:
        raise ValueError(f"Not a valid zip archive: {path}") from exc
    with zf:
        names = [
            info.filename
            for info in zf.infolist()
            if not info.is_dir() and not _is_hidden(info.filename) and _is_text_name(info.filename)
        ]
        for name in sorted(names, key=natural_key):
            try:
                content = decode_text(zf.read(name))
            except (OSError, zipfile.BadZipFile, RuntimeError) as exc:
                logger.warning("Skipping unreadable archive entry %s: %s", name, exc)
                continue
            if not content.strip():
                logger.warning("Skipping empty archive entry %s", name)
                continue
            files.append(RawFile(name=PurePosixPath(name).name, content=content))
    return files


def read_text_file(path: Path) -> RawFile:
    return RawFile(name=path.name, content=decode_text(path.read_bytes()))


def read_raw_files(path: Path | str) -> list[RawFile]:
    """
    Load manuscript text from a file, a directory or a zip archive.

    Directory and archive members are taken in natural filename order;
    hidden entries are ignored and empty ones skipped with a warning.
    """
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Input path not found: {source}")
    if source.is_dir():
        files: list[RawFile] = []
        candidates = [
            child
            for child in source.iterdir()
            if child.is_file() and not child.name.startswith(".") and _is_text_name(child.name)
        ]
        for child in sorted(candidates, key=lambda item: natural_key(item.name)):
            try:
                raw = read_text_file(child)
            except OSError as exc:
                logger.warning("Skipping unreadable file %s: %s", child, exc)
                continue
            if not raw.content.strip():
                logger.warning("Skipping empty file %s", child)
                continue
            files.append(raw)
        return files
    suffix = source.suffix.lower()
    if suffix == ".zip":
        return read_zip(source)
    if suffix in TEXT_SUFFIXES:
        return [read_text_file(source)]
    raise ValueError(f"Unsupported input file: {source.name} (expected .txt, .md or .zip)")


__all__ = ["TEXT_SUFFIXES", "decode_text", "natural_key", "read_raw_files", "read_text_file", "read_zip"]
