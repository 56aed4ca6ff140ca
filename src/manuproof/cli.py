from __future__ import annotations

import argparse
import json
import sys
from importlib import metadata
from pathlib import Path

import tomllib
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .chunking import build_chunks
from .config import ProofConfig, load_config
from .errors import ConfigError, InvalidTransitionError, ManifestError
from .logging_utils import configure_logging
from .manifest import load_manifest, manifest_path_for, write_manifest
from .models import ChunkData, mistake_to_payload
from .review import approve, approve_all, export_corrected_text, reject, reject_all, revert
from .scan import chunk_context, integrate_model_response, lint_chunk
from .sources import decode_text, read_raw_files

SUBCOMMANDS = ("chunk", "lint", "context", "resolve", "review", "export")


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("manuproof")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"manuproof {__version__}",
    )


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        help="Path to a manuproof.toml file (defaults to $MANUPROOF_CONFIG or ./manuproof.toml).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging.",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof",
        description=(
            "Manuscript proofreading toolkit. Commands: "
            "chunk, lint, context, resolve, review, export. Use `manuproof <command> --help`."
        ),
    )
    _add_version_flag(ap)
    return ap


def build_chunk_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof chunk",
        description="Split a manuscript (.txt/.md file, directory or .zip) into chunks and write a manifest.",
    )
    _add_common_flags(ap)
    ap.add_argument("input_path", help="Manuscript file, directory or .zip archive")
    ap.add_argument(
        "-o",
        "--output",
        help="Manifest path (default: <input>.proof.json next to the input)",
    )
    ap.add_argument(
        "--chunk-size",
        type=int,
        help="Target chunk size in characters (default: 40000).",
    )
    pattern = ap.add_mutually_exclusive_group()
    pattern.add_argument(
        "--pattern",
        dest="chapter_pattern",
        help="Regular expression matching chapter heading lines.",
    )
    pattern.add_argument(
        "--no-pattern",
        action="store_true",
        help="Ignore chapter headings and split by length only.",
    )
    return ap


def build_lint_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof lint",
        description="Run the local formatting rules over every chunk of a manifest.",
    )
    _add_common_flags(ap)
    ap.add_argument("manifest", help="Manifest written by `manuproof chunk`")
    ap.add_argument(
        "--indesign",
        action="store_true",
        default=None,
        help="Ignore hyphenated line breaks left by a layout tool import.",
    )
    ap.add_argument(
        "--json",
        action="store_true",
        help="Print the new findings as JSON instead of a table.",
    )
    return ap


def build_context_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof context",
        description="Print one chunk with the tail of the preceding chunk as JSON, ready for a model prompt.",
    )
    _add_common_flags(ap)
    ap.add_argument("manifest", help="Manifest written by `manuproof chunk`")
    ap.add_argument("--chunk-id", type=int, required=True, help="Chunk to print")
    ap.add_argument(
        "--lookback",
        type=int,
        help="Characters of preceding text to include (default: 10000).",
    )
    return ap


def build_resolve_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof resolve",
        description="Locate model-reported mistakes inside one chunk and add them to the manifest.",
    )
    _add_common_flags(ap)
    ap.add_argument("manifest", help="Manifest written by `manuproof chunk`")
    ap.add_argument("--chunk-id", type=int, required=True, help="Chunk the response belongs to")
    ap.add_argument(
        "candidates",
        help='JSON file with {"mistakes": [...]} from the model, or - for stdin',
    )
    return ap


def build_review_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof review",
        description="Approve, reject or revert mistakes stored in a manifest.",
    )
    _add_common_flags(ap)
    ap.add_argument("manifest", help="Manifest to update")
    action = ap.add_mutually_exclusive_group(required=True)
    action.add_argument("--approve", metavar="ID", help="Approve one mistake")
    action.add_argument("--reject", metavar="ID", help="Reject one mistake")
    action.add_argument("--revert", metavar="ID", help="Return one mistake to pending")
    action.add_argument("--approve-all", action="store_true", help="Approve every pending mistake")
    action.add_argument("--reject-all", action="store_true", help="Reject every pending mistake")
    return ap


def build_export_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="manuproof export",
        description="Write the manuscript with every approved fix applied.",
    )
    _add_common_flags(ap)
    ap.add_argument("manifest", help="Manifest to export")
    ap.add_argument("-o", "--output", required=True, help="Destination text file")
    return ap


def _load_settings(args: argparse.Namespace) -> ProofConfig:
    configure_logging(bool(getattr(args, "debug", False)))
    try:
        return load_config(getattr(args, "config", None))
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc


def _open_manifest(path: Path) -> list[ChunkData]:
    try:
        return load_manifest(path).chunks
    except ManifestError as exc:
        raise SystemExit(str(exc)) from exc


def _progress(console: Console) -> Progress:
    return Progress(
        TextColumn("{task.description}", justify="left"),
        BarColumn(bar_width=None),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=not console.is_terminal,
    )


def _run_chunk(args: argparse.Namespace) -> int:
    config = _load_settings(args)
    pattern = "" if args.no_pattern else args.chapter_pattern
    try:
        config = config.with_overrides(chunk_size=args.chunk_size, chapter_pattern=pattern)
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc
    input_path = Path(args.input_path).expanduser()
    try:
        files = read_raw_files(input_path)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc
    if not files:
        raise SystemExit(f"No text found in {input_path}")
    chunks = build_chunks(
        files,
        config.chunk_size,
        config.chapter_pattern or None,
        section_slack=config.section_slack,
        title_max_chars=config.title_max_chars,
    )
    output = Path(args.output).expanduser() if args.output else manifest_path_for(input_path)
    write_manifest(output, chunks)

    console = Console()
    table = Table(title=f"{len(chunks)} chunk(s) from {len(files)} file(s)")
    table.add_column("ID", justify="right")
    table.add_column("File")
    table.add_column("Section")
    table.add_column("Chars", justify="right")
    for chunk in chunks:
        table.add_row(
            str(chunk.id),
            chunk.file_name or "",
            chunk.source_file_name or "",
            str(len(chunk.original_text)),
        )
    console.print(table)
    console.print(f"Manifest written to {output}")
    return 0


def _run_lint(args: argparse.Namespace) -> int:
    config = _load_settings(args)
    config = config.with_overrides(indesign_import=args.indesign)
    manifest_path = Path(args.manifest).expanduser()
    chunks = _open_manifest(manifest_path)
    console = Console()
    updated: list[ChunkData] = []
    known_ids = {mistake.id for chunk in chunks for mistake in chunk.mistakes}
    with _progress(Console(stderr=True)) as progress:
        task = progress.add_task("Linting", total=len(chunks))
        for chunk in chunks:
            chunk, _ = lint_chunk(chunk, config)
            updated.append(chunk)
            progress.advance(task)
    write_manifest(manifest_path, updated)

    found = [
        mistake
        for chunk in updated
        for mistake in chunk.mistakes
        if mistake.id not in known_ids
    ]
    if args.json:
        print(json.dumps([mistake_to_payload(m) for m in found], ensure_ascii=False, indent=2))
        return 0
    table = Table(title=f"{len(found)} formatting issue(s)")
    table.add_column("ID")
    table.add_column("Chunk", justify="right")
    table.add_column("At", justify="right")
    table.add_column("Original")
    table.add_column("Fix")
    table.add_column("Reason")
    for mistake in found:
        table.add_row(
            mistake.id,
            str(mistake.chunk_id),
            str(mistake.position.start),
            repr(mistake.original_text),
            repr(mistake.suggested_fix),
            mistake.reason,
        )
    console.print(table)
    return 0


def _run_context(args: argparse.Namespace) -> int:
    config = _load_settings(args)
    try:
        config = config.with_overrides(lookback_size=args.lookback)
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc
    manifest_path = Path(args.manifest).expanduser()
    chunks = _open_manifest(manifest_path)
    try:
        context = chunk_context(chunks, args.chunk_id, config)
    except KeyError as exc:
        raise SystemExit(f"Chunk {args.chunk_id} not found in {manifest_path}") from exc
    print(json.dumps(context, ensure_ascii=False, indent=2))
    return 0


def _read_candidates(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    path = Path(source).expanduser()
    try:
        return decode_text(path.read_bytes())
    except OSError as exc:
        raise SystemExit(f"Failed to read candidates from {path}: {exc}") from exc


def _run_resolve(args: argparse.Namespace) -> int:
    config = _load_settings(args)
    manifest_path = Path(args.manifest).expanduser()
    chunks = _open_manifest(manifest_path)
    index = next((i for i, chunk in enumerate(chunks) if chunk.id == args.chunk_id), None)
    if index is None:
        raise SystemExit(f"Chunk {args.chunk_id} not found in {manifest_path}")
    payload = _read_candidates(args.candidates)
    try:
        chunk, added = integrate_model_response(chunks[index], payload, config)
    except InvalidTransitionError as exc:
        raise SystemExit(str(exc)) from exc
    chunks[index] = chunk
    write_manifest(manifest_path, chunks)
    Console().print(f"Chunk {chunk.id}: {added} mistake(s) added")
    return 0


def _run_review(args: argparse.Namespace) -> int:
    _load_settings(args)
    manifest_path = Path(args.manifest).expanduser()
    chunks = _open_manifest(manifest_path)
    try:
        if args.approve_all:
            chunks = approve_all(chunks)
        elif args.reject_all:
            chunks = reject_all(chunks)
        elif args.approve:
            chunks = approve(chunks, args.approve)
        elif args.reject:
            chunks = reject(chunks, args.reject)
        else:
            chunks = revert(chunks, args.revert)
    except KeyError as exc:
        raise SystemExit(f"Mistake not found: {exc.args[0]}") from exc
    except InvalidTransitionError as exc:
        raise SystemExit(str(exc)) from exc
    write_manifest(manifest_path, chunks)
    counts: dict[str, int] = {}
    for chunk in chunks:
        for mistake in chunk.mistakes:
            counts[mistake.status] = counts.get(mistake.status, 0) + 1
    summary = ", ".join(f"{status}: {counts.get(status, 0)}" for status in ("pending", "approved", "rejected"))
    Console().print(summary)
    return 0


def _run_export(args: argparse.Namespace) -> int:
    _load_settings(args)
    chunks = _open_manifest(Path(args.manifest).expanduser())
    output = Path(args.output).expanduser()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(export_corrected_text(chunks), encoding="utf-8")
    approved = sum(1 for chunk in chunks for mistake in chunk.mistakes if mistake.status == "approved")
    Console().print(f"Wrote {output} ({approved} fix(es) applied)")
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] == "chunk":
        return _run_chunk(build_chunk_parser().parse_args(argv[1:]))
    if argv and argv[0] == "lint":
        return _run_lint(build_lint_parser().parse_args(argv[1:]))
    if argv and argv[0] == "context":
        return _run_context(build_context_parser().parse_args(argv[1:]))
    if argv and argv[0] == "resolve":
        return _run_resolve(build_resolve_parser().parse_args(argv[1:]))
    if argv and argv[0] == "review":
        return _run_review(build_review_parser().parse_args(argv[1:]))
    if argv and argv[0] == "export":
        return _run_export(build_export_parser().parse_args(argv[1:]))

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    if argv[0].startswith("-"):
        parser.parse_args(argv)
        return 0
    parser.error(f"unknown command {argv[0]!r} (choose from {', '.join(SUBCOMMANDS)})")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
