"""Application entry point for the listscrub command line."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from art import tprint

import settings
from adapters.file_artifacts import LocalArtifactStore
from adapters.sqlite_storage import SQLiteStorage
from core.config import BatchConfig
from core.errors import ScrubError, ValidationError
from core.masters import validate_master_name
from core.models import STATUS_COMPLETE, BatchFile, BatchResult, FileResult
from core.processor import BatchProcessor

NAME = "LISTSCRUB"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/listscrub.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH, global_master=settings.GLOBAL_MASTER)
    storage.init_db()
    return storage


def _read_batch_files(
    paths: list[str], tag: str, phone_column: Optional[str]
) -> tuple[list[BatchFile], list[FileResult]]:
    """Read every path, returning batch files plus results for paths that could not be opened.

    Content is passed on as bytes so a bad encoding fails only that file.
    """

    files = []
    unreadable = []
    for raw_path in paths:
        path = Path(raw_path)
        try:
            content = path.read_bytes()
        except OSError as exc:
            LOGGER.error("Could not read %s: %s", path, exc)
            unreadable.append(FileResult.failed(path.name, str(exc)))
            continue
        files.append(BatchFile(name=path.name, content=content, source_tag=tag, phone_column=phone_column))
    return files, unreadable


def _print_file_line(item: FileResult) -> None:
    if item.status == STATUS_COMPLETE:
        line = f"  {item.name}: {item.original_count} -> {item.final_count} ({item.dupes_removed} removed)"
        if item.location:
            line += f" => {item.location}"
    else:
        line = f"  {item.name}: ERROR {item.error}"
    print(line)


def _print_result(result: BatchResult) -> None:
    print(f"Batch {result.batch_id}")
    for item in result.files:
        _print_file_line(item)
    summary = result.summary
    print(
        f"Total: {summary.total_original} rows, {summary.total_dupes} removed, "
        f"{summary.total_final} kept, {summary.new_numbers_added} new numbers"
    )
    print(f"Masters updated: {', '.join(summary.masters_updated)}")


def _run(args: argparse.Namespace) -> None:
    storage = _open_storage()
    config = BatchConfig(
        parallel_limit=settings.PARALLEL_LIMIT,
        merge_chunk_size=settings.MERGE_CHUNK_SIZE,
        global_master=settings.GLOBAL_MASTER,
        phone_hints=settings.PHONE_HINTS,
    )
    processor = BatchProcessor(storage, config=config, artifacts=LocalArtifactStore(settings.OUTPUT_DIR))

    files, unreadable = _read_batch_files(args.files, args.tag, args.phone_column)
    for item in unreadable:
        _print_file_line(item)
    if not files:
        raise ValidationError("None of the given files could be read")
    result = asyncio.run(processor.process(files, args.scrub or []))
    _print_result(result)


def _list_masters(_: argparse.Namespace) -> None:
    storage = _open_storage()
    for master in storage.list_masters():
        print(f"{master.name:<30} {master.phone_count:>12,}")


def _create_master(args: argparse.Namespace) -> None:
    storage = _open_storage()
    name = validate_master_name(args.name, reserved=[settings.GLOBAL_MASTER])
    master = storage.create_master(name)
    print(f"Created master list {master.name}")


def _history(args: argparse.Namespace) -> None:
    storage = _open_storage()
    for entry in storage.list_logs(limit=args.limit):
        processed_at = entry.processed_at.strftime("%Y-%m-%d %H:%M:%S") if entry.processed_at else "-"
        print(
            f"{processed_at} {entry.batch_id} tags={','.join(entry.source_tags)} "
            f"files={entry.files_processed} scrubbed={','.join(entry.scrubbed_against) or '-'} "
            f"{entry.original_count} -> {entry.final_count} ({entry.duplicates_removed} removed)"
        )


def _cleanup(args: argparse.Namespace) -> None:
    days = args.days if args.days is not None else settings.RETENTION_DAYS
    removed = LocalArtifactStore(settings.OUTPUT_DIR).cleanup(days)
    LOGGER.info("Cleanup removed %s batch directories", removed)
    print(f"Removed {removed} batch directories older than {days} days")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="listscrub")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Dedupe CSV files and update master lists")
    run_parser.add_argument("files", nargs="+", help="CSV files to process")
    run_parser.add_argument("--tag", required=True, help="Source tag the new numbers are enrolled under")
    run_parser.add_argument(
        "--scrub",
        action="append",
        metavar="MASTER",
        help="Master list to scrub against (repeatable)",
    )
    run_parser.add_argument("--phone-column", help="Column holding phone numbers (auto-detected if omitted)")
    run_parser.set_defaults(handler=_run)

    masters_parser = subparsers.add_parser("masters", help="List master lists and their counts")
    masters_parser.set_defaults(handler=_list_masters)

    create_parser = subparsers.add_parser("create-master", help="Create an empty master list")
    create_parser.add_argument("name")
    create_parser.set_defaults(handler=_create_master)

    history_parser = subparsers.add_parser("history", help="Show recent batches")
    history_parser.add_argument("--limit", type=int, default=100)
    history_parser.set_defaults(handler=_history)

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old cleaned batches")
    cleanup_parser.add_argument("--days", type=int, help="Retention window in days")
    cleanup_parser.set_defaults(handler=_cleanup)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    _print_banner()
    _configure_logging()

    try:
        args.handler(args)
    except ScrubError as exc:
        LOGGER.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
