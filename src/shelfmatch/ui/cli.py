from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from shelfmatch.adapters.payloads import to_book_payload, to_import_result_payload
from shelfmatch.app import (
    confirm_book_import,
    list_library_books,
    preview_book_import,
    resolve_reconciliation_config,
)
from shelfmatch.config import ConfigurationError, configure_logging
from shelfmatch.domain.reconciliation import MalformedBatchError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

STDIO = "-"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile book imports with the library")
    subparsers = parser.add_subparsers(dest="command", required=True)

    preview = subparsers.add_parser("preview", help="Classify an import batch (no writes)")
    preview.add_argument(
        "file",
        type=str,
        help="JSON file with a list of rows or {\"books\": [...]} ('-' for stdin)",
    )
    preview.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Similarity threshold for possible matches (defaults to config)",
    )
    preview.add_argument(
        "--output",
        type=str,
        default=STDIO,
        help="Where to write the preview JSON (default: stdout)",
    )

    confirm = subparsers.add_parser("confirm", help="Apply a reviewed preview")
    confirm.add_argument(
        "file",
        type=str,
        help="Preview JSON annotated with 'decisions' ('-' for stdin)",
    )
    confirm.add_argument(
        "--output",
        type=str,
        default=STDIO,
        help="Where to write the import result JSON (default: stdout)",
    )

    books = subparsers.add_parser("books", help="Library commands")
    books_sub = books.add_subparsers(dest="books_command", required=True)
    books_sub.add_parser("list", help="Print the library as JSON")

    return parser.parse_args(list(argv))


def _read_json(source: str) -> object:
    try:
        if source == STDIO:
            return json.load(sys.stdin)
        with Path(source).open(encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {source}: {exc}") from exc


def _write_json(payload: object, destination: str) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if destination == STDIO:
        sys.stdout.write(text + "\n")
        return
    Path(destination).write_text(text + "\n", encoding="utf-8")
    log.info("Wrote %s", destination)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    payload: object = None
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command in {"preview", "confirm"}:
            payload = _read_json(parsed_args.file)
        if parsed_args.command == "preview":
            resolve_reconciliation_config(threshold=parsed_args.threshold)
    except (ValueError, OSError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    failed = 0
    try:
        if parsed_args.command == "preview":
            response = preview_book_import(payload, threshold=parsed_args.threshold)
            _write_json(response.model_dump(mode="json", by_alias=True), parsed_args.output)
        elif parsed_args.command == "confirm":
            result = confirm_book_import(payload)
            _write_json(
                to_import_result_payload(result).model_dump(mode="json", by_alias=True),
                parsed_args.output,
            )
            if not result.ok:
                failed = result.failed
        elif parsed_args.command == "books" and parsed_args.books_command == "list":
            books = list_library_books()
            _write_json(
                [to_book_payload(book).model_dump(mode="json", by_alias=True) for book in books],
                STDIO,
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except MalformedBatchError:
        log.exception("Import batch rejected")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during import")
        sys.exit(1)

    if failed:
        log.error("%s import record(s) failed; see the result outcomes", failed)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry: load ``.env``, trap Ctrl+C, run :func:`main`."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
