# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.cli",
#   "purpose": "Typer command line front-end for the extraction engine",
#   "sections": [
#     {"id": "exit-codes", "name": "Exit Codes", "anchor": "EXC", "kind": "constants"},
#     {"id": "renamers", "name": "strip_components", "anchor": "STR", "kind": "function"},
#     {"id": "signals", "name": "SIGINT Handling", "anchor": "SIG", "kind": "helpers"},
#     {"id": "command", "name": "extract_command", "anchor": "CMD", "kind": "command"}
#   ]
# }
# === /NAVMAP ===

"""Command line entry point for safe archive extraction.

Example:
    $ safe-extract bundle.tar.gz ./out --strip-components 1
    $ curl -sL https://example.org/pkg.zip | safe-extract - ./out --kind zip

Ctrl-C cancels the running extraction at the next checkpoint; whatever was
already written stays on disk.
"""

from __future__ import annotations

import contextlib
import json
import signal
import sys
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from . import __version__
from .cancellation import CancellationToken
from .entries import Renamer
from .errors import ExtractionErrorCode, SafeExtractError
from .extractor import Extractor
from .logging_config import setup_logging
from .settings import LoggingConfiguration

EXIT_OK = 0
EXIT_BAD_INPUT = 2
EXIT_LINK = 3
EXIT_FILESYSTEM = 4
EXIT_INTERRUPTED = 130

_EXIT_CODES: Dict[ExtractionErrorCode, int] = {
    ExtractionErrorCode.UNSUPPORTED: EXIT_BAD_INPUT,
    ExtractionErrorCode.DECODE: EXIT_BAD_INPUT,
    ExtractionErrorCode.CORRUPT: EXIT_BAD_INPUT,
    ExtractionErrorCode.TRAVERSAL: EXIT_BAD_INPUT,
    ExtractionErrorCode.LINK: EXIT_LINK,
    ExtractionErrorCode.IO: EXIT_FILESYSTEM,
    ExtractionErrorCode.INTERRUPTED: EXIT_INTERRUPTED,
}

app = typer.Typer(
    name="safe-extract",
    help="Extract tar/zip archives (optionally gzip, bzip2, xz or zstd compressed) safely",
    add_completion=False,
)


def strip_components(count: int) -> Optional[Renamer]:
    """Return a renamer dropping the first ``count`` path components.

    Entries with ``count`` components or fewer map to ``""`` and are skipped.

    Examples:
        >>> strip_components(1)("archive/folder/file1.txt")
        'folder/file1.txt'
        >>> strip_components(2)("archive/folder")
        ''
    """

    if count <= 0:
        return None

    def rename(path: str) -> str:
        parts = [part for part in path.split("/") if part not in ("", ".")]
        return "/".join(parts[count:])

    return rename


@contextlib.contextmanager
def _cancel_on_sigint(token: CancellationToken) -> Iterator[None]:
    """Route SIGINT to ``token`` for the duration of the block."""

    def _handler(signum, frame):  # noqa: ARG001
        token.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Not the main thread; leave the default behaviour in place.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@contextlib.contextmanager
def _open_source(archive: str) -> Iterator[BinaryIO]:
    if archive == "-":
        yield sys.stdin.buffer
        return
    with open(archive, "rb") as stream:
        yield stream


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"safe-extract {__version__}")
        raise typer.Exit(0)


@app.command()
def extract_command(
    archive: str = typer.Argument(..., help="Archive file to extract, or '-' for stdin"),
    destination: Path = typer.Argument(
        ..., help="Destination directory (a file path for single-file payloads)"
    ),
    kind: str = typer.Option(
        "auto",
        "--kind",
        "-k",
        help="Archive kind: auto, tar, zip, gzip, bzip2, xz or zstd",
    ),
    strip: int = typer.Option(
        0,
        "--strip-components",
        min=0,
        help="Drop this many leading path components from every entry",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines on stderr"),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write JSON log lines to this rotating file"
    ),
    json_summary: bool = typer.Option(
        False, "--json", help="Print the extraction summary as JSON"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Extract ARCHIVE into DESTINATION, refusing entries that escape it."""

    try:
        logging_config = LoggingConfiguration(
            level=log_level, json_format=json_logs, log_file=log_file
        )
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    logger = setup_logging(logging_config)
    console = Console(stderr=True)

    token = CancellationToken()
    extractor = Extractor(logger=logger)
    try:
        with _cancel_on_sigint(token), _open_source(archive) as stream:
            summary = extractor.extract(
                kind, stream, str(destination), strip_components(strip), token
            )
    except SafeExtractError as exc:
        logger.error(
            "extraction failed",
            extra={"stage": "extract", "archive": archive, "error_code": exc.code.value},
        )
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        raise typer.Exit(_EXIT_CODES.get(exc.code, EXIT_FILESYSTEM)) from exc
    except OSError as exc:
        console.print(f"[red]✗ Cannot read {escape(archive)}: {escape(str(exc))}[/red]")
        raise typer.Exit(EXIT_FILESYSTEM) from exc

    if json_summary:
        typer.echo(json.dumps(summary.to_dict(), sort_keys=True))
    else:
        typer.echo(
            f"Extracted {summary.files_written} files, {summary.directories_created} "
            f"directories, {summary.links_created} links into {destination} "
            f"({summary.entries_skipped} entries skipped)"
        )


def main() -> None:
    """Console script entry point."""

    app()


__all__ = ["app", "main", "strip_components", "extract_command"]


if __name__ == "__main__":  # pragma: no cover
    main()
