"""JSON/pretty output formatting. JSON to stdout, progress and logs to stderr."""

from __future__ import annotations

import json
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler


def output_json(data: dict | list, pretty: bool = False) -> None:
    """Write JSON to stdout."""
    if pretty:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(json.dumps(data, default=str))


def output_text(text: str) -> None:
    """Write plain text to stdout."""
    print(text)


def error(message: str) -> None:
    """Write error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)


def progress(message: str) -> None:
    """Write progress info to stderr."""
    print(message, file=sys.stderr)


def setup_logging(level: str = "INFO") -> None:
    """Route library logging to stderr through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
