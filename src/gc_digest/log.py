"""Logging setup for the command line."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"


def configure_logging(console: Console, verbose: bool = False) -> None:
    """Route ``gc_digest`` loggers through rich; DEBUG when verbose, WARNING otherwise."""
    handler = RichHandler(console=console, show_path=verbose, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    package_logger = logging.getLogger("gc_digest")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False
