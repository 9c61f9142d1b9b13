"""
Logging configuration for armory entry points.

Library modules only call ``logging.getLogger(__name__)``; the CLI and the
registry server call :func:`setup_logging` once at startup.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_initialized = False


def setup_logging(level: str | int = "INFO", *, console: Console | None = None) -> None:
    """Route stdlib logging through rich.

    Args:
        level: Minimum log level for the ``armory`` logger hierarchy.
        console: Console to write to. Defaults to stderr.
    """
    global _initialized

    if _initialized:
        logging.getLogger("armory").setLevel(level)
        return

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        show_time=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger("armory")
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    _initialized = True
