from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "good_render"
DEFAULT_FORMAT = "%(name)s - %(message)s"


def configure_library_logging(
    level: int = logging.INFO,
    format: str = DEFAULT_FORMAT,
    console: Console | None = None,
) -> logging.Logger:
    """Send good_render log records to stderr through rich.

    Only the package logger is touched. Calling this again adjusts the level
    instead of stacking another handler.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(logging.Formatter(format))
        package_logger.addHandler(handler)
    return package_logger
