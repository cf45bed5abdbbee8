"""Tests for the package log handler setup."""

import io
import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from good_render.utilities import PACKAGE_LOGGER, configure_library_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_configures_package_logger_once(package_logger):
    buffer = io.StringIO()
    console = Console(file=buffer, width=200)

    configure_library_logging(logging.INFO, console=console)
    configure_library_logging(logging.DEBUG, console=console)

    rich_handlers = [h for h in package_logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert package_logger.level == logging.DEBUG

    logging.getLogger("good_render.cache").debug("compiled %s", "hello")
    assert "good_render.cache - compiled hello" in buffer.getvalue()


def test_root_logger_untouched(package_logger):
    root = logging.getLogger()
    before = list(root.handlers)
    configure_library_logging(logging.WARNING, console=Console(file=io.StringIO()))
    assert root.handlers == before
