"""Tests for log setup."""

import logging
from pathlib import Path

import pytest

from cursor_history.logging import get_logger, setup_logging


@pytest.fixture
def package_logger():
    """The package logger with its handlers restored after the test."""
    logger = logging.getLogger("cursor_history")
    saved_handlers = logger.handlers[:]
    saved_level = logger.level
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)


class TestSetupLogging:
    def test_module_records_reach_command_file(self, package_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging("extract", log_dir=tmp_path / "logs", console=False)

        get_logger("resolver").info("resolved: count=%d", 2)
        for handler in package_logger.handlers:
            handler.flush()

        assert "cursor_history.resolver: resolved: count=2" in (tmp_path / "logs" / "extract.log").read_text()

    def test_console_shows_warnings_only(self, package_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging("search", log_dir=tmp_path, level=logging.DEBUG)

        levels = sorted(handler.level for handler in package_logger.handlers)

        assert levels == [logging.DEBUG, logging.WARNING]
        assert package_logger.level == logging.DEBUG

    def test_second_call_keeps_handlers(self, package_logger: logging.Logger, tmp_path: Path) -> None:
        setup_logging("extract", log_dir=tmp_path, console=False)
        setup_logging("extract", log_dir=tmp_path, level=logging.DEBUG, console=False)

        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG
