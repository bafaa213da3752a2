"""Log setup shared by the cursor-history commands.

Every module logs through a child of the ``cursor_history`` logger; the
commands attach a file handler (and optionally stderr) once at startup.
"""

import logging
import sys
from pathlib import Path

DEFAULT_LOG_DIR = Path.home() / "cursor-history" / "logs"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Attach handlers to the ``cursor_history`` logger for one command run.

    Records go to ``<log_dir>/<name>.log``. The stderr handler only shows
    warnings and above so command output on stdout stays clean. Calling this
    again after handlers exist only updates the level.

    Args:
        name: Command name, used as the log file stem
        log_dir: Where log files go; ~/cursor-history/logs/ by default
        level: Level for the package logger and the file handler
        console: Also write warnings to stderr

    Returns:
        The ``cursor_history`` logger
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("cursor_history")
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(max(level, logging.WARNING))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger, e.g. ``get_logger("resolver")`` is ``cursor_history.resolver``."""
    return logging.getLogger(f"cursor_history.{name}")
