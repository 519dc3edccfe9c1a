# src/tasklite/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "tasklite.log"

# The feed poller logs every snapshot; the console only hears its problems.
QUIET_LOGGERS: tuple[str, ...] = ("tasklite.tasks.task_feed",)


class _ConsoleNoiseFilter(logging.Filter):
    """Console gate: tasklite logs pass, the poller needs WARNING, anything else ERROR."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(QUIET_LOGGERS):
            return record.levelno >= logging.WARNING
        if name == "tasklite" or name.startswith("tasklite."):
            return True
        return record.levelno >= logging.ERROR


def _level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    return logging.getLevelNamesMapping().get(value.upper(), logging.INFO)


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasklite",
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.DEBUG,
) -> Path:
    """
    Send filtered logs to stderr and everything to <log_dir>/tasklite.log.

    Safe to call again: handlers from an earlier call are closed and replaced.
    Returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_level(console_level))
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(_level(file_level))

    for handler in (console, file_handler):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # warnings.warn() lands on the 'py.warnings' logger, which the console filter gates at ERROR.
    logging.captureWarnings(True)
    return log_file
