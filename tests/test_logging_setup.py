# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from tasklite.logging_setup import _ConsoleNoiseFilter, _level


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("tasklite.sync.controller", logging.INFO, True),
        ("tasklite", logging.DEBUG, True),
        ("tasklite.tasks.task_feed", logging.INFO, False),
        ("tasklite.tasks.task_feed", logging.WARNING, True),
        ("py.warnings", logging.WARNING, False),
        ("asyncio", logging.WARNING, False),
        ("asyncio", logging.ERROR, True),
        ("tasklitex", logging.INFO, False),
    ],
)
def test_console_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


def test_level_accepts_names_and_numbers() -> None:
    assert _level("debug") == logging.DEBUG
    assert _level(logging.WARNING) == logging.WARNING
    assert _level("nonsense") == logging.INFO
