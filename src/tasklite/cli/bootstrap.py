# src/tasklite/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- validates the injected backend config (fatal if missing),
- ensures local (gitignored) directories exist,
- builds the backend and starts the sync controller in the background.
"""

from __future__ import annotations

import logging
import sys

from ..config import Settings, get_settings, require_backend_config
from ..core.state import AppState
from ..sync.runner import start_controller_in_background
from ..tasks.task_feed import LocalTaskBackend

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.principal_path.parent.mkdir(parents=True, exist_ok=True)


def create_backend(settings: Settings) -> LocalTaskBackend:
    """Raises ConfigurationError when the backend config was not provided."""
    config = require_backend_config(settings)
    _ensure_local_dirs(settings)
    return LocalTaskBackend(
        config,
        db_path=settings.tasks_db_path,
        principal_path=settings.principal_path,
        poll_seconds=settings.feed_poll_seconds,
    )


def create_initial_state(*, settings: Settings | None = None, use_color: bool | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    backend = create_backend(settings)
    runner = start_controller_in_background(backend)

    if use_color is None:
        use_color = sys.stdout.isatty()

    return AppState(settings=settings, runner=runner, use_color=use_color)
