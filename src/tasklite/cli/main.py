# src/tasklite/cli/main.py

"""
CLI entrypoint.

Initializes logging, checks the backend config, starts the sync controller in
a background thread, then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import ConfigurationError, RemoteOperationError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()

    setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except RemoteOperationError as e:
        logger.error("Startup failed: %s", e)
        print(f"Startup failed: {e}", file=sys.stderr)
        return 1

    try:
        run_console_loop(state)
    finally:
        state.runner.stop()
        state.runner.join(timeout=10.0)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
