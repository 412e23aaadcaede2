# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console connector on
one asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        await run_console_loop(state)
    finally:
        state.close()


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/tasksync"),
        console_level=getattr(settings, "log_level", "WARNING"),
    )

    logger.info("Starting %s... (log file: %s)", getattr(settings, "app_name", "tasksync"), log_file)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
