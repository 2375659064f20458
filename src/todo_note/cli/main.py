# src/todo_note/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs the one-time legacy import and the
first refresh, then hands over to the console REPL. With the console disabled
it only performs the startup work (useful to run the import unattended).
"""

from __future__ import annotations

import asyncio
import logging
import sys

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import print_error, run_console_loop
from ..core.errors import StoreUnavailable
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(state: AppState, *, console: bool) -> None:
    controller = state.controller
    await controller.start()
    try:
        if console:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Startup done, tasks=%d.", len(controller.tasks))
    finally:
        await controller.aclose()


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings, on_error=print_error)
    except StoreUnavailable as exc:
        logger.error("Task database unavailable: %s", exc)
        return 1

    try:
        asyncio.run(_run(state, console=settings.console_enabled))
    except KeyboardInterrupt:
        logger.info("Interrupted.")

    logger.info("Bye.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
