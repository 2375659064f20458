# src/todo_note/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_list
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def print_error(message: str) -> None:
    """Error sink for the controller: one line per surfaced error."""
    _print_ts(f"[ERROR] {message}")


async def run_console_loop(state: AppState) -> None:
    """
    Read commands until /exit or EOF.

    input() runs in a worker thread so settle and undo timers keep firing on
    the event loop while the prompt waits.
    """
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "todo"))
    logger.info("Console connector started.")
    _print_ts(f"[{app_name}] Use /help for commands, /exit to quit.")
    print(render_list(state), flush=True)

    while True:
        try:
            line = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not line.startswith("/"):
            # Bare text is a quick add.
            line = f"/add {line}"

        try:
            reply = await command_registry.handle(state, line, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            print(reply, flush=True)

    logger.info("Console connector finished.")
