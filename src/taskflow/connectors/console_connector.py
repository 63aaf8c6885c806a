# src/taskflow/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.ports import Notification, NotificationLevel
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class ConsoleNotifier:
    """Prints toasts inline with the REPL output."""

    _MARKS = {
        NotificationLevel.SUCCESS: "OK",
        NotificationLevel.INFO: "..",
        NotificationLevel.ERROR: "!!",
    }

    def notify(self, notification: Notification) -> None:
        _print_ts(f"[{self._MARKS[notification.level]}] {notification.message}")


async def run_console_loop(state: AppState) -> None:
    """
    Async REPL. Input is read in a worker thread so background sync writes
    keep running while the prompt waits.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = await command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list them."
        _print_ts(response)

    logger.info("Console connector finished.")
