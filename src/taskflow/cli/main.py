# src/taskflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the board, then runs the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_app
from ..config import get_settings
from ..connectors.console_connector import ConsoleNotifier, run_console_loop
from ..core.state import AppState
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown: let pending writes land, then close the store."""
    try:
        await state.controller.flush()
    except Exception:
        logger.exception("Pending writes failed during shutdown.")

    try:
        await state.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


async def run(state: AppState) -> None:
    await state.controller.load()
    try:
        await run_console_loop(state)
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(
        log_dir=settings.data_dir,
        app_name=settings.app_name,
        console_level=level_from_name(settings.log_level),
    )

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)

    state = create_app(settings=settings, notifier=ConsoleNotifier())
    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
