# src/taskflow/core/pending.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class PendingWrites:
    """
    Background remote writes that the local state does not wait for.

    Scheduled coroutines are expected to handle their own failures; anything
    that still escapes surfaces from `flush()`.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(self, coro: Coroutine[Any, Any, None], *, name: str) -> asyncio.Task[None]:
        """Must be called from inside a running event loop."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Write scheduled: %s (pending=%d)", name, len(self._tasks))
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def flush(self) -> None:
        """Wait until every scheduled write, including ones scheduled meanwhile, is done."""
        if self.pending:
            logger.debug("Flushing %d pending write(s)", self.pending)
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
