# tests/test_pending.py

from __future__ import annotations

import asyncio

import pytest

from taskflow.core.pending import PendingWrites


@pytest.mark.asyncio
async def test_flush_waits_for_scheduled_and_chained_writes() -> None:
    writes = PendingWrites()
    done: list[str] = []
    gate = asyncio.Event()

    async def second() -> None:
        done.append("second")

    async def first() -> None:
        await gate.wait()
        done.append("first")
        writes.schedule(second(), name="second")

    writes.schedule(first(), name="first")
    assert writes.pending == 1

    gate.set()
    await writes.flush()

    assert done == ["first", "second"]
    assert writes.pending == 0


@pytest.mark.asyncio
async def test_flush_with_nothing_pending_returns() -> None:
    writes = PendingWrites()

    await writes.flush()

    assert writes.pending == 0
