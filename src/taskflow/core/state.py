# src/taskflow/core/state.py

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .comments import CommentService
from .sync import SyncController


async def _noop() -> None:
    return None


@dataclass
class AppState:
    """Everything a front-end needs: the wired controller plus settings."""

    settings: Any
    controller: SyncController
    comments: CommentService
    close: Callable[[], Awaitable[None]] = field(default=_noop)
