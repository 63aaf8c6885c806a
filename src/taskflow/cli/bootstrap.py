# src/taskflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the remote store (REST API if configured, else local SQLite),
- wires lifecycle manager, rule book, sync controller and comments into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.comments import CommentService
from ..core.lifecycle import BoardState, LifecycleManager
from ..core.notify import LoggingNotifier
from ..core.ports import Notifier
from ..core.rules import RuleBook
from ..core.state import AppState
from ..core.sync import SyncController
from ..storage.http_client import HttpTaskRepository
from ..storage.sqlite_store import SqliteTaskRepository

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_app(*, settings=None, notifier: Notifier | None = None) -> AppState:
    """
    Build AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    if notifier is None:
        notifier = LoggingNotifier()

    _ensure_local_dirs(settings)

    if settings.api_base_url:
        http_repo = HttpTaskRepository(settings.api_base_url, timeout=settings.http_timeout_seconds)
        repository = rule_store = http_repo
        close = http_repo.aclose
        logger.info("Using board API at %s", http_repo.base_url)
    else:
        sqlite_repo = SqliteTaskRepository(settings.db_path)
        repository = rule_store = sqlite_repo
        close = None
        logger.info("Using local board store %s", settings.db_path)

    rules = RuleBook(rule_store, notifier)
    controller = SyncController(LifecycleManager(BoardState()), repository, rules, notifier)
    comments = CommentService(controller, author=settings.user_name)

    state = AppState(settings=settings, controller=controller, comments=comments)
    if close is not None:
        state.close = close
    return state
