# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.core.comments import CommentService
from taskflow.core.lifecycle import LifecycleManager
from taskflow.core.rules import RuleBook
from taskflow.core.state import AppState
from taskflow.core.sync import SyncController

from .fakes import CollectingNotifier, FakeTaskRepo


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskflow-test",
        log_level="DEBUG",
        api_base_url="",
        http_timeout_seconds=5.0,
        data_dir=tmp_path,
        db_path=tmp_path / "board.sqlite3",
        user_name="You",
        default_assignee="You",
    )


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture()
def manager() -> LifecycleManager:
    return LifecycleManager()


@pytest.fixture()
def rulebook(repo: FakeTaskRepo, notifier: CollectingNotifier) -> RuleBook:
    return RuleBook(repo, notifier)


@pytest.fixture()
def controller(
    manager: LifecycleManager,
    repo: FakeTaskRepo,
    rulebook: RuleBook,
    notifier: CollectingNotifier,
) -> SyncController:
    return SyncController(manager, repo, rulebook, notifier)


@pytest.fixture()
def state(settings: SimpleNamespace, controller: SyncController) -> AppState:
    """AppState wired with the in-memory repository and collecting notifier."""
    return AppState(
        settings=settings,
        controller=controller,
        comments=CommentService(controller, author=settings.user_name),
    )
