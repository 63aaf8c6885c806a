# tests/test_bootstrap.py

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.cli.bootstrap import create_app
from taskflow.core.models import TaskStatus
from taskflow.logging_setup import _ConsoleNoiseFilter, level_from_name, setup_logging

from .fakes import CollectingNotifier


@pytest.mark.asyncio
async def test_create_app_uses_local_store_without_api(settings: SimpleNamespace) -> None:
    notifier = CollectingNotifier()
    state = create_app(settings=settings, notifier=notifier)

    assert await state.controller.load()
    task = state.controller.quick_add("From bootstrap", TaskStatus.TODO)
    await state.controller.flush()
    await state.close()

    assert settings.db_path.exists()
    reopened = create_app(settings=settings, notifier=CollectingNotifier())
    assert await reopened.controller.load()
    assert [t.id for t in reopened.controller.active_tasks()] == [task.id]


def test_level_from_name() -> None:
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name(" WARNING ") == logging.WARNING
    assert level_from_name("chatty") == logging.INFO
    assert level_from_name(None, logging.ERROR) == logging.ERROR


def test_console_filter_hides_background_chatter() -> None:
    flt = _ConsoleNoiseFilter()

    def record(name: str, level: int) -> logging.LogRecord:
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    assert flt.filter(record("taskflow.core.sync", logging.INFO))
    assert not flt.filter(record("taskflow.storage.sqlite_store", logging.INFO))
    assert flt.filter(record("taskflow.storage.sqlite_store", logging.WARNING))
    assert not flt.filter(record("httpx", logging.WARNING))
    assert flt.filter(record("httpx", logging.ERROR))


def test_setup_logging_writes_named_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path, app_name="board")
        logging.getLogger("taskflow.test").info("hello")
        for h in root.handlers:
            h.flush()
        assert log_file == tmp_path / "board.log"
        assert "hello" in log_file.read_text(encoding="utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])
        logging.captureWarnings(False)
