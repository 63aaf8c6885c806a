# tests/test_sqlite_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from taskflow.core.errors import RemoteFailure
from taskflow.core.models import Comment, Reaction, TaskPriority, TaskStatus
from taskflow.storage.sqlite_store import SqliteTaskRepository

from .fakes import make_rule


@pytest.fixture()
def store(tmp_path: Path) -> SqliteTaskRepository:
    return SqliteTaskRepository(tmp_path / "board.sqlite3")


@pytest.mark.asyncio
async def test_create_and_list_keep_board_order(store: SqliteTaskRepository) -> None:
    a = await store.create({"id": "a", "title": "first", "priority": TaskPriority.HIGH})
    b = await store.create({"id": "b", "title": "second", "tags": ["x", "y"]})

    assert a.priority == TaskPriority.HIGH
    assert b.status == TaskStatus.TODO
    assert b.tags == ["x", "y"]
    assert [t.id for t in await store.list()] == ["a", "b"]


@pytest.mark.asyncio
async def test_update_round_trips_comments(store: SqliteTaskRepository) -> None:
    await store.create({"id": "a", "title": "t", "created_at": 123})
    comment = Comment(
        id="c1",
        author="You",
        text="hello",
        created_at=5,
        reactions={"👍": Reaction(emoji="👍", count=2, user_reacted=True)},
    )

    updated = await store.update("a", {"comments": [comment], "status": TaskStatus.REVIEW})

    assert updated.status == TaskStatus.REVIEW
    assert updated.comments == [comment]
    assert updated.created_at == 123


@pytest.mark.asyncio
async def test_soft_delete_restore_and_purge(store: SqliteTaskRepository) -> None:
    for task_id in ("a", "b", "c"):
        await store.create({"id": task_id, "title": task_id})

    await store.soft_delete("a")
    await store.soft_delete("c")
    assert [t.id for t in await store.list()] == ["b"]
    assert [t.id for t in await store.list_trash()] == ["c", "a"]

    restored = await store.restore("a")
    assert restored.id == "a"
    # restored tasks go to the end of the board
    assert [t.id for t in await store.list()] == ["b", "a"]

    await store.permanent_delete("c")
    assert await store.list_trash() == []


@pytest.mark.asyncio
async def test_wrong_collection_raises_remote_failure(store: SqliteTaskRepository) -> None:
    await store.create({"id": "a", "title": "a"})

    with pytest.raises(RemoteFailure):
        await store.restore("a")
    with pytest.raises(RemoteFailure):
        await store.permanent_delete("a")
    with pytest.raises(RemoteFailure):
        await store.update("missing", {"title": "x"})


@pytest.mark.asyncio
async def test_rules_keep_registration_order(store: SqliteTaskRepository) -> None:
    await store.create_rule(make_rule("r2", "Done", "SET_PRIORITY", "Low"))
    await store.create_rule(make_rule("r1", "Review", "ASSIGN_USER", "Sam"))

    rule = make_rule("r2", "Done", "SET_PRIORITY", "Low", active=False)
    await store.update_rule("r2", rule)
    rules = await store.list_rules()

    assert [r.id for r in rules] == ["r2", "r1"]
    assert rules[0].is_active is False

    await store.delete_rule("r1")
    assert [r.id for r in await store.list_rules()] == ["r2"]
    with pytest.raises(RemoteFailure):
        await store.delete_rule("r1")


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute("CREATE TABLE tasks (id TEXT PRIMARY KEY, title TEXT NOT NULL DEFAULT '')")
    conn.execute("INSERT INTO tasks(id, title) VALUES ('legacy', 'old row')")
    conn.commit()
    conn.close()

    SqliteTaskRepository(db)

    conn = sqlite3.connect(db)
    try:
        columns = {row[1] for row in conn.execute("PRAGMA table_info(tasks)")}
    finally:
        conn.close()
    assert {"status", "comments", "deleted_at", "position"} <= columns
