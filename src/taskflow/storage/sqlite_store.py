# src/taskflow/storage/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import NotFound, RemoteFailure
from ..core.models import (
    TASK_FIELDS,
    AutomationRule,
    Comment,
    Task,
    TaskPriority,
    TaskStatus,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TASK_COLUMNS: dict[str, str] = {
    "title": "TEXT NOT NULL DEFAULT ''",
    "description": "TEXT NOT NULL DEFAULT ''",
    "status": "TEXT NOT NULL DEFAULT 'To Do'",
    "priority": "TEXT NOT NULL DEFAULT 'Medium'",
    "due_date": "TEXT",
    "assignee": "TEXT",
    "tags": "TEXT NOT NULL DEFAULT '[]'",
    "estimated_time": "REAL",
    "blocked_by": "TEXT NOT NULL DEFAULT '[]'",
    "comments": "TEXT NOT NULL DEFAULT '[]'",
    "created_at": "INTEGER NOT NULL DEFAULT 0",
    "deleted_at": "REAL",
    "position": "INTEGER NOT NULL DEFAULT 0",
}

_RULE_COLUMNS: dict[str, str] = {
    "name": "TEXT NOT NULL DEFAULT ''",
    "trigger_type": "TEXT NOT NULL DEFAULT 'STATUS_CHANGE'",
    "trigger_value": "TEXT NOT NULL DEFAULT ''",
    "action_type": "TEXT NOT NULL DEFAULT ''",
    "action_value": "TEXT NOT NULL DEFAULT ''",
    "is_active": "INTEGER NOT NULL DEFAULT 1",
    "position": "INTEGER NOT NULL DEFAULT 0",
}

_JSON_LIST_FIELDS = ("tags", "blocked_by")


class SqliteTaskRepository:
    """
    Local SQLite board store (task repository + rule store).

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Soft-deleted tasks keep their row with `deleted_at` set.

    Thread-safety:
    - each call opens its own SQLite connection
    - async methods run the blocking work in a worker thread
    """

    def __init__(self, db_path: str | Path = "taskflow.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteTaskRepository ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("CREATE TABLE IF NOT EXISTS tasks (id TEXT PRIMARY KEY)")
            cur.execute("CREATE TABLE IF NOT EXISTS rules (id TEXT PRIMARY KEY)")

            for table, columns in (("tasks", _TASK_COLUMNS), ("rules", _RULE_COLUMNS)):
                cur.execute(f"PRAGMA table_info({table})")
                existing = {row["name"] for row in cur.fetchall()}
                for name, decl in columns.items():
                    if name in existing:
                        continue
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.debug("Schema migration: added %s.%s", table, name)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_deleted ON tasks(deleted_at, position)")
            conn.commit()
        finally:
            conn.close()

    async def _run(self, what: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except (sqlite3.Error, NotFound) as exc:
            logger.warning("SQLite %s failed: %s", what, exc)
            raise RemoteFailure(f"Failed to {what}: {exc}") from exc

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        comments_raw = json.loads(row["comments"] or "[]")
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            status=TaskStatus.from_wire(row["status"]),
            priority=TaskPriority.from_wire(row["priority"]),
            due_date=row["due_date"],
            assignee=row["assignee"],
            tags=list(json.loads(row["tags"] or "[]")),
            estimated_time=float(row["estimated_time"]) if row["estimated_time"] is not None else None,
            blocked_by=list(json.loads(row["blocked_by"] or "[]")),
            comments=[Comment.from_dict(c) for c in comments_raw],
            created_at=int(row["created_at"] or 0),
        )

    @staticmethod
    def _column_values(partial: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, value in partial.items():
            if name in ("id", "created_at"):
                continue
            if name not in TASK_FIELDS:
                raise ValueError(f"Unknown task field: {name}")
            if name in _JSON_LIST_FIELDS:
                value = json.dumps(list(value), ensure_ascii=False)
            elif name == "comments":
                value = json.dumps([c.to_dict() for c in value], ensure_ascii=False)
            elif name in ("status", "priority"):
                value = str(getattr(value, "value", value))
            values[name] = value
        return values

    @staticmethod
    def _row_to_rule(row: sqlite3.Row) -> AutomationRule:
        return AutomationRule(
            id=str(row["id"]),
            name=str(row["name"] or ""),
            trigger_type=str(row["trigger_type"] or ""),
            trigger_value=str(row["trigger_value"] or ""),
            action_type=str(row["action_type"] or ""),
            action_value=str(row["action_value"] or ""),
            is_active=bool(row["is_active"]),
        )

    # ---- blocking task operations ----

    def _select_tasks(self, *, trashed: bool) -> list[Task]:
        conn = self._get_conn()
        try:
            if trashed:
                sql = "SELECT * FROM tasks WHERE deleted_at IS NOT NULL ORDER BY deleted_at DESC"
            else:
                sql = "SELECT * FROM tasks WHERE deleted_at IS NULL ORDER BY position ASC"
            return [self._row_to_task(r) for r in conn.execute(sql).fetchall()]
        finally:
            conn.close()

    def _select_task(self, conn: sqlite3.Connection, task_id: str) -> Task:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFound("task", task_id)
        return self._row_to_task(row)

    def _insert_task(self, partial: dict[str, Any]) -> Task:
        values = {
            "title": "",
            "status": TaskStatus.TODO,
            "priority": TaskPriority.MEDIUM,
            **partial,
        }
        task_id = str(partial.get("id") or new_id())
        created_at = int(partial.get("created_at") or now_ms())
        columns = self._column_values(values)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COALESCE(MAX(position), 0) + 1 FROM tasks")
            (position,) = cur.fetchone()
            names = ["id", "created_at", "position", *columns]
            placeholders = ", ".join("?" for _ in names)
            cur.execute(
                f"INSERT INTO tasks({', '.join(names)}) VALUES ({placeholders})",
                (task_id, created_at, int(position), *columns.values()),
            )
            conn.commit()
            logger.debug("Task inserted id=%s", task_id)
            return self._select_task(conn, task_id)
        finally:
            conn.close()

    def _update_task(self, task_id: str, partial: dict[str, Any]) -> Task:
        columns = self._column_values(partial)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT 1 FROM tasks WHERE id = ? AND deleted_at IS NULL", (task_id,))
            if cur.fetchone() is None:
                raise NotFound("task", task_id)
            if columns:
                assignments = ", ".join(f"{name} = ?" for name in columns)
                cur.execute(
                    f"UPDATE tasks SET {assignments} WHERE id = ?",
                    (*columns.values(), task_id),
                )
                conn.commit()
            return self._select_task(conn, task_id)
        finally:
            conn.close()

    def _set_deleted(self, task_id: str, deleted: bool) -> Task:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if deleted:
                # deleted_at stays strictly increasing so trash order is stable
                cur.execute(
                    "UPDATE tasks SET deleted_at = "
                    "MAX(?, COALESCE((SELECT MAX(deleted_at) FROM tasks), 0) + 0.000001) "
                    "WHERE id = ? AND deleted_at IS NULL",
                    (time.time(), task_id),
                )
            else:
                cur.execute(
                    "UPDATE tasks SET deleted_at = NULL, "
                    "position = (SELECT COALESCE(MAX(position), 0) + 1 FROM tasks) "
                    "WHERE id = ? AND deleted_at IS NOT NULL",
                    (task_id,),
                )
            if cur.rowcount != 1:
                raise NotFound("task" if deleted else "trashed task", task_id)
            conn.commit()
            return self._select_task(conn, task_id)
        finally:
            conn.close()

    def _delete_task(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND deleted_at IS NOT NULL", (task_id,)
            )
            if cur.rowcount != 1:
                raise NotFound("trashed task", task_id)
            conn.commit()
        finally:
            conn.close()

    # ---- TaskRepository ----

    async def list(self) -> list[Task]:
        return await self._run("list tasks", lambda: self._select_tasks(trashed=False))

    async def list_trash(self) -> list[Task]:
        return await self._run("list trash", lambda: self._select_tasks(trashed=True))

    async def create(self, partial: dict[str, Any]) -> Task:
        return await self._run("create task", self._insert_task, dict(partial))

    async def update(self, task_id: str, partial: dict[str, Any]) -> Task:
        return await self._run("update task", self._update_task, task_id, dict(partial))

    async def soft_delete(self, task_id: str) -> None:
        await self._run("delete task", self._set_deleted, task_id, True)

    async def restore(self, task_id: str) -> Task:
        return await self._run("restore task", self._set_deleted, task_id, False)

    async def permanent_delete(self, task_id: str) -> None:
        await self._run("permanently delete task", self._delete_task, task_id)

    # ---- blocking rule operations ----

    def _select_rules(self) -> list[AutomationRule]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM rules ORDER BY position ASC").fetchall()
            return [self._row_to_rule(r) for r in rows]
        finally:
            conn.close()

    def _upsert_rule(self, rule: AutomationRule, *, insert: bool) -> AutomationRule:
        values = (
            rule.name,
            rule.trigger_type,
            rule.trigger_value,
            rule.action_type,
            rule.action_value,
            int(rule.is_active),
        )
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if insert:
                cur.execute(
                    """
                    INSERT INTO rules(
                        id, name, trigger_type, trigger_value,
                        action_type, action_value, is_active, position
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, (SELECT COALESCE(MAX(position), 0) + 1 FROM rules))
                    """,
                    (rule.id, *values),
                )
            else:
                cur.execute(
                    """
                    UPDATE rules
                    SET name = ?, trigger_type = ?, trigger_value = ?,
                        action_type = ?, action_value = ?, is_active = ?
                    WHERE id = ?
                    """,
                    (*values, rule.id),
                )
                if cur.rowcount != 1:
                    raise NotFound("rule", rule.id)
            conn.commit()
            return rule
        finally:
            conn.close()

    def _delete_rule(self, rule_id: str) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM rules WHERE id = ?", (rule_id,))
            if cur.rowcount != 1:
                raise NotFound("rule", rule_id)
            conn.commit()
        finally:
            conn.close()

    # ---- RuleStore ----

    async def list_rules(self) -> list[AutomationRule]:
        return await self._run("list rules", self._select_rules)

    async def create_rule(self, rule: AutomationRule) -> AutomationRule:
        return await self._run("create rule", lambda: self._upsert_rule(rule, insert=True))

    async def update_rule(self, rule_id: str, rule: AutomationRule) -> AutomationRule:
        if rule.id != rule_id:
            raise ValueError(f"Rule id mismatch: {rule_id} != {rule.id}")
        return await self._run("update rule", lambda: self._upsert_rule(rule, insert=False))

    async def delete_rule(self, rule_id: str) -> None:
        await self._run("delete rule", self._delete_rule, rule_id)
