# src/taskflow/core/lifecycle.py

from __future__ import annotations

"""
Task lifecycle manager.

Owns the two board collections (active, trash) and every transition between
them. Everything here is synchronous and in-memory; persistence is the sync
controller's job.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from .automation import Evaluation, evaluate
from .errors import NotFound
from .models import (
    IMMUTABLE_TASK_FIELDS,
    TASK_FIELDS,
    AutomationRule,
    Task,
    TaskPriority,
    TaskStatus,
    copy_task,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


@dataclass(slots=True)
class BoardState:
    """
    The two collections. A task id lives in at most one of them.

    Both dicts keep insertion order: `active` is board order, `trash` is
    most-recently-deleted first (clear_done appends its batch at the end).
    """

    active: dict[str, Task] = field(default_factory=dict)
    trash: dict[str, Task] = field(default_factory=dict)


def _check_fields(partial: dict[str, Any]) -> None:
    unknown = set(partial) - TASK_FIELDS
    if unknown:
        raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
    frozen = set(partial) & IMMUTABLE_TASK_FIELDS
    if frozen:
        raise ValueError(f"Immutable task fields: {', '.join(sorted(frozen))}")


def _enum_value(enum_cls: type[TaskStatus] | type[TaskPriority], raw: Any, label: str) -> Any:
    """Accept an enum member or any wire spelling `parse` understands."""
    if isinstance(raw, enum_cls):
        return raw
    parsed = enum_cls.parse(raw) if isinstance(raw, str) else None
    if parsed is None:
        raise ValueError(f"Invalid task {label}: {raw!r}")
    return parsed


def _coerce(partial: dict[str, Any]) -> dict[str, Any]:
    """Copy of `partial` with `status`/`priority` turned into enum members."""
    out = dict(partial)
    if "status" in out:
        out["status"] = _enum_value(TaskStatus, out["status"], "status")
    if "priority" in out:
        out["priority"] = _enum_value(TaskPriority, out["priority"], "priority")
    return out


class LifecycleManager:
    def __init__(self, state: BoardState | None = None) -> None:
        self._state = state if state is not None else BoardState()

    # ---- getters ----

    def active_tasks(self) -> list[Task]:
        return list(self._state.active.values())

    def trashed_tasks(self) -> list[Task]:
        return list(self._state.trash.values())

    def get(self, task_id: str) -> Task:
        task = self._state.active.get(task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task

    def get_trashed(self, task_id: str) -> Task:
        task = self._state.trash.get(task_id)
        if task is None:
            raise NotFound("trashed task", task_id)
        return task

    # ---- mutations ----

    def create(self, partial: dict[str, Any] | None = None) -> Task:
        """
        Add a new task to the board. Omitted fields get defaults
        (To Do / Medium / empty lists / created now). A caller-supplied id is
        kept as a proposal; the repository may replace it later.
        """
        data = dict(partial or {})
        unknown = set(data) - TASK_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        for name, default in (("status", TaskStatus.TODO), ("priority", TaskPriority.MEDIUM)):
            if not data.get(name):
                data[name] = default
        data = _coerce(data)

        # everything is validated before the board is touched
        task = Task(
            id=str(data.pop("id", None) or new_id()),
            title=str(data.pop("title", "")),
            created_at=data.pop("created_at", None) or now_ms(),
        )
        task = replace(task, **data)
        self._state.trash.pop(task.id, None)
        self._state.active[task.id] = task
        logger.debug("Task created id=%s status=%s", task.id, task.status.value)
        return task

    def update(self, task_id: str, partial: dict[str, Any]) -> Task:
        """
        Shallow field overwrite; lists are replaced, not merged.

        Never runs automation, even when `status` changes: only `move_status`
        does. Wire spellings of `status`/`priority` ("Done", "high") are
        accepted; anything else raises ValueError.
        """
        current = self.get(task_id)
        _check_fields(partial)
        task = replace(current, **_coerce(partial))
        self._state.active[task_id] = task
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(partial))
        return task

    def move_status(
        self, task_id: str, new_status: TaskStatus, rules: Iterable[AutomationRule]
    ) -> Evaluation:
        """Move a task to another column, letting automation amend it first."""
        current = self.get(task_id)
        new_status = _enum_value(TaskStatus, new_status, "status")
        moved = replace(current, status=new_status)
        result = evaluate(moved, rules)
        self._state.active[task_id] = result.task
        logger.debug(
            "Task moved id=%s %s -> %s fired=%s",
            task_id,
            current.status.value,
            new_status.value,
            result.fired_ids,
        )
        return result

    def soft_delete(self, task_id: str, *, append: bool = False) -> Task:
        """
        Move a task to the trash. A single delete goes to the front of the
        trash; `append=True` (used by clear_done) adds it at the end.
        """
        task = self._state.active.pop(task_id, None)
        if task is None:
            raise NotFound("task", task_id)
        if append:
            self._state.trash[task_id] = task
        else:
            self._state.trash = {task_id: task, **self._state.trash}
        logger.debug("Task trashed id=%s", task_id)
        return task

    def restore(self, task_id: str) -> Task:
        task = self.get_trashed(task_id)
        del self._state.trash[task_id]
        self._state.active[task_id] = task
        logger.debug("Task restored id=%s", task_id)
        return task

    def permanent_delete(self, task_id: str) -> Task:
        task = self.get_trashed(task_id)
        del self._state.trash[task_id]
        logger.debug("Task permanently deleted id=%s", task_id)
        return task

    def empty_trash(self) -> list[str]:
        ids = list(self._state.trash)
        for task_id in ids:
            self.permanent_delete(task_id)
        return ids

    def clear_done(self) -> list[Task]:
        """Trash every Done task; the batch lands at the end of the trash in board order."""
        done = [t for t in self._state.active.values() if t.status == TaskStatus.DONE]
        for task in done:
            self.soft_delete(task.id, append=True)
        return done

    def duplicate(self, task_id: str) -> Task:
        """Clone with a fresh id and timestamp; comments are not copied."""
        source = copy_task(self.get(task_id))
        clone = replace(
            source,
            id=new_id(),
            title=f"{source.title}{COPY_SUFFIX}",
            created_at=now_ms(),
            comments=[],
        )
        self._state.active[clone.id] = clone
        logger.debug("Task duplicated id=%s -> %s", task_id, clone.id)
        return clone

    # ---- reconciliation (sync controller only) ----

    def replace_all(self, active: Iterable[Task], trash: Iterable[Task]) -> None:
        """Overwrite both collections with the repository's view."""
        new_trash = {t.id: t for t in trash}
        new_active = {t.id: t for t in active if t.id not in new_trash}
        self._state.active = new_active
        self._state.trash = new_trash
        logger.debug("Board replaced active=%d trash=%d", len(new_active), len(new_trash))

    def adopt(self, provisional_id: str, server_task: Task) -> bool:
        """
        Take over the repository's id and creation time for a locally created
        task, keeping its board position and any local edits made since.
        Returns False if the provisional task is gone.
        """
        local = self._state.active.get(provisional_id)
        if local is None:
            return False
        adopted = replace(local, id=server_task.id, created_at=server_task.created_at)
        self._state.active = {
            (adopted.id if tid == provisional_id else tid): (
                adopted if tid == provisional_id else task
            )
            for tid, task in self._state.active.items()
        }
        return True
