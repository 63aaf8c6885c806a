# src/taskflow/core/sync.py

from __future__ import annotations

"""
Optimistic sync controller.

Every single-task operation:
- applies its change to the local board immediately (via LifecycleManager),
- schedules the matching repository call in the background,
- on success does nothing more (create/duplicate adopt the server copy),
- on failure re-fetches the whole board and overwrites local state.

Known races (not resolved here):
- confirmations may arrive out of issue order;
- a reload triggered by one failure can overwrite newer optimistic state;
- two comment writes in the same unflushed window may overwrite each other remotely.

Bulk destructive operations are awaited, one call per task, and never roll back.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .automation import Evaluation
from .errors import NotFound, RemoteFailure
from .lifecycle import LifecycleManager
from .models import Task, TaskStatus, task_patch
from .pending import PendingWrites
from .ports import Notification, NotificationLevel, Notifier, TaskRepository
from .rules import RuleBook

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BulkResult:
    """Outcome of a best-effort bulk operation. Failures are reported, never raised."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # task_id -> error message

    @property
    def ok(self) -> bool:
        return not self.failed


class SyncController:
    def __init__(
        self,
        manager: LifecycleManager,
        repository: TaskRepository,
        rules: RuleBook,
        notifier: Notifier,
        *,
        writes: PendingWrites | None = None,
    ) -> None:
        self._manager = manager
        self._repo = repository
        self._rules = rules
        self._notifier = notifier
        self._writes = writes if writes is not None else PendingWrites()

    @property
    def manager(self) -> LifecycleManager:
        return self._manager

    @property
    def rules(self) -> RuleBook:
        return self._rules

    def active_tasks(self) -> list[Task]:
        return self._manager.active_tasks()

    def trashed_tasks(self) -> list[Task]:
        return self._manager.trashed_tasks()

    # ---- loading / reconciliation ----

    async def load(self) -> bool:
        """Initial fetch of tasks and rules."""
        rules_ok = await self._rules.load()
        tasks_ok = await self.reload()
        return rules_ok and tasks_ok

    async def reload(self) -> bool:
        """
        Replace local state with the repository's. On failure local state is
        kept as is and False is returned.
        """
        try:
            active = await self._repo.list()
            trash = await self._repo.list_trash()
        except Exception as exc:
            logger.error(
                "Board reload failed: %s", exc, exc_info=not isinstance(exc, RemoteFailure)
            )
            self._notify("Could not reload the board", NotificationLevel.ERROR)
            return False
        self._manager.replace_all(active, trash)
        logger.info("Board reloaded active=%d trash=%d", len(active), len(trash))
        return True

    async def flush(self) -> None:
        """Wait for every outstanding background write (tasks and rules)."""
        await self._writes.flush()
        await self._rules.flush()

    # ---- single-task operations (optimistic) ----

    def create(self, partial: dict[str, Any] | None = None) -> Task:
        task = self._manager.create(partial)
        self._notify("New task created")
        self._submit_create(task)
        return task

    def quick_add(self, title: str, status: TaskStatus, *, assignee: str | None = "You") -> Task:
        task = self._manager.create(
            {"title": title.strip() or "Untitled", "status": status, "assignee": assignee}
        )
        self._notify("Task added quickly")
        self._submit_create(task)
        return task

    def update(self, task_id: str, partial: dict[str, Any]) -> Task:
        """Edit-form save. Does not run automation, even if `status` changes."""
        task = self._manager.update(task_id, partial)
        payload = {name: getattr(task, name) for name in partial}
        self._submit(f"update task {task_id}", lambda: self._repo.update(task_id, payload))
        return task

    def move_status(self, task_id: str, new_status: TaskStatus) -> Evaluation:
        """Drag-and-drop move: automation runs, the full amended task is sent."""
        result = self._manager.move_status(task_id, new_status, self._rules.rules())
        payload = task_patch(result.task)
        self._submit(f"move task {task_id}", lambda: self._repo.update(task_id, payload))

        for fired in result.fired:
            if fired.message:
                self._notify(fired.message, NotificationLevel.INFO, rule_id=fired.rule_id)
        if new_status == TaskStatus.DONE:
            self._notify("Task completed! 🎉")
        return result

    def soft_delete(self, task_id: str) -> Task:
        task = self._manager.soft_delete(task_id)
        self._notify("Task moved to recycle bin", NotificationLevel.INFO)
        self._submit(f"delete task {task_id}", lambda: self._repo.soft_delete(task_id))
        return task

    def restore(self, task_id: str) -> Task:
        task = self._manager.restore(task_id)
        self._notify("Task restored")
        self._submit(f"restore task {task_id}", lambda: self._repo.restore(task_id))
        return task

    def permanent_delete(self, task_id: str) -> Task:
        task = self._manager.permanent_delete(task_id)
        self._notify("Task permanently deleted")
        self._submit(
            f"permanently delete task {task_id}", lambda: self._repo.permanent_delete(task_id)
        )
        return task

    def duplicate(self, task_id: str) -> Task:
        task = self._manager.duplicate(task_id)
        self._notify("Task duplicated")
        self._submit_create(task)
        return task

    def apply_assignments(self, assignments: Mapping[str, str]) -> int:
        """
        Route externally computed assignee suggestions through `update`.
        Ids that are not on the board are skipped.
        """
        count = 0
        for task_id, assignee in assignments.items():
            try:
                self.update(task_id, {"assignee": assignee})
            except NotFound:
                logger.debug("Assignment skipped, task %s not on the board", task_id)
                continue
            count += 1
        if count:
            self._notify(f"Auto-assigned {count} tasks.")
        else:
            self._notify("Could not assign tasks.", NotificationLevel.ERROR)
        return count

    # ---- bulk operations (best-effort, awaited) ----

    async def empty_trash(self) -> BulkResult:
        """
        One permanent delete per trashed task. A task leaves the trash only
        when its own call succeeds; nothing is rolled back or raised.
        """
        await self.flush()
        result = BulkResult()
        for task in self._manager.trashed_tasks():
            try:
                await self._repo.permanent_delete(task.id)
            except Exception as exc:
                self._record_failure(result, "permanent delete", task.id, exc)
                continue
            self._drop_local(self._manager.permanent_delete, task.id)
            result.succeeded.append(task.id)

        self._report_bulk(result, "Recycle bin emptied")
        return result

    async def clear_done(self) -> BulkResult:
        """Move every Done task to the trash, one soft delete per task."""
        await self.flush()
        result = BulkResult()
        done = [t for t in self._manager.active_tasks() if t.status == TaskStatus.DONE]
        for task in done:
            try:
                await self._repo.soft_delete(task.id)
            except Exception as exc:
                self._record_failure(result, "soft delete", task.id, exc)
                continue
            self._drop_local(self._trash_in_batch, task.id)
            result.succeeded.append(task.id)

        self._report_bulk(result, "Completed tasks moved to trash")
        return result

    # ---- helpers ----

    def _notify(
        self,
        message: str,
        level: NotificationLevel = NotificationLevel.SUCCESS,
        *,
        rule_id: str | None = None,
    ) -> None:
        self._notifier.notify(Notification(message, level, rule_id))

    def _submit(
        self,
        what: str,
        call: Callable[[], Awaitable[Any]],
        on_success: Callable[[Any], None] | None = None,
    ) -> None:
        async def run() -> None:
            try:
                value = await call()
            except Exception as exc:
                logger.warning(
                    "%s failed: %s; reloading board",
                    what,
                    exc,
                    exc_info=not isinstance(exc, RemoteFailure),
                )
                self._notify(f"Sync failed: {what}", NotificationLevel.ERROR)
                await self.reload()
                return
            logger.debug("%s confirmed", what)
            if on_success is not None:
                on_success(value)

        self._writes.schedule(run(), name=what)

    def _submit_create(self, task: Task) -> None:
        provisional_id = task.id
        payload = task_patch(task, include_immutable=True)

        def adopt(server_task: Task) -> None:
            if not self._manager.adopt(provisional_id, server_task):
                logger.debug("Created task %s no longer on the board", provisional_id)
            elif server_task.id != provisional_id:
                logger.debug("Task id %s -> %s (server)", provisional_id, server_task.id)

        self._submit(f"create task {provisional_id}", lambda: self._repo.create(payload), adopt)

    @staticmethod
    def _record_failure(result: BulkResult, what: str, task_id: str, exc: Exception) -> None:
        logger.warning(
            "Bulk %s failed for task %s: %s",
            what,
            task_id,
            exc,
            exc_info=not isinstance(exc, RemoteFailure),
        )
        result.failed[task_id] = str(exc)

    def _trash_in_batch(self, task_id: str) -> Task:
        return self._manager.soft_delete(task_id, append=True)

    @staticmethod
    def _drop_local(op: Callable[[str], Task], task_id: str) -> None:
        try:
            op(task_id)
        except NotFound:
            # A reload may already have removed it.
            logger.debug("Task %s already gone locally", task_id)

    def _report_bulk(self, result: BulkResult, success_message: str) -> None:
        if not result.ok:
            self._notify(
                f"{success_message} ({len(result.failed)} failed)", NotificationLevel.ERROR
            )
        elif result.succeeded:
            self._notify(success_message, NotificationLevel.INFO)
