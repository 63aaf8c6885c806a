# src/taskflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the remote store and the UI swappable and makes testing easier.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from .models import AutomationRule, Task

TaskPatch = dict[str, Any]
# Snake_case field name -> new value, e.g. {"status": TaskStatus.DONE}.


class TaskRepository(Protocol):
    """
    Remote task store. Every call may raise; failures carry only a message.
    """

    async def list(self) -> list[Task]: ...

    async def list_trash(self) -> list[Task]: ...

    async def create(self, partial: TaskPatch) -> Task: ...

    async def update(self, task_id: str, partial: TaskPatch) -> Task: ...

    async def soft_delete(self, task_id: str) -> None: ...

    async def restore(self, task_id: str) -> Task: ...

    async def permanent_delete(self, task_id: str) -> None: ...


class RuleStore(Protocol):
    """Remote automation rule store, independent of task storage."""

    async def list_rules(self) -> list[AutomationRule]: ...

    async def create_rule(self, rule: AutomationRule) -> AutomationRule: ...

    async def update_rule(self, rule_id: str, rule: AutomationRule) -> AutomationRule: ...

    async def delete_rule(self, rule_id: str) -> None: ...


class NotificationLevel(StrEnum):
    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class Notification:
    """
    A user-facing event (toast). `rule_id` is set for "rule fired" events.
    """

    message: str
    level: NotificationLevel = NotificationLevel.SUCCESS
    rule_id: str | None = None


class Notifier(Protocol):
    """UI-side port: where toasts go. Must not raise."""

    def notify(self, notification: Notification) -> None: ...
