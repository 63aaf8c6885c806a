# src/taskflow/core/models.py

"""
Board data model: tasks, comments, reactions and automation rules.

Wire form (REST payloads, SQLite JSON columns) uses the camelCase keys of the
board API; the Python side uses snake_case attributes.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, fields, replace
from enum import StrEnum
from typing import Any


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


def _squash(raw: str) -> str:
    return "".join(ch for ch in raw.lower() if ch.isalnum())


class TaskStatus(StrEnum):
    """Board columns, in display order. Any status may move to any other."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    DONE = "Done"

    @classmethod
    def parse(cls, raw: str | None) -> TaskStatus | None:
        """
        Accepts the wire value ("In Progress"), the member name ("IN_PROGRESS")
        or the compact form ("InProgress"), case-insensitively.
        """
        if not raw:
            return None
        key = _squash(str(raw))
        for member in cls:
            if key in (_squash(member.value), _squash(member.name)):
                return member
        return None

    @classmethod
    def from_wire(cls, raw: str | None) -> TaskStatus:
        return cls.parse(raw) or cls.TODO


class TaskPriority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, raw: str | None) -> TaskPriority | None:
        if not raw:
            return None
        key = _squash(str(raw))
        for member in cls:
            if key == _squash(member.value):
                return member
        return None

    @classmethod
    def from_wire(cls, raw: str | None) -> TaskPriority:
        return cls.parse(raw) or cls.MEDIUM


class TriggerType(StrEnum):
    STATUS_CHANGE = "STATUS_CHANGE"


class ActionType(StrEnum):
    SET_PRIORITY = "SET_PRIORITY"
    ASSIGN_USER = "ASSIGN_USER"
    ADD_COMMENT = "ADD_COMMENT"


@dataclass(slots=True)
class Reaction:
    emoji: str
    count: int = 0
    user_reacted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"emoji": self.emoji, "count": self.count, "userReacted": self.user_reacted}

    @classmethod
    def from_dict(cls, emoji: str, data: dict[str, Any]) -> Reaction:
        return cls(
            emoji=str(data.get("emoji") or emoji),
            count=int(data.get("count") or 0),
            user_reacted=bool(data.get("userReacted", False)),
        )


@dataclass(slots=True)
class Comment:
    id: str
    author: str
    text: str
    created_at: int
    reactions: dict[str, Reaction] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "text": self.text,
            "createdAt": self.created_at,
            "reactions": {emoji: r.to_dict() for emoji, r in self.reactions.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Comment:
        raw_reactions = data.get("reactions") or {}
        return cls(
            id=str(data["id"]),
            author=str(data.get("author") or ""),
            text=str(data.get("text") or ""),
            created_at=int(data.get("createdAt") or 0),
            reactions={
                str(emoji): Reaction.from_dict(str(emoji), r)
                for emoji, r in raw_reactions.items()
                if isinstance(r, dict)
            },
        )


@dataclass(slots=True)
class Task:
    """
    A card on the board.

    Notes:
    - `blocked_by` is display-only; nothing checks it before a move.
    - `created_at` is epoch milliseconds and never changes after creation.
    """

    id: str
    title: str
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str = ""
    due_date: str | None = None
    assignee: str | None = None
    tags: list[str] = field(default_factory=list)
    estimated_time: float | None = None
    blocked_by: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "dueDate": self.due_date,
            "assignee": self.assignee,
            "tags": list(self.tags),
            "estimatedTime": self.estimated_time,
            "blockedBy": list(self.blocked_by),
            "comments": [c.to_dict() for c in self.comments],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        est = data.get("estimatedTime")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            status=TaskStatus.from_wire(data.get("status")),
            priority=TaskPriority.from_wire(data.get("priority")),
            due_date=data.get("dueDate") or None,
            assignee=data.get("assignee") or None,
            tags=[str(t) for t in data.get("tags") or []],
            estimated_time=float(est) if est is not None else None,
            blocked_by=[str(b) for b in data.get("blockedBy") or []],
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            created_at=int(data.get("createdAt") or 0),
        )


TASK_FIELDS: frozenset[str] = frozenset(f.name for f in fields(Task))
IMMUTABLE_TASK_FIELDS: frozenset[str] = frozenset({"id", "created_at"})

_WIRE_KEYS: dict[str, str] = {
    "due_date": "dueDate",
    "estimated_time": "estimatedTime",
    "blocked_by": "blockedBy",
    "created_at": "createdAt",
}


def partial_to_wire(partial: dict[str, Any]) -> dict[str, Any]:
    """Convert a snake_case field patch into its camelCase wire form."""
    out: dict[str, Any] = {}
    for name, value in partial.items():
        if name == "comments":
            value = [c.to_dict() for c in value]
        elif name in ("tags", "blocked_by"):
            value = list(value)
        elif isinstance(value, StrEnum):
            value = value.value
        out[_WIRE_KEYS.get(name, name)] = value
    return out


def task_patch(task: Task, *, include_immutable: bool = False) -> dict[str, Any]:
    """All fields of `task` as a snake_case patch (the full-task update payload)."""
    return {
        f.name: getattr(task, f.name)
        for f in fields(Task)
        if include_immutable or f.name not in IMMUTABLE_TASK_FIELDS
    }


def copy_task(task: Task) -> Task:
    """
    Copy a task deep enough that list/dict edits on the copy never leak back.
    """
    return replace(
        task,
        tags=list(task.tags),
        blocked_by=list(task.blocked_by),
        comments=[
            replace(c, reactions={k: replace(r) for k, r in c.reactions.items()})
            for c in task.comments
        ],
    )


@dataclass(slots=True)
class AutomationRule:
    """
    "When status becomes <trigger_value>, do <action_type> with <action_value>".

    `action_type` keeps unknown strings verbatim so a rule written by a newer
    client survives a round-trip; the engine treats it as a no-op.
    """

    id: str
    name: str
    trigger_value: str
    action_type: str
    action_value: str
    is_active: bool = True
    trigger_type: str = TriggerType.STATUS_CHANGE.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "triggerType": self.trigger_type,
            "triggerValue": self.trigger_value,
            "actionType": self.action_type,
            "actionValue": self.action_value,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutomationRule:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            trigger_type=str(data.get("triggerType") or TriggerType.STATUS_CHANGE.value),
            trigger_value=str(data.get("triggerValue") or ""),
            action_type=str(data.get("actionType") or ""),
            action_value=str(data.get("actionValue") or ""),
            is_active=bool(data.get("isActive", True)),
        )


RULE_FIELDS: frozenset[str] = frozenset(f.name for f in fields(AutomationRule))
