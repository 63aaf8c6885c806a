# src/taskflow/core/automation.py

from __future__ import annotations

"""
Automation rule engine.

Pure: (task, rules) -> (possibly amended task, fired rule ids). No I/O.

Rules are evaluated once, in stored order. Triggers only look at `status`,
and no action changes `status`, so a single pass is final; a later rule
simply overwrites what an earlier one set.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import (
    ActionType,
    AutomationRule,
    Comment,
    Task,
    TaskPriority,
    TaskStatus,
    TriggerType,
    copy_task,
    new_id,
    now_ms,
)

logger = logging.getLogger(__name__)

AUTOMATION_AUTHOR = "Automation"


@dataclass(slots=True, frozen=True)
class SetPriority:
    priority: TaskPriority

    def apply(self, task: Task) -> str:
        task.priority = self.priority
        return f"Automation: Set priority to {self.priority.value}"


@dataclass(slots=True, frozen=True)
class AssignUser:
    assignee: str

    def apply(self, task: Task) -> str:
        task.assignee = self.assignee
        return f"Automation: Assigned to {self.assignee}"


@dataclass(slots=True, frozen=True)
class AddComment:
    text: str

    def apply(self, task: Task) -> str:
        task.comments.append(
            Comment(id=new_id(), author=AUTOMATION_AUTHOR, text=self.text, created_at=now_ms())
        )
        return "Automation: Added comment"


@dataclass(slots=True, frozen=True)
class UnknownAction:
    """Defined no-op for action types (or values) the engine does not understand."""

    action_type: str
    action_value: str

    def apply(self, task: Task) -> str | None:
        return None


RuleAction = SetPriority | AssignUser | AddComment | UnknownAction


def parse_action(action_type: str, action_value: str) -> RuleAction:
    if action_type == ActionType.SET_PRIORITY:
        priority = TaskPriority.parse(action_value)
        if priority is None:
            return UnknownAction(action_type, action_value)
        return SetPriority(priority)
    if action_type == ActionType.ASSIGN_USER:
        return AssignUser(action_value)
    if action_type == ActionType.ADD_COMMENT:
        return AddComment(action_value)
    return UnknownAction(action_type, action_value)


@dataclass(slots=True)
class FiredRule:
    rule_id: str
    rule_name: str
    message: str | None  # None when the action was a no-op


@dataclass(slots=True)
class Evaluation:
    task: Task
    fired: list[FiredRule] = field(default_factory=list)

    @property
    def fired_ids(self) -> list[str]:
        return [f.rule_id for f in self.fired]


def rule_matches(rule: AutomationRule, status: TaskStatus) -> bool:
    if not rule.is_active:
        return False
    if rule.trigger_type != TriggerType.STATUS_CHANGE:
        return False
    return TaskStatus.parse(rule.trigger_value) == status


def evaluate(task: Task, rules: Iterable[AutomationRule]) -> Evaluation:
    """
    Apply every active rule whose trigger matches `task.status`.

    `task` must already carry the post-move status. The input task is not
    modified; the result is a copy.
    """
    result = Evaluation(task=copy_task(task))

    for rule in rules:
        if not rule_matches(rule, result.task.status):
            continue

        action = parse_action(rule.action_type, rule.action_value)
        message = action.apply(result.task)
        if isinstance(action, UnknownAction):
            logger.debug(
                "Rule %s has unsupported action %r=%r; ignored",
                rule.id,
                action.action_type,
                action.action_value,
            )
        result.fired.append(FiredRule(rule_id=rule.id, rule_name=rule.name, message=message))

    if result.fired:
        logger.debug("Task %s -> %s fired rules %s", task.id, task.status.value, result.fired_ids)
    return result
