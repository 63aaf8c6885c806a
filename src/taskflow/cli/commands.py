# src/taskflow/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime

from ..core.errors import NotFound
from ..core.models import ActionType, AutomationRule, Task, TaskPriority, TaskStatus, new_id
from ..core.state import AppState

CommandHandler = Callable[[AppState, list[str]], str | Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /move, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            reply = handler(state, args)
            if inspect.isawaitable(reply):
                reply = await reply
        except (NotFound, ValueError) as e:
            return f"Error: {e}"
        return reply

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting / parsing helpers ----


def _short(task_id: str) -> str:
    return task_id[:8]


def _fmt_task(task: Task) -> str:
    who = task.assignee or "unassigned"
    return f"{_short(task.id)} [{task.status.value}] {task.title} ({task.priority.value}, {who})"


def _fmt_list(title: str, tasks: Iterable[Task]) -> str:
    lines = [f"{title}:"]
    lines.extend(f"  {_fmt_task(t)}" for t in tasks)
    if len(lines) == 1:
        lines.append("  (empty)")
    return "\n".join(lines)


def _resolve(tasks: Iterable[Task], ref: str, kind: str) -> str:
    """Resolve a full id or a unique id prefix."""
    ids = [t.id for t in tasks]
    if ref in ids:
        return ref
    matches = [i for i in ids if i.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFound(kind, ref)
    raise ValueError(f"Ambiguous id prefix: {ref}")


def _active_id(state: AppState, ref: str) -> str:
    return _resolve(state.controller.active_tasks(), ref, "task")


def _trashed_id(state: AppState, ref: str) -> str:
    return _resolve(state.controller.trashed_tasks(), ref, "trashed task")


def _status(raw: str) -> TaskStatus:
    status = TaskStatus.parse(raw)
    if status is None:
        options = ", ".join(s.name.lower() for s in TaskStatus)
        raise ValueError(f"Unknown status: {raw} (use one of: {options})")
    return status


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise ValueError(f"Usage: {usage}")


# ---- board commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    tasks = state.controller.active_tasks()
    if args:
        status = _status(args[0])
        tasks = [t for t in tasks if t.status == status]
    return _fmt_list("Board", tasks)


def cmd_trash(state: AppState, args: list[str]) -> str:
    return _fmt_list("Recycle bin", state.controller.trashed_tasks())


def cmd_show(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/show <id>")
    task = state.controller.manager.get(_active_id(state, args[0]))
    lines = [
        _fmt_task(task),
        f"  id: {task.id}",
        f"  created: {datetime.fromtimestamp(task.created_at / 1000).strftime('%Y-%m-%d %H:%M')}",
    ]
    if task.description:
        lines.append(f"  description: {task.description}")
    if task.due_date:
        lines.append(f"  due: {task.due_date}")
    if task.tags:
        lines.append(f"  tags: {', '.join(task.tags)}")
    if task.estimated_time is not None:
        lines.append(f"  estimate: {task.estimated_time:g}h")
    if task.blocked_by:
        lines.append(f"  blocked by: {', '.join(_short(b) for b in task.blocked_by)}")
    for c in task.comments:
        reactions = " ".join(f"{e}{r.count}" for e, r in c.reactions.items())
        lines.append(f"  [{_short(c.id)}] {c.author}: {c.text} {reactions}".rstrip())
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title...>               -> quick add to To Do
    /add @<status> <title...>     -> quick add to a column
    """
    status = TaskStatus.TODO
    if args and args[0].startswith("@"):
        status = _status(args[0][1:])
        args = args[1:]
    assignee = getattr(state.settings, "default_assignee", "You") or None
    task = state.controller.quick_add(" ".join(args), status, assignee=assignee)
    return f"Added {_fmt_task(task)}"


def cmd_move(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/move <id> <status>")
    result = state.controller.move_status(_active_id(state, args[0]), _status(args[1]))
    fired = f" (rules fired: {len(result.fired)})" if result.fired else ""
    return f"Moved {_fmt_task(result.task)}{fired}"


_EDITABLE = ("title", "description", "status", "priority", "assignee", "due", "estimate", "tags")


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id> <field> <value...>
    Form-style edit: changing status here does NOT run automation rules.
    """
    _need(args, 3, f"/edit <id> <{'|'.join(_EDITABLE)}> <value...>")
    task_id = _active_id(state, args[0])
    field_name = args[1].lower()
    raw = " ".join(args[2:])

    if field_name in ("title", "description", "assignee"):
        patch = {field_name: raw}
    elif field_name == "status":
        patch = {"status": _status(raw)}
    elif field_name == "priority":
        priority = TaskPriority.parse(raw)
        if priority is None:
            raise ValueError(f"Unknown priority: {raw}")
        patch = {"priority": priority}
    elif field_name == "due":
        patch = {"due_date": raw}
    elif field_name == "estimate":
        patch = {"estimated_time": float(raw)}
    elif field_name == "tags":
        patch = {"tags": [t.strip() for t in raw.split(",") if t.strip()]}
    else:
        raise ValueError(f"Cannot edit field: {field_name}")

    task = state.controller.update(task_id, patch)
    return f"Updated {_fmt_task(task)}"


def cmd_assign(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/assign <id> <name...>")
    task_id = _active_id(state, args[0])
    state.controller.apply_assignments({task_id: " ".join(args[1:])})
    return f"Assigned {_fmt_task(state.controller.manager.get(task_id))}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/delete <id>")
    task = state.controller.soft_delete(_active_id(state, args[0]))
    return f"Moved to recycle bin: {_fmt_task(task)}"


def cmd_restore(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/restore <id>")
    task = state.controller.restore(_trashed_id(state, args[0]))
    return f"Restored {_fmt_task(task)}"


def cmd_purge(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/purge <id>")
    task = state.controller.permanent_delete(_trashed_id(state, args[0]))
    return f"Permanently deleted {_fmt_task(task)}"


async def cmd_empty_trash(state: AppState, args: list[str]) -> str:
    result = await state.controller.empty_trash()
    msg = f"Deleted {len(result.succeeded)} task(s) forever."
    if not result.ok:
        msg += f" {len(result.failed)} failed and stay in the recycle bin."
    return msg


async def cmd_clear_done(state: AppState, args: list[str]) -> str:
    result = await state.controller.clear_done()
    msg = f"Moved {len(result.succeeded)} completed task(s) to the recycle bin."
    if not result.ok:
        msg += f" {len(result.failed)} failed and stay on the board."
    return msg


def cmd_duplicate(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/dup <id>")
    task = state.controller.duplicate(_active_id(state, args[0]))
    return f"Duplicated as {_fmt_task(task)}"


def cmd_comment(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/comment <id> <text...>")
    comment = state.comments.add_comment(_active_id(state, args[0]), " ".join(args[1:]))
    return f"Comment {_short(comment.id)} added."


def cmd_react(state: AppState, args: list[str]) -> str:
    _need(args, 3, "/react <task-id> <comment-id> <emoji>")
    task_id = _active_id(state, args[0])
    task = state.controller.manager.get(task_id)
    comment_id = _resolve_comment(task, args[1])
    reaction = state.comments.add_reaction(task_id, comment_id, args[2])
    return f"{reaction.emoji} x{reaction.count}"


def _resolve_comment(task: Task, ref: str) -> str:
    matches = [c.id for c in task.comments if c.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFound("comment", ref)
    raise ValueError(f"Ambiguous comment id prefix: {ref}")


async def cmd_reload(state: AppState, args: list[str]) -> str:
    await state.controller.flush()
    ok = await state.controller.load()
    return "Board reloaded." if ok else "Reload failed; showing local state."


# ---- automation rules ----


def cmd_rules(state: AppState, args: list[str]) -> str:
    rules = state.controller.rules.rules()
    if not rules:
        return "No automation rules."
    lines = ["Automation rules (evaluated in this order):"]
    for r in rules:
        flag = "on " if r.is_active else "off"
        lines.append(
            f"  {_short(r.id)} [{flag}] {r.name}: when {r.trigger_value} -> "
            f"{r.action_type} {r.action_value}"
        )
    return "\n".join(lines)


def cmd_rule_add(state: AppState, args: list[str]) -> str:
    """/rule-add <status> <set_priority|assign_user|add_comment> <value...>"""
    _need(args, 3, "/rule-add <status> <set_priority|assign_user|add_comment> <value...>")
    status = _status(args[0])
    action = args[1].upper()
    if action not in ActionType.__members__:
        raise ValueError(f"Unknown action: {args[1]}")
    value = " ".join(args[2:])
    rule = AutomationRule(
        id=new_id(),
        name=f"When {status.value}: {action.lower()} {value}",
        trigger_value=status.value,
        action_type=ActionType[action].value,
        action_value=value,
    )
    state.controller.rules.add(rule)
    return f"Rule {_short(rule.id)} added."


def _rule_id(state: AppState, ref: str) -> str:
    ids = [r.id for r in state.controller.rules.rules()]
    matches = [i for i in ids if i.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFound("rule", ref)
    raise ValueError(f"Ambiguous rule id prefix: {ref}")


def cmd_rule_toggle(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/rule-toggle <id>")
    rule = state.controller.rules.toggle(_rule_id(state, args[0]))
    return f"Rule {_short(rule.id)} is now {'active' if rule.is_active else 'inactive'}."


def cmd_rule_delete(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/rule-delete <id>")
    rule = state.controller.rules.delete(_rule_id(state, args[0]))
    return f"Rule {_short(rule.id)} deleted."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show the board: /list [status].", aliases=["ls"])
registry.register("trash", cmd_trash, help_text="Show the recycle bin.")
registry.register("show", cmd_show, help_text="Task details and comments: /show <id>.")
registry.register("add", cmd_add, help_text="Quick add: /add [@status] <title>.", aliases=["n"])
registry.register("move", cmd_move, help_text="Move a task (runs automation): /move <id> <status>.")
registry.register("edit", cmd_edit, help_text="Edit a field (no automation): /edit <id> <field> <value>.")
registry.register("assign", cmd_assign, help_text="Assign a task: /assign <id> <name>.")
registry.register("delete", cmd_delete, help_text="Move a task to the recycle bin: /delete <id>.")
registry.register("restore", cmd_restore, help_text="Restore from the recycle bin: /restore <id>.")
registry.register("purge", cmd_purge, help_text="Delete a trashed task forever: /purge <id>.")
registry.register("empty-trash", cmd_empty_trash, help_text="Delete every trashed task forever.")
registry.register("clear-done", cmd_clear_done, help_text="Move every Done task to the recycle bin.")
registry.register("dup", cmd_duplicate, help_text="Duplicate a task: /dup <id>.")
registry.register("comment", cmd_comment, help_text="Comment on a task: /comment <id> <text>.")
registry.register("react", cmd_react, help_text="React to a comment: /react <id> <comment-id> <emoji>.")
registry.register("reload", cmd_reload, help_text="Re-fetch the board from the store.")
registry.register("rules", cmd_rules, help_text="List automation rules.")
registry.register("rule-add", cmd_rule_add, help_text="Add a rule: /rule-add <status> <action> <value>.")
registry.register("rule-toggle", cmd_rule_toggle, help_text="Enable/disable a rule: /rule-toggle <id>.")
registry.register("rule-delete", cmd_rule_delete, help_text="Delete a rule: /rule-delete <id>.")
