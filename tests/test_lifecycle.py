# tests/test_lifecycle.py

from __future__ import annotations

import copy

import pytest

from taskflow.core.errors import NotFound
from taskflow.core.lifecycle import BoardState, LifecycleManager
from taskflow.core.models import Comment, TaskPriority, TaskStatus

from .fakes import make_rule, make_task


def _manager_with(*tasks) -> LifecycleManager:
    return LifecycleManager(BoardState(active={t.id: t for t in tasks}))


def test_create_applies_defaults(manager: LifecycleManager) -> None:
    task = manager.create({"title": "Write docs"})

    assert task.status == TaskStatus.TODO
    assert task.priority == TaskPriority.MEDIUM
    assert task.tags == [] and task.comments == [] and task.blocked_by == []
    assert task.created_at > 0
    assert task.id
    assert manager.active_tasks() == [task]


def test_create_keeps_proposed_id_and_given_fields(manager: LifecycleManager) -> None:
    task = manager.create(
        {"id": "local-1", "title": "x", "priority": TaskPriority.HIGH, "tags": ["a"]}
    )

    assert task.id == "local-1"
    assert task.priority == TaskPriority.HIGH
    assert task.tags == ["a"]


def test_update_is_shallow_overwrite_and_replaces_lists() -> None:
    manager = _manager_with(make_task("1", tags=["a", "b"]))

    task = manager.update("1", {"tags": ["c"], "assignee": "Sam"})

    assert task.tags == ["c"]
    assert task.assignee == "Sam"
    assert manager.get("1") is task


def test_update_rejects_missing_id_and_immutable_fields() -> None:
    manager = _manager_with(make_task("1"))

    with pytest.raises(NotFound):
        manager.update("nope", {"title": "x"})
    with pytest.raises(ValueError):
        manager.update("1", {"created_at": 5})
    with pytest.raises(ValueError):
        manager.update("1", {"colour": "red"})


def test_update_status_never_runs_rules() -> None:
    manager = _manager_with(make_task("1", priority=TaskPriority.HIGH))

    task = manager.update("1", {"status": TaskStatus.DONE})

    # update takes no rules at all; the priority is untouched
    assert task.status == TaskStatus.DONE
    assert task.priority == TaskPriority.HIGH


def test_move_status_runs_rules_before_commit() -> None:
    manager = _manager_with(make_task("1"))
    rule = make_rule("r1", "Done", "SET_PRIORITY", "Low")

    result = manager.move_status("1", TaskStatus.DONE, [rule])

    assert result.task.status == TaskStatus.DONE
    assert result.task.priority == TaskPriority.LOW
    assert manager.get("1") == result.task


def test_move_status_ignores_blocked_by() -> None:
    manager = _manager_with(make_task("1"), make_task("2", blocked_by=["1"]))

    result = manager.move_status("2", TaskStatus.DONE, [])

    assert result.task.status == TaskStatus.DONE


def test_soft_delete_then_restore_round_trips() -> None:
    original = make_task(
        "1",
        assignee="Sam",
        tags=["x"],
        estimated_time=3.5,
        comments=[Comment(id="c1", author="Sam", text="hi", created_at=1)],
    )
    snapshot = copy.deepcopy(original)
    manager = _manager_with(original)

    manager.soft_delete("1")
    assert manager.active_tasks() == []
    assert [t.id for t in manager.trashed_tasks()] == ["1"]

    restored = manager.restore("1")
    assert restored == snapshot
    assert manager.trashed_tasks() == []


def test_trash_lists_most_recent_first() -> None:
    manager = _manager_with(make_task("1"), make_task("2"))

    manager.soft_delete("1")
    manager.soft_delete("2")

    assert [t.id for t in manager.trashed_tasks()] == ["2", "1"]


def test_permanent_delete_is_unrecoverable() -> None:
    manager = _manager_with(make_task("1"))
    manager.soft_delete("1")

    manager.permanent_delete("1")

    with pytest.raises(NotFound):
        manager.restore("1")
    with pytest.raises(NotFound):
        manager.permanent_delete("1")


def test_operations_check_the_right_collection() -> None:
    manager = _manager_with(make_task("1"))

    with pytest.raises(NotFound):
        manager.restore("1")  # active, not trashed
    with pytest.raises(NotFound):
        manager.permanent_delete("1")
    manager.soft_delete("1")
    with pytest.raises(NotFound):
        manager.soft_delete("1")


def test_empty_trash_and_clear_done() -> None:
    manager = _manager_with(
        make_task("1", status=TaskStatus.DONE),
        make_task("2"),
        make_task("3", status=TaskStatus.DONE),
    )

    cleared = manager.clear_done()
    assert [t.id for t in cleared] == ["1", "3"]
    assert [t.id for t in manager.active_tasks()] == ["2"]

    removed = manager.empty_trash()
    assert sorted(removed) == ["1", "3"]
    assert manager.trashed_tasks() == []


def test_duplicate_copies_everything_but_id_title_created_and_comments() -> None:
    source = make_task(
        "1",
        title="Ship",
        status=TaskStatus.REVIEW,
        priority=TaskPriority.HIGH,
        assignee="Alex",
        tags=["a"],
        blocked_by=["9"],
        estimated_time=2.0,
        due_date="2024-05-01",
        comments=[Comment(id="c1", author="Sam", text="hi", created_at=1)],
    )
    manager = _manager_with(source)

    clone = manager.duplicate("1")

    assert clone.id != "1"
    assert clone.title == "Ship (Copy)"
    assert clone.comments == []
    assert clone.created_at > source.created_at
    for name in ("status", "priority", "assignee", "tags", "blocked_by", "estimated_time", "due_date"):
        assert getattr(clone, name) == getattr(source, name)
    clone.tags.append("b")
    assert source.tags == ["a"]
    assert len(manager.active_tasks()) == 2


def test_replace_all_keeps_ids_out_of_both_collections() -> None:
    manager = _manager_with(make_task("old"))

    manager.replace_all([make_task("1"), make_task("2")], [make_task("2")])

    assert [t.id for t in manager.active_tasks()] == ["1"]
    assert [t.id for t in manager.trashed_tasks()] == ["2"]


def test_adopt_swaps_provisional_task_in_place() -> None:
    manager = _manager_with(make_task("a"), make_task("tmp"), make_task("b"))

    assert manager.adopt("tmp", make_task("srv-1"))
    assert [t.id for t in manager.active_tasks()] == ["a", "srv-1", "b"]
    assert not manager.adopt("gone", make_task("srv-2"))


def test_create_and_update_accept_wire_spellings(manager: LifecycleManager) -> None:
    task = manager.create({"id": "1", "title": "x", "status": "Done", "priority": "high"})

    assert task.status is TaskStatus.DONE
    assert task.priority is TaskPriority.HIGH

    updated = manager.update("1", {"priority": "Low", "status": "In Progress"})
    assert updated.priority is TaskPriority.LOW
    assert updated.status is TaskStatus.IN_PROGRESS


def test_invalid_status_or_priority_leaves_board_untouched(manager: LifecycleManager) -> None:
    with pytest.raises(ValueError):
        manager.create({"id": "1", "title": "x", "priority": "Urgent"})
    with pytest.raises(ValueError):
        manager.create({"id": "1", "title": "x", "status": 3})
    assert manager.active_tasks() == []

    manager.create({"id": "1", "title": "x"})
    with pytest.raises(ValueError):
        manager.update("1", {"status": "Blocked"})
    assert manager.get("1").status is TaskStatus.TODO


def test_get_trashed_only_sees_the_trash() -> None:
    manager = _manager_with(make_task("1"))

    with pytest.raises(NotFound):
        manager.get_trashed("1")
    manager.soft_delete("1")
    assert manager.get_trashed("1").id == "1"


def test_clear_done_appends_batch_in_board_order() -> None:
    manager = _manager_with(
        make_task("0"),
        make_task("1", status=TaskStatus.DONE),
        make_task("2"),
        make_task("3", status=TaskStatus.DONE),
    )
    manager.soft_delete("0")

    manager.clear_done()

    assert [t.id for t in manager.trashed_tasks()] == ["0", "1", "3"]
