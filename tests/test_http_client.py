# tests/test_http_client.py

from __future__ import annotations

import json

import httpx
import pytest

from taskflow.core.errors import RemoteFailure
from taskflow.core.models import TaskPriority, TaskStatus
from taskflow.storage.http_client import HttpTaskRepository

from .fakes import make_rule, make_task


def _repo(handler) -> HttpTaskRepository:
    return HttpTaskRepository(
        "http://board.test/api", transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_list_parses_camel_case_payload() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(f"{request.method} {request.url.path}")
        return httpx.Response(
            200,
            json=[
                {
                    "id": "1",
                    "title": "Ship",
                    "status": "In Progress",
                    "priority": "High",
                    "dueDate": "2024-05-01",
                    "blockedBy": ["2"],
                    "estimatedTime": 1.5,
                    "createdAt": 1700000000000,
                }
            ],
        )

    repo = _repo(handler)
    [task] = await repo.list()
    await repo.aclose()

    assert seen == ["GET /api/tasks"]
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.priority == TaskPriority.HIGH
    assert task.due_date == "2024-05-01"
    assert task.blocked_by == ["2"]
    assert task.estimated_time == 1.5


@pytest.mark.asyncio
async def test_update_sends_wire_keys() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        task = make_task("1", status=TaskStatus.DONE, due_date="2024-01-01")
        return httpx.Response(200, json=task.to_dict())

    repo = _repo(handler)
    task = await repo.update("1", {"status": TaskStatus.DONE, "due_date": "2024-01-01"})
    await repo.aclose()

    assert bodies == [{"status": "Done", "dueDate": "2024-01-01"}]
    assert task.status == TaskStatus.DONE


@pytest.mark.asyncio
async def test_trash_endpoints() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(f"{request.method} {request.url.path}")
        if request.url.path.endswith("/restore"):
            return httpx.Response(200, json=make_task("1").to_dict())
        return httpx.Response(204)

    repo = _repo(handler)
    await repo.soft_delete("1")
    await repo.restore("1")
    await repo.permanent_delete("1")
    await repo.aclose()

    assert seen == [
        "DELETE /api/tasks/1",
        "PUT /api/tasks/1/restore",
        "DELETE /api/tasks/1/permanent",
    ]


@pytest.mark.asyncio
async def test_rule_round_trip() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=json.loads(request.content))

    repo = _repo(handler)
    rule = make_rule("r1", "Done", "SET_PRIORITY", "Low")
    created = await repo.create_rule(rule)
    await repo.aclose()

    assert created == rule


@pytest.mark.asyncio
async def test_http_error_becomes_remote_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    repo = _repo(handler)
    with pytest.raises(RemoteFailure, match="HTTP 500"):
        await repo.update("1", {"title": "x"})
    await repo.aclose()


@pytest.mark.asyncio
async def test_transport_error_becomes_remote_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    repo = _repo(handler)
    with pytest.raises(RemoteFailure):
        await repo.list()
    await repo.aclose()
