# src/taskflow/storage/http_client.py

"""REST client for the board API (tasks + automation rules)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import RemoteFailure
from ..core.models import AutomationRule, Task, partial_to_wire

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080/api"


class HttpTaskRepository:
    """
    Task repository and rule store backed by the board's REST API.

    Endpoints (relative to base_url):
      GET    /tasks                 active tasks
      GET    /tasks/trash           trashed tasks
      POST   /tasks                 create
      PUT    /tasks/{id}            update (partial)
      DELETE /tasks/{id}            soft delete
      PUT    /tasks/{id}/restore    restore
      DELETE /tasks/{id}/permanent  permanent delete
      GET|POST /rules, PUT|DELETE /rules/{id}
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, what: str, body: Any = None) -> Any:
        """Send one request; every failure becomes a RemoteFailure with a readable message."""
        try:
            resp = await self._client.request(method, path, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s %s -> HTTP %s", method, path, exc.response.status_code)
            raise RemoteFailure(f"Failed to {what} (HTTP {exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteFailure(f"Failed to {what}: {exc}") from exc

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteFailure(f"Failed to {what}: invalid JSON response") from exc

    # ---- TaskRepository ----

    async def list(self) -> list[Task]:
        data = await self._request("GET", "/tasks", "fetch tasks")
        return [Task.from_dict(item) for item in data or []]

    async def list_trash(self) -> list[Task]:
        data = await self._request("GET", "/tasks/trash", "fetch trash")
        return [Task.from_dict(item) for item in data or []]

    async def create(self, partial: dict[str, Any]) -> Task:
        data = await self._request("POST", "/tasks", "create task", partial_to_wire(partial))
        return Task.from_dict(data)

    async def update(self, task_id: str, partial: dict[str, Any]) -> Task:
        data = await self._request(
            "PUT", f"/tasks/{task_id}", "update task", partial_to_wire(partial)
        )
        return Task.from_dict(data)

    async def soft_delete(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}", "delete task")

    async def restore(self, task_id: str) -> Task:
        data = await self._request("PUT", f"/tasks/{task_id}/restore", "restore task")
        return Task.from_dict(data)

    async def permanent_delete(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}/permanent", "permanently delete task")

    # ---- RuleStore ----

    async def list_rules(self) -> list[AutomationRule]:
        data = await self._request("GET", "/rules", "fetch rules")
        return [AutomationRule.from_dict(item) for item in data or []]

    async def create_rule(self, rule: AutomationRule) -> AutomationRule:
        data = await self._request("POST", "/rules", "create rule", rule.to_dict())
        return AutomationRule.from_dict(data)

    async def update_rule(self, rule_id: str, rule: AutomationRule) -> AutomationRule:
        data = await self._request("PUT", f"/rules/{rule_id}", "update rule", rule.to_dict())
        return AutomationRule.from_dict(data)

    async def delete_rule(self, rule_id: str) -> None:
        await self._request("DELETE", f"/rules/{rule_id}", "delete rule")
