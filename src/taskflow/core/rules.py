# src/taskflow/core/rules.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from .errors import NotFound, RemoteFailure
from .models import RULE_FIELDS, AutomationRule
from .pending import PendingWrites
from .ports import Notification, NotificationLevel, Notifier, RuleStore

logger = logging.getLogger(__name__)


class RuleBook:
    """
    Ordered automation rules, mirrored to the rule store.

    Registration order is evaluation order. Edits apply locally first; a
    rejected store write reloads the whole list from the store.
    """

    def __init__(
        self,
        store: RuleStore,
        notifier: Notifier,
        *,
        rules: list[AutomationRule] | None = None,
        writes: PendingWrites | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._rules: list[AutomationRule] = list(rules or [])
        self._writes = writes if writes is not None else PendingWrites()

    def rules(self) -> list[AutomationRule]:
        return list(self._rules)

    def get(self, rule_id: str) -> AutomationRule:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        raise NotFound("rule", rule_id)

    async def load(self) -> bool:
        try:
            rules = await self._store.list_rules()
        except Exception as exc:
            logger.warning(
                "Rule reload failed: %s", exc, exc_info=not isinstance(exc, RemoteFailure)
            )
            self._notifier.notify(
                Notification("Could not load automation rules", NotificationLevel.ERROR)
            )
            return False
        self._rules = list(rules)
        logger.info("Loaded %d automation rule(s)", len(self._rules))
        return True

    async def flush(self) -> None:
        await self._writes.flush()

    # ---- mutations ----

    def add(self, rule: AutomationRule) -> AutomationRule:
        self._rules.append(rule)
        self._notifier.notify(Notification("Automation rule created"))
        self._submit(f"create rule {rule.id}", lambda: self._store.create_rule(rule))
        return rule

    def update(self, rule_id: str, partial: dict[str, Any]) -> AutomationRule:
        bad = (set(partial) - RULE_FIELDS) | (set(partial) & {"id"})
        if bad:
            raise ValueError(f"Cannot update rule fields: {', '.join(sorted(bad))}")
        updated = replace(self.get(rule_id), **partial)
        self._put(updated)
        self._submit(f"update rule {rule_id}", lambda: self._store.update_rule(rule_id, updated))
        return updated

    def toggle(self, rule_id: str) -> AutomationRule:
        current = self.get(rule_id)
        return self.update(rule_id, {"is_active": not current.is_active})

    def delete(self, rule_id: str) -> AutomationRule:
        rule = self.get(rule_id)
        self._rules = [r for r in self._rules if r.id != rule_id]
        self._submit(f"delete rule {rule_id}", lambda: self._store.delete_rule(rule_id))
        return rule

    # ---- helpers ----

    def _put(self, rule: AutomationRule) -> None:
        self._rules = [rule if r.id == rule.id else r for r in self._rules]

    def _submit(self, what: str, call: Callable[[], Awaitable[Any]]) -> None:
        async def run() -> None:
            try:
                await call()
            except Exception as exc:
                logger.warning(
                    "%s failed: %s; reloading rules",
                    what,
                    exc,
                    exc_info=not isinstance(exc, RemoteFailure),
                )
                self._notifier.notify(
                    Notification(f"Sync failed: {what}", NotificationLevel.ERROR)
                )
                await self.load()

        self._writes.schedule(run(), name=what)
