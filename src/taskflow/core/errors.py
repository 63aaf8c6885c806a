# src/taskflow/core/errors.py

from __future__ import annotations


class TaskflowError(Exception):
    """Base class for board engine errors."""


class NotFound(TaskflowError, LookupError):
    """An operation referenced an id that is absent from the expected collection."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class RemoteFailure(TaskflowError):
    """
    A repository or rule store call was rejected.

    Carries only a human-readable message; there is no structured error code.
    """
