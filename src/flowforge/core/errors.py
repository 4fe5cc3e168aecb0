# src/flowforge/core/errors.py

from __future__ import annotations


class FlowForgeError(Exception):
    """Base class for application errors."""


class PersistenceError(FlowForgeError):
    """The task store rejected a write; nothing from that write was committed."""


class TaskNotFoundError(FlowForgeError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id
