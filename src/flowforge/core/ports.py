# src/flowforge/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the task store, the notification surface and the LLM provider swappable
and makes testing easier.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Awaitable, Protocol

from ..tasks.task_models import Task

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

FieldUpdate = tuple[str, Mapping[str, Any]]
# (task_id, partial fields), e.g. ("t1", {"order": 1500.0}).

SnapshotCallback = Callable[[list[Task]], None]


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class Notifier(Protocol):
    """
    User-visible toast surface.

    variant is "default" or "destructive" (failure).
    """

    def notify(self, title: str, description: str = "", *, variant: str = "default") -> None: ...


class TaskRepo(Protocol):
    # Read side / change stream
    def list_tasks_for_user(self, user_id: str) -> list[Task]: ...
    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Callable[[], None]: ...

    # Write side: atomic, raise PersistenceError on rejection
    def update_task_fields(self, task_id: str, fields: Mapping[str, Any]) -> Awaitable[None]: ...
    def batch_update(self, updates: Sequence[FieldUpdate]) -> Awaitable[None]: ...

    # Creation / removal
    def add_tasks(self, user_id: str, items: Sequence[Mapping[str, Any]]) -> Awaitable[list[str]]: ...
    def delete_task(self, task_id: str) -> Awaitable[None]: ...
