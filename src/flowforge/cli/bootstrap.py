# src/flowforge/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM/task store/notifier),
- attaches the task state to the store's change stream.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.console_connector import ConsoleNotifier
from ..core.ports import LLMClient, Notifier
from ..core.state import AppState, TaskState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, notifier: Notifier | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client: LLMClient
    try:
        llm_client = OpenRouterLLMClient(settings)
    except RuntimeError as e:
        # Fallback for local runs without external services.
        logger.info("Using offline LLM client: %s", e)
        llm_client = OfflineLLMClient()

    notifier = notifier or ConsoleNotifier()
    store = TaskStore(settings.tasks_db_path)
    tasks = TaskState(store, notifier, settings.user_id)
    tasks.attach()

    return AppState(
        settings=settings,
        llm=llm_client,
        task_store=store,
        tasks=tasks,
        notifier=notifier,
    )
