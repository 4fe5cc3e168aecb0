# tests/test_bootstrap.py

from __future__ import annotations

from flowforge.cli.bootstrap import create_initial_state
from flowforge.llm.offline import OfflineLLMClient

from .fakes import FakeNotifier


def test_bootstrap_falls_back_to_offline_llm(settings) -> None:
    settings.openrouter_api_key = None
    settings.openrouter_base_url = "https://openrouter.ai/api/v1"

    state = create_initial_state(settings=settings, notifier=FakeNotifier())
    try:
        assert isinstance(state.llm, OfflineLLMClient)
        assert state.user_id == "u1"
        assert state.tasks.all_tasks() == []
        assert settings.tasks_db_path.exists()
    finally:
        state.tasks.detach()
        state.task_store.close()
