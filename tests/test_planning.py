# tests/test_planning.py

from __future__ import annotations

from flowforge.flows.planning import (
    BREAKDOWN_SYSTEM_PROMPT,
    PLANNER_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    breakdown_task,
    plan_tasks,
    summarize_task,
)
from flowforge.llm.offline import OfflineLLMClient

from .fakes import FakeLLMClient


def test_plan_tasks_parses_fenced_json() -> None:
    llm = FakeLLMClient(
        'Sure!\n```json\n{"tasks": [{"title": "Buy  milk", "description": "2L"}, "Call mom", 7, {"title": ""}]}\n```'
    )

    items = plan_tasks(llm, "groceries and family")

    assert items == [
        {"title": "Buy milk", "description": "2L"},
        {"title": "Call mom", "description": ""},
    ]
    messages, system_prompt = llm.calls[0]
    assert system_prompt == PLANNER_SYSTEM_PROMPT
    assert messages == [{"role": "user", "content": "groceries and family"}]


def test_plan_tasks_empty_goal_skips_llm() -> None:
    llm = FakeLLMClient('{"tasks": ["x"]}')
    assert plan_tasks(llm, "   ") == []
    assert llm.calls == []


def test_breakdown_dedups_and_skips_main_title() -> None:
    llm = FakeLLMClient('{"subtasks": ["Write report", "Outline", "outline", {"title": "Proofread"}, null]}')

    assert breakdown_task(llm, "Write report") == ["Outline", "Proofread"]
    assert llm.calls[0][1] == BREAKDOWN_SYSTEM_PROMPT


def test_summarize_task_reads_summary_field() -> None:
    llm = FakeLLMClient('Here you go: {"summary": "Call the vendor,\\n  then   sign the contract."}')

    assert summarize_task(llm, "Long notes about the vendor call and the contract.") == (
        "Call the vendor, then sign the contract."
    )
    messages, system_prompt = llm.calls[0]
    assert system_prompt == SUMMARY_SYSTEM_PROMPT
    assert messages == [{"role": "user", "content": "Long notes about the vendor call and the contract."}]


def test_summarize_task_without_description_skips_llm() -> None:
    llm = FakeLLMClient('{"summary": "x"}')
    assert summarize_task(llm, "  ") == ""
    assert llm.calls == []


def test_flows_return_empty_on_garbage_or_errors() -> None:
    assert plan_tasks(FakeLLMClient("no json here"), "goal") == []
    assert plan_tasks(FakeLLMClient('{"tasks": "oops"}'), "goal") == []
    assert breakdown_task(FakeLLMClient("[1, 2]"), "task") == []
    assert breakdown_task(FakeLLMClient(error=RuntimeError("All LLM models failed.")), "task") == []
    assert summarize_task(FakeLLMClient("not json"), "notes") == ""
    assert summarize_task(FakeLLMClient(error=RuntimeError("All LLM models failed.")), "notes") == ""


def test_offline_client_supports_every_flow() -> None:
    llm = OfflineLLMClient()

    assert plan_tasks(llm, "Clean the garage") == [
        {"title": "Clean the garage", "description": "Added in offline mode (no AI configured)."}
    ]
    assert breakdown_task(llm, "Clean the garage") == ["Outline the steps", "Do the work", "Review the result"]
    assert summarize_task(llm, "Sort tools, sell the old bike.") == "Sort tools, sell the old bike."
