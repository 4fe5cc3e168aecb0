# src/flowforge/flows/planning.py

"""
AI flows that turn free text into tasks (and summarize them).

- plan_tasks: a goal in natural language -> tasks to add
- breakdown_task: one task title -> subtask titles
- summarize_task: a task description -> its key points and action items

The model is asked for JSON; the outer object is extracted leniently. Any LLM or
parse failure yields an empty result (logged), never an exception.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..core.ports import LLMClient

logger = logging.getLogger(__name__)

MAX_ITEMS = 12
MAX_TITLE_CHARS = 120
MAX_SUMMARY_CHARS = 1000

PLANNER_SYSTEM_PROMPT = """
You are a task planning assistant.
Turn the user's goal into a short list of concrete, actionable tasks.

Reply with JSON only, in this shape:
{"tasks": [{"title": "...", "description": "..."}]}
""".strip()

BREAKDOWN_SYSTEM_PROMPT = """
You are a project manager. Break the given task into smaller, actionable subtasks.
Do not repeat the main task in the subtask list.

Reply with JSON only, in this shape:
{"subtasks": ["...", "..."]}
""".strip()

SUMMARY_SYSTEM_PROMPT = """
You summarize task descriptions.
Focus on the key talking points and action items. Keep it to a few sentences.

Reply with JSON only, in this shape:
{"summary": "..."}
""".strip()


def _extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _clip(text: Any) -> str:
    s = " ".join(str(text or "").split())
    if len(s) > MAX_TITLE_CHARS:
        s = s[:MAX_TITLE_CHARS].rstrip() + "…"
    return s


def _ask_json(llm: LLMClient, user_message: str, system_prompt: str, flow: str) -> dict[str, Any] | None:
    raw = ""
    try:
        for piece in llm.stream_chat([{"role": "user", "content": user_message}], system_prompt):
            raw += piece
    except Exception:
        logger.exception("%s: LLM call failed.", flow)
        return None

    raw = raw.strip()
    if not raw:
        return None

    try:
        data = json.loads(_extract_json_object(raw))
    except json.JSONDecodeError:
        logger.warning("%s: JSON parse failed. Raw=%r", flow, raw[:2000])
        return None

    return data if isinstance(data, dict) else None


def plan_tasks(llm: LLMClient, goal: str) -> list[dict[str, str]]:
    """Tasks ({"title", "description"}) proposed for a goal."""
    goal = (goal or "").strip()
    if not goal:
        return []

    data = _ask_json(llm, goal, PLANNER_SYSTEM_PROMPT, "plan_tasks")
    if data is None:
        return []

    items = data.get("tasks")
    if not isinstance(items, list):
        return []

    out: list[dict[str, str]] = []
    for item in items:
        if isinstance(item, str):
            title, description = _clip(item), ""
        elif isinstance(item, dict):
            title, description = _clip(item.get("title")), str(item.get("description") or "").strip()
        else:
            continue
        if title:
            out.append({"title": title, "description": description})
    return out[:MAX_ITEMS]


def breakdown_task(llm: LLMClient, title: str) -> list[str]:
    """Subtask titles for one task; the task's own title is never repeated."""
    title = (title or "").strip()
    if not title:
        return []

    data = _ask_json(llm, f"Task to break down: {title}", BREAKDOWN_SYSTEM_PROMPT, "breakdown_task")
    if data is None:
        return []

    items = data.get("subtasks")
    if not isinstance(items, list):
        return []

    out: list[str] = []
    seen = {title.casefold()}
    for item in items:
        if isinstance(item, dict):
            item = item.get("title")
        sub = _clip(item)
        if sub and sub.casefold() not in seen:
            seen.add(sub.casefold())
            out.append(sub)
    return out[:MAX_ITEMS]


def summarize_task(llm: LLMClient, description: str) -> str:
    """Short summary of a task description ("" when there is nothing to summarize)."""
    description = (description or "").strip()
    if not description:
        return ""

    data = _ask_json(llm, description, SUMMARY_SYSTEM_PROMPT, "summarize_task")
    if data is None:
        return ""

    summary = " ".join(str(data.get("summary") or "").split())
    return summary[:MAX_SUMMARY_CHARS]
