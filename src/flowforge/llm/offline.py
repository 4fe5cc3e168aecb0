# src/flowforge/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Behavior:
    - planner prompts -> one task echoing the goal
    - breakdown prompts -> a fixed three-step breakdown
    - summary prompts -> the first words of the description
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()

        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        if "break the given task" in sp:
            yield json.dumps({"subtasks": ["Outline the steps", "Do the work", "Review the result"]})
            return

        if "summarize task descriptions" in sp:
            words = user_text.split()
            summary = " ".join(words[:25]) + (" ..." if len(words) > 25 else "")
            yield json.dumps({"summary": summary}, ensure_ascii=False)
            return

        if "task planning assistant" in sp:
            yield json.dumps(
                {
                    "tasks": [
                        {
                            "title": user_text.strip()[:80] or "New task",
                            "description": "Added in offline mode (no AI configured).",
                        }
                    ]
                },
                ensure_ascii=False,
            )
            return

        yield "Offline mode: no external LLM is configured."
