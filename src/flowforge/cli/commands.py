# src/flowforge/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import cast

from ..core.errors import TaskNotFoundError
from ..core.state import AppState
from ..flows.planning import breakdown_task, plan_tasks, summarize_task
from ..tasks import task_api
from ..tasks.task_models import Direction, Task, order_sort_key

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _today() -> str:
    return date.today().isoformat()


def _parse_day(raw: str) -> str | None:
    """'today' | 'unscheduled' | YYYY-MM-DD -> partition key (None for Unscheduled)."""
    low = raw.strip().lower()
    if low == "today":
        return _today()
    if low in ("unscheduled", "none", "-"):
        return None
    return date.fromisoformat(low).isoformat()


def resolve_task_id(state: AppState, raw: str) -> str:
    """Full id from an id or a unique id prefix (as shown by /list)."""
    raw = raw.strip()
    matches = [t.id for t in state.tasks.all_tasks() if t.id.startswith(raw)]
    if raw in matches:
        return raw
    if len(matches) != 1:
        raise TaskNotFoundError(raw)
    return matches[0]


def _format_task(task: Task, position: int, indent: str = "  ") -> list[str]:
    mark = "x" if task.completed else " "
    lines = [f"{indent}{position}. [{mark}] {task.title}  ({task.id[:SHORT_ID]})"]
    for i, sub in enumerate(sorted(task.subtasks, key=order_sort_key), start=1):
        lines.extend(_format_task(sub, i, indent + "    "))
    return lines


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    return (
        "Status:\n"
        f"  User: {state.user_id}\n"
        f"  Tasks: {len(state.tasks.all_tasks())}\n"
        f"  Pending writes: {state.tasks.pending_count}\n"
        f"  Order gap: {state.order_gap:g}\n"
        f"  Models (priority -> fallback): {models}"
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list              -> today's tasks
    /list all          -> every day
    /list <day>        -> one day (YYYY-MM-DD | today | unscheduled)
    """
    if args and args[0].lower() == "all":
        days = sorted({t.scheduled_date for t in state.tasks.snapshot()}, key=lambda d: (d is not None, d or ""))
    else:
        try:
            days = [_parse_day(args[0]) if args else _today()]
        except ValueError:
            return "Usage: /list [all | today | unscheduled | YYYY-MM-DD]"

    lines: list[str] = []
    for day in days:
        tasks = task_api.tasks_for_date(state, day)
        lines.append(f"{day or 'Unscheduled'}:")
        if not tasks:
            lines.append("  (no tasks)")
        for i, t in enumerate(tasks, start=1):
            lines.extend(_format_task(t, i))
    return "\n".join(lines) if lines else "No tasks yet."


async def cmd_add(state: AppState, args: list[str]) -> str:
    """/add [@YYYY-MM-DD|@today] title..."""
    scheduled: str | None = None
    if args and args[0].startswith("@"):
        try:
            scheduled = _parse_day(args[0][1:])
        except ValueError:
            return "Invalid date. Use @YYYY-MM-DD or @today."
        args = args[1:]

    title = " ".join(args).strip()
    if not title:
        return "Usage: /add [@YYYY-MM-DD] title"

    ids = await task_api.add_tasks(state, [{"title": title}], scheduled_date=scheduled)
    return f"Added {ids[0][:SHORT_ID]}." if ids else "Nothing added."


async def cmd_sub(state: AppState, args: list[str]) -> str:
    """/sub parent_id title..."""
    if len(args) < 2:
        return "Usage: /sub parent_id title"
    parent_id = resolve_task_id(state, args[0])
    ids = await task_api.add_subtasks(state, parent_id, [{"title": " ".join(args[1:])}])
    return f"Added subtask {ids[0][:SHORT_ID]}." if ids else "Nothing added."


async def _move(state: AppState, args: list[str], direction: Direction) -> str:
    if not args:
        return f"Usage: /{direction.value} task_id"
    task_id = resolve_task_id(state, args[0])
    moved = await task_api.move_task(state, task_id, direction)
    if not moved:
        return "Task did not move."
    position = task_api.visible_position(state, task_id)
    return f"Moved {direction.value} to position {position + 1}." if position is not None else "Moved."


async def cmd_up(state: AppState, args: list[str]) -> str:
    return await _move(state, args, Direction.UP)


async def cmd_down(state: AppState, args: list[str]) -> str:
    return await _move(state, args, Direction.DOWN)


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done task_id"
    ok = await task_api.toggle_task(state, resolve_task_id(state, args[0]))
    return "Saved." if ok else "Not saved."


async def cmd_del(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del task_id"
    ok = await task_api.delete_task(state, resolve_task_id(state, args[0]))
    return "Deleted." if ok else "Not deleted."


async def cmd_template(state: AppState, args: list[str]) -> str:
    """
    /template <day>                 -> every other day follows <day>
    /template <day> <start> <end>   -> only days in [start, end]
    """
    if len(args) not in (1, 3):
        return "Usage: /template YYYY-MM-DD [start end]"
    try:
        template = _parse_day(args[0])
        start, end = (_parse_day(args[1]), _parse_day(args[2])) if len(args) == 3 else (None, None)
    except ValueError:
        return "Dates must be YYYY-MM-DD (or today)."
    if template is None:
        return "The template must be a scheduled day."

    n = await task_api.propagate_template_order(state, template, start, end)
    return f"Re-ordered {n} task(s)."


async def cmd_plan(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    goal = " ".join(args).strip()
    if not goal:
        return "Usage: /plan what you want to get done"
    if emit:
        emit("[AI] Planning...")
    items = plan_tasks(state.llm, goal)
    if not items:
        return "The AI did not suggest any tasks."
    ids = await task_api.add_tasks(state, items, scheduled_date=_today())
    return "\n".join(["Planned:", *[f"  - {i['title']}" for i in items[: len(ids)]]])


async def cmd_breakdown(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /breakdown task_id"
    task_id = resolve_task_id(state, args[0])
    task = state.tasks.find(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    if emit:
        emit(f"[AI] Breaking down \"{task.title}\"...")
    titles = breakdown_task(state.llm, task.title)
    if not titles:
        return "The AI did not suggest any subtasks."
    ids = await task_api.add_subtasks(state, task_id, [{"title": t} for t in titles])
    return f"Added {len(ids)} subtask(s)."


async def cmd_describe(state: AppState, args: list[str]) -> str:
    """/describe task_id text...  (empty text clears the description)"""
    if not args:
        return "Usage: /describe task_id text"
    task_id = resolve_task_id(state, args[0])
    ok = await task_api.update_task(state, task_id, description=" ".join(args[1:]).strip())
    return "Saved." if ok else "Not saved."


async def cmd_summarize(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /summarize task_id"
    task_id = resolve_task_id(state, args[0])
    task = state.tasks.find(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    if not task.description.strip():
        return "This task has no description to summarize."
    if emit:
        emit(f"[AI] Summarizing \"{task.title}\"...")
    summary = summarize_task(state.llm, task.description)
    return summary or "Failed to summarize the task. Please try again."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, task count and models.")
registry.register("list", cmd_list, help_text="List tasks: /list [all | today | unscheduled | YYYY-MM-DD].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add [@YYYY-MM-DD] title.")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub parent_id title.")
registry.register("up", cmd_up, help_text="Move a task up: /up task_id.")
registry.register("down", cmd_down, help_text="Move a task down: /down task_id.")
registry.register("done", cmd_done, help_text="Toggle completion: /done task_id.")
registry.register("del", cmd_del, help_text="Delete a task and its subtasks: /del task_id.")
registry.register(
    "template",
    cmd_template,
    help_text="Copy a day's order to other days: /template YYYY-MM-DD [start end].",
)
registry.register("plan", cmd_plan, help_text="Let the AI plan tasks for today: /plan goal.")
registry.register("breakdown", cmd_breakdown, help_text="Let the AI add subtasks: /breakdown task_id.")
registry.register("describe", cmd_describe, help_text="Set a task description: /describe task_id text.")
registry.register("summarize", cmd_summarize, help_text="Let the AI summarize a task description: /summarize task_id.")
