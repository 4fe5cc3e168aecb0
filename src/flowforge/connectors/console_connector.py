# src/flowforge/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import FlowForgeError, TaskNotFoundError
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """Prints toasts; failures are marked so they stand out."""

    def notify(self, title: str, description: str = "", *, variant: str = "default") -> None:
        prefix = "[!]" if variant == "destructive" else "[*]"
        text = f"{prefix} {title}"
        if description:
            text += f" - {description}"
        _print_ts(text)


async def run_console_loop(state: AppState) -> None:
    """
    Interactive slash-command loop.

    input() runs in a worker thread so change-stream callbacks and in-flight writes are
    not blocked while waiting for the user.
    """
    logger.info("Console connector started (user=%s).", state.user_id)
    _print_ts("[CONSOLE] Type /help for commands, /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            user_input = "/add " + user_input

        try:
            reply = await command_registry.handle(state, user_input, emit=_print_ts)
        except TaskNotFoundError as e:
            reply = f"No such task: {e.task_id}"
        except RuntimeError as e:
            msg = friendly_llm_error_message(e)
            logger.info("LLM runtime error: %s", msg)
            reply = f"[AI] {msg}"
        except (FlowForgeError, ValueError) as e:
            reply = str(e)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
