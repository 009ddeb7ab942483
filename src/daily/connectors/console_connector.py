# src/daily/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import CoroutineRunner, format_task
from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsolePresenter:
    """Presentation callbacks rendered as console lines (called from the service thread)."""

    def __init__(self, state: AppState) -> None:
        self._state = state

    def on_reset_completed(self) -> None:
        _print_ts("[DAILY] Tasks were reset for the new day.")

    def on_focus_task_requested(self, task_id: str) -> None:
        try:
            tasks = self._state.task_store.get_all_tasks()
        except Exception:
            logger.exception("Loading tasks for focus failed")
            return
        for i, task in enumerate(tasks, start=1):
            if task.id == task_id:
                _print_ts("[FOCUS] " + format_task(i, task).strip())
                return

    def on_badge_count_changed(self, count: int) -> None:
        logger.debug("Badge -> %s", count)


def run_console_loop(state: AppState, run: CoroutineRunner) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type /list to see today's tasks, /help for commands, /exit to quit.\n")

    while True:
        try:
            user_input = input(">>> ").strip()
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
            # Bare text is a shortcut for adding a required task.
            user_input = "/add " + user_input

        try:
            with state.lock:
                cmd_response = command_registry.handle(state, user_input, run)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)

    logger.info("Console connector finished.")
