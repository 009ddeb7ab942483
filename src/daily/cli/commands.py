# src/daily/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Coroutine
from typing import Any, cast

from ..core.state import AppState
from ..errors import DailyError, StoreError, TaskNotFound
from ..notifications.local_center import LocalNotificationCenter
from ..notifications.models import AuthorizationStatus, NotificationAction
from ..tasks import task_api
from ..tasks.task_models import Task, TaskCategory, format_time_of_day, parse_time_of_day

# Runs a coroutine on the service loop and returns its result.
CoroutineRunner = Callable[[Coroutine[Any, Any, Any]], Any]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CoroutineRunner], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

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

    def handle(self, state: AppState, line: str, run: CoroutineRunner) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
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

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, run)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskNotFound as e:
            return f"No such task: {e.task_id}"
        except StoreError:
            logger.exception("Store error in /%s", name)
            return "Could not access the task store (see log)."
        except DailyError as e:
            logger.warning("/%s failed: %s", name, e)
            return f"Failed: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_task(index: int, task: Task) -> str:
    mark = "x" if task.is_completed else " "
    when = format_time_of_day(task.scheduled_time)
    extra = f", {when}" if when else ""
    return f"{index:>3}. [{mark}] {task.title} ({task.category.value}{extra})  #{task.id[:8]}"


def _parse_switch(raw: str) -> bool | None:
    raw = raw.lower()
    if raw in ("on", "1", "true", "yes"):
        return True
    if raw in ("off", "0", "false", "no"):
        return False
    return None


def _require_task(state: AppState, args: list[str]) -> Task:
    if not args:
        raise TaskNotFound("(missing task number or id)")
    task = task_api.find_task(state, args[0])
    if task is None:
        raise TaskNotFound(args[0])
    return task


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> every task
    /list required   -> only required (also: suggested, open, done)
    """
    tasks = state.task_store.get_all_tasks()
    numbered = list(enumerate(tasks, start=1))

    flt = args[0].lower() if args else ""
    if flt in ("required", "r"):
        numbered = [(i, t) for i, t in numbered if t.category == TaskCategory.REQUIRED]
    elif flt in ("suggested", "s"):
        numbered = [(i, t) for i, t in numbered if t.category == TaskCategory.SUGGESTED]
    elif flt == "open":
        numbered = [(i, t) for i, t in numbered if not t.is_completed]
    elif flt == "done":
        numbered = [(i, t) for i, t in numbered if t.is_completed]

    if not numbered:
        return "No tasks."
    done = sum(1 for t in tasks if t.is_completed)
    lines = [f"Tasks ({done}/{len(tasks)} done):"]
    lines.extend(format_task(i, t) for i, t in numbered)
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    """
    /add [required|suggested] [HH:MM] <title...>
    """
    rest = list(args)
    category = TaskCategory.REQUIRED
    if rest and rest[0].lower() in ("required", "r", "suggested", "s"):
        category = TaskCategory.SUGGESTED if rest.pop(0).lower() in ("suggested", "s") else TaskCategory.REQUIRED

    scheduled = parse_time_of_day(rest[0]) if rest else None
    if scheduled is not None:
        rest.pop(0)

    title = " ".join(rest).strip()
    if not title:
        return "Usage: /add [required|suggested] [HH:MM] <title>"

    task = run(task_api.add_task(state, title=title, category=category, scheduled_time=scheduled))
    return f"Added: {task.title} ({task.category.value})"


def cmd_done(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    task = _require_task(state, args)
    if not run(task_api.set_completion(state, task.id, True)):
        return f"Already done: {task.title}"
    return f"Done: {task.title}"


def cmd_undo(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    task = _require_task(state, args)
    if not run(task_api.set_completion(state, task.id, False)):
        return f"Already open: {task.title}"
    return f"Reopened: {task.title}"


def cmd_edit(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    """
    /edit <n> time HH:MM   -> own reminder time
    /edit <n> time none    -> back to the default reminder time
    /edit <n> title <text>
    """
    usage = "Usage: /edit <n> time HH:MM|none  or  /edit <n> title <text>"
    task = _require_task(state, args)
    if len(args) < 3:
        return usage

    field_name, rest = args[1].lower(), args[2:]
    if field_name == "time":
        if rest[0].lower() == "none":
            task = run(task_api.edit_task(state, task.id, clear_scheduled_time=True))
            return f"{task.title}: default reminder time."
        when = parse_time_of_day(rest[0])
        if when is None:
            return "Reminder time must look like HH:MM."
        task = run(task_api.edit_task(state, task.id, scheduled_time=when))
        return f"{task.title}: reminder at {format_time_of_day(when)}."

    if field_name == "title":
        old_title = task.title
        task = run(task_api.edit_task(state, task.id, title=" ".join(rest)))
        return f"Renamed: {old_title} -> {task.title}"

    return usage


def cmd_delete(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    task = _require_task(state, args)
    run(task_api.delete_task(state, task.id))
    return f"Deleted: {task.title}"


def cmd_reset(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    if not run(state.reset_scheduler.reset_now()):
        return "Reset failed (see log)."
    return "All tasks reset to not completed."


def cmd_resetdata(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    if not args or args[0].lower() != "confirm":
        return "This deletes every task and restores the sample list. Use /resetdata confirm."
    total = run(task_api.reset_all_data(state))
    return f"All data reset. {total} tasks in the list."


def cmd_sync(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    result = run(state.synchronizer.synchronize_from_store())
    if result is None:
        return "Synchronize failed (see log)."
    if result.skipped_reason:
        return f"Reminders not synchronized: {result.skipped_reason}."
    return (
        "Reminders synchronized: "
        f"{len(result.scheduled)} scheduled, {len(result.rescheduled)} updated, "
        f"{len(result.cancelled)} cancelled, {len(result.failed)} failed."
    )


def cmd_prefs(state: AppState, args: list[str]) -> str:
    """
    /prefs                 -> show
    /prefs reset_hour 5    -> change reset hour (0..23)
    /prefs required on|off
    /prefs suggested on|off
    /prefs reminder HH:MM  -> default reminder time
    """
    usage = "Usage: /prefs [reset_hour N | required on|off | suggested on|off | reminder HH:MM]"
    if not args:
        p = state.preferences.snapshot()
        return (
            "Preferences:\n"
            f"  Reset hour: {p.reset_hour:02d}:00\n"
            f"  Required reminders: {'ON' if p.required_notifications_enabled else 'OFF'}\n"
            f"  Suggested reminders: {'ON' if p.suggested_notifications_enabled else 'OFF'}\n"
            f"  Default reminder time: {format_time_of_day(p.default_reminder_time)}"
        )
    if len(args) < 2:
        return usage

    key, value = args[0].lower(), args[1]
    if key in ("reset_hour", "hour"):
        if not value.isdigit() or not 0 <= int(value) <= 23:
            return "Reset hour must be a number from 0 to 23."
        state.preferences.update(reset_hour=int(value))
        return f"Tasks now reset daily at {int(value):02d}:00."

    if key in ("required", "suggested"):
        enabled = _parse_switch(value)
        if enabled is None:
            return usage
        field_name = f"{key}_notifications_enabled"
        state.preferences.update(**{field_name: enabled})
        return f"{key.capitalize()} reminders {'enabled' if enabled else 'disabled'}."

    if key == "reminder":
        when = parse_time_of_day(value)
        if when is None:
            return "Reminder time must look like HH:MM."
        state.preferences.update(default_reminder_time=when)
        return f"Default reminder time set to {format_time_of_day(when)}."

    return usage


def cmd_notify(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    """
    /notify          -> authorization status
    /notify request  -> ask for permission
    /notify grant|revoke (local notification center only)
    """
    sub = args[0].lower() if args else ""

    if sub == "request":
        granted = run(state.synchronizer.request_authorization())
        return "Notifications allowed." if granted else "Notifications not allowed."

    if sub in ("grant", "revoke"):
        center = state.notifications
        if not isinstance(center, LocalNotificationCenter):
            return "Permissions are managed by the system notification settings."
        status = AuthorizationStatus.AUTHORIZED if sub == "grant" else AuthorizationStatus.DENIED
        center.set_authorization_status(status)
        run(state.synchronizer.refresh_authorization())
        return f"Notifications {status.value}."

    return f"Notification authorization: {state.synchronizer.authorization_status.value}."


def cmd_respond(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    """
    /respond <task> [open|complete|dismiss] -> act as if a reminder was answered
    """
    if not args:
        return "Usage: /respond <task number or id> [open|complete|dismiss]"
    task = task_api.find_task(state, args[0])
    task_id = task.id if task is not None else args[0]
    try:
        action = NotificationAction(args[1].lower()) if len(args) > 1 else NotificationAction.OPEN
    except ValueError:
        return "Action must be one of: open, complete, dismiss."

    if not run(state.synchronizer.on_notification_response(task_id, action)):
        return f"No task for that reminder: {task_id}"
    return f"Reminder response handled ({action.value})."


def cmd_status(state: AppState, args: list[str], run: CoroutineRunner) -> str:
    nxt = state.reset_scheduler.next_reset_at
    scheduled = run(state.notifications.list_scheduled_ids())
    badge = state.synchronizer.badge_count
    return (
        "Status:\n"
        f"  Next reset: {nxt.strftime('%Y-%m-%d %H:%M') if nxt else 'not armed'}\n"
        f"  Notifications: {state.synchronizer.authorization_status.value}\n"
        f"  Scheduled reminders: {len(scheduled)}\n"
        f"  Badge: {badge if badge is not None else '-'}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="List tasks: /list [required|suggested|open|done].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add [required|suggested] [HH:MM] <title>.")
registry.register("done", cmd_done, help_text="Complete a task: /done <n>.", aliases=["complete"])
registry.register("undo", cmd_undo, help_text="Reopen a task: /undo <n>.", aliases=["reopen"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <n> time HH:MM|none, /edit <n> title <text>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <n>.", aliases=["rm"])
registry.register("reset", cmd_reset, help_text="Reset every task to not completed now.")
registry.register("resetdata", cmd_resetdata, help_text="Delete all tasks and restore samples: /resetdata confirm.")
registry.register("sync", cmd_sync, help_text="Re-synchronize reminders with the task list.")
registry.register("prefs", cmd_prefs, help_text="Show/change preferences: /prefs [key value].")
registry.register("notify", cmd_notify, help_text="Notification permission: /notify [request|grant|revoke].")
registry.register("respond", cmd_respond, help_text="Answer a reminder: /respond <n> [open|complete|dismiss].")
registry.register("status", cmd_status, help_text="Show next reset, reminders and badge.")
