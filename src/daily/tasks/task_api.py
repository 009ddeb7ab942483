# src/daily/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import time

from ..core.state import AppState
from ..errors import TaskNotFound
from .task_models import Task, TaskCategory

logger = logging.getLogger(__name__)

SAMPLE_TASKS: tuple[tuple[str, int, TaskCategory, time | None], ...] = (
    ("Breakfast", 1, TaskCategory.REQUIRED, time(8, 0)),
    ("Brush teeth", 2, TaskCategory.REQUIRED, None),
    ("Meditation", 3, TaskCategory.REQUIRED, None),
    ("Check email", 4, TaskCategory.REQUIRED, time(9, 30)),
    ("Eat some lunch", 5, TaskCategory.REQUIRED, None),
    ("Exercise", 6, TaskCategory.SUGGESTED, None),
    ("Reading", 7, TaskCategory.SUGGESTED, None),
    ("Journaling", 8, TaskCategory.SUGGESTED, None),
    ("Eat some dinner", 9, TaskCategory.REQUIRED, None),
)


def seed_sample_tasks(store) -> int:
    """Insert the sample task set, only into an empty store. Returns how many were added."""
    if store.count_tasks() > 0:
        return 0
    for title, order, category, scheduled in SAMPLE_TASKS:
        store.add_task(title=title, order=order, category=category, scheduled_time=scheduled)
    logger.info("Seeded %d sample tasks", len(SAMPLE_TASKS))
    return len(SAMPLE_TASKS)


def find_task(state: AppState, ref: str) -> Task | None:
    """
    Resolve a user-typed reference: a 1-based position in the full listing,
    or a (unique) prefix of the task id.
    """
    ref = (ref or "").strip()
    if not ref:
        return None

    tasks = state.task_store.get_all_tasks()
    if ref.isdigit():
        idx = int(ref)
        if 1 <= idx <= len(tasks):
            return tasks[idx - 1]
        return None

    matches = [t for t in tasks if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


async def add_task(
    state: AppState,
    *,
    title: str,
    category: TaskCategory = TaskCategory.REQUIRED,
    scheduled_time: time | None = None,
) -> Task:
    task = state.task_store.add_task(title=title, category=category, scheduled_time=scheduled_time)
    logger.info("Added %s task %r (order=%s)", category.value, task.title, task.order)
    await state.synchronizer.synchronize_from_store()
    return task


async def set_completion(state: AppState, task_id: str, completed: bool) -> bool:
    """
    Toggle a task. Setting a task to the value it already has does nothing:
    no write, no reminder resync. Returns True if the task changed.
    """
    task = state.task_store.get_task_by_id(task_id)
    if task is None:
        raise TaskNotFound(task_id)
    if task.is_completed == completed:
        return False

    if not state.task_store.update_completion(task_id, completed):
        return False
    logger.info("Task %r marked %s", task.title, "done" if completed else "open")
    await state.synchronizer.synchronize_from_store()
    return True


async def edit_task(
    state: AppState,
    task_id: str,
    *,
    title: str | None = None,
    scheduled_time: time | None = None,
    clear_scheduled_time: bool = False,
) -> Task:
    """Change title and/or reminder time; the reminder follows on the next synchronize."""
    if state.task_store.get_task_by_id(task_id) is None:
        raise TaskNotFound(task_id)

    state.task_store.update_task_fields(
        task_id,
        title=title,
        scheduled_time=scheduled_time,
        clear_scheduled_time=clear_scheduled_time,
    )
    await state.synchronizer.synchronize_from_store()

    task = state.task_store.get_task_by_id(task_id)
    if task is None:
        raise TaskNotFound(task_id)
    return task


async def delete_task(state: AppState, task_id: str) -> bool:
    if not state.task_store.delete_task(task_id):
        raise TaskNotFound(task_id)
    logger.info("Deleted task %s", task_id)
    await state.synchronizer.synchronize_from_store()
    return True


async def reset_all_data(state: AppState, *, reseed: bool = True) -> int:
    """
    Wipe every task and start over.

    Reminders are cancelled first so no orphaned reminder survives the wipe.
    Returns the number of tasks in the store afterwards.
    """
    await state.synchronizer.cancel_all()
    removed = state.task_store.delete_all_tasks()
    logger.info("Deleted all %d tasks", removed)
    if reseed:
        seed_sample_tasks(state.task_store)
    await state.synchronizer.synchronize_from_store()
    return state.task_store.count_tasks()
