# src/daily/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store, notification center,
  preferences, synchronizer, reset scheduler).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import NotificationService, PresentationEvents, TaskRepo
from ..core.preferences import Preferences, PreferencesHolder
from ..core.state import AppState
from ..errors import StoreError
from ..notifications.local_center import LocalNotificationCenter
from ..notifications.models import AuthorizationStatus
from ..notifications.synchronizer import NotificationSynchronizer
from ..tasks.reset_scheduler import ResetScheduler
from ..tasks.task_api import seed_sample_tasks
from ..tasks.task_store import IN_MEMORY, TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.notifications_db_path.parent.mkdir(parents=True, exist_ok=True)


def open_task_store(settings) -> TaskStore:
    """Open the on-disk store; fall back to an in-memory one so the app still starts."""
    try:
        return TaskStore(settings.tasks_db_path)
    except (StoreError, OSError):
        logger.exception(
            "Could not open task store at %s; using an in-memory store (changes will not persist)",
            settings.tasks_db_path,
        )
        return TaskStore(IN_MEMORY)


def create_initial_state(
    *,
    settings=None,
    task_store: TaskRepo | None = None,
    notifications: NotificationService | None = None,
    presenter: PresentationEvents | None = None,
    authorization_status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and collaborators injectable makes the app easier to test and
    avoids hidden global config reads. If settings is None, falls back to get_settings().

    authorization_status seeds the synchronizer's cached status until the first
    refresh_authorization() on activation.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if task_store is None:
        task_store = open_task_store(settings)
        if getattr(settings, "seed_sample_tasks", False):
            try:
                seed_sample_tasks(task_store)
            except StoreError:
                logger.exception("Seeding sample tasks failed")

    if notifications is None:
        notifications = LocalNotificationCenter(
            settings.notifications_db_path,
            toasts_enabled=bool(getattr(settings, "desktop_toasts", True)),
        )

    preferences = PreferencesHolder(Preferences.from_settings(settings))
    synchronizer = NotificationSynchronizer(
        notifications,
        task_store,
        preferences,
        presenter,
        authorization_status=authorization_status,
    )
    reset_scheduler = ResetScheduler(task_store, synchronizer, preferences, presenter)

    return AppState(
        settings=settings,
        task_store=task_store,
        notifications=notifications,
        preferences=preferences,
        synchronizer=synchronizer,
        reset_scheduler=reset_scheduler,
    )


def attach_presenter(state: AppState, presenter: PresentationEvents) -> None:
    """Point every manager's callbacks at the given presentation layer."""
    state.synchronizer.presenter = presenter
    state.reset_scheduler.presenter = presenter
