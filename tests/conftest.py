# tests/conftest.py

from __future__ import annotations

import asyncio
from datetime import time
from pathlib import Path
from types import SimpleNamespace

import pytest

from daily.cli.bootstrap import create_initial_state
from daily.core.preferences import Preferences, PreferencesHolder
from daily.core.state import AppState
from daily.notifications.synchronizer import NotificationSynchronizer
from daily.tasks.task_store import TaskStore

from .fakes import FakeNotificationService, RecordingPresenter


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        notifications_db_path=tmp_path / "notifications.sqlite3",
        reset_hour=4,
        required_notifications_enabled=True,
        suggested_notifications_enabled=False,
        default_reminder_time=time(9, 0),
        delivery_interval_seconds=0.5,
        seed_sample_tasks=False,
        desktop_toasts=False,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def service() -> FakeNotificationService:
    return FakeNotificationService()


@pytest.fixture()
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture()
def preferences() -> PreferencesHolder:
    return PreferencesHolder(Preferences())


@pytest.fixture()
def synchronizer(
    service: FakeNotificationService,
    store: TaskStore,
    preferences: PreferencesHolder,
    presenter: RecordingPresenter,
) -> NotificationSynchronizer:
    return NotificationSynchronizer(
        service,
        store,
        preferences,
        presenter,
        authorization_status=service.status,
    )


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: TaskStore,
    service: FakeNotificationService,
    presenter: RecordingPresenter,
) -> AppState:
    """
    AppState wired with a fake notification service.

    NOTE: We keep a real SQLite TaskStore here because its correctness
    is part of what we want to test.
    """
    return create_initial_state(
        settings=settings,
        task_store=store,
        notifications=service,
        presenter=presenter,
        authorization_status=service.status,
    )


@pytest.fixture()
def run():
    """Blocking coroutine runner, the way the console hands work to the service loop."""
    loop = asyncio.new_event_loop()
    try:
        yield loop.run_until_complete
    finally:
        loop.close()
