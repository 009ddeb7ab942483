# src/daily/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..notifications.synchronizer import NotificationSynchronizer
from ..tasks.reset_scheduler import ResetScheduler
from .ports import NotificationService, TaskRepo
from .preferences import PreferencesHolder


@dataclass
class AppState:
    """
    Everything the app is made of, wired once in cli/bootstrap.py.

    Managers are plain objects passed around explicitly; there are no module-level singletons.
    """

    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskRepo
    notifications: NotificationService
    preferences: PreferencesHolder
    synchronizer: NotificationSynchronizer
    reset_scheduler: ResetScheduler

    # Serializes console commands against each other (the service loop has its own locks).
    lock: threading.Lock = field(default_factory=threading.Lock)
