# src/daily/core/preferences.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import time

logger = logging.getLogger(__name__)

DEFAULT_RESET_HOUR = 4
DEFAULT_REMINDER_TIME = time(9, 0)


@dataclass(frozen=True, slots=True)
class Preferences:
    """Read-only snapshot of the user's reset and reminder preferences."""

    reset_hour: int = DEFAULT_RESET_HOUR
    required_notifications_enabled: bool = True
    suggested_notifications_enabled: bool = False
    default_reminder_time: time = DEFAULT_REMINDER_TIME

    def __post_init__(self) -> None:
        if not 0 <= int(self.reset_hour) <= 23:
            raise ValueError(f"reset_hour must be in 0..23, got {self.reset_hour}")

    @staticmethod
    def from_settings(settings) -> Preferences:
        return Preferences(
            reset_hour=int(getattr(settings, "reset_hour", DEFAULT_RESET_HOUR)),
            required_notifications_enabled=bool(
                getattr(settings, "required_notifications_enabled", True)
            ),
            suggested_notifications_enabled=bool(
                getattr(settings, "suggested_notifications_enabled", False)
            ),
            default_reminder_time=getattr(settings, "default_reminder_time", DEFAULT_REMINDER_TIME),
        )


PreferencesListener = Callable[[Preferences, Preferences], None]


class PreferencesHolder:
    """
    Holds the current Preferences snapshot and notifies subscribers on change.

    Listeners receive (old, new) and are only called when the snapshot actually changed.
    A failing listener is logged and does not prevent the others from running.
    """

    def __init__(self, initial: Preferences | None = None) -> None:
        self._current = initial or Preferences()
        self._listeners: list[PreferencesListener] = []
        self._lock = threading.Lock()

    def snapshot(self) -> Preferences:
        return self._current

    def subscribe(self, listener: PreferencesListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def update(self, **changes) -> Preferences:
        with self._lock:
            old = self._current
            new = replace(old, **changes)
            if new == old:
                return old
            self._current = new
            listeners = list(self._listeners)

        logger.info("Preferences changed: %s", new)
        for listener in listeners:
            try:
                listener(old, new)
            except Exception:
                logger.exception("Preferences listener failed")
        return new
