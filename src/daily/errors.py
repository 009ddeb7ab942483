# src/daily/errors.py

"""Error taxonomy shared by the store, the reset scheduler and the notification layer."""

from __future__ import annotations


class DailyError(Exception):
    """Base class for all application errors."""


class StoreError(DailyError):
    """The task store could not complete an operation."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class NotificationError(DailyError):
    """The notification service rejected or failed an operation."""


class NotificationSchedulingError(NotificationError):
    pass


class NotificationPermissionDenied(NotificationError):
    """The user has not granted (or has revoked) permission to show notifications."""


class TaskNotFound(DailyError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id
