# src/daily/core/ports.py

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the notification backend, the storage and the presentation layer
swappable and makes testing easier (tests inject fakes).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, time
from typing import Any, Awaitable, Protocol


class TaskRepo(Protocol):
    # Reads
    def get_all_tasks(self) -> list[Any]: ...
    def get_incomplete_tasks(self) -> list[Any]: ...
    def get_task_by_id(self, task_id: str) -> Any | None: ...
    def list_tasks(self, *, category: Any | None = None, completed: bool | None = None) -> list[Any]: ...
    def count_tasks(self, *, category: Any | None = None, completed: bool | None = None) -> int: ...
    def get_last_reset_at(self) -> datetime | None: ...

    # Writes
    def add_task(
            self,
            *,
            title: str,
            category: Any = None,  # TaskCategory (kept as Any to avoid import coupling)
            scheduled_time: time | None = None,
            order: int | None = None,
            is_completed: bool = False,
            task_id: str | None = None,
    ) -> Any: ...
    def update_completion(self, task_id: str, is_completed: bool) -> bool: ...
    def bulk_set_completion(self, is_completed: bool) -> int: ...
    def reset_all_completion(self, reset_at: datetime) -> int: ...
    def delete_task(self, task_id: str) -> bool: ...
    def delete_all_tasks(self) -> int: ...


class NotificationService(Protocol):
    """
    OS-side port: the platform's local notification queue.

    All identifiers are opaque strings; the synchronizer derives them from task ids.
    Scheduling an id that already exists replaces the previous request.
    """

    def schedule_repeating_daily(
            self,
            notification_id: str,
            time_of_day: time,
            payload: dict[str, Any],
    ) -> Awaitable[None]: ...

    def cancel(self, notification_ids: Iterable[str]) -> Awaitable[None]: ...
    def cancel_all(self) -> Awaitable[None]: ...
    def list_scheduled_ids(self) -> Awaitable[list[str]]: ...
    def list_scheduled(self) -> Awaitable[list[Any]]: ...  # list[NotificationRequest]
    def get_authorization_status(self) -> Awaitable[Any]: ...  # AuthorizationStatus
    def request_authorization(self) -> Awaitable[bool]: ...
    def set_badge_count(self, count: int) -> Awaitable[None]: ...


class PresentationEvents(Protocol):
    """Callbacks the core pushes to whatever UI is attached."""

    def on_reset_completed(self) -> None: ...
    def on_focus_task_requested(self, task_id: str) -> None: ...
    def on_badge_count_changed(self, count: int) -> None: ...


class NullPresenter:
    """Presenter used when no UI is attached."""

    def on_reset_completed(self) -> None:
        return

    def on_focus_task_requested(self, task_id: str) -> None:
        return

    def on_badge_count_changed(self, count: int) -> None:
        return
