# src/daily/notifications/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from enum import StrEnum
from typing import Any

# Identifiers of task reminders are derived from the stable task id only.
TASK_NOTIFICATION_PREFIX = "daily.task."
TASK_CATEGORY_IDENTIFIER = "daily.taskNotification"


class AuthorizationStatus(StrEnum):
    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    PROVISIONAL = "provisional"

    @property
    def allows_delivery(self) -> bool:
        return self in (AuthorizationStatus.AUTHORIZED, AuthorizationStatus.PROVISIONAL)

    @classmethod
    def from_db(cls, raw: str | None) -> AuthorizationStatus:
        if not raw:
            return cls.NOT_DETERMINED
        try:
            return cls(raw)
        except ValueError:
            return cls.NOT_DETERMINED


class NotificationAction(StrEnum):
    """What the user did with a delivered reminder."""

    OPEN = "open"
    COMPLETE = "complete"
    DISMISS = "dismiss"


def notification_id_for(task_id: str) -> str:
    return f"{TASK_NOTIFICATION_PREFIX}{task_id}"


@dataclass(slots=True, frozen=True)
class NotificationRequest:
    """A repeating daily reminder as held by the notification service."""

    id: str
    time_of_day: time
    payload: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def title(self) -> str:
        return str(self.payload.get("title", ""))

    def matches(self, time_of_day: time, title: str) -> bool:
        return (
            (self.time_of_day.hour, self.time_of_day.minute) == (time_of_day.hour, time_of_day.minute)
            and self.title == title
        )


@dataclass(slots=True)
class SyncResult:
    scheduled: list[str] = field(default_factory=list)
    rescheduled: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.scheduled or self.rescheduled or self.cancelled)
