# src/daily/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import time
from enum import StrEnum


class TaskCategory(StrEnum):
    """
    Task category.

    Notes:
    - "required" tasks drive the badge count and are notified by default.
    - "suggested" tasks are optional; their reminders are off by default.
    """

    REQUIRED = "required"
    SUGGESTED = "suggested"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskCategory:
        if not raw:
            return cls.REQUIRED
        try:
            return cls(raw)
        except ValueError:
            return cls.REQUIRED


def new_task_id() -> str:
    return str(uuid.uuid4())


def parse_time_of_day(raw: str | None) -> time | None:
    """Parse "HH:MM" (or "H:MM") into a time. Returns None for empty/invalid input."""
    if not raw:
        return None
    parts = raw.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
        return time(hour=hour, minute=minute)
    except ValueError:
        return None


def format_time_of_day(value: time | None) -> str | None:
    if value is None:
        return None
    return f"{value.hour:02d}:{value.minute:02d}"


@dataclass(slots=True)
class Task:
    id: str
    title: str
    order: int
    category: TaskCategory
    is_completed: bool
    created_at: float

    # Daily time-of-day; only hour and minute are meaningful.
    scheduled_time: time | None = None
