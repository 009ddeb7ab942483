# tests/test_preferences_config.py

from __future__ import annotations

from datetime import time
from pathlib import Path

import pytest

from daily.config import Settings
from daily.core.preferences import Preferences, PreferencesHolder


def test_preferences_reject_bad_hour() -> None:
    with pytest.raises(ValueError):
        Preferences(reset_hour=24)


def test_holder_notifies_on_real_change_only() -> None:
    holder = PreferencesHolder()
    seen: list[tuple[int, int]] = []
    holder.subscribe(lambda old, new: seen.append((old.reset_hour, new.reset_hour)))

    holder.update(reset_hour=4)
    holder.update(reset_hour=6)

    assert seen == [(4, 6)]
    assert holder.snapshot().reset_hour == 6


def test_failing_listener_does_not_block_others() -> None:
    holder = PreferencesHolder()
    calls: list[str] = []

    def broken(old, new):
        raise RuntimeError("boom")

    holder.subscribe(broken)
    holder.subscribe(lambda old, new: calls.append("ok"))

    holder.update(suggested_notifications_enabled=True)
    assert calls == ["ok"]


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "DAILY_RESET_HOUR",
        "DAILY_DATA_DIR",
        "DAILY_TASKS_DB_PATH",
        "DAILY_DEFAULT_REMINDER_TIME",
        "DAILY_SUGGESTED_NOTIFICATIONS",
    ):
        monkeypatch.delenv(key, raising=False)

    s = Settings.from_env()

    assert s.reset_hour == 4
    assert s.default_reminder_time == time(9, 0)
    assert s.suggested_notifications_enabled is False
    assert s.tasks_db_path == Path(".local/daily") / "tasks.sqlite3"


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DAILY_RESET_HOUR", "99")
    monkeypatch.setenv("DAILY_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("DAILY_TASKS_DB_PATH", raising=False)
    monkeypatch.setenv("DAILY_DEFAULT_REMINDER_TIME", "07:45")
    monkeypatch.setenv("DAILY_SUGGESTED_NOTIFICATIONS", "yes")
    monkeypatch.setenv("DAILY_DELIVERY_INTERVAL_SECONDS", "0")

    s = Settings.from_env()

    assert s.reset_hour == 23
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert s.default_reminder_time == time(7, 45)
    assert s.suggested_notifications_enabled is True
    assert s.delivery_interval_seconds == 0.5

    prefs = Preferences.from_settings(s)
    assert prefs.reset_hour == 23
    assert prefs.default_reminder_time == time(7, 45)
