# src/daily/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time; every value has a default.
- Preferences the user can change at runtime (reset hour, reminder switches)
  only get their *initial* values from here, see core/preferences.py.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time
from pathlib import Path

from dotenv import load_dotenv

from .tasks.task_models import parse_time_of_day

ENV_PREFIX = "DAILY"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_time(name: str, default: time) -> time:
    return parse_time_of_day(os.getenv(name)) or default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    desktop_toasts: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    notifications_db_path: Path

    # ---- Initial preferences ----
    reset_hour: int
    required_notifications_enabled: bool
    suggested_notifications_enabled: bool
    default_reminder_time: time

    # ---- Tuning ----
    delivery_interval_seconds: float
    seed_sample_tasks: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "daily") or "daily"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        desktop_toasts = _env_bool(_k("DESKTOP_TOASTS"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/daily"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        notifications_db_path = _env_path(
            _k("NOTIFICATIONS_DB_PATH"), data_dir / "notifications.sqlite3"
        )

        # Out-of-range hours fall back into 0..23 rather than failing startup.
        reset_hour = min(23, max(0, _env_int(_k("RESET_HOUR"), 4)))
        required_notifications_enabled = _env_bool(_k("REQUIRED_NOTIFICATIONS"), True)
        suggested_notifications_enabled = _env_bool(_k("SUGGESTED_NOTIFICATIONS"), False)
        default_reminder_time = _env_time(_k("DEFAULT_REMINDER_TIME"), time(9, 0))

        delivery_interval_seconds = max(0.5, _env_float(_k("DELIVERY_INTERVAL_SECONDS"), 20.0))
        seed_sample_tasks = _env_bool(_k("SEED_SAMPLE_TASKS"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            desktop_toasts=desktop_toasts,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            notifications_db_path=notifications_db_path,
            reset_hour=reset_hour,
            required_notifications_enabled=required_notifications_enabled,
            suggested_notifications_enabled=suggested_notifications_enabled,
            default_reminder_time=default_reminder_time,
            delivery_interval_seconds=delivery_interval_seconds,
            seed_sample_tasks=seed_sample_tasks,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
