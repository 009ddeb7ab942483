# src/daily/notifications/local_center.py

"""
Local notification center.

Desktop stand-in for the platform's notification queue:
- pending repeating-daily requests live in SQLite (so identifiers survive restarts),
- a polling delivery loop shows each due request once per day as a desktop toast,
- authorization and badge count are persisted alongside the requests.

Toasts are best-effort: osascript on macOS, notify-send on Linux. When neither is
available, request_authorization() reports denied.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shutil
import sqlite3
import subprocess
import sys
import time
from collections.abc import Callable, Iterable
from datetime import date, datetime
from datetime import time as dtime
from pathlib import Path
from typing import Any

from ..errors import NotificationPermissionDenied, NotificationSchedulingError
from .models import AuthorizationStatus, NotificationRequest

logger = logging.getLogger(__name__)

DeliveryCallback = Callable[[NotificationRequest], None]


def _run_quiet(*cmd: str) -> bool:
    """Fire-and-forget subprocess, ignore failures."""
    try:
        subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return True
    except (FileNotFoundError, OSError):
        return False


def toast_backend_available() -> bool:
    if sys.platform == "darwin":
        return shutil.which("osascript") is not None
    if sys.platform.startswith("linux"):
        return shutil.which("notify-send") is not None
    return False


def show_desktop_toast(heading: str, body: str) -> bool:
    """Show a desktop notification toast. Returns False if nothing could be launched."""
    if sys.platform == "darwin":
        safe_body = body.replace('"', "'")
        safe_heading = heading.replace('"', "'")
        return _run_quiet(
            "osascript", "-e",
            f'display notification "{safe_body}" with title "{safe_heading}"',
        )
    if sys.platform.startswith("linux"):
        return _run_quiet("notify-send", heading, body)
    return False


class LocalNotificationCenter:
    """SQLite-backed implementation of the NotificationService port."""

    def __init__(
        self,
        db_path: str | Path = "notifications.sqlite3",
        *,
        toasts_enabled: bool = True,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._toasts_enabled = toasts_enabled
        self._ensure_schema()
        logger.info("LocalNotificationCenter ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_requests (
                    id TEXT PRIMARY KEY,
                    hour INTEGER NOT NULL,
                    minute INTEGER NOT NULL,
                    payload TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL,
                    last_delivered_on TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS center_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _get_state(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM center_state WHERE key = ?", (key,)).fetchone()
            return str(row["value"]) if row else None
        finally:
            conn.close()

    def _set_state(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO center_state(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> NotificationRequest:
        try:
            payload = json.loads(row["payload"] or "{}")
        except json.JSONDecodeError:
            payload = {}
        return NotificationRequest(
            id=str(row["id"]),
            time_of_day=dtime(hour=int(row["hour"]), minute=int(row["minute"])),
            payload=payload if isinstance(payload, dict) else {},
        )

    def _status(self) -> AuthorizationStatus:
        return AuthorizationStatus.from_db(self._get_state("authorization"))

    # ---- NotificationService port ----

    async def schedule_repeating_daily(
        self,
        notification_id: str,
        time_of_day: dtime,
        payload: dict[str, Any],
    ) -> None:
        if not self._status().allows_delivery:
            raise NotificationPermissionDenied("notifications are not authorized")
        try:
            payload_str = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise NotificationSchedulingError(f"payload not serializable: {e}") from e

        conn = self._get_conn()
        try:
            # A replaced request counts as new: a time that already passed today waits for tomorrow.
            conn.execute(
                """
                INSERT INTO notification_requests(id, hour, minute, payload, created_at, last_delivered_on)
                VALUES (?, ?, ?, ?, ?, NULL)
                ON CONFLICT(id) DO UPDATE SET
                    hour = excluded.hour,
                    minute = excluded.minute,
                    payload = excluded.payload,
                    created_at = excluded.created_at
                """,
                (notification_id, time_of_day.hour, time_of_day.minute, payload_str, time.time()),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise NotificationSchedulingError(f"schedule {notification_id}: {e}") from e
        finally:
            conn.close()

    async def cancel(self, notification_ids: Iterable[str]) -> None:
        ids = list(notification_ids)
        if not ids:
            return
        conn = self._get_conn()
        try:
            conn.executemany("DELETE FROM notification_requests WHERE id = ?", [(i,) for i in ids])
            conn.commit()
        finally:
            conn.close()

    async def cancel_all(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM notification_requests")
            conn.commit()
        finally:
            conn.close()

    async def list_scheduled(self) -> list[NotificationRequest]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM notification_requests ORDER BY hour, minute, id"
            ).fetchall()
            return [self._row_to_request(r) for r in rows]
        finally:
            conn.close()

    async def list_scheduled_ids(self) -> list[str]:
        return [r.id for r in await self.list_scheduled()]

    async def get_authorization_status(self) -> AuthorizationStatus:
        return self._status()

    async def request_authorization(self) -> bool:
        status = self._status()
        if status != AuthorizationStatus.NOT_DETERMINED:
            return status.allows_delivery
        granted = (not self._toasts_enabled) or toast_backend_available()
        new_status = AuthorizationStatus.AUTHORIZED if granted else AuthorizationStatus.DENIED
        self._set_state("authorization", new_status.value)
        logger.info("Notification authorization requested: %s", new_status.value)
        return granted

    def set_authorization_status(self, status: AuthorizationStatus) -> None:
        """Explicit grant/revoke (the desktop has no system prompt to do it for us)."""
        self._set_state("authorization", status.value)

    async def set_badge_count(self, count: int) -> None:
        self._set_state("badge_count", str(int(count)))
        logger.debug("Badge count set to %s", count)

    def badge_count(self) -> int:
        raw = self._get_state("badge_count")
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            return 0

    # ---- delivery ----

    def is_authorized(self) -> bool:
        return self._status().allows_delivery

    def due_requests(self, now: datetime) -> list[NotificationRequest]:
        """
        Requests whose time of day has passed today, that existed before that time
        and that were not delivered today.
        """
        today = now.date().isoformat()
        minute_of_day = now.hour * 60 + now.minute
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM notification_requests
                WHERE (hour * 60 + minute) <= ?
                  AND (last_delivered_on IS NULL OR last_delivered_on != ?)
                ORDER BY hour, minute, id
                """,
                (minute_of_day, today),
            ).fetchall()
        finally:
            conn.close()

        due: list[NotificationRequest] = []
        for row in rows:
            request = self._row_to_request(row)
            fire_at = datetime.combine(now.date(), request.time_of_day, tzinfo=now.tzinfo)
            if float(row["created_at"] or 0.0) <= fire_at.timestamp():
                due.append(request)
        return due

    def mark_delivered(self, notification_id: str, on: date) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE notification_requests SET last_delivered_on = ? WHERE id = ?",
                (on.isoformat(), notification_id),
            )
            conn.commit()
        finally:
            conn.close()

    def deliver(self, request: NotificationRequest) -> None:
        heading = str(request.payload.get("heading") or "Daily")
        body = request.title or request.id
        if self._toasts_enabled and not show_desktop_toast(heading, body):
            logger.warning("No desktop toast backend; reminder %s not shown", request.id)
        logger.info("Reminder delivered: %s - %s", heading, body)


async def run_delivery_loop(
    center: LocalNotificationCenter,
    *,
    on_delivered: DeliveryCallback | None = None,
    interval_seconds: float = 20.0,
    clock: Callable[[], datetime] = datetime.now,
) -> None:
    """
    Simple polling delivery loop.

    Every interval_seconds:
    - fetch requests that are due today and not yet delivered today
    - show them (desktop toast), mark delivered for today
    - hand each to on_delivered (foreground receipt)

    Requests created after their time of day already passed wait for the next day.
    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        now = clock()
        try:
            due = center.due_requests(now) if center.is_authorized() else []
        except sqlite3.Error:
            logger.exception("Reading due reminders failed; retrying next tick")
            due = []

        for request in due:
            try:
                center.deliver(request)
                center.mark_delivered(request.id, now.date())
            except Exception:
                logger.exception("delivery failed id=%s", request.id)
                continue

            if on_delivered is not None:
                try:
                    on_delivered(request)
                except Exception:
                    logger.exception("on_delivered callback failed id=%s", request.id)

        await asyncio.sleep(sleep_s)
