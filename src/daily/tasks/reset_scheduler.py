# src/daily/tasks/reset_scheduler.py

"""
Daily reset scheduler.

Once per day, at the configured hour (default 04:00 local), every task goes
back to "not completed". The next reset instant is plain data computed from
the wall clock; a single one-shot wait is armed for it and recomputed after
each fire, so drift, sleep/wake and DST shifts cannot accumulate.

Activation (startup, wake) also checks whether a reset is owed from the
persisted last reset time, so a boundary crossed while the process was not
running is still honoured.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta, tzinfo
from datetime import time as dtime

from ..core.ports import NullPresenter, PresentationEvents, TaskRepo
from ..core.preferences import PreferencesHolder
from ..errors import StoreError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _at_hour(day: date, hour: int, tz: tzinfo | None) -> datetime:
    if not 0 <= hour <= 23:
        raise ValueError(f"reset hour must be in 0..23, got {hour}")
    return datetime.combine(day, dtime(hour=hour), tzinfo=tz)


def compute_next_reset_instant(now: datetime, reset_hour: int) -> datetime:
    """
    Today at reset_hour:00:00 if that is still ahead of now, else tomorrow at the same hour.

    Never returns an instant <= now. Tomorrow is taken on the calendar, not as +24h.
    """
    today = _at_hour(now.date(), reset_hour, now.tzinfo)
    if now < today:
        return today
    return _at_hour(now.date() + timedelta(days=1), reset_hour, now.tzinfo)


def most_recent_reset_boundary(now: datetime, reset_hour: int) -> datetime:
    today = _at_hour(now.date(), reset_hour, now.tzinfo)
    if now >= today:
        return today
    return _at_hour(now.date() - timedelta(days=1), reset_hour, now.tzinfo)


def reset_owed(last_reset_at: datetime | None, now: datetime, reset_hour: int) -> bool:
    """A reset is owed if the last one happened before the most recent boundary (or never)."""
    if last_reset_at is None:
        return True
    return last_reset_at < most_recent_reset_boundary(now, reset_hour)


class ResetScheduler:
    def __init__(
        self,
        task_store: TaskRepo,
        synchronizer,
        preferences: PreferencesHolder,
        presenter: PresentationEvents | None = None,
        *,
        clock: Clock | None = None,
        max_sleep_seconds: float = 60.0,
    ) -> None:
        self._store = task_store
        self._synchronizer = synchronizer
        self._preferences = preferences
        self.presenter: PresentationEvents = presenter or NullPresenter()
        self._clock: Clock = clock or datetime.now
        self._max_sleep = max(0.01, float(max_sleep_seconds))

        self.next_reset_at: datetime | None = None
        self._rearm = asyncio.Event()
        self._lock = asyncio.Lock()

    @property
    def reset_hour(self) -> int:
        return self._preferences.snapshot().reset_hour

    # ---- timer ----

    def arm(self, instant: datetime) -> None:
        self.next_reset_at = instant
        logger.info("Tasks will reset at %s", instant.strftime("%Y-%m-%d %H:%M:%S"))

    def rearm(self) -> None:
        """Drop the armed instant and recompute it (e.g. after the reset hour changed)."""
        self._rearm.set()

    async def _wait_until(self, instant: datetime) -> bool:
        """
        Sleep until instant in bounded chunks, re-reading the clock after each one.

        Returns True when instant was reached, False when rearm() interrupted the wait.
        """
        while True:
            remaining = (instant - self._clock()).total_seconds()
            if remaining <= 0:
                return True
            try:
                await asyncio.wait_for(self._rearm.wait(), timeout=min(remaining, self._max_sleep))
            except TimeoutError:
                continue
            self._rearm.clear()
            return False

    async def run(self) -> None:
        """
        Reset loop: arm, wait, reset, re-arm for the following day.

        To stop the scheduler, cancel the coroutine/task.
        """
        while True:
            instant = compute_next_reset_instant(self._clock(), self.reset_hour)
            self.arm(instant)
            if await self._wait_until(instant):
                await self.reset_all()

    # ---- reset operations ----

    async def reset_all(self) -> bool:
        """
        Mark every task incomplete (one atomic store write), then push the change
        to the presentation layer and the notification synchronizer.

        Shared by the timer, the activation check and the manual "reset now".
        """
        async with self._lock:
            now = self._clock()
            try:
                flipped = self._store.reset_all_completion(now)
            except StoreError:
                logger.exception("Failed to reset tasks; state left unchanged")
                return False
            logger.info("Reset %d completed tasks at %s", flipped, now.strftime("%Y-%m-%d %H:%M:%S"))

        try:
            self.presenter.on_reset_completed()
        except Exception:
            logger.exception("Presenter on_reset_completed failed")

        if self._synchronizer is not None:
            await self._synchronizer.synchronize_from_store()
        return True

    async def reset_now(self) -> bool:
        ok = await self.reset_all()
        self.rearm()
        return ok

    async def check_and_reset(self, now: datetime | None = None) -> bool:
        """Called on every activation: reset if a boundary passed since the last reset."""
        now = now or self._clock()
        try:
            last = self._store.get_last_reset_at()
        except StoreError:
            logger.exception("Reading last reset time failed; activation check skipped")
            return False

        if not reset_owed(last, now, self.reset_hour):
            logger.debug("No reset owed (last=%s)", last)
            return False

        logger.info("Reset owed (last=%s, hour=%s)", last, self.reset_hour)
        return await self.reset_all()
