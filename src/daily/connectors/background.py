# src/daily/connectors/background.py

"""
Service loop running in a background thread.

The console REPL is blocking (input()), while the reset timer, the reminder
delivery loop and every synchronizer call are async. They all live on one
event loop in one thread, which makes that loop the single writer for
notification state. Other threads hand work over with submit().
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.preferences import Preferences
from ..core.state import AppState
from ..notifications.local_center import LocalNotificationCenter, run_delivery_loop
from ..notifications.models import AuthorizationStatus, NotificationRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def activate(state: AppState) -> None:
    """
    What happens whenever the app becomes active (startup, wake):
    - refresh notification authorization, asking for it on first launch
      (a grant triggers the first sync),
    - apply an owed daily reset,
    - reconcile reminders and the badge with the store.
    """
    status = await state.synchronizer.refresh_authorization()
    if status == AuthorizationStatus.NOT_DETERMINED:
        await state.synchronizer.request_authorization()
    reset_done = await state.reset_scheduler.check_and_reset()
    if not reset_done:
        await state.synchronizer.synchronize_from_store()


async def _run_services(state: AppState, stop_event: asyncio.Event) -> None:
    await activate(state)

    workers: list[asyncio.Task[None]] = [
        asyncio.create_task(state.reset_scheduler.run(), name="daily-reset"),
    ]

    center = state.notifications
    if isinstance(center, LocalNotificationCenter):

        def on_delivered(request: NotificationRequest) -> None:
            state.synchronizer.on_notification_received_foreground(request.id)

        interval = float(getattr(state.settings, "delivery_interval_seconds", 20.0))
        workers.append(
            asyncio.create_task(
                run_delivery_loop(center, on_delivered=on_delivered, interval_seconds=interval),
                name="daily-delivery",
            )
        )

    try:
        await stop_event.wait()
    finally:
        for w in workers:
            w.cancel()
        for w in workers:
            with contextlib.suppress(asyncio.CancelledError):
                await w


@dataclass
class ServiceBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        """Run a coroutine on the service loop and wait for its result."""
        return self.submit(coro).result(timeout=timeout)

    def call_soon(self, callback, *args) -> None:
        self.loop.call_soon_threadsafe(callback, *args)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal service loop stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def _watch_preferences(state: AppState, runner: ServiceBackgroundRunner) -> None:
    def on_change(old: Preferences, new: Preferences) -> None:
        if old.reset_hour != new.reset_hour:
            runner.call_soon(state.reset_scheduler.rearm)
        if (
            old.required_notifications_enabled != new.required_notifications_enabled
            or old.suggested_notifications_enabled != new.suggested_notifications_enabled
            or old.default_reminder_time != new.default_reminder_time
        ):
            runner.submit(state.synchronizer.synchronize_from_store())

    state.preferences.subscribe(on_change)


def start_services_in_background(state: AppState) -> ServiceBackgroundRunner | None:
    """
    Start the service loop in a background thread (so the console REPL can run in parallel).
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_services(state, stop_event))
        except Exception:
            logger.exception("Service loop crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="daily-services", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Service thread did not initialize properly.")
        return None

    bg = ServiceBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
    _watch_preferences(state, bg)
    logger.info("Service background thread started.")
    return bg
