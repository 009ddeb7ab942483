# src/daily/notifications/synchronizer.py

"""
Notification synchronizer.

Keeps the notification service's queue of task reminders equal to the set of
incomplete, notification-eligible tasks:
- schedules a repeating daily reminder for every eligible task that has none,
- re-schedules reminders whose time or title went stale,
- cancels reminders of tasks that were completed, deleted or became ineligible,
- leaves correct reminders untouched (a second pass with unchanged input is a no-op).

The service queue is the source of truth; nothing about "what is scheduled" is
remembered here between passes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from ..core.ports import NotificationService, NullPresenter, PresentationEvents, TaskRepo
from ..core.preferences import Preferences, PreferencesHolder
from ..errors import NotificationPermissionDenied, StoreError
from ..tasks.task_models import Task, TaskCategory, format_time_of_day
from .models import (
    TASK_CATEGORY_IDENTIFIER,
    TASK_NOTIFICATION_PREFIX,
    AuthorizationStatus,
    NotificationAction,
    NotificationRequest,
    SyncResult,
    notification_id_for,
)

logger = logging.getLogger(__name__)


def is_eligible(task: Task, prefs: Preferences) -> bool:
    """An explicit per-task time overrides the category switches."""
    if task.is_completed:
        return False
    if task.scheduled_time is not None:
        return True
    if task.category == TaskCategory.REQUIRED:
        return prefs.required_notifications_enabled
    return prefs.suggested_notifications_enabled


def build_payload(task: Task) -> dict[str, Any]:
    heading = "Required Task" if task.category == TaskCategory.REQUIRED else "Suggested Task"
    return {
        "task_id": task.id,
        "title": task.title,
        "heading": heading,
        "category_identifier": TASK_CATEGORY_IDENTIFIER,
    }


class NotificationSynchronizer:
    def __init__(
        self,
        service: NotificationService,
        task_store: TaskRepo,
        preferences: PreferencesHolder,
        presenter: PresentationEvents | None = None,
        *,
        authorization_status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
    ) -> None:
        self._service = service
        self._store = task_store
        self._preferences = preferences
        self.presenter: PresentationEvents = presenter or NullPresenter()

        self._authorization_status = authorization_status
        self._badge_count: int | None = None

        # Only one reconciliation pass may talk to the service at a time.
        self._lock = asyncio.Lock()

    @property
    def authorization_status(self) -> AuthorizationStatus:
        return self._authorization_status

    @property
    def badge_count(self) -> int | None:
        return self._badge_count

    # ---- reconciliation ----

    async def synchronize(self, tasks: Iterable[Task], prefs: Preferences | None = None) -> SyncResult:
        prefs = prefs or self._preferences.snapshot()
        result = SyncResult()

        async with self._lock:
            status = self._authorization_status
            if status == AuthorizationStatus.DENIED:
                result.cancelled = await self._cancel_task_notifications()
                result.skipped_reason = "notifications denied"
                return result
            if not status.allows_delivery:
                result.skipped_reason = f"authorization {status.value}"
                logger.debug("Synchronize skipped: %s", result.skipped_reason)
                return result

            desired = {notification_id_for(t.id): t for t in tasks if is_eligible(t, prefs)}

            try:
                existing = await self._scheduled_task_requests()
            except Exception:
                logger.exception("Listing scheduled notifications failed; synchronize skipped")
                result.skipped_reason = "list failed"
                return result

            stale = [nid for nid in existing if nid not in desired]
            if stale:
                try:
                    await self._service.cancel(stale)
                    result.cancelled.extend(stale)
                except Exception:
                    logger.exception("Cancelling %d notifications failed", len(stale))
                    result.failed.extend(stale)

            for nid, task in desired.items():
                when = task.scheduled_time or prefs.default_reminder_time
                current = existing.get(nid)
                if current is not None and current.matches(when, task.title):
                    continue

                try:
                    await self._service.schedule_repeating_daily(nid, when, build_payload(task))
                except NotificationPermissionDenied:
                    logger.warning("Permission denied while scheduling %s; disabling reminders", nid)
                    self._authorization_status = AuthorizationStatus.DENIED
                    result.cancelled.extend(await self._cancel_task_notifications())
                    result.skipped_reason = "notifications denied"
                    return result
                except Exception:
                    logger.exception("Scheduling notification failed id=%s", nid)
                    result.failed.append(nid)
                    continue

                if current is None:
                    result.scheduled.append(nid)
                else:
                    result.rescheduled.append(nid)
                logger.debug(
                    "Reminder %s at %s for task %r",
                    "rescheduled" if current is not None else "scheduled",
                    format_time_of_day(when),
                    task.title,
                )

        if result.changed or result.failed:
            logger.info(
                "Synchronize: scheduled=%d rescheduled=%d cancelled=%d failed=%d",
                len(result.scheduled),
                len(result.rescheduled),
                len(result.cancelled),
                len(result.failed),
            )
        return result

    async def synchronize_from_store(self) -> SyncResult | None:
        """Reconcile against the store's current incomplete tasks, then refresh the badge."""
        try:
            tasks = self._store.get_incomplete_tasks()
        except StoreError:
            logger.exception("Reading incomplete tasks failed; synchronize skipped")
            return None

        result = await self.synchronize(tasks, self._preferences.snapshot())
        await self.refresh_badge_count()
        return result

    async def cancel_all(self) -> list[str]:
        """Cancel every task reminder. Notifications that are not task reminders are kept."""
        async with self._lock:
            return await self._cancel_task_notifications()

    async def _scheduled_task_requests(self) -> dict[str, NotificationRequest]:
        requests = await self._service.list_scheduled()
        return {r.id: r for r in requests if r.id.startswith(TASK_NOTIFICATION_PREFIX)}

    async def _cancel_task_notifications(self) -> list[str]:
        try:
            ids = [i for i in await self._service.list_scheduled_ids() if i.startswith(TASK_NOTIFICATION_PREFIX)]
        except Exception:
            logger.exception("Listing scheduled notifications failed; cancel_all skipped")
            return []
        if not ids:
            return []
        try:
            await self._service.cancel(ids)
        except Exception:
            logger.exception("Cancelling %d task notifications failed", len(ids))
            return []
        logger.info("Cancelled %d task notifications", len(ids))
        return ids

    # ---- badge ----

    async def refresh_badge_count(self) -> int | None:
        """Badge = number of incomplete required tasks."""
        try:
            count = self._store.count_tasks(category=TaskCategory.REQUIRED, completed=False)
        except StoreError:
            logger.exception("Counting incomplete required tasks failed")
            return None

        try:
            await self._service.set_badge_count(count)
        except Exception:
            logger.exception("set_badge_count(%s) failed", count)

        if count != self._badge_count:
            self._badge_count = count
            try:
                self.presenter.on_badge_count_changed(count)
            except Exception:
                logger.exception("Presenter on_badge_count_changed failed")
        return count

    # ---- delivered events ----

    def on_notification_received_foreground(self, notification_id: str) -> bool:
        """Reminders are always shown, even while the app is in front."""
        logger.debug("Notification delivered in foreground id=%s", notification_id)
        return True

    async def on_notification_response(
        self,
        task_id: str,
        action: NotificationAction = NotificationAction.OPEN,
    ) -> bool:
        """
        Handle the user's response to a reminder.

        Returns True if the task was found and the action applied. A task that was
        deleted after the reminder fired is expected: logged and ignored.
        """
        try:
            task = self._store.get_task_by_id(task_id)
        except StoreError:
            logger.exception("Looking up task %s for notification response failed", task_id)
            return False

        if task is None:
            logger.info("Notification response for unknown task %s (deleted?); ignoring", task_id)
            return False

        if action == NotificationAction.DISMISS:
            return True

        try:
            self.presenter.on_focus_task_requested(task.id)
        except Exception:
            logger.exception("Presenter on_focus_task_requested failed")

        if action != NotificationAction.COMPLETE:
            return True

        try:
            changed = self._store.update_completion(task.id, True)
        except StoreError:
            logger.exception("Completing task %s from notification failed", task.id)
            return False

        if changed:
            logger.info("Completed task from notification: %s", task.title)
            await self.synchronize_from_store()
        return True

    # ---- authorization ----

    async def on_authorization_change(self, status: AuthorizationStatus) -> None:
        old = self._authorization_status
        if status == old:
            return
        self._authorization_status = status
        logger.info("Notification authorization: %s -> %s", old.value, status.value)

        if status.allows_delivery and not old.allows_delivery:
            await self.synchronize_from_store()
        elif status == AuthorizationStatus.DENIED:
            await self.cancel_all()

    async def refresh_authorization(self) -> AuthorizationStatus:
        try:
            status = await self._service.get_authorization_status()
        except Exception:
            logger.exception("Reading notification authorization failed")
            return self._authorization_status
        await self.on_authorization_change(AuthorizationStatus(status))
        return self._authorization_status

    async def request_authorization(self) -> bool:
        try:
            granted = await self._service.request_authorization()
        except Exception:
            logger.exception("Requesting notification authorization failed")
            granted = False
        await self.refresh_authorization()
        return bool(granted)
