# tests/test_synchronizer.py

from __future__ import annotations

import asyncio
from datetime import datetime, time

import pytest

from daily.core.preferences import Preferences
from daily.notifications.models import (
    AuthorizationStatus,
    NotificationAction,
    NotificationRequest,
    notification_id_for,
)
from daily.notifications.synchronizer import NotificationSynchronizer, build_payload, is_eligible
from daily.tasks.task_models import Task, TaskCategory

FOREIGN_ID = "calendar.event.42"


def _three_tasks(store):
    t1 = store.add_task(title="T1", order=1, category=TaskCategory.REQUIRED)
    t2 = store.add_task(title="T2", order=2, category=TaskCategory.REQUIRED, is_completed=True)
    t3 = store.add_task(title="T3", order=3, category=TaskCategory.SUGGESTED)
    return t1, t2, t3


def test_eligibility_rules() -> None:
    prefs = Preferences()
    req = Task(id="a", title="a", order=1, category=TaskCategory.REQUIRED, is_completed=False, created_at=0.0)
    sug = Task(id="b", title="b", order=2, category=TaskCategory.SUGGESTED, is_completed=False, created_at=0.0)
    sug_timed = Task(
        id="c",
        title="c",
        order=3,
        category=TaskCategory.SUGGESTED,
        is_completed=False,
        created_at=0.0,
        scheduled_time=time(7, 0),
    )
    done = Task(id="d", title="d", order=4, category=TaskCategory.REQUIRED, is_completed=True, created_at=0.0)

    assert is_eligible(req, prefs)
    assert not is_eligible(sug, prefs)
    assert is_eligible(sug_timed, prefs)
    assert not is_eligible(done, prefs)
    assert not is_eligible(req, Preferences(required_notifications_enabled=False))
    assert is_eligible(sug, Preferences(suggested_notifications_enabled=True))


def test_payload_carries_task_identity() -> None:
    task = Task(id="xyz", title="Water plants", order=1, category=TaskCategory.SUGGESTED, is_completed=False, created_at=0.0)
    payload = build_payload(task)
    assert payload["task_id"] == "xyz"
    assert payload["title"] == "Water plants"
    assert payload["heading"] == "Suggested Task"


@pytest.mark.asyncio
async def test_only_incomplete_eligible_tasks_are_scheduled(synchronizer, store, service, presenter) -> None:
    t1, _t2, _t3 = _three_tasks(store)

    result = await synchronizer.synchronize_from_store()

    assert result is not None
    assert service.scheduled_ids() == {notification_id_for(t1.id)}
    assert service.badge == 1
    assert presenter.badges == [1]


@pytest.mark.asyncio
async def test_default_and_explicit_reminder_times(synchronizer, store, service) -> None:
    plain = store.add_task(title="Brush teeth")
    timed = store.add_task(title="Breakfast", scheduled_time=time(8, 0))

    await synchronizer.synchronize_from_store()

    assert service.requests[notification_id_for(plain.id)].time_of_day == time(9, 0)
    assert service.requests[notification_id_for(timed.id)].time_of_day == time(8, 0)
    assert service.requests[notification_id_for(timed.id)].payload["task_id"] == timed.id


@pytest.mark.asyncio
async def test_second_pass_without_changes_makes_no_calls(synchronizer, store, service) -> None:
    _three_tasks(store)
    await synchronizer.synchronize_from_store()
    service.reset_calls()

    result = await synchronizer.synchronize_from_store()

    assert result is not None
    assert not result.changed
    assert service.total_calls == 0


@pytest.mark.asyncio
async def test_completed_task_loses_its_reminder(synchronizer, store, service) -> None:
    t1, _t2, _t3 = _three_tasks(store)
    await synchronizer.synchronize_from_store()

    store.update_completion(t1.id, True)
    result = await synchronizer.synchronize_from_store()

    assert result is not None
    assert result.cancelled == [notification_id_for(t1.id)]
    assert service.scheduled_ids() == set()
    assert service.badge == 0


@pytest.mark.asyncio
async def test_deleted_task_loses_its_reminder(synchronizer, store, service) -> None:
    task = store.add_task(title="Stretch")
    await synchronizer.synchronize_from_store()

    store.delete_task(task.id)
    await synchronizer.synchronize_from_store()

    assert notification_id_for(task.id) not in service.scheduled_ids()


@pytest.mark.asyncio
async def test_foreign_notifications_survive(synchronizer, store, service) -> None:
    service.requests[FOREIGN_ID] = NotificationRequest(id=FOREIGN_ID, time_of_day=time(12, 0), payload={})
    store.add_task(title="Meditation")

    await synchronizer.synchronize_from_store()
    assert FOREIGN_ID in service.scheduled_ids()

    cancelled = await synchronizer.cancel_all()
    assert FOREIGN_ID not in cancelled
    assert service.scheduled_ids() == {FOREIGN_ID}


@pytest.mark.asyncio
async def test_time_or_title_change_reschedules(synchronizer, store, service) -> None:
    task = store.add_task(title="Check email", scheduled_time=time(9, 30))
    await synchronizer.synchronize_from_store()
    nid = notification_id_for(task.id)

    store.update_task_fields(task.id, scheduled_time=time(10, 15))
    result = await synchronizer.synchronize_from_store()
    assert result is not None
    assert result.rescheduled == [nid]
    assert service.requests[nid].time_of_day == time(10, 15)

    store.update_task_fields(task.id, title="Check inbox")
    result = await synchronizer.synchronize_from_store()
    assert result is not None
    assert result.rescheduled == [nid]
    assert service.requests[nid].title == "Check inbox"


@pytest.mark.asyncio
async def test_preference_switches_drive_eligibility(synchronizer, store, service, preferences) -> None:
    t1, _t2, t3 = _three_tasks(store)

    preferences.update(suggested_notifications_enabled=True, required_notifications_enabled=False)
    await synchronizer.synchronize_from_store()

    assert service.scheduled_ids() == {notification_id_for(t3.id)}
    assert notification_id_for(t1.id) not in service.scheduled_ids()


@pytest.mark.asyncio
async def test_denied_cancels_and_schedules_nothing(synchronizer, store, service) -> None:
    _three_tasks(store)
    await synchronizer.synchronize_from_store()
    assert service.scheduled_ids()

    await synchronizer.on_authorization_change(AuthorizationStatus.DENIED)
    assert service.scheduled_ids() == set()

    service.reset_calls()
    result = await synchronizer.synchronize_from_store()
    assert result is not None
    assert result.skipped_reason == "notifications denied"
    assert service.schedule_calls == []


@pytest.mark.asyncio
async def test_not_determined_skips_scheduling(store, service, preferences) -> None:
    service.status = AuthorizationStatus.NOT_DETERMINED
    sync = NotificationSynchronizer(service, store, preferences)
    store.add_task(title="Brush teeth")

    result = await sync.synchronize_from_store()

    assert result is not None
    assert result.skipped_reason == "authorization not_determined"
    assert service.scheduled_ids() == set()


@pytest.mark.asyncio
async def test_grant_triggers_synchronize(store, service, preferences) -> None:
    service.status = AuthorizationStatus.NOT_DETERMINED
    sync = NotificationSynchronizer(service, store, preferences)
    task = store.add_task(title="Brush teeth")

    granted = await sync.request_authorization()

    assert granted is True
    assert sync.authorization_status == AuthorizationStatus.AUTHORIZED
    assert service.scheduled_ids() == {notification_id_for(task.id)}


@pytest.mark.asyncio
async def test_refused_request_leaves_queue_empty(store, service, preferences) -> None:
    service.status = AuthorizationStatus.NOT_DETERMINED
    service.grant_on_request = False
    sync = NotificationSynchronizer(service, store, preferences)
    store.add_task(title="Brush teeth")

    assert await sync.request_authorization() is False
    assert sync.authorization_status == AuthorizationStatus.DENIED
    assert service.scheduled_ids() == set()


@pytest.mark.asyncio
async def test_permission_revoked_mid_pass_disables_reminders(synchronizer, store, service) -> None:
    store.add_task(title="Brush teeth")
    service.status = AuthorizationStatus.DENIED

    result = await synchronizer.synchronize_from_store()

    assert result is not None
    assert result.skipped_reason == "notifications denied"
    assert synchronizer.authorization_status == AuthorizationStatus.DENIED


@pytest.mark.asyncio
async def test_one_failing_schedule_does_not_stop_the_pass(synchronizer, store, service) -> None:
    bad = store.add_task(title="Bad")
    good = store.add_task(title="Good")
    service.fail_schedule_ids.add(notification_id_for(bad.id))

    result = await synchronizer.synchronize_from_store()

    assert result is not None
    assert result.failed == [notification_id_for(bad.id)]
    assert service.scheduled_ids() == {notification_id_for(good.id)}


@pytest.mark.asyncio
async def test_overlapping_passes_do_not_double_schedule(synchronizer, store, service) -> None:
    for i in range(5):
        store.add_task(title=f"Task {i}")

    await asyncio.gather(*(synchronizer.synchronize_from_store() for _ in range(3)))

    assert len(service.schedule_calls) == 5
    assert len(set(service.schedule_calls)) == 5


@pytest.mark.asyncio
async def test_reset_reschedules_previously_completed(synchronizer, store, service) -> None:
    t1 = store.add_task(title="T1", is_completed=True)
    t2 = store.add_task(title="T2", is_completed=True)
    t3 = store.add_task(title="T3")
    await synchronizer.synchronize_from_store()
    assert service.scheduled_ids() == {notification_id_for(t3.id)}

    store.reset_all_completion(datetime(2026, 10, 18, 4, 0))
    await synchronizer.synchronize_from_store()

    assert service.scheduled_ids() == {notification_id_for(t.id) for t in (t1, t2, t3)}
    assert service.badge == 3


# ---- responses ----


@pytest.mark.asyncio
async def test_response_for_deleted_task_is_ignored(synchronizer, store, service, presenter) -> None:
    task = store.add_task(title="Gone soon")
    await synchronizer.synchronize_from_store()
    store.delete_task(task.id)
    service.reset_calls()

    handled = await synchronizer.on_notification_response(task.id, NotificationAction.COMPLETE)

    assert handled is False
    assert presenter.focused == []
    assert service.total_calls == 0


@pytest.mark.asyncio
async def test_open_response_focuses_task(synchronizer, store, presenter) -> None:
    task = store.add_task(title="Reading")

    assert await synchronizer.on_notification_response(task.id) is True
    assert presenter.focused == [task.id]
    stored = store.get_task_by_id(task.id)
    assert stored is not None and not stored.is_completed


@pytest.mark.asyncio
async def test_complete_response_marks_done_and_cancels(synchronizer, store, service, presenter) -> None:
    task = store.add_task(title="Exercise")
    await synchronizer.synchronize_from_store()

    assert await synchronizer.on_notification_response(task.id, NotificationAction.COMPLETE) is True

    stored = store.get_task_by_id(task.id)
    assert stored is not None and stored.is_completed
    assert service.scheduled_ids() == set()
    assert presenter.focused == [task.id]


@pytest.mark.asyncio
async def test_dismiss_response_does_nothing(synchronizer, store, presenter) -> None:
    task = store.add_task(title="Journaling")

    assert await synchronizer.on_notification_response(task.id, NotificationAction.DISMISS) is True
    assert presenter.focused == []


def test_foreground_delivery_is_presented(synchronizer) -> None:
    assert synchronizer.on_notification_received_foreground("daily.task.x") is True


@pytest.mark.asyncio
async def test_disabling_required_cancels_scheduled_but_keeps_timed(synchronizer, store, service, preferences) -> None:
    brush = store.add_task(title="Brush teeth")
    lunch = store.add_task(title="Eat some lunch")
    breakfast = store.add_task(title="Breakfast", scheduled_time=time(8, 0))
    await synchronizer.synchronize_from_store()
    assert service.scheduled_ids() == {notification_id_for(t.id) for t in (brush, lunch, breakfast)}

    preferences.update(required_notifications_enabled=False)
    result = await synchronizer.synchronize_from_store()

    assert result is not None
    assert sorted(result.cancelled) == sorted(notification_id_for(t.id) for t in (brush, lunch))
    assert service.scheduled_ids() == {notification_id_for(breakfast.id)}

    service.reset_calls()
    await synchronizer.synchronize_from_store()
    assert service.total_calls == 0
