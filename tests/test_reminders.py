# tests/test_reminders.py

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from meu_schedule.core.models import OffsetUnit, Reminder, TaskStatus
from meu_schedule.core.ports import PermissionState
from meu_schedule.reminders.scheduler import (
    MAX_TIMER_DELAY,
    ReminderScheduler,
    notification_text,
    plan_reminders,
    run_tick_loop,
)

from .fakes import FakeNotifier, make_task

NOW = datetime(2024, 3, 4, 8, 0)

HOUR = Reminder(OffsetUnit.HOURS, 1)
DAY = Reminder(OffsetUnit.DAYS, 1)


def test_plan_skips_past_fire_instants() -> None:
    task = make_task("t1", due_at=NOW + timedelta(minutes=30), reminders=(HOUR, Reminder(OffsetUnit.MINUTES, 10)))

    plans = plan_reminders(task, NOW)

    assert [p.key for p in plans] == [("t1", "minutes", 10)]
    assert plans[0].fire_at == NOW + timedelta(minutes=20)


def test_plan_clamps_long_delays() -> None:
    task = make_task("t1", due_at=NOW + timedelta(days=40), reminders=(HOUR,))

    (plan,) = plan_reminders(task, NOW)

    assert plan.clamped
    assert plan.delay == MAX_TIMER_DELAY
    assert plan.fire_at == NOW + timedelta(days=40) - timedelta(hours=1)


def test_notification_text() -> None:
    task = make_task("t1", title="Essay")
    assert notification_text(task, "English") == ("Due soon: Essay", "Subject: English")
    assert notification_text(task, None) == ("Due soon: Essay", "")


@pytest.mark.asyncio
async def test_sync_arms_clamped_timer_at_max_delay() -> None:
    loop = asyncio.get_running_loop()
    scheduler = ReminderScheduler(FakeNotifier())
    task = make_task("t1", due_at=NOW + timedelta(days=40), reminders=(HOUR,))

    before = loop.time()
    assert scheduler.sync([task], {}, NOW) == 1

    handle = scheduler.armed_handle(("t1", "hours", 1))
    assert handle is not None
    expected = before + MAX_TIMER_DELAY.total_seconds()
    assert expected <= handle.when() <= loop.time() + MAX_TIMER_DELAY.total_seconds()
    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_resync_does_not_duplicate_or_rearm_unchanged() -> None:
    scheduler = ReminderScheduler(FakeNotifier())
    task = make_task("t1", due_at=NOW + timedelta(days=2), reminders=(HOUR, DAY))

    assert scheduler.sync([task], {}, NOW) == 2
    first = scheduler.armed_handle(("t1", "days", 1))

    assert scheduler.sync([task], {}, NOW) == 2
    assert scheduler.armed_handle(("t1", "days", 1)) is first
    assert scheduler.armed_keys == {("t1", "hours", 1), ("t1", "days", 1)}
    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_changed_due_rearms_and_removed_reminder_cancels() -> None:
    scheduler = ReminderScheduler(FakeNotifier())
    task = make_task("t1", due_at=NOW + timedelta(days=2), reminders=(HOUR, DAY))
    scheduler.sync([task], {}, NOW)
    old_hour = scheduler.armed_handle(("t1", "hours", 1))
    old_day = scheduler.armed_handle(("t1", "days", 1))
    assert old_hour is not None and old_day is not None

    moved = replace(task, due_at=NOW + timedelta(days=3), reminders=(HOUR,))
    scheduler.sync([moved], {}, NOW)

    assert scheduler.armed_keys == {("t1", "hours", 1)}
    assert old_day.cancelled()
    assert old_hour.cancelled()
    plan = scheduler.armed_plan(("t1", "hours", 1))
    assert plan is not None and plan.fire_at == NOW + timedelta(days=3) - timedelta(hours=1)
    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_deleted_and_archived_tasks_are_cancelled() -> None:
    scheduler = ReminderScheduler(FakeNotifier())
    t1 = make_task("t1", due_at=NOW + timedelta(days=2), reminders=(HOUR,))
    t2 = make_task("t2", due_at=NOW + timedelta(days=2), reminders=(HOUR,))
    scheduler.sync([t1, t2], {}, NOW)
    handle = scheduler.armed_handle(("t1", "hours", 1))
    assert handle is not None

    archived = replace(t2, status=TaskStatus.DONE, updated_at=NOW - timedelta(hours=2))
    assert scheduler.sync([archived], {}, NOW) == 0
    assert handle.cancelled()


@pytest.mark.asyncio
async def test_permission_not_granted_is_noop() -> None:
    notifier = FakeNotifier(state=PermissionState.DENIED)
    scheduler = ReminderScheduler(notifier)
    task = make_task("t1", due_at=NOW + timedelta(days=2), reminders=(HOUR,))

    assert scheduler.sync([task], {}, NOW) == 0
    assert scheduler.armed_keys == set()

    notifier.state = PermissionState.UNDETERMINED
    assert scheduler.sync([task], {}, NOW) == 0


@pytest.mark.asyncio
async def test_due_reminder_fires_once() -> None:
    notifier = FakeNotifier()
    scheduler = ReminderScheduler(notifier)
    task = make_task(
        "t1",
        title="Essay",
        subject_id="s1",
        due_at=NOW + timedelta(minutes=1, milliseconds=20),
        reminders=(Reminder(OffsetUnit.MINUTES, 1),),
    )

    scheduler.sync([task], {"s1": "English"}, NOW)
    await asyncio.sleep(0.1)

    assert [(f.title, f.body) for f in notifier.fired] == [("Due soon: Essay", "Subject: English")]
    assert scheduler.fired == 1
    assert scheduler.armed_keys == set()


@pytest.mark.asyncio
async def test_async_notifier_is_awaited() -> None:
    sent: list[str] = []

    class AsyncNotifier(FakeNotifier):
        async def fire(self, title: str, body: str) -> None:
            sent.append(title)

    scheduler = ReminderScheduler(AsyncNotifier())
    task = make_task(
        "t1",
        due_at=NOW + timedelta(minutes=1, milliseconds=10),
        reminders=(Reminder(OffsetUnit.MINUTES, 1),),
    )

    scheduler.sync([task], {}, NOW)
    await asyncio.sleep(0.1)

    assert sent == ["Due soon: t1"]


@pytest.mark.asyncio
async def test_tick_loop_runs_until_cancelled() -> None:
    ticks = 0

    def on_tick() -> None:
        nonlocal ticks
        ticks += 1
        if ticks == 2:
            raise RuntimeError("tick errors are logged, not fatal")

    runner = asyncio.create_task(run_tick_loop(on_tick, interval_seconds=0.01))
    await asyncio.sleep(0.08)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert ticks >= 3


@pytest.mark.asyncio
async def test_revoked_permission_drops_armed_reminder() -> None:
    notifier = FakeNotifier()
    scheduler = ReminderScheduler(notifier)
    task = make_task(
        "t1",
        due_at=NOW + timedelta(minutes=1, milliseconds=20),
        reminders=(Reminder(OffsetUnit.MINUTES, 1),),
    )

    scheduler.sync([task], {}, NOW)
    notifier.state = PermissionState.DENIED
    await asyncio.sleep(0.1)

    assert notifier.fired == []
    assert scheduler.fired == 0


@pytest.mark.asyncio
async def test_clamped_reminder_is_not_rearmed_after_firing() -> None:
    notifier = FakeNotifier()
    scheduler = ReminderScheduler(notifier, max_delay=timedelta(milliseconds=20))
    task = make_task("t1", due_at=NOW + timedelta(hours=2), reminders=(HOUR,))

    for tick in range(3):
        scheduler.sync([task], {}, NOW + timedelta(seconds=30 * tick))
        await asyncio.sleep(0.1)

    assert [f.title for f in notifier.fired] == ["Due soon: t1"]
    assert scheduler.fired == 1
    assert scheduler.armed_keys == set()


@pytest.mark.asyncio
async def test_fired_reminder_rearms_when_due_moves() -> None:
    notifier = FakeNotifier()
    scheduler = ReminderScheduler(notifier, max_delay=timedelta(milliseconds=20))
    task = make_task("t1", due_at=NOW + timedelta(hours=2), reminders=(HOUR,))

    scheduler.sync([task], {}, NOW)
    await asyncio.sleep(0.1)
    moved = replace(task, due_at=NOW + timedelta(hours=3))
    assert scheduler.sync([moved], {}, NOW) == 1
    scheduler.cancel_all()

    assert len(notifier.fired) == 1


def test_out_of_range_offset_is_skipped() -> None:
    task = make_task(
        "t1",
        due_at=NOW + timedelta(days=2),
        reminders=(Reminder(OffsetUnit.DAYS, 1_000_000), HOUR),
    )

    assert [p.key for p in plan_reminders(task, NOW)] == [("t1", "hours", 1)]


@pytest.mark.asyncio
async def test_out_of_range_offset_does_not_block_other_tasks() -> None:
    scheduler = ReminderScheduler(FakeNotifier())
    big = make_task("big", due_at=NOW + timedelta(days=2), reminders=(Reminder(OffsetUnit.DAYS, 1_000_000),))
    ok = make_task("ok", due_at=NOW + timedelta(days=2), reminders=(HOUR,))

    assert scheduler.sync([big, ok], {}, NOW) == 1
    assert scheduler.armed_keys == {("ok", "hours", 1)}
    scheduler.cancel_all()
