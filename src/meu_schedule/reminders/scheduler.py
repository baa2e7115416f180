# src/meu_schedule/reminders/scheduler.py

"""
Reminder scheduler.

Turns (task due instant, relative offsets) into one-shot asyncio timers that call the
notification capability.

Armed timers live in a registry keyed by (task_id, offset unit, amount). Each sync():
- cancels timers whose reminder disappeared or whose fire instant / text changed,
- arms timers for new reminders,
- leaves unchanged timers alone (no duplicate notifications on re-sync),
- never re-arms a reminder that already fired with the same fire instant and text.

Delays are clamped to the largest delay a 32-bit millisecond timer can hold
(~24.855 days). A clamped reminder fires when the clamp elapses.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..core.errors import NotificationUnavailable
from ..core.lifecycle import is_archived
from ..core.models import Task
from ..core.ports import Notifier, PermissionState

logger = logging.getLogger(__name__)

MAX_TIMER_DELAY = timedelta(milliseconds=2_147_483_647)

ReminderKey = tuple[str, str, int]


@dataclass(slots=True, frozen=True)
class ReminderPlan:
    key: ReminderKey
    fire_at: datetime
    delay: timedelta
    clamped: bool
    title: str
    body: str

    @property
    def task_id(self) -> str:
        return self.key[0]

    @property
    def fingerprint(self) -> tuple[datetime, str, str]:
        return (self.fire_at, self.title, self.body)


@dataclass(slots=True)
class _Armed:
    plan: ReminderPlan
    handle: asyncio.TimerHandle


def notification_text(task: Task, subject_name: str | None) -> tuple[str, str]:
    title = f"Due soon: {task.title}"
    body = f"Subject: {subject_name}" if subject_name else ""
    return title, body


def plan_reminders(
    task: Task,
    now: datetime,
    *,
    subject_name: str | None = None,
    max_delay: timedelta = MAX_TIMER_DELAY,
) -> list[ReminderPlan]:
    """
    Future reminders of one task.

    Reminders whose fire instant has passed, or lies before the smallest datetime, are skipped.
    """
    if task.due_at is None or not task.reminders:
        return []

    title, body = notification_text(task, subject_name)
    plans: list[ReminderPlan] = []
    for r in task.reminders:
        try:
            fire_at = task.due_at - r.offset
        except OverflowError:
            logger.debug("Reminder %s %s on task %s is out of range", r.amount, r.unit.value, task.id)
            continue
        if fire_at <= now:
            continue
        delay = fire_at - now
        clamped = delay > max_delay
        plans.append(
            ReminderPlan(
                key=(task.id, r.unit.value, r.amount),
                fire_at=fire_at,
                delay=max_delay if clamped else delay,
                clamped=clamped,
                title=title,
                body=body,
            )
        )
    return plans


class ReminderScheduler:
    """
    Registry of armed reminder timers.

    Must be used from the thread running `loop` (or inside a running loop when
    `loop` is None).
    """

    def __init__(
        self,
        notifier: Notifier | None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        max_delay: timedelta = MAX_TIMER_DELAY,
    ) -> None:
        self._notifier = notifier
        self._loop = loop
        self._max_delay = max_delay
        self._armed: dict[ReminderKey, _Armed] = {}
        self._fired: dict[ReminderKey, tuple[datetime, str, str]] = {}
        self.fired: int = 0

    @property
    def armed_keys(self) -> set[ReminderKey]:
        return set(self._armed)

    def armed_plan(self, key: ReminderKey) -> ReminderPlan | None:
        armed = self._armed.get(key)
        return armed.plan if armed else None

    def armed_handle(self, key: ReminderKey) -> asyncio.TimerHandle | None:
        armed = self._armed.get(key)
        return armed.handle if armed else None

    def _check_permission(self) -> None:
        if self._notifier is None:
            raise NotificationUnavailable("no notification capability")
        state = self._notifier.permission_state
        if state != PermissionState.GRANTED:
            raise NotificationUnavailable(f"notification permission is {state}")

    def sync(
        self,
        tasks: Iterable[Task],
        subject_names: Mapping[str, str],
        now: datetime,
    ) -> int:
        """Reconcile armed timers with the current tasks. Returns the number armed."""
        try:
            self._check_permission()
        except NotificationUnavailable as e:
            logger.debug("Reminders skipped: %s", e)
            self.cancel_all()
            return 0

        loop = self._loop or asyncio.get_running_loop()

        desired: dict[ReminderKey, ReminderPlan] = {}
        for t in tasks:
            if is_archived(t, now):
                continue
            name = subject_names.get(t.subject_id) if t.subject_id else None
            for plan in plan_reminders(t, now, subject_name=name, max_delay=self._max_delay):
                desired[plan.key] = plan

        for key in [k for k in self._fired if k not in desired]:
            del self._fired[key]

        for key in list(self._armed):
            plan = desired.get(key)
            if plan is None or plan.fingerprint != self._armed[key].plan.fingerprint:
                self._cancel(key)

        for key, plan in desired.items():
            if key in self._armed or self._fired.get(key) == plan.fingerprint:
                continue
            if plan.clamped:
                logger.debug("Reminder %s delay clamped to %s (fires at %s)", key, plan.delay, plan.fire_at)
            handle = loop.call_later(plan.delay.total_seconds(), self._fire, key)
            self._armed[key] = _Armed(plan=plan, handle=handle)
            logger.debug("Reminder armed %s fire_at=%s", key, plan.fire_at)

        return len(self._armed)

    def _cancel(self, key: ReminderKey) -> None:
        armed = self._armed.pop(key, None)
        if armed is not None:
            armed.handle.cancel()
            logger.debug("Reminder cancelled %s", key)

    def cancel_task(self, task_id: str) -> None:
        for key in [k for k in self._armed if k[0] == task_id]:
            self._cancel(key)

    def cancel_all(self) -> None:
        for key in list(self._armed):
            self._cancel(key)

    def _fire(self, key: ReminderKey) -> None:
        armed = self._armed.pop(key, None)
        if armed is None or self._notifier is None:
            return

        plan = armed.plan
        self._fired[key] = plan.fingerprint
        if self._notifier.permission_state != PermissionState.GRANTED:
            logger.debug("Reminder %s dropped: permission is %s", key, self._notifier.permission_state)
            return

        self.fired += 1
        logger.info("Reminder fired task=%s offset=%s %s", plan.task_id, plan.key[2], plan.key[1])
        try:
            result = self._notifier.fire(plan.title, plan.body)
        except Exception:
            logger.exception("Notifier failed for reminder %s", key)
            return

        if inspect.isawaitable(result):
            fut = asyncio.ensure_future(result)
            fut.add_done_callback(_log_fire_failure)


def _log_fire_failure(fut: asyncio.Future) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.error("Async notifier failed: %r", exc)


async def run_tick_loop(
    on_tick: Callable[[], Awaitable[None] | None],
    *,
    interval_seconds: float = 30.0,
) -> None:
    """
    Periodic tick (reminder re-sync, archival refresh).

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    while True:
        try:
            result = on_tick()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("tick failed")
        await asyncio.sleep(sleep_s)
