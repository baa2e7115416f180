# src/meu_schedule/views/agenda.py

"""
Day agenda.

For one calendar day the agenda is, in order:
1. WORKABLE block: multi-day deadlines that started before the day and are due after it
2. ALL_DAY block: all-day tasks due on the day
3. TIMED slots interleaved with FREE gaps, scanning from midnight to 23:59:59.999

Gaps of 15 minutes or less are not reported. Tasks without a due instant never
appear on any day's agenda.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from functools import lru_cache

from ..core.models import Task, TaskType

MIN_FREE_GAP = timedelta(minutes=15)
END_OF_DAY = time(23, 59, 59, 999000)


class AgendaKind(str, Enum):
    WORKABLE = "workable"
    ALL_DAY = "all_day"
    TIMED = "timed"
    FREE = "free"


@dataclass(slots=True, frozen=True)
class AgendaItem:
    kind: AgendaKind
    start: datetime | None = None
    end: datetime | None = None
    tasks: tuple[Task, ...] = ()

    @property
    def minutes(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def task(self) -> Task | None:
        return self.tasks[0] if self.kind == AgendaKind.TIMED and self.tasks else None


def day_bounds(day: date) -> tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, END_OF_DAY)


def is_workable_on(task: Task, day: date) -> bool:
    return (
        task.task_type == TaskType.DEADLINE
        and task.start_at is not None
        and task.due_at is not None
        and task.start_at.date() < day < task.due_at.date()
    )


def _due_on(task: Task, day: date) -> bool:
    return task.due_at is not None and task.due_at.date() == day


def build_agenda(day: date, tasks: Iterable[Task]) -> list[AgendaItem]:
    """Agenda items for `day`. The result is a new list; inputs are not modified."""
    return list(_build_agenda(day, tuple(tasks)))


@lru_cache(maxsize=64)
def _build_agenda(day: date, tasks: tuple[Task, ...]) -> tuple[AgendaItem, ...]:
    items: list[AgendaItem] = []
    day_start, day_end = day_bounds(day)

    workable = tuple(t for t in tasks if is_workable_on(t, day))
    if workable:
        items.append(AgendaItem(kind=AgendaKind.WORKABLE, tasks=workable))

    all_day = tuple(t for t in tasks if t.all_day and _due_on(t, day))
    if all_day:
        items.append(AgendaItem(kind=AgendaKind.ALL_DAY, tasks=all_day))

    timed = sorted(
        (t for t in tasks if not t.all_day and _due_on(t, day)),
        key=lambda t: (t.due_at, t.title),
    )

    last_end = day_start
    for t in timed:
        start = t.due_at
        end = t.end_at
        assert start is not None and end is not None

        if start - last_end > MIN_FREE_GAP:
            items.append(AgendaItem(kind=AgendaKind.FREE, start=last_end, end=start))

        items.append(AgendaItem(kind=AgendaKind.TIMED, start=start, end=end, tasks=(t,)))
        if end > last_end:
            last_end = end

    if day_end - last_end > MIN_FREE_GAP:
        items.append(AgendaItem(kind=AgendaKind.FREE, start=last_end, end=day_end))

    return tuple(items)


def free_minutes(items: Iterable[AgendaItem]) -> int:
    return sum(i.minutes for i in items if i.kind == AgendaKind.FREE)
