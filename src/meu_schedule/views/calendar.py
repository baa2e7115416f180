# src/meu_schedule/views/calendar.py

"""
Month calendar: Monday-start grid plus per-day status indicators.

Per task and day (first match wins):
- RED    the day is the task's due day
- BLUE   the day is the task's start day
- GREEN  the day lies strictly between start day and due day
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from functools import lru_cache

from ..core.models import Task

MAX_MARKS = 8
PREVIEW_TITLES = 2


class Indicator(StrEnum):
    RED = "red"
    BLUE = "blue"
    GREEN = "green"


_ORDER = (Indicator.RED, Indicator.BLUE, Indicator.GREEN)


@dataclass(slots=True, frozen=True)
class DayCell:
    day: date
    in_month: bool
    is_today: bool
    indicators: tuple[Indicator, ...]
    titles: tuple[str, ...]
    overflow: int


def month_grid(year: int, month: int) -> list[date]:
    """Every day of the Monday-start weeks that cover the month."""
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    start = first - timedelta(days=first.weekday())
    end = last + timedelta(days=6 - last.weekday())
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def classify(task: Task, day: date) -> Indicator | None:
    due_day = task.due_at.date() if task.due_at else None
    start_day = task.start_at.date() if task.start_at else None

    if due_day == day:
        return Indicator.RED
    if start_day == day:
        return Indicator.BLUE
    if start_day is not None and due_day is not None and start_day < day < due_day:
        return Indicator.GREEN
    return None


def day_indicators(days: Sequence[date], tasks: Iterable[Task]) -> dict[date, list[Indicator]]:
    """Indicators for each day, in fixed RED/BLUE/GREEN order. Days without marks map to []."""
    cached = _day_indicators(tuple(days), tuple(tasks))
    return {d: list(marks) for d, marks in cached}


@lru_cache(maxsize=32)
def _day_indicators(
    days: tuple[date, ...], tasks: tuple[Task, ...]
) -> tuple[tuple[date, tuple[Indicator, ...]], ...]:
    out = []
    for d in days:
        found: set[Indicator] = set()
        for t in tasks:
            mark = classify(t, d)
            if mark is not None:
                found.add(mark)
        marks = tuple(m for m in _ORDER if m in found)[:MAX_MARKS]
        out.append((d, marks))
    return tuple(out)


def month_view(year: int, month: int, tasks: Iterable[Task], today: date) -> list[DayCell]:
    """Grid cells with indicators and the first titles due each day."""
    tasks = tuple(tasks)
    days = month_grid(year, month)
    marks = day_indicators(days, tasks)

    by_due: dict[date, list[Task]] = {}
    for t in tasks:
        if t.due_at is None:
            continue
        by_due.setdefault(t.due_at.date(), []).append(t)

    cells: list[DayCell] = []
    for d in days:
        due = sorted(by_due.get(d, []), key=lambda t: t.due_at)
        cells.append(
            DayCell(
                day=d,
                in_month=d.month == month,
                is_today=d == today,
                indicators=tuple(marks.get(d, [])),
                titles=tuple(t.title for t in due[:PREVIEW_TITLES]),
                overflow=max(0, len(due) - PREVIEW_TITLES),
            )
        )
    return cells
