# src/meu_schedule/cli/render.py

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime

from ..core.lifecycle import undo_remaining
from ..core.models import Priority, Task, TaskStatus
from ..views.agenda import AgendaItem, AgendaKind
from ..views.calendar import DayCell
from ..views.query import time_left_label

_STATUS_MARK = {
    TaskStatus.TODO: "[ ]",
    TaskStatus.DOING: "[~]",
    TaskStatus.DONE: "[x]",
}

_WEEKDAYS = ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")


def _fmt_dt(dt: datetime, all_day: bool = False) -> str:
    return dt.strftime("%Y-%m-%d") if all_day else dt.strftime("%Y-%m-%d %H:%M")


def task_line(task: Task, subject_names: Mapping[str, str], now: datetime) -> str:
    parts = [f"{_STATUS_MARK[task.status]} {task.id}  {task.title}"]

    if task.priority != Priority.MED:
        parts.append(f"[{task.priority.value}]")
    if task.status == TaskStatus.DOING:
        parts.append(f"{task.progress}%")

    subject = subject_names.get(task.subject_id or "")
    if subject:
        parts.append(f"({subject})")

    if task.due_at is not None:
        due = f"due {_fmt_dt(task.due_at, task.all_day)}"
        if task.status != TaskStatus.DONE:
            due += f", {time_left_label(task.due_at, now)}"
        parts.append(due)

    if task.status == TaskStatus.DONE:
        left = undo_remaining(task, now)
        parts.append(f"undo {int(left.total_seconds() // 60)} min left")

    return "  ".join(parts)


def task_list(title: str, tasks: Sequence[Task], subject_names: Mapping[str, str], now: datetime) -> str:
    if not tasks:
        return f"{title}: nothing here yet."
    lines = [f"{title} ({len(tasks)}):"]
    lines.extend(f"  {task_line(t, subject_names, now)}" for t in tasks)
    return "\n".join(lines)


def agenda(day: date, items: Iterable[AgendaItem]) -> str:
    lines = [f"Agenda for {day.isoformat()} ({_WEEKDAYS[day.weekday()]}):"]
    for item in items:
        if item.kind == AgendaKind.WORKABLE:
            titles = ", ".join(t.title for t in item.tasks)
            lines.append(f"  workable today: {titles}")
        elif item.kind == AgendaKind.ALL_DAY:
            titles = ", ".join(t.title for t in item.tasks)
            lines.append(f"  all day: {titles}")
        elif item.kind == AgendaKind.TIMED:
            assert item.start is not None and item.end is not None
            t = item.tasks[0]
            lines.append(f"  {item.start:%H:%M}-{item.end:%H:%M}  {t.title} [{t.status.value}]")
        else:
            assert item.start is not None and item.end is not None
            lines.append(f"  {item.start:%H:%M}-{item.end:%H:%M}  free ({item.minutes} min)")
    return "\n".join(lines)


def month(year: int, month_no: int, cells: Sequence[DayCell]) -> str:
    lines = [f"{date(year, month_no, 1):%B %Y}", "  ".join(f"{d:>6}" for d in _WEEKDAYS)]
    week: list[str] = []
    for cell in cells:
        marks = "".join(m.value[0].upper() for m in cell.indicators)
        label = f"{cell.day.day:>2}" if cell.in_month else f"({cell.day.day})"
        if cell.is_today:
            label = f"*{label}"
        week.append(f"{label + marks:>6}")
        if len(week) == 7:
            lines.append("  ".join(week))
            week = []
    lines.append("R = due, B = starts, G = in progress")

    due_lines = []
    for cell in cells:
        if not cell.in_month or not cell.titles:
            continue
        extra = f" +{cell.overflow} more" if cell.overflow else ""
        due_lines.append(f"  {cell.day:%d}: {', '.join(cell.titles)}{extra}")
    if due_lines:
        lines.append("Due:")
        lines.extend(due_lines)
    return "\n".join(lines)
