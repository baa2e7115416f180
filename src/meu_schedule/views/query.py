# src/meu_schedule/views/query.py

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime

from ..core.lifecycle import is_archived
from ..core.models import Task, TaskStatus


def _matches_text(task: Task, needle: str) -> bool:
    return needle in f"{task.title} {task.detail or ''}".lower()


def _sort_key(task: Task) -> tuple:
    """
    done last; with due (soonest first) before without; without due newest first.

    Negated timestamps keep "newest first" inside one ascending sort.
    """
    if task.status == TaskStatus.DONE:
        return (2, 0.0)
    if task.due_at is not None:
        return (0, task.due_at.timestamp())
    return (1, -task.created_at.timestamp())


def query_tasks(
    tasks: Iterable[Task],
    now: datetime,
    *,
    subject_id: str | None = None,
    text: str | None = None,
    status: TaskStatus | None = None,
) -> list[Task]:
    """
    Active task list.

    Pipeline: subject filter -> status filter -> text filter -> drop archived -> stable sort.
    """
    out = list(tasks)

    if subject_id:
        out = [t for t in out if t.subject_id == subject_id]

    if status is not None:
        out = [t for t in out if t.status == status]

    needle = (text or "").strip().lower()
    if needle:
        out = [t for t in out if _matches_text(t, needle)]

    out = [t for t in out if not is_archived(t, now)]
    out.sort(key=_sort_key)
    return out


def due_soon(tasks: Iterable[Task], now: datetime, limit: int = 5) -> list[Task]:
    """Open tasks with a due instant, soonest first (overdue ones included)."""
    out = [t for t in tasks if t.due_at is not None and t.status != TaskStatus.DONE]
    out.sort(key=lambda t: t.due_at)
    return out[: max(0, limit)]


def time_left_label(due_at: datetime, now: datetime) -> str:
    minutes = max(0, round((due_at - now).total_seconds() / 60))
    if minutes >= 1440:
        days = minutes // 1440
        return f"{days} day{'s' if days != 1 else ''} left"
    if minutes >= 60:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''} left"
    return f"{minutes} minute{'s' if minutes != 1 else ''} left"


def status_counts(tasks: Iterable[Task]) -> dict[TaskStatus, int]:
    counts = Counter(t.status for t in tasks)
    return {s: counts.get(s, 0) for s in TaskStatus}
