# src/meu_schedule/core/lifecycle.py

"""
Task status lifecycle.

    todo -> doing -> done -> todo
                       ^ guarded: only within UNDO_WINDOW of the last update

A done task past its undo window is "archived": hidden from the active list and only
visible through the history view. Archival is derived from (status, updated_at, now);
nothing is stored.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from .errors import UndoWindowExpired
from .models import Task, TaskStatus

logger = logging.getLogger(__name__)

UNDO_WINDOW = timedelta(hours=1)

_NEXT_STATUS: dict[TaskStatus, TaskStatus] = {
    TaskStatus.TODO: TaskStatus.DOING,
    TaskStatus.DOING: TaskStatus.DONE,
    TaskStatus.DONE: TaskStatus.TODO,
}


def is_archived(task: Task, now: datetime) -> bool:
    return task.status == TaskStatus.DONE and (now - task.updated_at) >= UNDO_WINDOW


def undo_remaining(task: Task, now: datetime) -> timedelta:
    """Time left to reopen a done task (zero for expired or non-done tasks)."""
    if task.status != TaskStatus.DONE:
        return timedelta(0)
    return max(timedelta(0), UNDO_WINDOW - (now - task.updated_at))


def next_status(task: Task, now: datetime) -> TaskStatus:
    """Target status of an advance, or UndoWindowExpired if the task is archived."""
    current = task.status
    if current == TaskStatus.DONE and is_archived(task, now):
        raise UndoWindowExpired(task.id)
    return _NEXT_STATUS[current]


def progress_after(task: Task, status: TaskStatus) -> int:
    """Progress once `task` moves to `status`."""
    if status == TaskStatus.DONE:
        return 100
    if task.status == TaskStatus.DONE and status == TaskStatus.TODO:
        return 0
    return task.progress


def advance(task: Task, now: datetime) -> Task:
    """
    Cycle the status one step and stamp updated_at.

    Reaching done sets progress to 100; reopening a done task resets it to 0.

    The input task is never modified; on UndoWindowExpired nothing changes.
    """
    target = next_status(task, now)
    logger.debug("Task %s status %s -> %s", task.id, task.status.value, target.value)
    return replace(
        task,
        status=target,
        progress=progress_after(task, target),
        updated_at=max(now, task.updated_at),
    )


def can_set_status(task: Task, status: TaskStatus, now: datetime) -> bool:
    """Whether a full-record edit may assign `status` (archived tasks are frozen)."""
    return status == task.status or not is_archived(task, now)


def archived_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """History view: archived tasks, most recently completed first."""
    out = [t for t in tasks if is_archived(t, now)]
    out.sort(key=lambda t: t.updated_at, reverse=True)
    return out
