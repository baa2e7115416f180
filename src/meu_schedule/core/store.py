# src/meu_schedule/core/store.py

"""
State store: a pure transition function over ScheduleState.

    reduce(state, command, now=...) -> new state

Every command is total: invalid input is logged and the input state is returned
unchanged. The function never mutates its arguments; records are frozen dataclasses
and every transition builds new tuples.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any

from . import lifecycle
from .documents import state_from_doc
from .errors import LoadShapeError
from .models import (
    EMPTY_STATE,
    Category,
    Priority,
    Reminder,
    ScheduleState,
    Subject,
    Task,
    TaskStatus,
    TaskType,
    normalize_duration,
    normalize_progress,
    normalize_range,
    normalize_reminders,
)

logger = logging.getLogger(__name__)

# Smallest step used to keep successive updated_at stamps strictly increasing
# (documents store epoch milliseconds).
_TICK = timedelta(milliseconds=1)

TASK_FIELDS = frozenset(
    {
        "title",
        "subject_id",
        "detail",
        "task_type",
        "start_at",
        "due_at",
        "all_day",
        "duration",
        "link",
        "status",
        "category",
        "priority",
        "progress",
        "reminders",
    }
)
SUBJECT_FIELDS = frozenset({"name", "color"})


# ---- commands ----


@dataclass(slots=True, frozen=True)
class Load:
    doc: Any


@dataclass(slots=True, frozen=True)
class AddSubject:
    subject: Subject


@dataclass(slots=True, frozen=True)
class UpdateSubject:
    """`partial` must contain "id"; other keys among SUBJECT_FIELDS are merged."""

    partial: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class DeleteSubject:
    id: str


@dataclass(slots=True, frozen=True)
class AddTask:
    task: Task


@dataclass(slots=True, frozen=True)
class UpdateTask:
    """`partial` must contain "id"; other keys among TASK_FIELDS are merged."""

    partial: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class DeleteTask:
    id: str


@dataclass(slots=True, frozen=True)
class SetLoginStreak:
    last_login_date: date | None
    streak: int


@dataclass(slots=True, frozen=True)
class Reset:
    reason: str = field(default="")


Command = (
    Load
    | AddSubject
    | UpdateSubject
    | DeleteSubject
    | AddTask
    | UpdateTask
    | DeleteTask
    | SetLoginStreak
    | Reset
)


# ---- helpers ----


def _touch(prev: datetime, now: datetime) -> datetime:
    return now if now > prev else prev + _TICK


def _merge_task(task: Task, partial: Mapping[str, Any], now: datetime) -> Task:
    changes: dict[str, Any] = {}

    for key, value in partial.items():
        if key not in TASK_FIELDS:
            continue

        if key == "title":
            title = str(value or "").strip()
            if not title:
                logger.debug("UpdateTask %s: empty title ignored", task.id)
                continue
            changes["title"] = title
        elif key == "subject_id":
            changes["subject_id"] = str(value) if value else None
        elif key in ("detail", "link"):
            changes[key] = str(value or "")
        elif key == "task_type":
            changes["task_type"] = value if isinstance(value, TaskType) else TaskType.from_doc(value)
        elif key == "category":
            changes["category"] = value if isinstance(value, Category) else Category.from_doc(value)
        elif key == "priority":
            changes["priority"] = value if isinstance(value, Priority) else Priority.from_doc(value)
        elif key == "progress":
            changes["progress"] = normalize_progress(value)
        elif key == "status":
            status = value if isinstance(value, TaskStatus) else TaskStatus.from_doc(value)
            if not lifecycle.can_set_status(task, status, now):
                logger.info("UpdateTask %s: status edit refused (undo window expired)", task.id)
                continue
            changes["status"] = status
            if status != task.status and "progress" not in partial:
                changes["progress"] = lifecycle.progress_after(task, status)
        elif key == "duration":
            changes["duration"] = normalize_duration(value)
        elif key == "reminders":
            changes["reminders"] = normalize_reminders(r for r in (value or ()) if isinstance(r, Reminder))
        elif key in ("start_at", "due_at"):
            if value is not None and not isinstance(value, datetime):
                raise TypeError(f"{key} must be a datetime or None")
            changes[key] = value
        elif key == "all_day":
            changes["all_day"] = bool(value)

    merged = replace(task, **changes)
    start_at, due_at = normalize_range(merged.start_at, merged.due_at)
    return replace(
        merged,
        start_at=start_at,
        due_at=due_at,
        all_day=merged.all_day and due_at is not None,
        updated_at=_touch(task.updated_at, now),
    )


def _load(doc: Any, now: datetime) -> ScheduleState:
    try:
        state = state_from_doc(doc, now=now)
    except LoadShapeError as e:
        logger.warning("Load: %s; starting from an empty state", e)
        return EMPTY_STATE
    logger.debug("Load: %d subjects, %d tasks", len(state.subjects), len(state.tasks))
    return state


# ---- reducer ----


def reduce(state: ScheduleState, command: object, *, now: datetime | None = None) -> ScheduleState:
    if now is None:
        now = datetime.now()

    try:
        return _reduce(state, command, now)
    except (TypeError, ValueError, AttributeError):
        logger.exception("Command %s rejected; state unchanged", type(command).__name__)
        return state


def _reduce(state: ScheduleState, command: object, now: datetime) -> ScheduleState:
    if isinstance(command, Load):
        return _load(command.doc, now)

    if isinstance(command, Reset):
        return EMPTY_STATE

    if isinstance(command, AddSubject):
        subject = command.subject
        if state.subject(subject.id) is not None:
            logger.warning("AddSubject: duplicate id=%s ignored", subject.id)
            return state
        return replace(state, subjects=state.subjects + (subject,))

    if isinstance(command, UpdateSubject):
        subject_id = command.partial.get("id")
        current = state.subject(subject_id)
        if current is None:
            return state
        changes = {k: str(v) for k, v in command.partial.items() if k in SUBJECT_FIELDS and v}
        updated = replace(current, **changes)
        return replace(
            state,
            subjects=tuple(updated if s.id == current.id else s for s in state.subjects),
        )

    if isinstance(command, DeleteSubject):
        return replace(
            state,
            subjects=tuple(s for s in state.subjects if s.id != command.id),
            tasks=tuple(t for t in state.tasks if t.subject_id != command.id),
        )

    if isinstance(command, AddTask):
        task = command.task
        if not task.title.strip():
            logger.warning("AddTask: empty title rejected")
            return state
        if state.task(task.id) is not None:
            logger.warning("AddTask: duplicate id=%s ignored", task.id)
            return state
        return replace(state, tasks=state.tasks + (task,))

    if isinstance(command, UpdateTask):
        task_id = command.partial.get("id")
        current = state.task(task_id) if task_id else None
        if current is None:
            return state
        updated = _merge_task(current, command.partial, now)
        return replace(
            state,
            tasks=tuple(updated if t.id == current.id else t for t in state.tasks),
        )

    if isinstance(command, DeleteTask):
        return replace(state, tasks=tuple(t for t in state.tasks if t.id != command.id))

    if isinstance(command, SetLoginStreak):
        return replace(
            state,
            last_login_date=command.last_login_date,
            login_streak=max(0, int(command.streak)),
        )

    logger.debug("Unknown command %r ignored", command)
    return state


def next_login_streak(state: ScheduleState, today: date) -> tuple[date, int]:
    """
    Streak after logging in on `today`.

    Same day keeps the streak, the next calendar day extends it, any longer gap
    (or a clock that went backwards) restarts it at 1.
    """
    last = state.last_login_date
    if last is None:
        return today, 1
    if last == today:
        return today, max(1, state.login_streak)
    if last + timedelta(days=1) == today:
        return today, state.login_streak + 1
    return today, 1
