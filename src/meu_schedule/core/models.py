# src/meu_schedule/core/models.py

from __future__ import annotations

import random
import string
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import StrEnum

from .errors import ValidationError

DEFAULT_DURATION_MINUTES = 60
MIN_DURATION_MINUTES = 15

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 7


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Transitions are owned by core.lifecycle; nothing else assigns status directly.
    """

    TODO = "todo"
    DOING = "doing"
    DONE = "done"

    @classmethod
    def from_doc(cls, raw: object) -> TaskStatus:
        try:
            return cls(str(raw))
        except ValueError:
            return cls.TODO


class TaskType(StrEnum):
    DEADLINE = "deadline"
    EVENT = "event"

    @classmethod
    def from_doc(cls, raw: object) -> TaskType:
        try:
            return cls(str(raw))
        except ValueError:
            return cls.DEADLINE


class Category(StrEnum):
    STUDY = "study"
    WORK = "work"
    PERSONAL = "personal"

    @classmethod
    def from_doc(cls, raw: object) -> Category:
        key = str(raw or "").strip()
        # Older documents stored the Thai labels.
        key = _LEGACY_CATEGORIES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.STUDY


_LEGACY_CATEGORIES = {
    "เรียน": "study",
    "งาน": "work",
    "ส่วนตัว": "personal",
}


class Priority(StrEnum):
    LOW = "low"
    MED = "med"
    HIGH = "high"

    @classmethod
    def from_doc(cls, raw: object) -> Priority:
        try:
            return cls(str(raw))
        except ValueError:
            return cls.MED


class OffsetUnit(StrEnum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


@dataclass(slots=True, frozen=True)
class Reminder:
    """Fire `amount` units before the task's due instant."""

    unit: OffsetUnit
    amount: int

    @property
    def offset(self) -> timedelta:
        if self.unit == OffsetUnit.DAYS:
            return timedelta(days=self.amount)
        if self.unit == OffsetUnit.HOURS:
            return timedelta(hours=self.amount)
        return timedelta(minutes=self.amount)

    @property
    def key(self) -> tuple[str, int]:
        return (self.unit.value, self.amount)


@dataclass(slots=True, frozen=True)
class Subject:
    id: str
    name: str
    color: str = "#64748b"


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime

    subject_id: str | None = None
    detail: str = ""
    task_type: TaskType = TaskType.DEADLINE
    start_at: datetime | None = None
    due_at: datetime | None = None
    all_day: bool = False
    duration: int = DEFAULT_DURATION_MINUTES
    link: str = ""
    status: TaskStatus = TaskStatus.TODO
    category: Category = Category.STUDY
    priority: Priority = Priority.MED
    progress: int = 0
    reminders: tuple[Reminder, ...] = ()

    @property
    def end_at(self) -> datetime | None:
        """End of the occupied slot (due instant plus duration)."""
        if self.due_at is None:
            return None
        return self.due_at + timedelta(minutes=self.duration)


@dataclass(slots=True, frozen=True)
class ScheduleState:
    subjects: tuple[Subject, ...] = ()
    tasks: tuple[Task, ...] = ()
    last_login_date: date | None = None
    login_streak: int = 0

    def subject(self, subject_id: str | None) -> Subject | None:
        if not subject_id:
            return None
        for s in self.subjects:
            if s.id == subject_id:
                return s
        return None

    def task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def subject_names(self) -> dict[str, str]:
        return {s.id: s.name for s in self.subjects}


EMPTY_STATE = ScheduleState()


@dataclass(slots=True, frozen=True)
class TaskDraft:
    """Optional fields accepted by new_task(); keeps the factory signature short."""

    subject_id: str | None = None
    detail: str = ""
    task_type: TaskType = TaskType.DEADLINE
    start_at: datetime | None = None
    due_at: datetime | None = None
    all_day: bool = False
    duration: int | None = None
    link: str = ""
    category: Category = Category.STUDY
    priority: Priority = Priority.MED
    progress: int = 0
    reminders: tuple[Reminder, ...] = field(default_factory=tuple)


def new_id() -> str:
    """Short random opaque token (7 chars, base36)."""
    return "".join(random.choices(_ID_ALPHABET, k=_ID_LENGTH))


def normalize_duration(raw: object) -> int:
    try:
        minutes = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_DURATION_MINUTES
    if minutes <= 0:
        return DEFAULT_DURATION_MINUTES
    return max(MIN_DURATION_MINUTES, minutes)


def normalize_progress(raw: object) -> int:
    """Percent complete, clamped to 0..100; unreadable values count as 0."""
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    return min(100, max(0, value))


def normalize_range(
    start_at: datetime | None, due_at: datetime | None
) -> tuple[datetime | None, datetime | None]:
    """Swap an inverted start/due pair."""
    if start_at is not None and due_at is not None and start_at > due_at:
        return due_at, start_at
    return start_at, due_at


def normalize_reminders(items: Iterable[Reminder]) -> tuple[Reminder, ...]:
    """Drop non-positive amounts and duplicate (unit, amount) pairs; keep first-seen order."""
    seen: set[tuple[str, int]] = set()
    out: list[Reminder] = []
    for r in items:
        if r.amount <= 0 or r.key in seen:
            continue
        seen.add(r.key)
        out.append(r)
    return tuple(out)


def new_subject(name: str, color: str = "#64748b", *, subject_id: str | None = None) -> Subject:
    name = (name or "").strip()
    if not name:
        raise ValidationError("subject name is required")
    return Subject(id=subject_id or new_id(), name=name, color=(color or "#64748b").strip())


def new_task(
    title: str,
    draft: TaskDraft | None = None,
    *,
    now: datetime | None = None,
    task_id: str | None = None,
) -> Task:
    """Validate and build a fresh todo task with createdAt == updatedAt == now."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("task title is required")

    d = draft or TaskDraft()
    if now is None:
        now = datetime.now()
    start_at, due_at = normalize_range(d.start_at, d.due_at)

    return Task(
        id=task_id or new_id(),
        title=title,
        created_at=now,
        updated_at=now,
        subject_id=d.subject_id or None,
        detail=d.detail or "",
        task_type=d.task_type,
        start_at=start_at,
        due_at=due_at,
        all_day=bool(d.all_day and due_at is not None),
        duration=normalize_duration(d.duration),
        link=d.link or "",
        status=TaskStatus.TODO,
        category=d.category,
        priority=d.priority,
        progress=normalize_progress(d.progress),
        reminders=normalize_reminders(d.reminders),
    )
