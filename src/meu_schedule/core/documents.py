# src/meu_schedule/core/documents.py

"""
State document codec.

The persisted/exported form is a JSON object with camelCase keys:

    {"subjects": [...], "tasks": [...], "lastLoginDate": "YYYY-MM-DD" | null, "loginStreak": 0}

Reading is tolerant (documents come from storage, imports and older app versions):
- non-object entries are dropped
- unknown enum values fall back to defaults
- instants may be ISO strings (naive local, or offset-aware -> converted to local) or epoch ms
- a bare "YYYY-MM-DD" dueAt marks an all-day task
- a task whose subjectId names no loaded subject keeps the task with no subject
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from .errors import LoadShapeError
from .models import (
    Category,
    OffsetUnit,
    Priority,
    Reminder,
    ScheduleState,
    Subject,
    Task,
    TaskStatus,
    TaskType,
    new_id,
    normalize_duration,
    normalize_progress,
    normalize_range,
    normalize_reminders,
)

logger = logging.getLogger(__name__)


def parse_instant(raw: Any) -> tuple[datetime | None, bool]:
    """Return (instant, date_only). Unparseable values become (None, False)."""
    if raw is None or raw == "" or isinstance(raw, bool):
        return None, False

    if isinstance(raw, datetime):
        return _to_local_naive(raw), False

    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day), True

    if isinstance(raw, (int, float)):
        try:
            return datetime.fromtimestamp(float(raw) / 1000.0), False
        except (OverflowError, OSError, ValueError):
            return None, False

    if isinstance(raw, str):
        s = raw.strip()
        if len(s) == 10:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day), True
            except ValueError:
                return None, False
        try:
            return _to_local_naive(datetime.fromisoformat(s.replace("Z", "+00:00"))), False
        except ValueError:
            return None, False

    return None, False


def _to_local_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def instant_to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _parse_login_date(raw: Any) -> date | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        return None


def reminder_from_doc(raw: Any) -> Reminder | None:
    if not isinstance(raw, Mapping):
        return None
    # "type" is the key used by older documents.
    unit_raw = raw.get("offsetUnit", raw.get("type"))
    try:
        unit = OffsetUnit(str(unit_raw))
        amount = int(raw.get("amount"))
    except (TypeError, ValueError):
        return None
    if amount <= 0:
        return None
    return Reminder(unit=unit, amount=amount)


def subject_from_doc(raw: Mapping[str, Any]) -> Subject:
    return Subject(
        id=str(raw.get("id") or new_id()),
        name=str(raw.get("name") or ""),
        color=str(raw.get("color") or "#64748b"),
    )


def task_from_doc(raw: Mapping[str, Any], *, now: datetime | None = None) -> Task:
    if now is None:
        now = datetime.now()

    created_at, _ = parse_instant(raw.get("createdAt"))
    updated_at, _ = parse_instant(raw.get("updatedAt"))
    created_at = created_at or updated_at or now
    updated_at = max(updated_at or created_at, created_at)

    start_at, _ = parse_instant(raw.get("startAt"))
    due_at, due_date_only = parse_instant(raw.get("dueAt"))
    start_at, due_at = normalize_range(start_at, due_at)

    reminders_raw = raw.get("reminders")
    reminders = []
    if isinstance(reminders_raw, list):
        for item in reminders_raw:
            r = reminder_from_doc(item)
            if r is not None:
                reminders.append(r)

    subject_id = raw.get("subjectId")

    return Task(
        id=str(raw.get("id") or new_id()),
        title=str(raw.get("title") or "").strip() or "(untitled)",
        created_at=created_at,
        updated_at=updated_at,
        subject_id=str(subject_id) if subject_id else None,
        detail=str(raw.get("detail") or ""),
        task_type=TaskType.from_doc(raw.get("taskType")),
        start_at=start_at,
        due_at=due_at,
        all_day=due_at is not None and (due_date_only or bool(raw.get("allDay"))),
        duration=normalize_duration(raw.get("duration")),
        link=str(raw.get("link") or ""),
        status=TaskStatus.from_doc(raw.get("status")),
        category=Category.from_doc(raw.get("category")),
        priority=Priority.from_doc(raw.get("priority")),
        progress=normalize_progress(raw.get("progress")),
        reminders=normalize_reminders(reminders),
    )


def state_from_doc(doc: Any, *, now: datetime | None = None) -> ScheduleState:
    """
    Build a ScheduleState from a loaded document.

    Raises LoadShapeError when the payload is not a JSON object; callers (the store)
    recover by substituting the empty state.
    """
    if not isinstance(doc, Mapping):
        raise LoadShapeError(f"state document must be an object, got {type(doc).__name__}")

    subjects: list[Subject] = []
    seen_subjects: set[str] = set()
    raw_subjects = doc.get("subjects")
    if isinstance(raw_subjects, list):
        for item in raw_subjects:
            if not isinstance(item, Mapping):
                continue
            s = subject_from_doc(item)
            if s.id in seen_subjects:
                logger.debug("Dropping duplicate subject id=%s", s.id)
                continue
            seen_subjects.add(s.id)
            subjects.append(s)

    tasks: list[Task] = []
    seen_tasks: set[str] = set()
    raw_tasks = doc.get("tasks")
    if isinstance(raw_tasks, list):
        for item in raw_tasks:
            if not isinstance(item, Mapping):
                continue
            t = task_from_doc(item, now=now)
            if t.id in seen_tasks:
                logger.debug("Dropping duplicate task id=%s", t.id)
                continue
            if t.subject_id is not None and t.subject_id not in seen_subjects:
                logger.debug("Task %s: unknown subject id=%s cleared", t.id, t.subject_id)
                t = replace(t, subject_id=None)
            seen_tasks.add(t.id)
            tasks.append(t)

    try:
        streak = max(0, int(doc.get("loginStreak") or 0))
    except (TypeError, ValueError):
        streak = 0

    return ScheduleState(
        subjects=tuple(subjects),
        tasks=tuple(tasks),
        last_login_date=_parse_login_date(doc.get("lastLoginDate")),
        login_streak=streak,
    )


def reminder_to_doc(r: Reminder) -> dict[str, Any]:
    return {"offsetUnit": r.unit.value, "amount": r.amount}


def subject_to_doc(s: Subject) -> dict[str, Any]:
    return {"id": s.id, "name": s.name, "color": s.color}


def task_to_doc(t: Task) -> dict[str, Any]:
    if t.due_at is None:
        due: str | None = None
    elif t.all_day:
        due = t.due_at.date().isoformat()
    else:
        due = t.due_at.isoformat()

    return {
        "id": t.id,
        "subjectId": t.subject_id,
        "title": t.title,
        "detail": t.detail,
        "taskType": t.task_type.value,
        "startAt": t.start_at.isoformat() if t.start_at else None,
        "dueAt": due,
        "allDay": t.all_day,
        "duration": t.duration,
        "link": t.link,
        "status": t.status.value,
        "category": t.category.value,
        "priority": t.priority.value,
        "progress": t.progress,
        "reminders": [reminder_to_doc(r) for r in t.reminders],
        "createdAt": instant_to_ms(t.created_at),
        "updatedAt": instant_to_ms(t.updated_at),
    }


def state_to_doc(state: ScheduleState) -> dict[str, Any]:
    return {
        "subjects": [subject_to_doc(s) for s in state.subjects],
        "tasks": [task_to_doc(t) for t in state.tasks],
        "lastLoginDate": state.last_login_date.isoformat() if state.last_login_date else None,
        "loginStreak": state.login_streak,
    }
