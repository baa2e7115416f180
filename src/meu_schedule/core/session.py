# src/meu_schedule/core/session.py

"""
Schedule session: the single owner of the in-memory ScheduleState.

- applies commands in issue order through store.reduce (under a lock)
- saves the whole document after each change (best-effort; failures become notices)
- notifies listeners (reminder re-sync) with the new state snapshot
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from . import lifecycle
from .documents import state_to_doc
from .errors import PersistenceError, ValidationError
from .models import EMPTY_STATE, ScheduleState, Subject, Task, TaskDraft, new_subject, new_task
from .ports import Clock, StateRepo, SystemClock
from .store import (
    AddSubject,
    AddTask,
    DeleteSubject,
    DeleteTask,
    Load,
    Reset,
    SetLoginStreak,
    UpdateSubject,
    UpdateTask,
    next_login_streak,
    reduce,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[ScheduleState], None]


class ScheduleSession:
    def __init__(
        self,
        repo: StateRepo | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._repo = repo
        self.clock: Clock = clock or SystemClock()
        self._state: ScheduleState = EMPTY_STATE
        self._user_id: str | None = None
        self._lock = threading.RLock()
        self._listeners: list[StateListener] = []

    # ---- read side ----

    @property
    def state(self) -> ScheduleState:
        return self._state

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        snapshot = self._state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener failed")

    # ---- command path ----

    def dispatch(self, command: object, *, now: datetime | None = None) -> str | None:
        """
        Apply one command and persist.

        Returns an advisory notice when saving failed, otherwise None. The in-memory
        state is authoritative either way. `now` defaults to one clock sample.
        """
        with self._lock:
            before = self._state
            self._state = reduce(before, command, now=now or self.clock.now())
            if self._state is before:
                return None
            notice = self._save()
        self._notify()
        return notice

    def _save(self) -> str | None:
        if self._repo is None or not self._user_id:
            return None
        try:
            self._repo.save(self._user_id, state_to_doc(self._state))
        except PersistenceError as e:
            logger.exception("Saving schedule failed user=%s", self._user_id)
            return f"Could not save your schedule ({e}). Changes are kept in memory."
        return None

    # ---- sign-in / sign-out ----

    def sign_in(self, user_id: str, *, today: date | None = None) -> str | None:
        """Load the user's document (missing or failing -> empty state) and record the login."""
        notice: str | None = None
        doc: Any = None
        if self._repo is not None:
            try:
                doc = self._repo.load(user_id)
            except PersistenceError as e:
                logger.exception("Loading schedule failed user=%s", user_id)
                notice = f"Could not load your schedule ({e}). Starting empty."

        with self._lock:
            self._user_id = user_id
            self._state = reduce(EMPTY_STATE, Load(doc) if doc is not None else Reset(), now=self.clock.now())
            logger.info(
                "Signed in user=%s subjects=%d tasks=%d",
                user_id,
                len(self._state.subjects),
                len(self._state.tasks),
            )
        self._notify()

        streak_notice = self.record_login(today or self.clock.now().date())
        return notice or streak_notice

    def sign_out(self) -> None:
        with self._lock:
            self._user_id = None
            self._state = EMPTY_STATE
        logger.info("Signed out")
        self._notify()

    def record_login(self, today: date) -> str | None:
        last, streak = next_login_streak(self._state, today)
        if last == self._state.last_login_date and streak == self._state.login_streak:
            return None
        return self.dispatch(SetLoginStreak(last, streak))

    # ---- subjects ----

    def add_subject(self, name: str, color: str = "#64748b") -> tuple[Subject, str | None]:
        subject = new_subject(name, color)
        return subject, self.dispatch(AddSubject(subject))

    def update_subject(self, subject_id: str, **fields: Any) -> str | None:
        if self._state.subject(subject_id) is None:
            raise ValidationError(f"unknown subject: {subject_id}")
        return self.dispatch(UpdateSubject({"id": subject_id, **fields}))

    def delete_subject(self, subject_id: str) -> str | None:
        if self._state.subject(subject_id) is None:
            raise ValidationError(f"unknown subject: {subject_id}")
        return self.dispatch(DeleteSubject(subject_id))

    # ---- tasks ----

    def add_task(self, title: str, draft: TaskDraft | None = None) -> tuple[Task, str | None]:
        if draft is not None and draft.subject_id and self._state.subject(draft.subject_id) is None:
            raise ValidationError(f"unknown subject: {draft.subject_id}")
        task = new_task(title, draft, now=self.clock.now())
        return task, self.dispatch(AddTask(task))

    def update_task(self, task_id: str, **fields: Any) -> str | None:
        if self._state.task(task_id) is None:
            raise ValidationError(f"unknown task: {task_id}")
        if "title" in fields and not str(fields["title"] or "").strip():
            raise ValidationError("task title is required")
        return self.dispatch(UpdateTask({"id": task_id, **fields}))

    def delete_task(self, task_id: str) -> str | None:
        if self._state.task(task_id) is None:
            raise ValidationError(f"unknown task: {task_id}")
        return self.dispatch(DeleteTask(task_id))

    def advance_status(self, task_id: str) -> tuple[Task, str | None]:
        """
        Cycle todo -> doing -> done -> todo.

        Raises UndoWindowExpired (state untouched) when reopening an archived task.
        """
        with self._lock:
            task = self._state.task(task_id)
            if task is None:
                raise ValidationError(f"unknown task: {task_id}")
            now = self.clock.now()
            advanced = lifecycle.advance(task, now)
            notice = self.dispatch(
                UpdateTask({"id": task_id, "status": advanced.status, "progress": advanced.progress}),
                now=now,
            )
            updated = self._state.task(task_id)
        assert updated is not None
        return updated, notice

    # ---- whole-document operations ----

    def load_document(self, doc: Any) -> str | None:
        return self.dispatch(Load(doc))

    def clear(self) -> str | None:
        """Wipe every subject and task (login streak included) and save the empty state."""
        with self._lock:
            self._state = EMPTY_STATE
            notice = self._save()
        self._notify()
        return notice
