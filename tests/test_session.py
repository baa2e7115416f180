# tests/test_session.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from meu_schedule.core.errors import UndoWindowExpired, ValidationError
from meu_schedule.core.models import EMPTY_STATE, TaskDraft, TaskStatus
from meu_schedule.core.session import ScheduleSession

from .fakes import FakeClock, FakeStateRepo


def test_sign_in_without_document_starts_empty_and_records_streak(session, repo) -> None:
    st = session.state
    assert (st.subjects, st.tasks) == ((), ())
    assert st.login_streak == 1
    assert st.last_login_date == date(2024, 3, 4)
    # the streak update was persisted
    assert repo.docs["u1"]["loginStreak"] == 1


def test_sign_in_next_day_extends_streak(repo, clock) -> None:
    first = ScheduleSession(repo, clock=clock)
    first.sign_in("u1")

    clock.advance(days=1)
    second = ScheduleSession(repo, clock=clock)
    second.sign_in("u1")

    assert second.state.login_streak == 2


def test_sign_in_load_failure_becomes_notice(clock) -> None:
    repo = FakeStateRepo({"u1": {"tasks": [{"id": "t1", "title": "A"}]}})
    repo.fail_load = True
    session = ScheduleSession(repo, clock=clock)

    notice = session.sign_in("u1")

    assert notice is not None and "Could not load" in notice
    assert session.state.tasks == ()


def test_save_failure_keeps_state_and_returns_notice(session, repo) -> None:
    repo.fail_save = True

    task, notice = session.add_task("Essay")

    assert notice is not None and "Could not save" in notice
    assert session.state.task(task.id) is not None


def test_changes_are_saved_and_listeners_notified(session, repo) -> None:
    seen = []
    session.subscribe(lambda st: seen.append(len(st.tasks)))

    subject, _ = session.add_subject("Math")
    task, _ = session.add_task("Essay", TaskDraft(subject_id=subject.id))

    assert seen == [0, 1]
    saved = repo.docs["u1"]
    assert [t["id"] for t in saved["tasks"]] == [task.id]
    assert saved["tasks"][0]["subjectId"] == subject.id


def test_validation_errors(session) -> None:
    with pytest.raises(ValidationError):
        session.add_task("   ")
    with pytest.raises(ValidationError):
        session.add_subject("")
    with pytest.raises(ValidationError):
        session.add_task("x", TaskDraft(subject_id="missing"))
    with pytest.raises(ValidationError):
        session.update_task("missing", title="x")
    with pytest.raises(ValidationError):
        session.delete_subject("missing")


def test_advance_status_and_undo_window(session, clock) -> None:
    task, _ = session.add_task("Essay")

    for expected in (TaskStatus.DOING, TaskStatus.DONE):
        updated, _ = session.advance_status(task.id)
        assert updated.status == expected

    clock.advance(minutes=61)
    with pytest.raises(UndoWindowExpired):
        session.advance_status(task.id)
    assert session.state.task(task.id).status == TaskStatus.DONE


def test_advance_status_stamps_one_instant_and_sets_progress(session, clock) -> None:
    task, _ = session.add_task("Essay", TaskDraft(progress=20))

    clock.advance(minutes=5)
    doing, _ = session.advance_status(task.id)
    clock.advance(minutes=5)
    done, _ = session.advance_status(task.id)

    assert (doing.progress, doing.updated_at) == (20, task.created_at + timedelta(minutes=5))
    assert (done.progress, done.updated_at) == (100, clock.now())

    reopened, _ = session.advance_status(task.id)
    assert (reopened.status, reopened.progress) == (TaskStatus.TODO, 0)


def test_delete_subject_cascades_through_session(session) -> None:
    subject, _ = session.add_subject("Math")
    session.add_task("Homework", TaskDraft(subject_id=subject.id))
    keep, _ = session.add_task("Groceries")

    session.delete_subject(subject.id)

    assert [t.id for t in session.state.tasks] == [keep.id]


def test_clear_and_sign_out(session, repo) -> None:
    session.add_task("Essay")

    session.clear()
    assert session.state == EMPTY_STATE
    assert repo.docs["u1"]["tasks"] == []

    session.sign_out()
    assert session.user_id is None


def test_load_document_replaces_state(session) -> None:
    session.add_task("Old")

    session.load_document({"subjects": [{"id": "s1", "name": "Math"}], "tasks": []})

    assert [s.name for s in session.state.subjects] == ["Math"]
    assert session.state.tasks == ()


def test_no_repo_session_works_in_memory(clock) -> None:
    session = ScheduleSession(clock=clock)
    session.sign_in("local")
    task, notice = session.add_task("Essay", TaskDraft(due_at=clock.now() + timedelta(days=1)))
    assert notice is None
    assert session.state.task(task.id) is not None
