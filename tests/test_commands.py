# tests/test_commands.py

from __future__ import annotations

from datetime import datetime

import pytest

from meu_schedule.cli.commands import (
    CommandRegistry,
    parse_reminders,
    parse_when,
    registry,
    split_options,
)
from meu_schedule.core.errors import ValidationError
from meu_schedule.core.models import OffsetUnit, Priority, Reminder, TaskStatus, TaskType

NOW = datetime(2024, 3, 4, 8, 0)


def test_command_registry_routes_and_aliases(state) -> None:
    reg = CommandRegistry()
    calls: list[list[str]] = []

    def h(state, args):
        calls.append(args)
        return "ok"

    reg.register("a", h, "a", aliases=["x"])

    assert reg.handle(state, '/a one "two words"') == "ok"
    assert reg.handle(state, "/X") == "ok"
    assert calls == [["one", "two words"], []]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")
    assert "Cannot parse" in (reg.handle(state, '/a "unterminated') or "")


def test_schedule_errors_become_replies(state) -> None:
    reg = CommandRegistry()

    def h(state, args):
        raise ValidationError("nope")

    reg.register("bad", h, "bad")
    assert reg.handle(state, "/bad") == "Error: nope"


def test_parse_helpers() -> None:
    assert parse_when("none", NOW) == (None, False)
    assert parse_when("2024-03-10", NOW) == (datetime(2024, 3, 10), True)
    assert parse_when("2024-03-10T09:30", NOW) == (datetime(2024, 3, 10, 9, 30), False)
    assert parse_when("tomorrow@14:00", NOW) == (datetime(2024, 3, 5, 14, 0), False)
    assert parse_when("17:15", NOW) == (datetime(2024, 3, 4, 17, 15), False)
    with pytest.raises(ValidationError):
        parse_when("someday", NOW)

    assert parse_reminders("15m,1h, 2d") == (
        Reminder(OffsetUnit.MINUTES, 15),
        Reminder(OffsetUnit.HOURS, 1),
        Reminder(OffsetUnit.DAYS, 2),
    )
    assert parse_reminders("none") == ()
    with pytest.raises(ValidationError):
        parse_reminders("5w")

    words, opts = split_options(["Read", "ch.3", "due=today", "foo=bar"], {"due"})
    assert words == ["Read", "ch.3", "foo=bar"]
    assert opts == {"due": "today"}


def test_add_list_and_advance_flow(state) -> None:
    reply = registry.handle(state, "/subject add Math #ff0000")
    assert reply is not None and reply.startswith("Added subject")

    reply = registry.handle(
        state, '/add "Read chapter 3" due=2024-03-05T09:00 subject=math type=event dur=90 remind=1h,1d'
    )
    assert reply is not None and reply.startswith("Added task")

    (task,) = state.session.state.tasks
    assert task.title == "Read chapter 3"
    assert task.task_type == TaskType.EVENT
    assert task.duration == 90
    assert task.due_at == datetime(2024, 3, 5, 9, 0)
    assert task.reminders == (Reminder(OffsetUnit.HOURS, 1), Reminder(OffsetUnit.DAYS, 1))
    assert state.session.state.subject(task.subject_id).name == "Math"

    listing = registry.handle(state, "/list chapter")
    assert listing is not None and task.id in listing and "(Math)" in listing

    reply = registry.handle(state, f"/advance {task.id}")
    assert reply == "Read chapter 3: todo -> doing"
    assert state.session.state.task(task.id).status == TaskStatus.DOING


def test_edit_and_delete(state) -> None:
    registry.handle(state, "/add Essay")
    (task,) = state.session.state.tasks

    reply = registry.handle(state, f"/edit {task.id} title=Final due=2024-03-09 detail='two pages'")
    assert reply is not None and reply.startswith("Updated task")
    edited = state.session.state.task(task.id)
    assert (edited.title, edited.detail, edited.all_day) == ("Final", "two pages", True)

    assert "unknown task" in (registry.handle(state, "/edit nope title=x") or "")

    registry.handle(state, f"/del {task.id}")
    assert state.session.state.tasks == ()


def test_priority_progress_and_status_filter(state) -> None:
    registry.handle(state, "/add Essay prio=high progress=40")
    registry.handle(state, "/add Groceries")
    essay, groceries = state.session.state.tasks
    assert (essay.priority, essay.progress) == (Priority.HIGH, 40)
    assert (groceries.priority, groceries.progress) == (Priority.MED, 0)

    registry.handle(state, f"/advance {essay.id}")
    listing = registry.handle(state, "/list status=doing")
    assert listing is not None
    assert essay.id in listing and groceries.id not in listing
    assert "[high]" in listing and "40%" in listing

    registry.handle(state, f"/edit {groceries.id} prio=low progress=10%")
    edited = state.session.state.task(groceries.id)
    assert (edited.priority, edited.progress) == (Priority.LOW, 10)

    assert "Error:" in (registry.handle(state, f"/edit {groceries.id} progress=150") or "")
    assert "Error:" in (registry.handle(state, "/list status=later") or "")


def test_add_with_unknown_subject_is_rejected(state) -> None:
    reply = registry.handle(state, "/add Essay subject=ghost")
    assert reply == "Error: unknown subject: ghost"
    assert state.session.state.tasks == ()


def test_views_render(state) -> None:
    registry.handle(state, "/add Meeting due=2024-03-04T09:00")

    agenda = registry.handle(state, "/agenda 2024-03-04")
    assert agenda is not None and "09:00-10:00  Meeting" in agenda and "free (540 min)" in agenda

    cal = registry.handle(state, "/cal 2024-03")
    assert cal is not None and cal.startswith("March 2024") and "Meeting" in cal

    assert "Meeting" in (registry.handle(state, "/soon") or "")
    assert "Error" in (registry.handle(state, "/cal 2024-13") or "")
    assert "nothing here yet" in (registry.handle(state, "/history") or "")


def test_export_import_and_clear(state, tmp_path) -> None:
    registry.handle(state, "/add Essay")
    out = tmp_path / "backup.json"

    assert registry.handle(state, f"/export {out}") == f"Exported to {out}"

    assert "confirm" in (registry.handle(state, "/clear") or "")
    assert registry.handle(state, "/clear confirm") == "All data cleared."
    assert state.session.state.tasks == ()

    reply = registry.handle(state, f"/import {out}")
    assert reply == "Imported 0 subjects and 1 tasks."
    assert [t.title for t in state.session.state.tasks] == ["Essay"]


def test_status_reports_counts(state) -> None:
    registry.handle(state, "/add Essay")
    reply = registry.handle(state, "/status") or ""
    assert "User: u1" in reply
    assert "1 todo" in reply
    assert "Login streak: 1" in reply


def test_console_loop_runs_commands_until_exit(state, monkeypatch, capsys) -> None:
    from meu_schedule.connectors.console_connector import run_console_loop

    lines = iter(["/add Essay due=2024-03-05T09:00", "hello", "", "/exit", "/add never"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(lines))

    run_console_loop(state)

    out = capsys.readouterr().out
    assert "signed in as u1" in out
    assert "Added task" in out
    assert "Commands start with '/'" in out
    assert [t.title for t in state.session.state.tasks] == ["Essay"]


def test_console_loop_survives_handler_crash(state, monkeypatch, capsys) -> None:
    from meu_schedule.connectors import console_connector

    def boom(state, line):
        raise RuntimeError("boom")

    lines = iter(["/status"])

    def fake_input(_prompt: str = "") -> str:
        try:
            return next(lines)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr(console_connector.command_registry, "handle", boom)
    monkeypatch.setattr("builtins.input", fake_input)

    console_connector.run_console_loop(state)

    assert "Internal error while handling a command." in capsys.readouterr().out
