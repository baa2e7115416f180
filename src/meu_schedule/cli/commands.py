# src/meu_schedule/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from ..core.documents import parse_instant
from ..core.errors import ScheduleError, ValidationError
from ..core.lifecycle import archived_tasks
from ..core.models import Category, OffsetUnit, Priority, Reminder, Subject, TaskDraft, TaskStatus, TaskType
from ..core.state import AppState
from ..storage.backup import export_state, import_document
from ..views.agenda import build_agenda
from ..views.calendar import month_view
from ..views.query import due_soon, query_tasks, status_counts
from . import render

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Schedule errors (validation, undo window, bad import) become the reply;
        anything else propagates to the connector.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except ScheduleError as e:
            logger.info("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument parsing ----

_UNIT_SUFFIX = {"m": OffsetUnit.MINUTES, "h": OffsetUnit.HOURS, "d": OffsetUnit.DAYS}


def split_options(args: list[str], keys: set[str]) -> tuple[list[str], dict[str, str]]:
    """Separate key=value options (known keys only) from positional words."""
    words: list[str] = []
    opts: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key.lower() in keys:
            opts[key.lower()] = value
        else:
            words.append(a)
    return words, opts


def parse_when(raw: str, now: datetime) -> tuple[datetime | None, bool]:
    """
    Parse a date/time option.

    Accepts "none", "today", "tomorrow" (optionally "@HH:MM"), "HH:MM" (today),
    "YYYY-MM-DD" (all day) and ISO "YYYY-MM-DDTHH:MM".
    Returns (instant, all_day).
    """
    s = raw.strip()
    if s.lower() in ("", "none", "-"):
        return None, False

    day_word, _, clock = s.partition("@")
    base = {"today": now.date(), "tomorrow": now.date() + timedelta(days=1)}.get(day_word.lower())
    if base is not None:
        if not clock:
            return datetime(base.year, base.month, base.day), True
        s = f"{base.isoformat()}T{clock}"
    elif len(s) == 5 and s[2] == ":":
        s = f"{now.date().isoformat()}T{s}"

    dt, date_only = parse_instant(s.replace(" ", "T"))
    if dt is None:
        raise ValidationError(f"cannot parse date/time: {raw!r}")
    return dt, date_only


def parse_reminders(raw: str) -> tuple[Reminder, ...]:
    """'15m,1h,1d' -> reminders. 'none' clears."""
    if raw.strip().lower() in ("", "none", "-"):
        return ()
    out: list[Reminder] = []
    for part in raw.split(","):
        part = part.strip().lower()
        if not part:
            continue
        unit = _UNIT_SUFFIX.get(part[-1])
        try:
            amount = int(part[:-1])
        except ValueError:
            amount = 0
        if unit is None or amount <= 0:
            raise ValidationError(f"bad reminder {part!r} (use e.g. 15m, 3h, 1d)")
        out.append(Reminder(unit=unit, amount=amount))
    return tuple(out)


def parse_status(raw: str) -> TaskStatus:
    try:
        return TaskStatus(raw.strip().lower())
    except ValueError as e:
        raise ValidationError("status must be todo, doing or done") from e


def parse_day(raw: str | None, today: date) -> date:
    if not raw or raw.lower() == "today":
        return today
    if raw.lower() == "tomorrow":
        return today + timedelta(days=1)
    if raw.lower() == "yesterday":
        return today - timedelta(days=1)
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError(f"cannot parse day: {raw!r} (use YYYY-MM-DD)") from e


def resolve_subject(state: AppState, ref: str) -> Subject:
    st = state.session.state
    found = st.subject(ref)
    if found is not None:
        return found
    needle = ref.strip().lower()
    for s in st.subjects:
        if s.name.lower() == needle:
            return s
    raise ValidationError(f"unknown subject: {ref}")


def _with_notice(reply: str, notice: str | None) -> str:
    return f"{reply}\n[!] {notice}" if notice else reply


_TASK_KEYS = {
    "due", "start", "subject", "type", "dur", "remind", "cat", "prio", "progress", "link", "detail", "title", "status"
}


def _task_fields(state: AppState, opts: dict[str, str], now: datetime) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if "due" in opts:
        due_at, all_day = parse_when(opts["due"], now)
        fields["due_at"] = due_at
        fields["all_day"] = all_day
    if "start" in opts:
        fields["start_at"], _ = parse_when(opts["start"], now)
    if "subject" in opts:
        ref = opts["subject"]
        fields["subject_id"] = None if ref.lower() in ("", "none") else resolve_subject(state, ref).id
    if "type" in opts:
        try:
            fields["task_type"] = TaskType(opts["type"].lower())
        except ValueError as e:
            raise ValidationError("type must be deadline or event") from e
    if "dur" in opts:
        try:
            fields["duration"] = int(opts["dur"])
        except ValueError as e:
            raise ValidationError("dur must be a number of minutes") from e
    if "remind" in opts:
        fields["reminders"] = parse_reminders(opts["remind"])
    if "cat" in opts:
        try:
            fields["category"] = Category(opts["cat"].lower())
        except ValueError as e:
            raise ValidationError("cat must be study, work or personal") from e
    if "prio" in opts:
        try:
            fields["priority"] = Priority(opts["prio"].lower())
        except ValueError as e:
            raise ValidationError("prio must be low, med or high") from e
    if "progress" in opts:
        try:
            progress = int(opts["progress"].rstrip("%"))
        except ValueError as e:
            raise ValidationError("progress must be a number from 0 to 100") from e
        if not 0 <= progress <= 100:
            raise ValidationError("progress must be a number from 0 to 100")
        fields["progress"] = progress
    for key in ("link", "detail", "title"):
        if key in opts:
            fields[key] = opts[key]
    if "status" in opts:
        fields["status"] = parse_status(opts["status"])
    return fields


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    session = state.session
    st = session.state
    counts = status_counts(st.tasks)
    archived = len(archived_tasks(st.tasks, session.clock.now()))
    armed = state.runner.armed_count if state.runner is not None else 0
    return (
        "Status:\n"
        f"  User: {session.user_id or '(signed out)'}\n"
        f"  Login streak: {st.login_streak} day(s)\n"
        f"  Subjects: {len(st.subjects)}\n"
        f"  Tasks: {counts[TaskStatus.TODO]} todo, {counts[TaskStatus.DOING]} doing, "
        f"{counts[TaskStatus.DONE]} done ({archived} archived)\n"
        f"  Reminders armed: {armed}"
    )


def cmd_subjects(state: AppState, args: list[str]) -> str:
    st = state.session.state
    if not st.subjects:
        return "No subjects yet. Use /subject add <name> [color]."
    lines = ["Subjects:"]
    for s in st.subjects:
        n = sum(1 for t in st.tasks if t.subject_id == s.id)
        lines.append(f"  {s.id}  {s.name}  {s.color}  ({n} tasks)")
    return "\n".join(lines)


def cmd_subject(state: AppState, args: list[str]) -> str:
    """
    /subject add <name> [color]
    /subject rename <id|name> <new name>
    /subject color <id|name> <color>
    /subject del <id|name>     (deletes its tasks too)
    """
    usage = "Usage: /subject add <name> [color] | rename <subject> <name> | color <subject> <color> | del <subject>"
    if not args:
        return usage

    sub = args[0].lower()
    session = state.session

    if sub == "add" and len(args) >= 2:
        color = args[2] if len(args) >= 3 else "#64748b"
        subject, notice = session.add_subject(args[1], color)
        return _with_notice(f"Added subject {subject.id}: {subject.name}", notice)

    if sub == "rename" and len(args) >= 3:
        subject = resolve_subject(state, args[1])
        name = " ".join(args[2:]).strip()
        if not name:
            raise ValidationError("subject name is required")
        notice = session.update_subject(subject.id, name=name)
        return _with_notice(f"Renamed {subject.name} -> {name}", notice)

    if sub == "color" and len(args) >= 3:
        subject = resolve_subject(state, args[1])
        notice = session.update_subject(subject.id, color=args[2])
        return _with_notice(f"Subject {subject.name} color -> {args[2]}", notice)

    if sub in ("del", "delete", "rm") and len(args) >= 2:
        subject = resolve_subject(state, args[1])
        n = sum(1 for t in session.state.tasks if t.subject_id == subject.id)
        notice = session.delete_subject(subject.id)
        return _with_notice(f"Deleted subject {subject.name} and {n} task(s).", notice)

    return usage


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <title> [due=..] [start=..] [subject=..] [type=deadline|event] [dur=60] [remind=15m,1h] ..."""
    words, opts = split_options(args, _TASK_KEYS - {"title", "status"})
    title = " ".join(words).strip()
    if not title:
        return "Usage: /add <title> [due=YYYY-MM-DDTHH:MM] [start=..] [subject=..] [type=event] [dur=60] [remind=15m,1h,1d] [cat=work] [prio=high] [progress=0] [link=..] [detail=..]"

    session = state.session
    fields = _task_fields(state, opts, session.clock.now())
    draft = TaskDraft(**fields)
    task, notice = session.add_task(title, draft)
    return _with_notice(f"Added task {task.id}: {task.title}", notice)


def cmd_edit(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /edit <task id> key=value ... (title, due, start, subject, type, dur, remind, cat, prio, progress, link, detail, status)"
    task_id = args[0]
    _, opts = split_options(args[1:], _TASK_KEYS)
    if not opts:
        return "Nothing to change."

    session = state.session
    fields = _task_fields(state, opts, session.clock.now())
    notice = session.update_task(task_id, **fields)
    updated = session.state.task(task_id)
    reply = f"Updated task {task_id}."
    if "status" in fields and updated is not None and updated.status != fields["status"]:
        reply += f" Status kept at {updated.status.value} (undo window expired)."
    return _with_notice(reply, notice)


def cmd_advance(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /advance <task id>"
    session = state.session
    before = session.state.task(args[0])
    task, notice = session.advance_status(args[0])
    prev = before.status.value if before is not None else "?"
    return _with_notice(f"{task.title}: {prev} -> {task.status.value}", notice)


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <task id>"
    task = state.session.state.task(args[0])
    notice = state.session.delete_task(args[0])
    title = task.title if task is not None else ""
    return _with_notice(f"Deleted task {args[0]} {title}".rstrip(), notice)


def cmd_list(state: AppState, args: list[str]) -> str:
    """/list [subject=<id|name>] [status=todo|doing|done] [search words]"""
    words, opts = split_options(args, {"subject", "status"})
    subject_id = resolve_subject(state, opts["subject"]).id if opts.get("subject") else None
    status = parse_status(opts["status"]) if opts.get("status") else None
    session = state.session
    st = session.state
    now = session.clock.now()
    tasks = query_tasks(st.tasks, now, subject_id=subject_id, status=status, text=" ".join(words))
    return render.task_list("Tasks", tasks, st.subject_names(), now)


def cmd_history(state: AppState, args: list[str]) -> str:
    session = state.session
    st = session.state
    now = session.clock.now()
    return render.task_list("Archived", archived_tasks(st.tasks, now), st.subject_names(), now)


def cmd_agenda(state: AppState, args: list[str]) -> str:
    session = state.session
    day = parse_day(args[0] if args else None, session.clock.now().date())
    return render.agenda(day, build_agenda(day, session.state.tasks))


def cmd_calendar(state: AppState, args: list[str]) -> str:
    today = state.session.clock.now().date()
    year, month = today.year, today.month
    if args:
        try:
            y, m = args[0].split("-", 1)
            year, month = int(y), int(m)
            date(year, month, 1)
        except ValueError as e:
            raise ValidationError("use /cal YYYY-MM") from e
    cells = month_view(year, month, state.session.state.tasks, today)
    return render.month(year, month, cells)


def cmd_soon(state: AppState, args: list[str]) -> str:
    session = state.session
    st = session.state
    now = session.clock.now()
    return render.task_list("Due soon", due_soon(st.tasks, now), st.subject_names(), now)


def cmd_export(state: AppState, args: list[str]) -> str:
    path = Path(args[0]) if args else Path(getattr(state.settings, "export_path", "meu-data.json"))
    written = export_state(state.session.state, path)
    return f"Exported to {written}"


def cmd_import(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /import <path.json>"
    doc = import_document(args[0])
    notice = state.session.load_document(doc)
    st = state.session.state
    return _with_notice(f"Imported {len(st.subjects)} subjects and {len(st.tasks)} tasks.", notice)


def cmd_clear(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() != "confirm":
        return "This deletes every subject and task and cannot be undone. Use /clear confirm."
    notice = state.session.clear()
    return _with_notice("All data cleared.", notice)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show user, login streak and task counts.")
registry.register("subjects", cmd_subjects, help_text="List subjects.")
registry.register(
    "subject", cmd_subject, help_text="Manage subjects: add | rename | color | del."
)
registry.register("add", cmd_add, help_text="Add a task: /add <title> [due=..] [remind=15m,1h] ...")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> key=value ...")
registry.register(
    "advance", cmd_advance, help_text="Cycle status todo -> doing -> done -> todo.", aliases=["next"]
)
registry.register("del", cmd_delete, help_text="Delete a task.", aliases=["rm"])
registry.register("list", cmd_list, help_text="Active tasks: /list [subject=..] [status=..] [search].", aliases=["ls"])
registry.register("history", cmd_history, help_text="Archived (completed) tasks.")
registry.register("agenda", cmd_agenda, help_text="Day agenda with free time: /agenda [YYYY-MM-DD].")
registry.register("cal", cmd_calendar, help_text="Month calendar: /cal [YYYY-MM].")
registry.register("soon", cmd_soon, help_text="Five nearest open deadlines.")
registry.register("export", cmd_export, help_text="Export all data to JSON: /export [path].")
registry.register("import", cmd_import, help_text="Import data from JSON: /import <path>.")
registry.register("clear", cmd_clear, help_text="Delete all data: /clear confirm.")
