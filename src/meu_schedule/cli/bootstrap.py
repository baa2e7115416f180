# src/meu_schedule/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the document store, notifiers and reminder runner around one ScheduleSession.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.matrix_notifier import MatrixNotifier
from ..connectors.notifiers import ConsoleNotifier, FanoutNotifier
from ..core.ports import Notifier
from ..core.session import ScheduleSession
from ..core.state import AppState
from ..storage.state_repo import SqliteStateRepo
from .runner import ReminderRunner

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.state_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.export_path.parent.mkdir(parents=True, exist_ok=True)
    if settings.matrix_enabled:
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def build_notifier(settings) -> tuple[Notifier | None, MatrixNotifier | None]:
    if not settings.notifications_enabled:
        logger.info("Notifications disabled via settings; reminders will not fire.")
        return None, None

    members: list[Notifier] = []
    if settings.console_enabled:
        members.append(ConsoleNotifier())

    matrix: MatrixNotifier | None = None
    if settings.matrix_enabled:
        matrix = MatrixNotifier(room_id=settings.matrix_room)
        members.append(matrix)

    if not members:
        return None, None
    return FanoutNotifier(members), matrix


def create_initial_state(*, settings=None, start_runner: bool = True) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    session = ScheduleSession(SqliteStateRepo(settings.state_db_path))
    state = AppState(settings=settings, session=session)

    notifier, matrix = build_notifier(settings)
    if notifier is not None:
        notifier.request_permission()

    if start_runner:
        runner = ReminderRunner(
            session,
            notifier,
            tick_seconds=settings.tick_seconds,
            matrix=matrix,
            settings=settings,
        )
        if runner.start():
            state.runner = runner

    notice = session.sign_in(settings.user_id)
    if notice:
        logger.warning(notice)
    return state


def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    runner = state.runner
    if runner is not None:
        runner.stop()
        runner.join(timeout=10.0)
        state.runner = None
