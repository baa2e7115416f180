# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from meu_schedule.core.session import ScheduleSession
from meu_schedule.core.state import AppState

from .fakes import FakeClock, FakeStateRepo

# Fixed "now" for deterministic tests (a Monday).
NOW = datetime(2024, 3, 4, 8, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="meu-test",
        user_id="u1",
        data_dir=tmp_path,
        state_db_path=tmp_path / "schedule.sqlite3",
        export_path=tmp_path / "meu-data.json",
        notifications_enabled=False,
        tick_seconds=30.0,
        console_enabled=False,
        matrix_enabled=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture()
def repo() -> FakeStateRepo:
    return FakeStateRepo()


@pytest.fixture()
def session(repo: FakeStateRepo, clock: FakeClock) -> ScheduleSession:
    """Session signed in as u1 over an in-memory document store."""
    s = ScheduleSession(repo, clock=clock)
    s.sign_in("u1")
    return s


@pytest.fixture()
def state(settings: SimpleNamespace, session: ScheduleSession) -> AppState:
    """AppState without a reminder runner (commands are tested synchronously)."""
    return AppState(settings=settings, session=session)
