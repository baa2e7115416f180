# src/meu_schedule/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .session import ScheduleSession

if TYPE_CHECKING:
    from ..cli.runner import ReminderRunner


@dataclass
class AppState:
    # Settings live on the state so command handlers don't read global config.
    settings: object
    session: ScheduleSession
    runner: ReminderRunner | None = None
