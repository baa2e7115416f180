# src/meu_schedule/core/errors.py

from __future__ import annotations

"""
Error taxonomy for the schedule engine.

Domain errors are recovered at the store/session boundary; only persistence and
notification problems are ever shown to the user, and only as advisory notices.
"""


class ScheduleError(Exception):
    """Base class for every error raised by meu_schedule."""


class ValidationError(ScheduleError):
    """Input rejected before it reaches the store (e.g. empty task title)."""


class UndoWindowExpired(ScheduleError):
    """Status advance attempted on a done task after its one hour undo window."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} is archived; its status can no longer change.")
        self.task_id = task_id


class LoadShapeError(ScheduleError):
    """A state document is not a well-formed JSON object."""


class PersistenceError(ScheduleError):
    """Load/save against the document store failed. In-memory state stays authoritative."""


class NotificationUnavailable(ScheduleError):
    """No notification capability, or permission was not granted."""
