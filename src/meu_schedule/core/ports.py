# src/meu_schedule/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/notification backends swappable and makes testing easier.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Awaitable, Protocol

StateDocument = dict[str, Any]
# JSON-shaped state document, see core/documents.py.


class PermissionState(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Local wall-clock time (naive datetimes)."""

    def now(self) -> datetime:
        return datetime.now()


class StateRepo(Protocol):
    """
    Document store holding one state document per user.

    load() returns None when the user has no document yet.
    Both methods raise PersistenceError on backend failure.
    """

    def load(self, user_id: str) -> StateDocument | None: ...

    def save(self, user_id: str, doc: StateDocument) -> None: ...


class Notifier(Protocol):
    """
    Notification capability.

    fire() may be a plain function or a coroutine function; the reminder scheduler
    handles both.
    """

    @property
    def permission_state(self) -> PermissionState: ...

    def request_permission(self) -> PermissionState: ...

    def fire(self, title: str, body: str) -> Awaitable[None] | None: ...
