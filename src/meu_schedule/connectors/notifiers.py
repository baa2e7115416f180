# src/meu_schedule/connectors/notifiers.py

from __future__ import annotations

import inspect
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from ..core.ports import Notifier, PermissionState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleNotifier:
    """Prints reminders to the terminal. Permission is implicit once enabled."""

    def __init__(self, *, enabled: bool = True, write: Callable[[str], None] | None = None) -> None:
        self._state = PermissionState.GRANTED if enabled else PermissionState.DENIED
        self._write = write or self._default_write

    @staticmethod
    def _default_write(line: str) -> None:
        sys.stdout.write(line + "\n")
        sys.stdout.flush()

    @property
    def permission_state(self) -> PermissionState:
        return self._state

    def request_permission(self) -> PermissionState:
        return self._state

    def fire(self, title: str, body: str) -> None:
        text = f"[{_ts_local()}] [REMINDER] {title}"
        if body:
            text += f" ({body})"
        self._write(text)


class FanoutNotifier:
    """
    Sends each reminder to every granted notifier.

    Granted if at least one member is granted.
    """

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self._notifiers = list(notifiers)

    @property
    def permission_state(self) -> PermissionState:
        states = [n.permission_state for n in self._notifiers]
        if PermissionState.GRANTED in states:
            return PermissionState.GRANTED
        if PermissionState.UNDETERMINED in states:
            return PermissionState.UNDETERMINED
        return PermissionState.DENIED

    def request_permission(self) -> PermissionState:
        for n in self._notifiers:
            if n.permission_state == PermissionState.UNDETERMINED:
                n.request_permission()
        return self.permission_state

    async def fire(self, title: str, body: str) -> None:
        for n in self._notifiers:
            if n.permission_state != PermissionState.GRANTED:
                continue
            try:
                result: Awaitable[None] | None = n.fire(title, body)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Notifier %s failed", type(n).__name__)
