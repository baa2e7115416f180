# src/meu_schedule/cli/runner.py

"""
Background asyncio runner.

Hosts everything that needs an event loop:
- the reminder timer registry (ReminderScheduler)
- the periodic tick that re-syncs reminders
- the optional Matrix client used by MatrixNotifier

The console REPL blocks on input() in the main thread, so the loop lives in a daemon
thread. Session changes arrive from the main thread and are marshalled onto the
loop with call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading

from ..connectors.matrix_client import create_matrix_client
from ..connectors.matrix_notifier import MatrixNotifier
from ..core.models import ScheduleState
from ..core.ports import Notifier
from ..core.session import ScheduleSession
from ..reminders.scheduler import ReminderScheduler, run_tick_loop

logger = logging.getLogger(__name__)


class ReminderRunner:
    def __init__(
        self,
        session: ScheduleSession,
        notifier: Notifier | None,
        *,
        tick_seconds: float = 30.0,
        matrix: MatrixNotifier | None = None,
        settings=None,
    ) -> None:
        self._session = session
        self._notifier = notifier
        self._tick_seconds = tick_seconds
        self._matrix = matrix
        self._settings = settings

        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self.scheduler: ReminderScheduler | None = None

    # ---- thread-side API ----

    def start(self) -> bool:
        self._thread = threading.Thread(target=self._run, name="meu-reminders", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=5.0) or self._loop is None:
            logger.error("Reminder thread did not initialize properly.")
            return False
        self._session.subscribe(self.request_sync)
        self.request_sync(self._session.state)
        return True

    def request_sync(self, state: ScheduleState) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._sync, state)
        except RuntimeError:
            logger.debug("Reminder loop already closed; sync dropped.")

    def stop(self) -> None:
        loop, stop_event = self._loop, self._stop_event
        if loop is None or stop_event is None:
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(stop_event.set)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    @property
    def armed_count(self) -> int:
        return len(self.scheduler.armed_keys) if self.scheduler is not None else 0

    # ---- loop-side ----

    def _sync(self, state: ScheduleState) -> None:
        if self.scheduler is None:
            return
        armed = self.scheduler.sync(state.tasks, state.subject_names(), self._session.clock.now())
        logger.debug("Reminders synced: %d armed", armed)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._stop_event = asyncio.Event()
        self.scheduler = ReminderScheduler(self._notifier, loop=loop)
        self._ready.set()

        try:
            loop.run_until_complete(self._main())
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            logger.info("Reminder runner stopped.")

    async def _main(self) -> None:
        assert self._stop_event is not None

        if self._matrix is not None and self._settings is not None:
            client = await create_matrix_client(self._settings)
            self._matrix.attach(client)
            if client is not None:
                logger.info("Matrix reminders enabled.")
                self._sync(self._session.state)

        tick = asyncio.create_task(
            run_tick_loop(lambda: self._sync(self._session.state), interval_seconds=self._tick_seconds)
        )
        try:
            await self._stop_event.wait()
        finally:
            tick.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await tick
            if self.scheduler is not None:
                self.scheduler.cancel_all()
            if self._matrix is not None:
                with contextlib.suppress(Exception):
                    await self._matrix.close()
