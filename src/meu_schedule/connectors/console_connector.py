# src/meu_schedule/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..views.query import due_soon, time_left_label

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _greeting(state: AppState) -> str:
    session = state.session
    st = session.state
    now = session.clock.now()
    app_name = str(getattr(state.settings, "app_name", "meu"))

    lines = [f"[CONSOLE] {app_name}: signed in as {session.user_id}, login streak {st.login_streak} day(s)."]
    soon = due_soon(st.tasks, now, limit=3)
    if soon:
        lines.append("Next up:")
        lines.extend(f"  {t.title} ({time_left_label(t.due_at, now)})" for t in soon if t.due_at is not None)
    lines.append("Use /help for commands. Use /exit to quit.\n")
    return "\n".join(lines)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.session.user_id)
    _print_ts(_greeting(state))

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list them."

        _print_ts(response)

    logger.info("Console connector finished.")
