# src/meu_schedule/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Background modules that log on every tick/sync; console shows them only at WARNING+.
QUIET_PREFIXES = ("meu_schedule.reminders.", "meu_schedule.cli.runner")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console filter for the interactive REPL.

    Own logs pass, except the quiet background modules: those only show WARNING+
    and the "Reminder fired" line. Third-party loggers (nio, aiohttp) and captured
    Python warnings only show ERROR+.
    """

    def __init__(self, quiet_prefixes: Iterable[str] = QUIET_PREFIXES) -> None:
        super().__init__()
        self._quiet = tuple(quiet_prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if not name.startswith("meu_schedule."):
            return record.levelno >= logging.ERROR

        if self._quiet and name.startswith(self._quiet):
            return record.levelno >= logging.WARNING or record.getMessage().startswith("Reminder fired")
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/meu",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
    quiet_prefixes: Iterable[str] = QUIET_PREFIXES,
) -> Path:
    """
    Configure root logging and return the log file path.

    - stderr handler at `console_level`, filtered for interactive use
    - size-rotated file `meu.log` at `file_level` (the reminder tick logs at DEBUG)

    Call this ONCE, before the first log line.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "meu.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(quiet_prefixes))
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
