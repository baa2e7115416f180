# src/meu_schedule/storage/backup.py

"""
Manual backup: export the state document to a JSON file, import it back.

Imports re-enter through the store's Load command, so they get the same tolerant
validation as documents coming from the document store.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from ..core.documents import state_to_doc
from ..core.errors import LoadShapeError, PersistenceError
from ..core.models import ScheduleState

logger = logging.getLogger(__name__)


def export_state(state: ScheduleState, path: str | Path) -> Path:
    path = Path(path).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state_to_doc(state), ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(OSError):
            # Best-effort: keep the file private.
            os.chmod(path, 0o600)
    except OSError as e:
        raise PersistenceError(f"export to {path} failed: {e}") from e

    logger.info("Exported %d subjects, %d tasks to %s", len(state.subjects), len(state.tasks), path)
    return path


def import_document(path: str | Path) -> dict[str, Any]:
    """Read a backup file. Raises LoadShapeError for anything but a JSON object."""
    path = Path(path).expanduser()
    try:
        raw = path.read_text("utf-8")
    except OSError as e:
        raise PersistenceError(f"cannot read {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LoadShapeError(f"{path} is not valid JSON") from e

    if not isinstance(data, dict):
        raise LoadShapeError(f"{path} does not contain a JSON object")

    logger.info("Imported document from %s", path)
    return data
