# tests/test_state_repo.py

from __future__ import annotations

import json
import os
import sqlite3
import stat
from datetime import datetime
from pathlib import Path

import pytest

from meu_schedule.core.documents import state_from_doc, state_to_doc
from meu_schedule.core.errors import LoadShapeError, PersistenceError
from meu_schedule.core.models import ScheduleState, Subject
from meu_schedule.storage.backup import export_state, import_document
from meu_schedule.storage.state_repo import SqliteStateRepo

from .fakes import make_task


def test_load_missing_user_returns_none(tmp_path: Path) -> None:
    repo = SqliteStateRepo(tmp_path / "s.sqlite3")
    assert repo.load("nobody") is None
    assert repo.count_documents() == 0


def test_save_then_load_overwrites_whole_document(tmp_path: Path) -> None:
    repo = SqliteStateRepo(tmp_path / "s.sqlite3")

    repo.save("u1", {"subjects": [], "tasks": [{"id": "a", "title": "A"}]})
    repo.save("u1", {"subjects": [{"id": "s", "name": "Math"}], "tasks": []})
    repo.save("u2", {"subjects": [], "tasks": []})

    assert repo.load("u1") == {"subjects": [{"id": "s", "name": "Math"}], "tasks": []}
    assert repo.count_documents() == 2


def test_empty_user_id_and_bad_payload_raise(tmp_path: Path) -> None:
    repo = SqliteStateRepo(tmp_path / "s.sqlite3")

    with pytest.raises(PersistenceError):
        repo.load("")
    with pytest.raises(PersistenceError):
        repo.save("u1", {"bad": object()})


def test_corrupt_stored_json_raises_persistence_error(tmp_path: Path) -> None:
    db = tmp_path / "s.sqlite3"
    repo = SqliteStateRepo(db)
    conn = sqlite3.connect(db)
    conn.execute("INSERT INTO schedules(user_id, doc, updated_at) VALUES ('u1', '{oops', 0)")
    conn.commit()
    conn.close()

    with pytest.raises(PersistenceError):
        repo.load("u1")


def test_document_survives_store_round_trip(tmp_path: Path) -> None:
    state = ScheduleState(
        subjects=(Subject(id="s1", name="Math"),),
        tasks=(
            make_task("t1", subject_id="s1", due_at=datetime(2024, 3, 5, 9, 30)),
            make_task("t2", due_at=datetime(2024, 3, 6), all_day=True),
        ),
        login_streak=2,
    )
    repo = SqliteStateRepo(tmp_path / "s.sqlite3")

    repo.save("u1", state_to_doc(state))
    loaded = state_from_doc(repo.load("u1"))

    assert loaded == state


def test_export_is_private_and_importable(tmp_path: Path) -> None:
    state = ScheduleState(tasks=(make_task("t1"),))

    path = export_state(state, tmp_path / "out" / "meu-data.json")

    assert path.exists()
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
    doc = import_document(path)
    assert [t["id"] for t in doc["tasks"]] == ["t1"]


def test_import_rejects_non_object_and_bad_json(tmp_path: Path) -> None:
    arr = tmp_path / "arr.json"
    arr.write_text(json.dumps([1, 2]), "utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", "utf-8")

    with pytest.raises(LoadShapeError):
        import_document(arr)
    with pytest.raises(LoadShapeError):
        import_document(bad)
    with pytest.raises(PersistenceError):
        import_document(tmp_path / "missing.json")
