import json
import sqlite3
from pathlib import Path

import pytest

from preplist import persistence
from preplist.errors import MalformedPersistedState
from preplist.persistence import ExportDocument, LocalStateStore, read_export, write_export


def _write_raw(store: LocalStateStore, name: str, value: str) -> None:
    conn = sqlite3.connect(store.db_path)
    with conn:
        conn.execute(
            "INSERT OR REPLACE INTO local_state (key, value, updated_at) VALUES (?, ?, ?)",
            (store.namespaced(name), value, "2026-01-01T00:00:00+00:00"),
        )
    conn.close()


def test_save_and_load_round_trip(state: LocalStateStore) -> None:
    state.save(persistence.NOTES, {"d|i": "thin"})
    state.save_many({persistence.COMPACT: True, persistence.VIEW: {"mode": "daily"}})
    assert state.load(persistence.NOTES, {}) == {"d|i": "thin"}
    assert state.load(persistence.COMPACT, False) is True
    assert state.load(persistence.VIEW, {}) == {"mode": "daily"}


def test_keys_are_namespaced(state: LocalStateStore) -> None:
    assert state.namespaced(persistence.CELLS) == "preplist-v1-cells"


def test_missing_snapshot_uses_default(state: LocalStateStore) -> None:
    assert state.load(persistence.CELLS, {}) == {}
    assert state.read(persistence.CELLS) is None


def test_malformed_snapshot_falls_back_to_default(state: LocalStateStore) -> None:
    _write_raw(state, persistence.NOTES, "{not json")
    with pytest.raises(MalformedPersistedState):
        state.read(persistence.NOTES)
    assert state.load(persistence.NOTES, {}) == {}


def test_wrong_type_falls_back_to_default(state: LocalStateStore) -> None:
    _write_raw(state, persistence.ROW_HI, json.dumps(["not", "a", "map"]))
    assert state.load(persistence.ROW_HI, {}) == {}


def test_export_then_import(tmp_path: Path) -> None:
    doc = ExportDocument(
        dishes=[{"id": "d1", "name": "Soup", "items": []}],
        notes={"d1|i1": "thin"},
        compact=True,
        user_recipes={"Stock": "2 kg bones"},
    )
    target = write_export(tmp_path / "saves" / "prep.json", doc)
    loaded = read_export(target)
    assert loaded == doc
    assert "saved_at" in json.loads(target.read_text(encoding="utf-8"))


def test_import_keeps_defaults_for_bad_or_missing_fields(tmp_path: Path) -> None:
    path = tmp_path / "partial.json"
    path.write_text(json.dumps({"notes": {"k": "v"}, "cells": "oops", "compact": "yes"}), encoding="utf-8")
    loaded = read_export(path)
    assert loaded.notes == {"k": "v"}
    assert loaded.cells == {}
    assert loaded.compact is False
    assert loaded.dishes == []


@pytest.mark.parametrize("content", ("[1, 2]", "{broken"))
def test_import_rejects_unreadable_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(MalformedPersistedState):
        read_export(path)


class TrackedConnection(sqlite3.Connection):
    closed = False

    def close(self) -> None:
        self.closed = True
        super().close()


def test_store_closes_its_connections(state: LocalStateStore, monkeypatch) -> None:
    opened: list[TrackedConnection] = []

    def connect() -> sqlite3.Connection:
        conn = sqlite3.connect(state.db_path, factory=TrackedConnection)
        opened.append(conn)
        return conn

    monkeypatch.setattr(state, "_connect", connect)
    state.save(persistence.NOTES, {"d|i": "thin"})
    state.save_many({persistence.COMPACT: True})
    assert state.load(persistence.NOTES, {}) == {"d|i": "thin"}

    assert len(opened) == 3
    assert all(conn.closed for conn in opened)
