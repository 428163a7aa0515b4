"""SQLite persistence for device-local checklist state, plus file export/import."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from preplist.config import STATE_NAMESPACE
from preplist.errors import MalformedPersistedState

logger = logging.getLogger(__name__)

# Persisted snapshot names. Each is stored under ``<namespace>-<name>``.
DISHES_CACHE = "dishes-cache"
CELLS = "cells"
ROW_HI = "rowhi"
NOTES = "notes"
VIEW = "view"
DAILY = "daily"
COMPACT = "compact"
USER_RECIPES = "user-recipes"

STATE_KEYS: tuple[str, ...] = (DISHES_CACHE, CELLS, ROW_HI, NOTES, VIEW, DAILY, COMPACT, USER_RECIPES)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalStateStore:
    """Key/value snapshots of per-device state, stored verbatim as JSON.

    There is no schema migration: bumping the namespace is how a format
    change is rolled out, and the old snapshots are simply never read again.
    """

    def __init__(self, db_path: str | Path, namespace: str = STATE_NAMESPACE) -> None:
        self.db_path = Path(db_path)
        self.namespace = namespace

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.db_path)

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with closing(self._connect()) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS local_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def namespaced(self, name: str) -> str:
        return f"{self.namespace}-{name}"

    def read(self, name: str) -> Any | None:
        """Return the stored snapshot, ``None`` if absent. Raises on bad JSON."""
        key = self.namespaced(name)
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT value FROM local_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise MalformedPersistedState(key, str(exc)) from exc

    def load(self, name: str, default: Any) -> Any:
        """Read a snapshot, falling back to ``default`` when absent or malformed."""
        try:
            value = self.read(name)
        except MalformedPersistedState as exc:
            logger.warning("%s; using default", exc)
            return default
        if value is None:
            return default
        if not isinstance(value, type(default)):
            logger.warning(
                "%s; using default",
                MalformedPersistedState(self.namespaced(name), f"expected {type(default).__name__}"),
            )
            return default
        return value

    def save(self, name: str, value: Any) -> None:
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO local_state (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (self.namespaced(name), json.dumps(value), _utc_now_iso()),
                )

    def save_many(self, values: dict[str, Any]) -> None:
        now = _utc_now_iso()
        with closing(self._connect()) as conn:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO local_state (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    [(self.namespaced(name), json.dumps(value), now) for name, value in values.items()],
                )


@dataclass
class ExportDocument:
    """Everything a save file carries. Missing fields keep their defaults."""

    dishes: list[dict[str, Any]] = field(default_factory=list)
    cells: dict[str, Any] = field(default_factory=dict)
    row_hi: dict[str, Any] = field(default_factory=dict)
    notes: dict[str, Any] = field(default_factory=dict)
    view: dict[str, Any] = field(default_factory=dict)
    daily: dict[str, Any] = field(default_factory=dict)
    compact: bool = False
    user_recipes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "saved_at": _utc_now_iso(),
            "dishes": self.dishes,
            "cells": self.cells,
            "row_hi": self.row_hi,
            "notes": self.notes,
            "view": self.view,
            "daily": self.daily,
            "compact": self.compact,
            "user_recipes": self.user_recipes,
        }


def write_export(path: str | Path, document: ExportDocument) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(document.to_dict(), indent=2), encoding="utf-8")
    return target


def read_export(path: str | Path) -> ExportDocument:
    """Load a save file field by field; a bad or missing field never sinks the rest."""
    target = Path(path)
    try:
        raw = json.loads(target.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise MalformedPersistedState(str(target), str(exc)) from exc
    if not isinstance(raw, dict):
        raise MalformedPersistedState(str(target), "top level is not an object")

    document = ExportDocument()
    for name, default in document.__dict__.copy().items():
        if name not in raw:
            continue
        value = raw[name]
        if isinstance(value, type(default)):
            setattr(document, name, value)
        else:
            logger.warning("save file field %r has the wrong type; using default", name)
    return document
