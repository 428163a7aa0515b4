from __future__ import annotations

from pathlib import Path

import pytest

from preplist.backend import SqliteBackend
from preplist.mirror import MirrorStore
from preplist.models import Notification
from preplist.persistence import LocalStateStore
from preplist.reconciler import Reconciler
from preplist.row_state import MemberMetaStore, RowStateStore
from preplist.selection import SelectionManager


@pytest.fixture
def notes() -> list[Notification]:
    return []


@pytest.fixture
def reconciler(notes: list[Notification]) -> Reconciler:
    return Reconciler(MirrorStore(), RowStateStore(), MemberMetaStore(), SelectionManager(), notify=notes.append)


@pytest.fixture
def backend(tmp_path: Path) -> SqliteBackend:
    store = SqliteBackend(tmp_path / "shared.db", poll_interval=0)
    store.bootstrap_schema()
    return store


@pytest.fixture
def state(tmp_path: Path) -> LocalStateStore:
    store = LocalStateStore(tmp_path / "device.db")
    store.bootstrap_schema()
    return store
