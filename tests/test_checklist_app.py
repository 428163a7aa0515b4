import sqlite3

import pytest

from preplist import keys
from preplist.alert_modal import AlertModal
from preplist.backend import SqliteBackend
from preplist.checklist_app import ChecklistApp, parse_dish_edit
from preplist.engine import ChecklistEngine
from preplist.errors import RemoteCallError
from preplist.models import Container, FilterKind, Member, ViewMode
from preplist.persistence import LocalStateStore


class OfflineBackend(SqliteBackend):
    async def fetch_all(self):
        raise RemoteCallError("fetch_all", sqlite3.OperationalError("unable to open database file"))


@pytest.mark.asyncio
async def test_keyboard_toggles_row_state(backend: SqliteBackend, state: LocalStateStore, tmp_path) -> None:
    soup = await backend.insert_dish("Soup")
    stock = await backend.insert_item(soup.id, "Stock", 0)
    engine = ChecklistEngine(backend, state)
    app = ChecklistApp(engine, debug_log=str(tmp_path / "debug.log"))

    async with app.run_test(size=(100, 30)) as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()
        assert [line.kind for line in app.lines] == ["dish", "item"]

        await pilot.press("j", "o", "h")
        row = engine.row(keys.encode(soup.id, stock.id))
        assert row.on_hand
        assert row.highlighted

        await pilot.press("f")
        assert engine.view.filter is FilterKind.DISH
        await pilot.press("c")
        assert engine.compact

    assert (tmp_path / "debug.log").exists()


@pytest.mark.asyncio
async def test_failed_load_raises_alert(tmp_path) -> None:
    backend = OfflineBackend(tmp_path / "shared.db", poll_interval=0)
    backend.bootstrap_schema()
    app = ChecklistApp(ChecklistEngine(backend), debug_log=str(tmp_path / "debug.log"))

    async with app.run_test(size=(100, 30)) as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()
        assert isinstance(app.screen, AlertModal)
        assert not app.engine.loaded


def test_parse_dish_edit_keeps_ids_of_matching_names() -> None:
    soup = Container(
        "d1",
        "Soup",
        (Member("a", "d1", "Onion", 0), Member("b", "d1", "Stock", 1), Member("c", "d1", "Onion", 2)),
    )
    name, items = parse_dish_edit(soup, " Onion Soup : Onion, Leek, , Onion ")
    assert name == "Onion Soup"
    assert items == [("a", "Onion"), (None, "Leek"), ("c", "Onion")]


@pytest.mark.asyncio
async def test_edit_dish_and_clear_daily_keys(backend: SqliteBackend, tmp_path) -> None:
    soup = await backend.insert_dish("Soup")
    stock = await backend.insert_item(soup.id, "Stock", 0)
    await backend.insert_item(soup.id, "Onion", 1)
    engine = ChecklistEngine(backend)
    app = ChecklistApp(engine, debug_log=str(tmp_path / "debug.log"))

    async with app.run_test(size=(100, 30)) as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()

        await pilot.press("E", ",", " ", "L", "e", "e", "k", "enter")
        await app.workers.wait_for_complete()
        await pilot.pause()
        assert [m.name for m in engine.mirror.members_of(soup.id)] == ["Stock", "Onion", "Leek"]
        assert engine.mirror.member(stock.id) is not None

        engine.build_daily([keys.encode(soup.id, stock.id)])
        await pilot.press("D")
        assert engine.view.mode is ViewMode.FULL
        assert not engine.selection.current.enabled

    dishes, items = await backend.fetch_all()
    assert [i.name for i in items] == ["Stock", "Onion", "Leek"]
