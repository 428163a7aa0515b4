"""Shared dishes/items tables with a change feed, backed by SQLite.

Several devices point at the same database file. Every write lands in the
``changes`` table through triggers, and subscribers poll that table for
rows newer than their cursor, receiving ``{eventType, new, old}`` payloads.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol, TypeVar
from uuid import uuid4

from preplist.config import CHANGE_POLL_INTERVAL_S
from preplist.errors import RemoteCallError
from preplist.models import DishRow, ItemRow

logger = logging.getLogger(__name__)

T = TypeVar("T")

Payload = dict[str, Any]
EventCallback = Callable[[Payload], None]
Unsubscribe = Callable[[], None]


class Backend(Protocol):
    """Remote table storage plus push notifications."""

    async def fetch_all(self) -> tuple[list[DishRow], list[ItemRow]]: ...

    async def insert_dish(self, name: str) -> DishRow: ...

    async def update_dish(self, dish_id: str, name: str) -> DishRow: ...

    async def delete_dish(self, dish_id: str) -> None: ...

    async def insert_item(self, dish_id: str, name: str, position: int = 0) -> ItemRow: ...

    async def update_item(self, item_id: str, name: str, position: int | None = None) -> ItemRow: ...

    async def update_item_recipe(self, item_id: str, recipe: str) -> ItemRow: ...

    async def delete_item(self, item_id: str) -> None: ...

    def subscribe(self, on_dish_event: EventCallback, on_item_event: EventCallback) -> Unsubscribe: ...


_SCHEMA = """
CREATE TABLE IF NOT EXISTS dishes (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    dish_id TEXT NOT NULL,
    name TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    recipe TEXT,
    FOREIGN KEY(dish_id) REFERENCES dishes(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_items_dish_position ON items(dish_id, position);

CREATE TABLE IF NOT EXISTS changes (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    table_name TEXT NOT NULL,
    event_type TEXT NOT NULL,
    new_row TEXT,
    old_row TEXT
);

CREATE TRIGGER IF NOT EXISTS dishes_after_insert AFTER INSERT ON dishes BEGIN
    INSERT INTO changes (table_name, event_type, new_row)
    VALUES ('dishes', 'INSERT', json_object('id', NEW.id, 'name', NEW.name));
END;

CREATE TRIGGER IF NOT EXISTS dishes_after_update AFTER UPDATE ON dishes BEGIN
    INSERT INTO changes (table_name, event_type, new_row, old_row)
    VALUES (
        'dishes', 'UPDATE',
        json_object('id', NEW.id, 'name', NEW.name),
        json_object('id', OLD.id, 'name', OLD.name)
    );
END;

CREATE TRIGGER IF NOT EXISTS dishes_after_delete AFTER DELETE ON dishes BEGIN
    INSERT INTO changes (table_name, event_type, old_row)
    VALUES ('dishes', 'DELETE', json_object('id', OLD.id, 'name', OLD.name));
END;

CREATE TRIGGER IF NOT EXISTS items_after_insert AFTER INSERT ON items BEGIN
    INSERT INTO changes (table_name, event_type, new_row)
    VALUES (
        'items', 'INSERT',
        json_object('id', NEW.id, 'dish_id', NEW.dish_id, 'name', NEW.name,
                    'position', NEW.position, 'recipe', NEW.recipe)
    );
END;

CREATE TRIGGER IF NOT EXISTS items_after_update AFTER UPDATE ON items BEGIN
    INSERT INTO changes (table_name, event_type, new_row, old_row)
    VALUES (
        'items', 'UPDATE',
        json_object('id', NEW.id, 'dish_id', NEW.dish_id, 'name', NEW.name,
                    'position', NEW.position, 'recipe', NEW.recipe),
        json_object('id', OLD.id, 'dish_id', OLD.dish_id, 'name', OLD.name,
                    'position', OLD.position, 'recipe', OLD.recipe)
    );
END;

CREATE TRIGGER IF NOT EXISTS items_after_delete AFTER DELETE ON items BEGIN
    INSERT INTO changes (table_name, event_type, old_row)
    VALUES (
        'items', 'DELETE',
        json_object('id', OLD.id, 'dish_id', OLD.dish_id, 'name', OLD.name,
                    'position', OLD.position, 'recipe', OLD.recipe)
    );
END;
"""


@dataclass
class _Subscription:
    cursor: int
    on_dish_event: EventCallback
    on_item_event: EventCallback
    task: asyncio.Task[None] | None = None


def _item_row(row: sqlite3.Row | tuple[Any, ...]) -> ItemRow:
    return ItemRow(id=row[0], dish_id=row[1], name=row[2], position=int(row[3]), recipe=row[4])


class SqliteBackend:
    """``Backend`` over a shared SQLite file."""

    def __init__(self, db_path: str | Path, poll_interval: float = CHANGE_POLL_INTERVAL_S) -> None:
        self.db_path = Path(db_path)
        self.poll_interval = poll_interval
        self._subscriptions: list[_Subscription] = []

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def bootstrap_schema(self) -> None:
        """Create tables, triggers and the change feed if they do not exist."""
        with closing(self._connect()) as conn:
            conn.executescript(_SCHEMA)

    async def _call(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except (sqlite3.Error, LookupError) as exc:
            logger.error("backend %s failed: %s", operation, exc)
            raise RemoteCallError(operation, exc) from exc

    # -- reads ----------------------------------------------------------

    def _fetch_all(self) -> tuple[list[DishRow], list[ItemRow]]:
        with closing(self._connect()) as conn:
            dishes = [DishRow(id=r[0], name=r[1]) for r in conn.execute("SELECT id, name FROM dishes ORDER BY rowid")]
            items = [
                _item_row(r)
                for r in conn.execute(
                    "SELECT id, dish_id, name, position, recipe FROM items ORDER BY position, rowid"
                )
            ]
        return dishes, items

    async def fetch_all(self) -> tuple[list[DishRow], list[ItemRow]]:
        return await self._call("fetch_all", self._fetch_all)

    # -- dishes ---------------------------------------------------------

    def _insert_dish(self, name: str) -> DishRow:
        dish = DishRow(id=uuid4().hex, name=name)
        with closing(self._connect()) as conn:
            with conn:
                conn.execute("INSERT INTO dishes (id, name) VALUES (?, ?)", (dish.id, dish.name))
        return dish

    async def insert_dish(self, name: str) -> DishRow:
        return await self._call("insert_dish", self._insert_dish, name)

    def _update_dish(self, dish_id: str, name: str) -> DishRow:
        with closing(self._connect()) as conn:
            with conn:
                cur = conn.execute("UPDATE dishes SET name = ? WHERE id = ?", (name, dish_id))
            if cur.rowcount == 0:
                raise LookupError(f"no dish {dish_id!r}")
        return DishRow(id=dish_id, name=name)

    async def update_dish(self, dish_id: str, name: str) -> DishRow:
        return await self._call("update_dish", self._update_dish, dish_id, name)

    def _delete_dish(self, dish_id: str) -> None:
        with closing(self._connect()) as conn:
            with conn:
                conn.execute("DELETE FROM dishes WHERE id = ?", (dish_id,))

    async def delete_dish(self, dish_id: str) -> None:
        await self._call("delete_dish", self._delete_dish, dish_id)

    # -- items ----------------------------------------------------------

    def _select_item(self, conn: sqlite3.Connection, item_id: str) -> ItemRow:
        row = conn.execute(
            "SELECT id, dish_id, name, position, recipe FROM items WHERE id = ?", (item_id,)
        ).fetchone()
        if row is None:
            raise LookupError(f"no item {item_id!r}")
        return _item_row(row)

    def _insert_item(self, dish_id: str, name: str, position: int) -> ItemRow:
        item_id = uuid4().hex
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    "INSERT INTO items (id, dish_id, name, position) VALUES (?, ?, ?, ?)",
                    (item_id, dish_id, name, position),
                )
            return self._select_item(conn, item_id)

    async def insert_item(self, dish_id: str, name: str, position: int = 0) -> ItemRow:
        return await self._call("insert_item", self._insert_item, dish_id, name, position)

    def _update_item(self, item_id: str, name: str, position: int | None) -> ItemRow:
        with closing(self._connect()) as conn:
            with conn:
                if position is None:
                    cur = conn.execute("UPDATE items SET name = ? WHERE id = ?", (name, item_id))
                else:
                    cur = conn.execute(
                        "UPDATE items SET name = ?, position = ? WHERE id = ?", (name, position, item_id)
                    )
            if cur.rowcount == 0:
                raise LookupError(f"no item {item_id!r}")
            return self._select_item(conn, item_id)

    async def update_item(self, item_id: str, name: str, position: int | None = None) -> ItemRow:
        return await self._call("update_item", self._update_item, item_id, name, position)

    def _update_item_recipe(self, item_id: str, recipe: str) -> ItemRow:
        with closing(self._connect()) as conn:
            with conn:
                cur = conn.execute("UPDATE items SET recipe = ? WHERE id = ?", (recipe, item_id))
            if cur.rowcount == 0:
                raise LookupError(f"no item {item_id!r}")
            return self._select_item(conn, item_id)

    async def update_item_recipe(self, item_id: str, recipe: str) -> ItemRow:
        return await self._call("update_item_recipe", self._update_item_recipe, item_id, recipe)

    def _delete_item(self, item_id: str) -> None:
        with closing(self._connect()) as conn:
            with conn:
                conn.execute("DELETE FROM items WHERE id = ?", (item_id,))

    async def delete_item(self, item_id: str) -> None:
        await self._call("delete_item", self._delete_item, item_id)

    # -- change feed ----------------------------------------------------

    def _latest_seq(self) -> int:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT COALESCE(MAX(seq), 0) FROM changes").fetchone()
        return int(row[0])

    def _changes_after(self, cursor: int) -> list[tuple[int, str, Payload]]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT seq, table_name, event_type, new_row, old_row FROM changes WHERE seq > ? ORDER BY seq",
                (cursor,),
            ).fetchall()
        return [
            (
                seq,
                table_name,
                {
                    "eventType": event_type,
                    "new": json.loads(new_row) if new_row else {},
                    "old": json.loads(old_row) if old_row else {},
                },
            )
            for seq, table_name, event_type, new_row, old_row in rows
        ]

    def subscribe(self, on_dish_event: EventCallback, on_item_event: EventCallback) -> Unsubscribe:
        """Deliver changes made after this call. Polls on the running event loop."""
        try:
            cursor = self._latest_seq()
        except sqlite3.Error as exc:
            raise RemoteCallError("subscribe", exc) from exc
        subscription = _Subscription(cursor, on_dish_event, on_item_event)
        self._subscriptions.append(subscription)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None and self.poll_interval > 0:
            subscription.task = loop.create_task(self._poll_forever(subscription))

        def unsubscribe() -> None:
            if subscription.task is not None:
                subscription.task.cancel()
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    async def _poll_forever(self, subscription: _Subscription) -> None:
        while True:
            try:
                await self._poll(subscription)
            except RemoteCallError:
                # Logged in _call; keep the cursor and try again next tick.
                pass
            await asyncio.sleep(self.poll_interval)

    async def _poll(self, subscription: _Subscription) -> int:
        changes = await self._call("poll_changes", self._changes_after, subscription.cursor)
        for seq, table_name, payload in changes:
            subscription.cursor = seq
            callback = {"dishes": subscription.on_dish_event, "items": subscription.on_item_event}.get(table_name)
            if callback is None:
                continue
            try:
                callback(payload)
            except Exception:
                # One bad event must not stall the feed for the events after it.
                logger.exception("subscriber failed on %s change %d", table_name, seq)
        return len(changes)

    async def poll_changes(self) -> int:
        """Deliver pending changes to every subscriber once. Returns how many were delivered."""
        delivered = 0
        for subscription in list(self._subscriptions):
            delivered += await self._poll(subscription)
        return delivered
