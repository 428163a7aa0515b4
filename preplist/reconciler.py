"""Applies backend change events to the mirror and the row-state stores."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Mapping

from preplist import keys
from preplist.errors import OrphanReference
from preplist.mirror import MirrorStore
from preplist.models import ChangeEvent, DishRow, EventType, ItemRow, MemberMeta, Notification
from preplist.row_state import MemberMetaStore, RowStateStore
from preplist.selection import SelectionManager

logger = logging.getLogger(__name__)

DISHES = "dishes"
ITEMS = "items"

Notifier = Callable[[Notification], None]


class EventQueue:
    """Inbound change events, consumed strictly in arrival order."""

    def __init__(self) -> None:
        self._events: deque[ChangeEvent] = deque()

    def put(self, event: ChangeEvent) -> None:
        self._events.append(event)

    def pop(self) -> ChangeEvent | None:
        if not self._events:
            return None
        return self._events.popleft()

    def __len__(self) -> int:
        return len(self._events)


class Reconciler:
    """State machine over dish/item INSERT, UPDATE and DELETE events.

    Every event is applied in full before the next one is looked at, so a
    render between two events never sees a half-applied change. Applying an
    event whose effect is already present (the echo of a local write) is a
    no-op and produces no notification.
    """

    def __init__(
        self,
        mirror: MirrorStore,
        rows: RowStateStore,
        meta: MemberMetaStore,
        selection: SelectionManager,
        notify: Notifier | None = None,
    ) -> None:
        self.mirror = mirror
        self.rows = rows
        self.meta = meta
        self.selection = selection
        self.notify = notify
        self.queue = EventQueue()
        self._draining = False
        # Ids removed by an applied DELETE. Ids are never reused, so a late
        # INSERT or UPDATE for one of these is a stale echo.
        self._retired: set[str] = set()

    def enqueue(self, event: ChangeEvent) -> None:
        self.queue.put(event)

    def drain(self) -> int:
        """Apply every queued event. Returns how many events changed state."""
        if self._draining:
            return 0
        self._draining = True
        changed = 0
        try:
            while (event := self.queue.pop()) is not None:
                if self.apply(event):
                    changed += 1
        finally:
            self._draining = False
        return changed

    def apply(self, event: ChangeEvent, *, announce: bool = True) -> bool:
        """Apply one event. Returns whether the mirror or stores changed."""
        handler = {DISHES: self._apply_dish, ITEMS: self._apply_item}.get(event.table)
        if handler is None:
            logger.warning("ignoring change for unknown table %r", event.table)
            return False
        notes: list[Notification] = []
        try:
            changed = handler(event, notes)
        except OrphanReference as exc:
            logger.debug("dropping %s %s event: %s", event.table, event.event_type.value, exc)
            return False
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("dropping malformed %s event %r: %s", event.table, event, exc)
            return False
        if announce:
            for note in notes:
                self._emit(note)
        return changed

    def _emit(self, note: Notification) -> None:
        if self.notify is None:
            return
        try:
            self.notify(note)
        except Exception:
            # Notifications are advisory; the state change already happened.
            logger.exception("notification sink failed for %r", note)

    # -- dishes ---------------------------------------------------------

    def _apply_dish(self, event: ChangeEvent, notes: list[Notification]) -> bool:
        if event.event_type is EventType.DELETE:
            return self._delete_dish(_payload(event, "old"), notes)

        row = DishRow.from_mapping(_payload(event, "new"))
        if row.id in self._retired:
            raise OrphanReference(f"change for deleted dish {row.id!r}")
        known = self.mirror.has_container(row.id)
        before = self.mirror.container(row.id)
        if event.event_type is EventType.UPDATE and not known:
            raise OrphanReference(f"update for unknown dish {row.id!r}")
        if not self.mirror.upsert_container(row.id, row.name):
            return False
        if not known:
            notes.append(Notification("dish_added", f'New dish "{row.name}" added'))
        else:
            old_name = before.name if before else ""
            notes.append(Notification("dish_renamed", f'Dish "{old_name}" renamed to "{row.name}"'))
        return True

    def _delete_dish(self, old: Mapping[str, Any], notes: list[Notification]) -> bool:
        dish_id = str(old["id"])
        self._retired.add(dish_id)
        existing = self.mirror.container(dish_id)
        removed = False
        if existing is not None:
            self._retired.update(member.id for member in existing.members)
            self.mirror.remove_container(dish_id)
            removed = True
        purged = (
            self.rows.delete_all_for_container(dish_id)
            + self.selection.delete_all_for_container(dish_id)
            + self.meta.delete_all_for_container(dish_id)
        )
        if removed:
            name = existing.name if existing else old.get("name", "")
            notes.append(Notification("dish_deleted", f'Dish "{name}" deleted'))
        return removed or purged > 0

    # -- items ----------------------------------------------------------

    def _apply_item(self, event: ChangeEvent, notes: list[Notification]) -> bool:
        if event.event_type is EventType.DELETE:
            return self._delete_item(_payload(event, "old"), notes)

        new = _payload(event, "new")
        item_id = str(new["id"])
        if item_id in self._retired:
            raise OrphanReference(f"change for deleted item {item_id!r}")
        current = self.mirror.member(item_id)
        if event.event_type is EventType.UPDATE and current is None:
            raise OrphanReference(f"update for unknown item {item_id!r}")
        if "position" not in new and current is not None:
            new = {**new, "position": current.position}
        if "dish_id" not in new and current is not None:
            new = {**new, "dish_id": current.container_id}
        row = ItemRow.from_mapping(new)

        if current is None:
            return self._insert_item(row, notes)
        return self._update_item(row, current.container_id, current.name, "recipe" in new, notes)

    def _insert_item(self, row: ItemRow, notes: list[Notification]) -> bool:
        key = keys.encode(row.dish_id, row.id)
        self.mirror.upsert_member(row.dish_id, row.id, row.name, row.position)
        self.meta.set(key, MemberMeta(row.id, row.recipe))
        notes.append(Notification("item_added", f'New item "{row.name}" added'))
        return True

    def _update_item(
        self,
        row: ItemRow,
        old_dish_id: str,
        old_name: str,
        has_recipe: bool,
        notes: list[Notification],
    ) -> bool:
        old_key = keys.encode(old_dish_id, row.id)
        new_key = keys.encode(row.dish_id, row.id)
        changed = self.mirror.upsert_member(row.dish_id, row.id, row.name, row.position)

        if old_key != new_key:
            self.rows.rekey(old_key, new_key)
            self.selection.rekey(old_key, new_key)
            self.meta.rekey(old_key, new_key)

        if old_name != row.name:
            notes.append(Notification("item_renamed", f'Item "{old_name}" renamed to "{row.name}"'))

        current_meta = self.meta.get(new_key)
        recipe = row.recipe if has_recipe else (current_meta.recipe if current_meta else None)
        if self.meta.set(new_key, MemberMeta(row.id, recipe)):
            changed = True
            if current_meta is not None and current_meta.recipe != recipe:
                notes.append(Notification("recipe_updated", f'Recipe for "{row.name}" updated'))
        return changed

    def _delete_item(self, old: Mapping[str, Any], notes: list[Notification]) -> bool:
        item_id = str(old["id"])
        self._retired.add(item_id)
        dish_id = self.mirror.owner_of(item_id) or old.get("dish_id")
        if not dish_id:
            raise OrphanReference(f"delete for unknown item {item_id!r}")
        dish_id = str(dish_id)
        key = keys.encode(dish_id, item_id)
        removed = None
        if self.mirror.owner_of(item_id) == dish_id:
            removed = self.mirror.remove_member(dish_id, item_id)
        purged = self.meta.delete(key) | self.rows.delete(key) | self.selection.discard(key)
        if removed is not None:
            notes.append(Notification("item_deleted", f'Item "{removed.name}" deleted'))
        return removed is not None or purged


def _payload(event: ChangeEvent, side: str) -> Mapping[str, Any]:
    payload = event.new if side == "new" else event.old
    if not payload or "id" not in payload:
        raise ValueError(f"{event.event_type.value} event without {side!r} row")
    return payload
