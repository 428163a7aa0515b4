"""The checklist engine: mirror, row state, daily list and remote writes."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Sequence

from preplist import keys, persistence, projector, selection as daily
from preplist.backend import Backend, Payload, Unsubscribe
from preplist.data import resolve_recipe
from preplist.errors import RemoteCallError
from preplist.mirror import MirrorStore
from preplist.models import (
    ChangeEvent,
    DishRow,
    DishView,
    EventType,
    FilterKind,
    ItemRow,
    MemberMeta,
    RowState,
    ViewMode,
    ViewState,
)
from preplist.persistence import ExportDocument, LocalStateStore
from preplist.reconciler import DISHES, ITEMS, Notifier, Reconciler
from preplist.row_state import MemberMetaStore, RowStateStore
from preplist.selection import SelectionManager

logger = logging.getLogger(__name__)


def rows_from_snapshot(snapshot: Iterable[Mapping[str, Any]]) -> tuple[list[DishRow], list[ItemRow]]:
    """Turn a cached/exported mirror snapshot back into backend rows."""
    dishes: list[DishRow] = []
    items: list[ItemRow] = []
    for raw_dish in snapshot:
        if not isinstance(raw_dish, Mapping) or not raw_dish.get("id"):
            logger.warning("skipping dish without id in snapshot: %r", raw_dish)
            continue
        dish = DishRow.from_mapping(raw_dish)
        dishes.append(dish)
        for position, raw_item in enumerate(raw_dish.get("items") or ()):
            if not isinstance(raw_item, Mapping) or not raw_item.get("id"):
                logger.warning("skipping item without id in dish %r: %r", dish.id, raw_item)
                continue
            items.append(ItemRow.from_mapping({"position": position, **raw_item, "dish_id": dish.id}))
    return dishes, items


class ChecklistEngine:
    """Owns every store and is the only thing that mutates them.

    Remote writes are applied to the mirror only after the backend confirms
    them, by feeding the confirmed row through the reconciler; the later push
    echo of the same write is then a no-op.
    """

    def __init__(
        self,
        backend: Backend,
        state: LocalStateStore | None = None,
        notify: Notifier | None = None,
    ) -> None:
        self.backend = backend
        self.state = state
        self.mirror = MirrorStore()
        self.rows = RowStateStore()
        self.meta = MemberMetaStore()
        self.selection = SelectionManager()
        self.view = ViewState()
        self.compact = False
        self.user_recipes: dict[str, str] = {}
        self.reconciler = Reconciler(self.mirror, self.rows, self.meta, self.selection, notify=notify)
        self.loaded = False
        self._listeners: list[Callable[[], None]] = []
        self._unsubscribe: Unsubscribe | None = None

    # -- lifecycle ------------------------------------------------------

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener()

    def restore_local_state(self) -> None:
        """Reload per-device snapshots. Malformed entries fall back to defaults."""
        if self.state is None:
            return
        self.rows.restore(
            cells=self.state.load(persistence.CELLS, {}),
            row_hi=self.state.load(persistence.ROW_HI, {}),
            notes=self.state.load(persistence.NOTES, {}),
        )
        self.view = _view_from(self.state.load(persistence.VIEW, {}))
        self.selection.current = daily.from_mapping(self.state.load(persistence.DAILY, {}))
        self.compact = self.state.load(persistence.COMPACT, False)
        self.user_recipes = {str(k): str(v) for k, v in self.state.load(persistence.USER_RECIPES, {}).items()}

    async def start(self) -> None:
        """Subscribe to the change feed, then do the one bulk fetch.

        Events arriving before the fetch resolves are buffered and applied
        after the load. If the fetch fails the cached mirror is shown and the
        error is re-raised for the caller to surface.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.subscribe(self._on_dish_payload, self._on_item_payload)
        try:
            dishes, items = await self.backend.fetch_all()
        except RemoteCallError:
            self._load_cache()
            raise
        self.load(dishes, items)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def load(self, dishes: Sequence[DishRow], items: Sequence[ItemRow]) -> None:
        """Replace the mirror and item metadata with a full fetch."""
        self._replace_mirror(dishes, items)
        self.loaded = True
        self.reconciler.drain()
        self._prune_dead_keys()
        self.persist()
        self._changed()

    def _prune_dead_keys(self) -> None:
        # Items deleted while this device was away leave row state and daily
        # keys behind; only keys of live items survive a full fetch.
        live = {keys.encode(dish.id, member.id) for dish in self.mirror.containers() for member in dish.members}
        dropped = self.rows.retain(live) + self.selection.retain(live)
        if dropped:
            logger.info("pruned %d row keys for items no longer present", dropped)

    def _load_cache(self) -> None:
        # Push events stay buffered until a fetch succeeds; the cache is display-only.
        if self.state is None:
            return
        dishes, items = rows_from_snapshot(self.state.load(persistence.DISHES_CACHE, []))
        logger.info("showing cached mirror (%d dishes)", len(dishes))
        self._replace_mirror(dishes, items)
        self._changed()

    def _replace_mirror(self, dishes: Sequence[DishRow], items: Sequence[ItemRow]) -> None:
        self.mirror.load(dishes, items)
        self.meta.clear()
        for item in items:
            if self.mirror.owner_of(item.id) == item.dish_id:
                self.meta.set(keys.encode(item.dish_id, item.id), MemberMeta(item.id, item.recipe))

    def _on_dish_payload(self, payload: Payload) -> None:
        self._receive(DISHES, payload)

    def _on_item_payload(self, payload: Payload) -> None:
        self._receive(ITEMS, payload)

    def _receive(self, table: str, payload: Payload) -> None:
        try:
            event = ChangeEvent.from_payload(table, payload)
        except (KeyError, ValueError) as exc:
            logger.warning("dropping unreadable %s payload %r: %s", table, payload, exc)
            return
        self.reconciler.enqueue(event)
        if not self.loaded:
            return
        if self.reconciler.drain():
            self.persist()
            self._changed()

    # -- persistence ----------------------------------------------------

    def mirror_snapshot(self) -> list[dict[str, Any]]:
        snapshot = self.mirror.snapshot()
        for dish in snapshot:
            for item in dish["items"]:  # type: ignore[union-attr]
                meta = self.meta.get(keys.encode(str(dish["id"]), item["id"]))
                item["recipe"] = meta.recipe if meta else None
        return snapshot

    def persist(self) -> None:
        if self.state is None:
            return
        rows = self.rows.to_snapshot()
        self.state.save_many(
            {
                persistence.DISHES_CACHE: self.mirror_snapshot(),
                persistence.CELLS: rows["cells"],
                persistence.ROW_HI: rows["row_hi"],
                persistence.NOTES: rows["notes"],
                persistence.VIEW: self.view.to_dict(),
                persistence.DAILY: self.selection.current.to_dict(),
                persistence.COMPACT: self.compact,
                persistence.USER_RECIPES: self.user_recipes,
            }
        )

    def export_document(self) -> ExportDocument:
        rows = self.rows.to_snapshot()
        return ExportDocument(
            dishes=self.mirror_snapshot(),
            cells=rows["cells"],
            row_hi=rows["row_hi"],
            notes=rows["notes"],
            view=self.view.to_dict(),
            daily=self.selection.current.to_dict(),
            compact=self.compact,
            user_recipes=dict(self.user_recipes),
        )

    def apply_document(self, document: ExportDocument) -> None:
        """Replace local state with a loaded save file."""
        dishes, items = rows_from_snapshot(document.dishes)
        self._replace_mirror(dishes, items)
        self.rows.restore(cells=document.cells, row_hi=document.row_hi, notes=document.notes)
        self.view = _view_from(document.view)
        self.selection.current = daily.from_mapping(document.daily)
        self.compact = document.compact
        self.user_recipes = {str(k): str(v) for k, v in document.user_recipes.items()}
        self.persist()
        self._changed()

    # -- projection -----------------------------------------------------

    def views(self) -> tuple[DishView, ...]:
        return projector.project(self.mirror, self.view, self.selection.current, self.rows)

    def shared_names(self) -> frozenset[str]:
        return projector.shared_names(self.mirror.containers())

    def row(self, key: str) -> RowState:
        return self.rows.get(key)

    def has_recipe(self, key: str, name: str) -> bool:
        return projector.has_recipe(key, name, self.meta, self.user_recipes)

    def recipe_for(self, key: str, name: str) -> str:
        meta = self.meta.get(key)
        return resolve_recipe(meta.recipe if meta else None, name, self.user_recipes)

    # -- device-local row actions --------------------------------------

    def _local_edit(self) -> None:
        self.persist()
        self._changed()

    def toggle_on_hand(self, key: str) -> bool:
        value = self.rows.toggle_on_hand(key)
        self._local_edit()
        return value

    def toggle_prep(self, key: str) -> bool:
        value = self.rows.toggle_prep(key)
        self._local_edit()
        return value

    def toggle_highlight(self, key: str) -> bool:
        value = self.rows.toggle_highlight(key)
        self._local_edit()
        return value

    def set_note(self, key: str, note: str) -> None:
        self.rows.set_note(key, note)
        self._local_edit()

    def set_user_recipe(self, name: str, text: str) -> None:
        self.user_recipes[name] = text
        self._local_edit()

    def toggle_compact(self) -> bool:
        self.compact = not self.compact
        self._local_edit()
        return self.compact

    # -- view and daily list -------------------------------------------

    def set_filter(self, kind: FilterKind, dish_id: str | None = None) -> None:
        if kind is FilterKind.DISH:
            dishes = self.mirror.containers()
            target = dish_id or self.view.dish_id or (dishes[0].id if dishes else None)
            self.view = ViewState(self.view.mode, kind, target)
        else:
            self.view = ViewState(self.view.mode, kind, self.view.dish_id)
        self._local_edit()

    def step_dish(self, delta: int) -> None:
        """Move the one-dish filter to the next/previous dish."""
        dishes = self.mirror.containers()
        if not dishes:
            return
        ids = [dish.id for dish in dishes]
        idx = ids.index(self.view.dish_id) if self.view.dish_id in ids else 0
        self.set_filter(FilterKind.DISH, ids[(idx + delta) % len(ids)])

    def set_view_mode(self, mode: ViewMode) -> None:
        """Switch between full and daily. A daily view over an unset list shows everything."""
        self.view = ViewState(mode, self.view.filter, self.view.dish_id)
        self._local_edit()

    def build_daily(self, selected_keys: Iterable[str]) -> None:
        self.selection.build(selected_keys)
        self.view = ViewState(ViewMode.DAILY, self.view.filter, self.view.dish_id)
        self._local_edit()

    def clear_daily(self) -> None:
        self.selection.clear()
        self.view = ViewState(ViewMode.FULL, self.view.filter, self.view.dish_id)
        self._local_edit()

    # -- remote writes --------------------------------------------------

    def _confirmed(self, table: str, event_type: EventType, new: Mapping[str, Any] | None = None,
                   old: Mapping[str, Any] | None = None) -> None:
        event = ChangeEvent(table, event_type, dict(new) if new else None, dict(old) if old else None)
        self.reconciler.apply(event, announce=False)
        self.persist()
        self._changed()

    async def add_dish(self, name: str, item_names: Sequence[str]) -> DishRow:
        name = name.strip()
        cleaned = [item.strip() for item in item_names if item.strip()]
        if not name or not cleaned:
            raise ValueError("Dish name and at least one item required.")
        dish = await self.backend.insert_dish(name)
        self._confirmed(DISHES, EventType.INSERT, dish.to_dict())
        for position, item_name in enumerate(cleaned):
            item = await self.backend.insert_item(dish.id, item_name, position)
            self._confirmed(ITEMS, EventType.INSERT, item.to_dict())
        return dish

    async def rename_dish(self, dish_id: str, name: str) -> None:
        name = name.strip()
        current = self.mirror.container(dish_id)
        if not name or current is None or current.name == name:
            return
        dish = await self.backend.update_dish(dish_id, name)
        self._confirmed(DISHES, EventType.UPDATE, dish.to_dict())

    async def delete_dish(self, dish_id: str) -> None:
        current = self.mirror.container(dish_id)
        await self.backend.delete_dish(dish_id)
        self._confirmed(DISHES, EventType.DELETE, old={"id": dish_id, "name": current.name if current else ""})

    async def save_dish(self, dish_id: str, name: str, items: Sequence[tuple[str | None, str]]) -> None:
        """Apply an edited dish: rename, drop removed items, reposition kept ones, add new ones.

        ``items`` is the edited list in display order, as ``(item id or None, name)``.
        """
        original = self.mirror.container(dish_id)
        if original is None:
            return
        await self.rename_dish(dish_id, name)

        wanted = [(item_id, item_name.strip()) for item_id, item_name in items if item_name.strip()]
        kept_ids = {item_id for item_id, _ in wanted if item_id}
        for member in original.members:
            if member.id not in kept_ids:
                await self.delete_item(keys.encode(dish_id, member.id))

        for position, (item_id, item_name) in enumerate(wanted):
            current = self.mirror.member(item_id) if item_id else None
            if current is None:
                row = await self.backend.insert_item(dish_id, item_name, position)
                self._confirmed(ITEMS, EventType.INSERT, row.to_dict())
            elif current.name != item_name or current.position != position:
                row = await self.backend.update_item(current.id, item_name, position)
                self._confirmed(ITEMS, EventType.UPDATE, row.to_dict())

    async def add_item(self, dish_id: str, name: str) -> ItemRow | None:
        name = name.strip()
        members = self.mirror.members_of(dish_id)
        if not name or not self.mirror.has_container(dish_id):
            return None
        position = (members[-1].position + 1) if members else 0
        row = await self.backend.insert_item(dish_id, name, position)
        self._confirmed(ITEMS, EventType.INSERT, row.to_dict())
        return row

    async def rename_item(self, key: str, name: str) -> None:
        _, item_id = keys.decode(key)
        name = name.strip()
        current = self.mirror.member(item_id)
        if not name or current is None or current.name == name:
            return
        row = await self.backend.update_item(item_id, name)
        self._confirmed(ITEMS, EventType.UPDATE, row.to_dict())

    async def move_item(self, key: str, delta: int) -> None:
        dish_id, item_id = keys.decode(key)
        members = list(self.mirror.members_of(dish_id))
        ids = [member.id for member in members]
        if item_id not in ids:
            return
        idx = ids.index(item_id)
        target = idx + delta
        if target < 0 or target >= len(members):
            return
        members[idx], members[target] = members[target], members[idx]
        for position, member in enumerate(members):
            if member.position != position:
                row = await self.backend.update_item(member.id, member.name, position)
                self._confirmed(ITEMS, EventType.UPDATE, row.to_dict())

    async def delete_item(self, key: str) -> None:
        dish_id, item_id = keys.decode(key)
        current = self.mirror.member(item_id)
        await self.backend.delete_item(item_id)
        self._confirmed(
            ITEMS,
            EventType.DELETE,
            old={"id": item_id, "dish_id": dish_id, "name": current.name if current else ""},
        )

    async def save_recipe(self, key: str, text: str) -> None:
        _, item_id = keys.decode(key)
        if self.mirror.member(item_id) is None:
            return
        row = await self.backend.update_item_recipe(item_id, text)
        self._confirmed(ITEMS, EventType.UPDATE, row.to_dict())


def _view_from(raw: Mapping[str, Any]) -> ViewState:
    try:
        return ViewState.from_mapping(raw)
    except ValueError as exc:
        logger.warning("stored view is invalid (%s); using default", exc)
        return ViewState()
