"""Derived checklist views over the mirror."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping

from preplist import keys
from preplist.constant import BUILTIN_RECIPES
from preplist.data import resolve_recipe
from preplist.mirror import MirrorStore
from preplist.models import Container, DishView, FilterKind, Member, Selection, ViewMode, ViewState
from preplist.row_state import MemberMetaStore, RowStateStore


def member_key(member: Member) -> str:
    return keys.encode(member.container_id, member.id)


def shared_names(containers: Iterable[Container]) -> frozenset[str]:
    """Item names that occur in two or more dishes.

    Matching is by display name on purpose: the same component showing up
    under several dishes is what the highlight is for.
    """
    counts: Counter[str] = Counter()
    for container in containers:
        counts.update({member.name for member in container.members})
    return frozenset(name for name, count in counts.items() if count > 1)


def _in_daily(key: str, view: ViewState, selection: Selection) -> bool:
    if view.mode is not ViewMode.DAILY or not selection.enabled:
        return True
    return key in selection.member_keys


def visible_members(container: Container, view: ViewState, selection: Selection, rows: RowStateStore) -> tuple[Member, ...]:
    visible = []
    for member in container.members:
        key = member_key(member)
        if not _in_daily(key, view, selection):
            continue
        if view.filter is FilterKind.HIGHLIGHTED and not rows.is_highlighted(key):
            continue
        visible.append(member)
    return tuple(visible)


def project(mirror: MirrorStore, view: ViewState, selection: Selection, rows: RowStateStore) -> tuple[DishView, ...]:
    """Ordered ``(dish, visible items)`` pairs for the current view.

    Under the ``dish`` filter only the targeted dish is shown; under
    ``highlighted`` a dish shows only when one of its items survives the
    item filters; under ``all`` every dish shows, empty or not.
    """
    views: list[DishView] = []
    for container in mirror.containers():
        if view.filter is FilterKind.DISH and container.id != view.dish_id:
            continue
        members = visible_members(container, view, selection, rows)
        if view.filter is FilterKind.HIGHLIGHTED and not members:
            continue
        views.append(DishView(container, members))
    return tuple(views)


def has_recipe(
    key: str,
    name: str,
    meta: MemberMetaStore,
    user_recipes: Mapping[str, str],
    builtin: Mapping[str, str] = BUILTIN_RECIPES,
) -> bool:
    item_meta = meta.get(key)
    return bool(resolve_recipe(item_meta.recipe if item_meta else None, name, user_recipes, builtin))
