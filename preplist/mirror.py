"""In-memory mirror of the shared dishes/items tables."""

from __future__ import annotations

import logging
from bisect import bisect_right
from typing import Iterable

from preplist.errors import OrphanReference
from preplist.models import Container, DishRow, ItemRow, Member

logger = logging.getLogger(__name__)


class MirrorStore:
    """Local copy of remote dishes and their position-ordered items.

    Dishes keep discovery order. Items of a dish are always sorted by
    backend position; items sharing a position keep their prior relative
    order. Item ids are unique across the whole mirror.
    """

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self._members: dict[str, list[Member]] = {}
        self._owner: dict[str, str] = {}

    def load(self, dishes: Iterable[DishRow], items: Iterable[ItemRow]) -> None:
        """Replace the whole mirror with a bulk fetch."""
        self._names = {}
        self._members = {}
        self._owner = {}
        for dish in dishes:
            self._names[dish.id] = dish.name
            self._members[dish.id] = []
        dropped = 0
        for item in items:
            bucket = self._members.get(item.dish_id)
            if bucket is None or item.id in self._owner:
                dropped += 1
                continue
            bucket.append(Member(item.id, item.dish_id, item.name, item.position))
            self._owner[item.id] = item.dish_id
        for bucket in self._members.values():
            bucket.sort(key=lambda member: member.position)
        if dropped:
            logger.debug("mirror load dropped %d orphan/duplicate items", dropped)

    def upsert_container(self, container_id: str, name: str) -> bool:
        """Insert or rename a dish. Returns whether anything changed."""
        if self._names.get(container_id) == name and container_id in self._members:
            return False
        self._names[container_id] = name
        self._members.setdefault(container_id, [])
        return True

    def remove_container(self, container_id: str) -> list[str]:
        """Drop a dish and return the ids of the items it held."""
        if container_id not in self._names:
            raise OrphanReference(f"unknown dish {container_id!r}")
        del self._names[container_id]
        removed = [member.id for member in self._members.pop(container_id, [])]
        for member_id in removed:
            self._owner.pop(member_id, None)
        return removed

    def upsert_member(self, container_id: str, member_id: str, name: str, position: int) -> bool:
        """Insert an item, or rename/reposition/move it. Returns whether anything changed."""
        target = self._members.get(container_id)
        if target is None:
            raise OrphanReference(f"unknown dish {container_id!r}")
        updated = Member(member_id, container_id, name, position)
        existing = self.member(member_id)
        if existing == updated:
            return False

        if existing is not None and existing.container_id == container_id and existing.position == position:
            idx = target.index(existing)
            target[idx] = updated
            return True

        if existing is not None:
            self._members[existing.container_id].remove(existing)
        positions = [member.position for member in target]
        target.insert(bisect_right(positions, position), updated)
        self._owner[member_id] = container_id
        return True

    def remove_member(self, container_id: str, member_id: str) -> Member:
        """Remove one item of a dish and return it."""
        existing = self.member(member_id)
        if existing is None or existing.container_id != container_id:
            raise OrphanReference(f"unknown item {member_id!r} in dish {container_id!r}")
        self._members[container_id].remove(existing)
        del self._owner[member_id]
        return existing

    def has_container(self, container_id: str) -> bool:
        return container_id in self._names

    def owner_of(self, member_id: str) -> str | None:
        return self._owner.get(member_id)

    def member(self, member_id: str) -> Member | None:
        container_id = self._owner.get(member_id)
        if container_id is None:
            return None
        for member in self._members.get(container_id, ()):
            if member.id == member_id:
                return member
        return None

    def members_of(self, container_id: str) -> tuple[Member, ...]:
        return tuple(self._members.get(container_id, ()))

    def container(self, container_id: str) -> Container | None:
        if container_id not in self._names:
            return None
        return Container(container_id, self._names[container_id], self.members_of(container_id))

    def containers(self) -> tuple[Container, ...]:
        return tuple(
            Container(container_id, name, self.members_of(container_id)) for container_id, name in self._names.items()
        )

    def __len__(self) -> int:
        return len(self._names)

    def snapshot(self) -> list[dict[str, object]]:
        """Serializable copy of the mirror (dish order, item order)."""
        return [
            {
                "id": dish.id,
                "name": dish.name,
                "items": [{"id": m.id, "name": m.name, "position": m.position} for m in dish.members],
            }
            for dish in self.containers()
        ]
