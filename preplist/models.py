"""Domain models for preplist."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class EventType(str, Enum):
    """Change kinds delivered by the backend change feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ViewMode(str, Enum):
    FULL = "full"
    DAILY = "daily"


class FilterKind(str, Enum):
    ALL = "all"
    DISH = "dish"
    HIGHLIGHTED = "highlighted"


@dataclass(frozen=True)
class DishRow:
    """A dish row as stored by the backend."""

    id: str
    name: str

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> DishRow:
        return cls(id=str(row["id"]), name=str(row.get("name") or ""))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class ItemRow:
    """An item row as stored by the backend."""

    id: str
    dish_id: str
    name: str
    position: int = 0
    recipe: str | None = None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> ItemRow:
        position = row.get("position")
        recipe = row.get("recipe")
        return cls(
            id=str(row["id"]),
            dish_id=str(row["dish_id"]),
            name=str(row.get("name") or ""),
            position=int(position) if position is not None else 0,
            recipe=str(recipe) if recipe is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "dish_id": self.dish_id,
            "name": self.name,
            "position": self.position,
            "recipe": self.recipe,
        }


@dataclass(frozen=True)
class Member:
    """One item of a dish as held by the local mirror."""

    id: str
    container_id: str
    name: str
    position: int


@dataclass(frozen=True)
class Container:
    """A dish and its ordered members."""

    id: str
    name: str
    members: tuple[Member, ...] = ()


@dataclass(frozen=True)
class MemberMeta:
    """Backend truth for an item's recipe, keyed by composite key."""

    remote_id: str
    recipe: str | None = None


@dataclass(frozen=True)
class RowState:
    """Device-local state of one checklist row."""

    on_hand: bool = False
    prep: bool = False
    highlighted: bool = False
    note: str = ""


@dataclass(frozen=True)
class Selection:
    """The daily list: which member keys are on today's checklist."""

    enabled: bool = False
    member_keys: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "items": sorted(self.member_keys)}


@dataclass(frozen=True)
class ViewState:
    """Which rows the checklist shows."""

    mode: ViewMode = ViewMode.FULL
    filter: FilterKind = FilterKind.ALL
    dish_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.value, "filter": self.filter.value, "dish_id": self.dish_id}

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewState:
        dish_id = raw.get("dish_id", raw.get("dishId"))
        return cls(
            mode=ViewMode(raw.get("mode", ViewMode.FULL.value)),
            filter=FilterKind(raw.get("filter", FilterKind.ALL.value)),
            dish_id=str(dish_id) if dish_id else None,
        )


@dataclass(frozen=True)
class ChangeEvent:
    """A push notification for one row of the dishes or items table."""

    table: str
    event_type: EventType
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, table: str, payload: Mapping[str, Any]) -> ChangeEvent:
        new = payload.get("new") or None
        old = payload.get("old") or None
        return cls(
            table=table,
            event_type=EventType(payload["eventType"]),
            new=dict(new) if new else None,
            old=dict(old) if old else None,
        )


@dataclass(frozen=True)
class Notification:
    """A user-facing toast describing an applied remote change."""

    kind: str
    message: str


@dataclass(frozen=True)
class DishView:
    """One projected dish with the members visible under the current view."""

    dish: Container
    members: tuple[Member, ...] = field(default_factory=tuple)
