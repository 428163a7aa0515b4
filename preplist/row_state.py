"""Device-local row state and item metadata, both addressed by row key."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, MutableMapping, TypeVar

from preplist import keys
from preplist.errors import MalformedPersistedState, UnparseableKey
from preplist.models import MemberMeta, RowState

logger = logging.getLogger(__name__)

V = TypeVar("V")


def keys_for_container(row_keys: Iterable[str], container_id: str) -> list[str]:
    """Keys belonging to one dish. Undecodable keys are logged and skipped."""
    matched: list[str] = []
    for key in row_keys:
        try:
            owner = keys.container_of(key)
        except UnparseableKey:
            logger.warning("skipping unparseable row key %r", key)
            continue
        if owner == container_id:
            matched.append(key)
    return matched


def _mapping(name: str, value: Any) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        logger.warning("%s; using default", MalformedPersistedState(name, f"expected a map, got {type(value).__name__}"))
        return {}
    return value


def _move(mapping: MutableMapping[str, V], old_key: str, new_key: str) -> None:
    if old_key == new_key or old_key not in mapping:
        return
    mapping[new_key] = mapping.pop(old_key)


class RowStateStore:
    """On-hand, prep, highlight and note maps for checklist rows."""

    def __init__(self) -> None:
        self._on_hand: dict[str, bool] = {}
        self._prep: dict[str, bool] = {}
        self._highlighted: dict[str, bool] = {}
        self._notes: dict[str, str] = {}

    def _maps(self) -> tuple[dict[str, Any], ...]:
        return (self._on_hand, self._prep, self._highlighted, self._notes)

    def get(self, key: str) -> RowState:
        return RowState(
            on_hand=self._on_hand.get(key, False),
            prep=self._prep.get(key, False),
            highlighted=self._highlighted.get(key, False),
            note=self._notes.get(key, ""),
        )

    def is_highlighted(self, key: str) -> bool:
        return self._highlighted.get(key, False)

    def set_on_hand(self, key: str, value: bool) -> None:
        self._on_hand[key] = value

    def set_prep(self, key: str, value: bool) -> None:
        self._prep[key] = value

    def set_highlighted(self, key: str, value: bool) -> None:
        self._highlighted[key] = value

    def set_note(self, key: str, note: str) -> None:
        self._notes[key] = note

    def toggle_on_hand(self, key: str) -> bool:
        self._on_hand[key] = not self._on_hand.get(key, False)
        return self._on_hand[key]

    def toggle_prep(self, key: str) -> bool:
        self._prep[key] = not self._prep.get(key, False)
        return self._prep[key]

    def toggle_highlight(self, key: str) -> bool:
        self._highlighted[key] = not self._highlighted.get(key, False)
        return self._highlighted[key]

    def delete(self, key: str) -> bool:
        found = False
        for mapping in self._maps():
            if mapping.pop(key, None) is not None:
                found = True
        return found

    def rekey(self, old_key: str, new_key: str) -> None:
        for mapping in self._maps():
            _move(mapping, old_key, new_key)

    def delete_all_for_container(self, container_id: str) -> int:
        doomed = keys_for_container(self.keys(), container_id)
        for key in doomed:
            self.delete(key)
        return len(doomed)

    def keys(self) -> set[str]:
        found: set[str] = set()
        for mapping in self._maps():
            found.update(mapping)
        return found

    def to_snapshot(self) -> dict[str, dict[str, Any]]:
        return {
            "cells": {"on": dict(self._on_hand), "prep": dict(self._prep)},
            "row_hi": dict(self._highlighted),
            "notes": dict(self._notes),
        }

    def restore(
        self,
        cells: Mapping[str, Mapping[str, Any]] | None = None,
        row_hi: Mapping[str, Any] | None = None,
        notes: Mapping[str, Any] | None = None,
    ) -> None:
        cells = _mapping("cells", cells)
        self._on_hand = {str(k): bool(v) for k, v in _mapping("cells.on", cells.get("on")).items()}
        self._prep = {str(k): bool(v) for k, v in _mapping("cells.prep", cells.get("prep")).items()}
        self._highlighted = {str(k): bool(v) for k, v in _mapping("row_hi", row_hi).items()}
        self._notes = {str(k): str(v) for k, v in _mapping("notes", notes).items()}

    def retain(self, live_keys: set[str]) -> int:
        """Drop state for every row not in ``live_keys``."""
        doomed = self.keys() - live_keys
        for key in doomed:
            self.delete(key)
        return len(doomed)


class MemberMetaStore:
    """Recipe metadata mirrored from the backend, keyed by row key."""

    def __init__(self) -> None:
        self._meta: dict[str, MemberMeta] = {}

    def get(self, key: str) -> MemberMeta | None:
        return self._meta.get(key)

    def set(self, key: str, meta: MemberMeta) -> bool:
        if self._meta.get(key) == meta:
            return False
        self._meta[key] = meta
        return True

    def delete(self, key: str) -> bool:
        return self._meta.pop(key, None) is not None

    def rekey(self, old_key: str, new_key: str) -> None:
        _move(self._meta, old_key, new_key)

    def delete_all_for_container(self, container_id: str) -> int:
        doomed = keys_for_container(self._meta, container_id)
        for key in doomed:
            del self._meta[key]
        return len(doomed)

    def clear(self) -> None:
        self._meta = {}

    def keys(self) -> set[str]:
        return set(self._meta)

    def __len__(self) -> int:
        return len(self._meta)
