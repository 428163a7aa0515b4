"""Daily list: the subset of rows someone is responsible for today."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from preplist.errors import MalformedPersistedState
from preplist.models import Selection
from preplist.row_state import keys_for_container

logger = logging.getLogger(__name__)


def build(selected_keys: Iterable[str]) -> Selection:
    return Selection(enabled=True, member_keys=frozenset(selected_keys))


def clear() -> Selection:
    return Selection(enabled=False, member_keys=frozenset())


def from_mapping(raw: Mapping[str, Any]) -> Selection:
    """Read a persisted selection (``items`` as a list or a ``{key: true}`` map)."""
    if not isinstance(raw, Mapping):
        logger.warning("%s; using default", MalformedPersistedState("daily", "expected a map"))
        return clear()
    items = raw.get("items") or ()
    if isinstance(items, Mapping):
        items = [key for key, picked in items.items() if picked]
    elif not isinstance(items, (list, tuple)):
        logger.warning("%s; using default", MalformedPersistedState("daily.items", "expected a list or map"))
        return clear()
    return Selection(enabled=bool(raw.get("enabled", False)), member_keys=frozenset(str(k) for k in items))


class SelectionManager:
    """Holds the current daily selection and its mutation entry points.

    A daily view over a disabled selection shows every row, so an unset
    daily list never renders an empty checklist.
    """

    def __init__(self, selection: Selection | None = None) -> None:
        self.current = selection or clear()

    def build(self, selected_keys: Iterable[str]) -> Selection:
        self.current = build(selected_keys)
        return self.current

    def clear(self) -> Selection:
        self.current = clear()
        return self.current

    def includes(self, key: str) -> bool:
        """Whether a row is on the daily list, treating a disabled list as everything."""
        if not self.current.enabled:
            return True
        return key in self.current.member_keys

    def discard(self, key: str) -> bool:
        if key not in self.current.member_keys:
            return False
        self.current = Selection(self.current.enabled, self.current.member_keys - {key})
        return True

    def rekey(self, old_key: str, new_key: str) -> None:
        if old_key == new_key or old_key not in self.current.member_keys:
            return
        self.current = Selection(self.current.enabled, (self.current.member_keys - {old_key}) | {new_key})

    def retain(self, live_keys: set[str]) -> int:
        doomed = self.current.member_keys - live_keys
        if doomed:
            self.current = Selection(self.current.enabled, self.current.member_keys & live_keys)
        return len(doomed)

    def delete_all_for_container(self, container_id: str) -> int:
        doomed = keys_for_container(self.current.member_keys, container_id)
        if doomed:
            self.current = Selection(self.current.enabled, self.current.member_keys - set(doomed))
        return len(doomed)
