"""Error types raised by the checklist engine."""

from __future__ import annotations


class PrepListError(Exception):
    """Base class for preplist errors."""


class RemoteCallError(PrepListError):
    """A backend operation failed; local state was left unchanged."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")
        self.operation = operation
        self.cause = cause


class MalformedPersistedState(PrepListError):
    """A persisted snapshot could not be parsed or had the wrong shape."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Malformed persisted state for {key!r}: {reason}")
        self.key = key


class UnparseableKey(PrepListError):
    """A composite row key could not be decoded."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Unparseable row key: {key!r}")
        self.key = key


class OrphanReference(PrepListError):
    """A change referenced a dish or item the mirror does not hold."""
